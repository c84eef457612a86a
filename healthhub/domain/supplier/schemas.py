"""Supplier domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class OrderItemInput(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    """Purchase order placed by a buyer"""

    supplier_id: Optional[str] = None
    items: list[OrderItemInput] = []
    status: Optional[Literal["draft", "submitted"]] = None
    expected_delivery_date: Optional[date] = None
    delivery_address: Optional[str] = None
    delivery_wilaya: Optional[str] = None
    delivery_commune: Optional[str] = None
    buyer_notes: Optional[str] = None


class BuyerOrderAction(BaseModel):
    order_id: Optional[str] = None
    action: Optional[str] = None  # submit, cancel, confirm_delivery, mark_paid
    buyer_notes: Optional[str] = None


class SupplierOrderAction(BaseModel):
    order_id: Optional[str] = None
    action: Optional[str] = None  # confirm, reject, process, ship, cancel, mark_paid
    expected_delivery_date: Optional[date] = None
    supplier_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None


class PartyResponse(BaseModel):
    id: str
    business_name: str
    type: str
    phone: Optional[str] = None
    wilaya: Optional[str] = None

    class Config:
        from_attributes = True


class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    product_name: str
    product_sku: Optional[str] = None
    product_barcode: Optional[str] = None
    quantity: int
    unit_price: float
    discount_percent: float
    line_total: float
    notes: Optional[str] = None
    item_status: str

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    order_number: str
    buyer_id: str
    supplier_id: str
    status: str
    subtotal: float
    discount_amount: float
    tax_amount: float
    shipping_cost: float
    total: float
    expected_delivery_date: Optional[date] = None
    actual_delivery_date: Optional[date] = None
    delivery_address: Optional[str] = None
    delivery_wilaya: Optional[str] = None
    delivery_commune: Optional[str] = None
    buyer_notes: Optional[str] = None
    supplier_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    submitted_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    buyer: Optional[PartyResponse] = None
    supplier: Optional[PartyResponse] = None
    items: list[OrderItemResponse] = []

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    id: str
    actor_id: Optional[str] = None
    actor_type: Optional[str] = None
    actor_name: Optional[str] = None
    entity_type: str
    entity_id: str
    entity_ref: Optional[str] = None
    action: str
    action_label: Optional[str] = None
    old_values: Optional[dict] = None
    new_values: Optional[dict] = None
    changed_fields: Optional[list[str]] = None
    buyer_id: Optional[str] = None
    order_id: Optional[str] = None
    amount_before: Optional[float] = None
    amount_after: Optional[float] = None
    amount_change: Optional[float] = None
    currency: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
