"""Inventory domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProductBase(BaseModel):
    barcode: Optional[str] = None
    sku: Optional[str] = None
    name_ar: Optional[str] = None
    generic_name: Optional[str] = None
    dci_code: Optional[str] = None
    category: Optional[str] = None
    form: Optional[str] = None
    dosage: Optional[str] = None
    manufacturer: Optional[str] = None
    purchase_price: Optional[float] = Field(None, ge=0)
    is_chifa_listed: Optional[bool] = None
    reimbursement_rate: Optional[int] = None
    tarif_reference: Optional[float] = None
    requires_prescription: Optional[bool] = None
    is_controlled: Optional[bool] = None
    min_stock_level: Optional[int] = Field(None, ge=0)
    reorder_quantity: Optional[int] = Field(None, ge=0)
    tva_rate: Optional[int] = None


class ProductCreate(ProductBase):
    """Schema for adding a product to the catalog"""

    name: Optional[str] = None
    selling_price: Optional[float] = None


class ProductUpdate(ProductBase):
    """Partial update - only fields that are sent are applied"""

    name: Optional[str] = None
    selling_price: Optional[float] = None
    is_active: Optional[bool] = None


class ProductResponse(BaseModel):
    id: str
    pharmacy_id: str
    barcode: Optional[str] = None
    sku: Optional[str] = None
    name: str
    name_ar: Optional[str] = None
    generic_name: Optional[str] = None
    dci_code: Optional[str] = None
    category: Optional[str] = None
    form: Optional[str] = None
    dosage: Optional[str] = None
    manufacturer: Optional[str] = None
    purchase_price: Optional[float] = None
    selling_price: float
    margin_percent: Optional[float] = None
    is_chifa_listed: bool
    reimbursement_rate: int
    tarif_reference: Optional[float] = None
    requires_prescription: bool
    is_controlled: bool
    min_stock_level: int
    reorder_quantity: int
    tva_rate: int
    source: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BatchResponse(BaseModel):
    id: str
    product_id: str
    batch_number: Optional[str] = None
    lot_number: Optional[str] = None
    quantity: int
    reserved_quantity: int
    purchase_price_unit: Optional[float] = None
    expiry_date: Optional[date] = None
    received_date: Optional[date] = None
    location: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class InventoryTransactionResponse(BaseModel):
    id: str
    product_id: str
    inventory_id: Optional[str] = None
    transaction_type: str
    quantity_change: int
    quantity_before: int
    quantity_after: int
    unit_price: Optional[float] = None
    total_value: Optional[float] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    batch_number: Optional[str] = None
    reason_code: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_by_name: Optional[str] = None
    approval_status: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StockReceive(BaseModel):
    """A delivery of a product, becomes a new batch"""

    product_id: Optional[str] = None
    quantity: Optional[int] = None
    batch_number: Optional[str] = None
    lot_number: Optional[str] = None
    purchase_price_unit: Optional[float] = None
    expiry_date: Optional[date] = None
    location: Optional[str] = None


class StockAdjustment(BaseModel):
    product_id: Optional[str] = None
    adjustment_type: str = "add"  # add, remove
    quantity: Optional[int] = None
    reason_code: Optional[str] = None
    inventory_id: Optional[str] = None
    notes: Optional[str] = None


class WebhookCreate(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    secret: Optional[str] = None
    events: Optional[list[str]] = None


class WebhookUpdate(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    url: Optional[str] = None
    secret: Optional[str] = None
    events: Optional[list[str]] = None
    is_active: Optional[bool] = None
