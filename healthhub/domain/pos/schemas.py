"""POS domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class DrawerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: Optional[str] = None


class DrawerResponse(BaseModel):
    id: str
    name: str
    code: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class SessionOpen(BaseModel):
    drawer_id: Optional[str] = None
    opening_balance: float = Field(0, ge=0)
    opening_notes: Optional[str] = None


class SessionClose(BaseModel):
    counted_cash: Optional[float] = None
    counted_cards: Optional[float] = None
    counted_cheques: Optional[float] = None
    variance_notes: Optional[str] = None


class SessionResponse(BaseModel):
    id: str
    drawer_id: str
    session_number: str
    status: str
    opened_at: Optional[datetime] = None
    opened_by: Optional[str] = None
    opened_by_name: Optional[str] = None
    opening_balance: float
    opening_notes: Optional[str] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None
    closed_by_name: Optional[str] = None
    counted_cash: Optional[float] = None
    counted_cards: Optional[float] = None
    counted_cheques: Optional[float] = None
    system_cash: Optional[float] = None
    system_cards: Optional[float] = None
    system_cheques: Optional[float] = None
    system_chifa: Optional[float] = None
    variance_cash: Optional[float] = None
    variance_notes: Optional[str] = None
    drawer: Optional[DrawerResponse] = None

    class Config:
        from_attributes = True


class CustomerCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = None
    chifa_number: Optional[str] = None


class CustomerResponse(BaseModel):
    id: str
    full_name: str
    phone: Optional[str] = None
    chifa_number: Optional[str] = None
    loyalty_points: int

    class Config:
        from_attributes = True


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    unit_price: Optional[float] = Field(None, ge=0)  # defaults to the catalog price
    discount_amount: float = Field(0, ge=0)
    discount_percent: float = Field(0, ge=0, le=100)
    tva_rate: Optional[int] = None
    is_chifa_item: Optional[bool] = None
    reimbursement_rate: Optional[int] = None


class Payments(BaseModel):
    cash: float = Field(0, ge=0)
    card: float = Field(0, ge=0)
    cheque: float = Field(0, ge=0)
    mobile: float = Field(0, ge=0)
    credit: float = Field(0, ge=0)

    @property
    def total(self) -> float:
        return self.cash + self.card + self.cheque + self.mobile + self.credit


class SaleCreate(BaseModel):
    """A completed checkout"""

    items: list[CartItem] = []
    session_id: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    patient_chifa_number: Optional[str] = None
    discount_percent: float = Field(0, ge=0, le=100)
    payments: Payments = Payments()


class SaleItemResponse(BaseModel):
    id: str
    product_id: str
    product_name: str
    product_barcode: Optional[str] = None
    quantity: int
    unit_price: float
    discount_amount: float
    discount_percent: float
    tva_rate: int
    tva_amount: float
    is_chifa_item: bool
    reimbursement_rate: int
    chifa_amount: float
    patient_amount: float
    line_total: float

    class Config:
        from_attributes = True


class SaleResponse(BaseModel):
    id: str
    sale_number: str
    session_id: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    subtotal: float
    discount_amount: float
    discount_percent: float
    tax_amount: float
    total_amount: float
    chifa_total: float
    patient_total: float
    paid_cash: float
    paid_card: float
    paid_cheque: float
    paid_mobile: float
    paid_credit: float
    change_given: float
    loyalty_points_earned: int
    status: str
    created_by: Optional[str] = None
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None
    items: list[SaleItemResponse] = []

    class Config:
        from_attributes = True
