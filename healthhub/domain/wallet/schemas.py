"""Wallet domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class WalletTransactionResponse(BaseModel):
    id: str
    type: str
    amount: float
    description: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    balance_after: Optional[float] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WalletResponse(BaseModel):
    id: str
    balance: float
    currency: str
    frozen_amount: float = 0
    recent_transactions: list[WalletTransactionResponse] = []


class TransactionListResponse(BaseModel):
    transactions: list[WalletTransactionResponse]
    total: int
    limit: int
    offset: int


class RefundRequest(BaseModel):
    """Schema for processing a deposit refund"""

    appointment_id: Optional[str] = None
    deposit_id: Optional[str] = None
    reason: Optional[str] = None
