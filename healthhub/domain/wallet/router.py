"""Wallet router - FastAPI endpoints for balances and deposit refunds"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .schemas import RefundRequest, TransactionListResponse, WalletResponse
from .service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallet", tags=["Wallet"])


def get_wallet_service(db: Session = Depends(get_db)) -> WalletService:
    """Dependency injection for WalletService"""
    return WalletService(db)


@router.get("", response_model=WalletResponse)
async def get_wallet(
    current_user: Profile = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    """Current balance, frozen deposits and the latest transactions"""
    return service.get_wallet(current_user)


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    type: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    return service.list_transactions(current_user, limit, offset, type)


# ============================================================================
# REFUNDS
# ============================================================================


@router.get("/refund")
async def preview_refund(
    appointment_id: Optional[str] = Query(None),
    deposit_id: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    """Preview the refund a cancellation would give right now"""
    return service.preview_refund(current_user, appointment_id, deposit_id)


@router.post("/refund")
async def process_refund(
    data: RefundRequest,
    current_user: Profile = Depends(get_current_user),
    service: WalletService = Depends(get_wallet_service),
):
    """Refund a frozen deposit (patient or provider of the appointment)"""
    return service.process_refund(current_user, data)
