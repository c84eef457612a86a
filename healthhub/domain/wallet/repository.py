"""Wallet repository - Database operations for wallets and deposits"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...config import DEFAULT_CURRENCY
from ...models import BookingDeposit, Wallet, WalletTransaction


class WalletRepository:
    """Repository for wallet database operations"""

    @staticmethod
    def get_wallet(db: Session, user_id: str, for_update: bool = False) -> Optional[Wallet]:
        query = db.query(Wallet).filter(Wallet.user_id == user_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def get_or_create_wallet(db: Session, user_id: str, for_update: bool = False) -> Wallet:
        """Wallets are created lazily on first use"""
        wallet = WalletRepository.get_wallet(db, user_id, for_update=for_update)
        if wallet:
            return wallet
        wallet = Wallet(user_id=user_id, balance=0, currency=DEFAULT_CURRENCY)
        db.add(wallet)
        db.flush()
        return wallet

    @staticmethod
    def add_transaction(
        db: Session,
        wallet: Wallet,
        type: str,
        amount: float,
        description: str,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> WalletTransaction:
        """Apply a signed amount to the wallet and record it, caller commits"""
        wallet.balance = round(float(wallet.balance or 0) + amount, 2)
        transaction = WalletTransaction(
            wallet_id=wallet.id,
            type=type,
            amount=amount,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
            balance_after=wallet.balance,
        )
        db.add(transaction)
        db.flush()
        return transaction

    @staticmethod
    def list_transactions(
        db: Session, wallet_id: str, limit: int = 20, offset: int = 0, type: Optional[str] = None
    ) -> tuple[list[WalletTransaction], int]:
        query = db.query(WalletTransaction).filter(WalletTransaction.wallet_id == wallet_id)
        if type:
            query = query.filter(WalletTransaction.type == type)
        total = query.count()
        transactions = (
            query.order_by(WalletTransaction.created_at.desc()).offset(offset).limit(limit).all()
        )
        return transactions, total

    @staticmethod
    def frozen_total(db: Session, user_id: str) -> float:
        total = (
            db.query(func.coalesce(func.sum(BookingDeposit.amount), 0))
            .filter(BookingDeposit.user_id == user_id, BookingDeposit.status == "frozen")
            .scalar()
        )
        return float(total or 0)

    # ========================================================================
    # DEPOSITS
    # ========================================================================

    @staticmethod
    def get_deposit(db: Session, deposit_id: str, for_update: bool = False) -> Optional[BookingDeposit]:
        query = db.query(BookingDeposit).filter(BookingDeposit.id == deposit_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def get_latest_deposit(
        db: Session, appointment_id: str, for_update: bool = False
    ) -> Optional[BookingDeposit]:
        """Frozen deposit first, otherwise the most recent one"""
        query = db.query(BookingDeposit).filter(BookingDeposit.appointment_id == appointment_id)
        if for_update:
            # Locked rows are re-read so a concurrent refund is seen
            query = query.with_for_update().populate_existing()
        frozen = query.filter(BookingDeposit.status == "frozen").first()
        if frozen:
            return frozen
        return query.order_by(BookingDeposit.created_at.desc()).first()

    @staticmethod
    def get_legacy_deposit_transaction(db: Session, appointment_id: str) -> Optional[WalletTransaction]:
        """Deposit debited before booking_deposits rows existed"""
        return (
            db.query(WalletTransaction)
            .filter(
                WalletTransaction.reference_type == "appointment",
                WalletTransaction.reference_id == appointment_id,
                WalletTransaction.type == "deposit",
            )
            .first()
        )

    @staticmethod
    def create_deposit(
        db: Session,
        user_id: str,
        appointment_id: str,
        amount: float,
        debit_transaction_id: Optional[str] = None,
    ) -> BookingDeposit:
        deposit = BookingDeposit(
            user_id=user_id,
            appointment_id=appointment_id,
            amount=amount,
            status="frozen",
            debit_transaction_id=debit_transaction_id,
        )
        db.add(deposit)
        db.flush()
        return deposit
