"""Wallet service - Balances, history and deposit refunds"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Appointment, BookingDeposit, Profile
from ...shared.clock import combine_date_time, utcnow
from ..appointments.refund_policy import (
    REFUND_POLICY,
    calculate_refund,
    calculate_refund_percentage,
    deposit_outcome,
    hours_until,
    refund_description,
    refund_message,
)
from .repository import WalletRepository
from .schemas import RefundRequest

logger = logging.getLogger(__name__)


def appointment_datetime(appointment: Appointment):
    return combine_date_time(appointment.appointment_date, appointment.appointment_time)


def caller_relation(appointment: Appointment, user: Profile) -> Optional[str]:
    """'provider', 'patient' or None when the caller has no stake in the appointment"""
    professional = appointment.professional
    if professional is not None and professional.auth_user_id == user.id:
        return "provider"
    if appointment.patient_id == user.id:
        return "patient"
    return None


class WalletService:
    """Service layer for wallet business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = WalletRepository()

    # ========================================================================
    # BALANCE & HISTORY
    # ========================================================================

    def get_wallet(self, user: Profile) -> dict:
        wallet = self.repo.get_or_create_wallet(self.db, user.id)
        self.db.commit()
        recent, _ = self.repo.list_transactions(self.db, wallet.id, limit=10)
        return {
            "id": wallet.id,
            "balance": float(wallet.balance or 0),
            "currency": wallet.currency,
            "frozen_amount": self.repo.frozen_total(self.db, user.id),
            "recent_transactions": recent,
        }

    def list_transactions(
        self, user: Profile, limit: int = 20, offset: int = 0, type: Optional[str] = None
    ) -> dict:
        wallet = self.repo.get_wallet(self.db, user.id)
        if not wallet:
            return {"transactions": [], "total": 0, "limit": limit, "offset": offset}
        transactions, total = self.repo.list_transactions(self.db, wallet.id, limit, offset, type)
        return {"transactions": transactions, "total": total, "limit": limit, "offset": offset}

    # ========================================================================
    # DEPOSITS
    # ========================================================================

    def pay_deposit(self, user: Profile, appointment: Appointment, amount: float) -> BookingDeposit:
        """Debit the wallet for a booking and freeze the amount, caller commits"""
        wallet = self.repo.get_or_create_wallet(self.db, user.id, for_update=True)
        transaction = self.repo.add_transaction(
            self.db,
            wallet,
            "deposit",
            -amount,
            f"Deposit for appointment {appointment.appointment_date.isoformat()} {appointment.appointment_time}",
            reference_type="appointment",
            reference_id=appointment.id,
        )
        deposit = self.repo.create_deposit(
            self.db, user.id, appointment.id, amount, debit_transaction_id=transaction.id
        )
        appointment.deposit_status = "frozen"
        return deposit

    def find_deposit(self, appointment: Appointment) -> Optional[BookingDeposit]:
        """
        Deposit attached to an appointment. Legacy wallet debits without a
        booking_deposits row are promoted into a frozen deposit.
        """
        deposit = self.repo.get_latest_deposit(self.db, appointment.id, for_update=True)
        if deposit:
            return deposit

        legacy = self.repo.get_legacy_deposit_transaction(self.db, appointment.id)
        if not legacy:
            return None

        logger.info(f"🔍 Promoting legacy deposit transaction {legacy.id} for appointment {appointment.id}")
        return self.repo.create_deposit(
            self.db,
            appointment.patient_id or legacy.wallet.user_id,
            appointment.id,
            abs(legacy.amount),
            debit_transaction_id=legacy.id,
        )

    def settle_deposit(
        self,
        appointment: Appointment,
        deposit: BookingDeposit,
        cancelled_by: str,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Refund a frozen deposit according to the cancellation policy.
        The caller commits.
        """
        percentage = calculate_refund_percentage(
            appointment_datetime(appointment), utcnow(), cancelled_by
        )
        refund_amount, forfeit_amount = calculate_refund(deposit.amount, percentage)

        refund_transaction_id = None
        if refund_amount > 0:
            wallet = self.repo.get_or_create_wallet(self.db, deposit.user_id, for_update=True)
            transaction = self.repo.add_transaction(
                self.db,
                wallet,
                "refund",
                refund_amount,
                refund_description(percentage, reason),
                reference_type="deposit",
                reference_id=deposit.id,
            )
            refund_transaction_id = transaction.id

        new_status = deposit_outcome(percentage)
        deposit.status = new_status
        deposit.refund_amount = refund_amount
        deposit.refund_percentage = percentage
        deposit.refund_reason = reason or f"Cancelled by {cancelled_by}"
        deposit.refunded_at = utcnow()
        deposit.refund_transaction_id = refund_transaction_id
        appointment.deposit_status = new_status

        logger.info(
            f"💰 Deposit {deposit.id} {new_status}: {percentage}% ({refund_amount}) cancelled by {cancelled_by}"
        )
        return {
            "deposit_id": deposit.id,
            "deposit_amount": float(deposit.amount),
            "refund_amount": refund_amount,
            "refund_percentage": percentage,
            "forfeit_amount": forfeit_amount,
            "new_status": new_status,
            "refund_transaction_id": refund_transaction_id,
            "message": refund_message(percentage),
        }

    # ========================================================================
    # REFUNDS
    # ========================================================================

    def _load_target(
        self, appointment_id: Optional[str], deposit_id: Optional[str], lock: bool = False
    ) -> tuple[Appointment, Optional[BookingDeposit]]:
        if not appointment_id and not deposit_id:
            raise HTTPException(status_code=400, detail="appointment_id or deposit_id required")

        deposit = None
        if deposit_id:
            deposit = self.repo.get_deposit(self.db, deposit_id, for_update=lock)
            if not deposit:
                raise HTTPException(status_code=404, detail="Deposit not found")
            if appointment_id and deposit.appointment_id != appointment_id:
                raise HTTPException(status_code=400, detail="Deposit does not belong to this appointment")
            appointment_id = deposit.appointment_id

        appointment = self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        return appointment, deposit

    def preview_refund(
        self, user: Profile, appointment_id: Optional[str] = None, deposit_id: Optional[str] = None
    ) -> dict:
        """What a patient cancellation would refund right now, without side effects"""
        appointment, deposit = self._load_target(appointment_id, deposit_id)
        if not caller_relation(appointment, user):
            raise HTTPException(status_code=403, detail="Unauthorized")

        deposit_amount = 0.0
        deposit_status = "none"
        if deposit is None:
            deposit = self.repo.get_latest_deposit(self.db, appointment.id)
        if deposit is not None:
            deposit_amount = float(deposit.amount)
            deposit_status = deposit.status
            deposit_id = deposit.id
        else:
            legacy = self.repo.get_legacy_deposit_transaction(self.db, appointment.id)
            if legacy:
                deposit_amount = abs(legacy.amount)
                deposit_status = "frozen"
            deposit_id = None

        starts_at = appointment_datetime(appointment)
        now = utcnow()
        percentage = calculate_refund_percentage(starts_at, now)
        refund_amount, forfeit_amount = calculate_refund(deposit_amount, percentage)

        return {
            "appointment_id": appointment.id,
            "deposit_id": deposit_id,
            "deposit_amount": deposit_amount,
            "deposit_status": deposit_status,
            "refund_percentage": percentage,
            "refund_amount": refund_amount,
            "forfeit_amount": forfeit_amount,
            "appointment_time": starts_at.isoformat(),
            "hours_until": max(0.0, round(hours_until(starts_at, now), 2)),
            "can_refund": deposit_status == "frozen",
            "refund_policy": REFUND_POLICY,
        }

    def process_refund(self, user: Profile, data: RefundRequest) -> dict:
        """Refund the deposit of an appointment on behalf of its patient or provider"""
        appointment, deposit = self._load_target(data.appointment_id, data.deposit_id, lock=True)
        relation = caller_relation(appointment, user)
        if not relation:
            raise HTTPException(status_code=403, detail="Unauthorized")

        if deposit is None:
            deposit = self.find_deposit(appointment)
        if deposit is None:
            return {
                "success": True,
                "message": "No deposit found for this appointment",
                "refund_amount": 0,
                "refund_percentage": 0,
            }

        if deposit.status != "frozen":
            raise HTTPException(status_code=400, detail=f"Deposit is already {deposit.status}")

        try:
            result = self.settle_deposit(appointment, deposit, relation, data.reason)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(f"❌ Refund failed for deposit {deposit.id}")
            raise
        return {"success": True, **result}
