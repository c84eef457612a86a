"""Appointment service - Booking, wallet payment and cancellation"""

import logging
from typing import Optional

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...models import Appointment, Profile
from ...notifications import create_notification
from ...shared.clock import utcnow
from ..scheduling.hours import ensure_bookable
from ..wallet.repository import WalletRepository
from ..wallet.service import WalletService, caller_relation
from .repository import AppointmentRepository
from .schemas import AppointmentCreate, AppointmentStatusUpdate, WalletAppointmentCreate

logger = logging.getLogger(__name__)

# Allowed provider-driven status moves
STATUS_TRANSITIONS = {
    "confirmed": ("pending",),
    "completed": ("pending", "confirmed"),
    "no_show": ("pending", "confirmed"),
}


def cancellation_message(refund: Optional[dict]) -> str:
    if not refund:
        return "Appointment cancelled."
    if refund["refund_percentage"] == 100:
        return "Appointment cancelled. Full refund processed."
    if refund["refund_percentage"] > 0:
        return f"Appointment cancelled. Partial refund ({refund['refund_percentage']}%) processed."
    return "Appointment cancelled. No refund (late cancellation)."


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()
        self.wallets = WalletService(db)

    # ========================================================================
    # READ
    # ========================================================================

    def list_appointments(
        self, user: Profile, role: str = "patient", status: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> list[Appointment]:
        return self.repo.list_for_user(self.db, user.id, role == "provider", status, limit, offset)

    def get_appointment(self, appointment_id: str, user: Profile) -> Appointment:
        """Appointments are visible to their patient and their provider only"""
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        if not caller_relation(appointment, user):
            raise HTTPException(status_code=403, detail="Unauthorized")
        return appointment

    # ========================================================================
    # BOOKING
    # ========================================================================

    def _prepare_booking(self, data: AppointmentCreate, user: Profile):
        if data.patient_id and data.patient_id != user.id:
            raise HTTPException(status_code=403, detail="You can only book appointments for your own account.")

        professional = self.repo.get_professional(self.db, data.professional_id)
        if not professional or not professional.is_active:
            raise HTTPException(status_code=404, detail="Provider not found")

        ensure_bookable(professional, data.appointment_date, data.appointment_time)
        return professional

    def _ensure_not_duplicate(self, data: AppointmentCreate, user: Profile):
        duplicate = self.repo.find_duplicate(
            self.db, user.id, data.professional_id, data.appointment_date, data.appointment_time
        )
        if duplicate:
            raise HTTPException(status_code=409, detail="An appointment already exists for this time slot.")

    def _new_appointment(self, data: AppointmentCreate, user: Profile, professional, **extra) -> Appointment:
        return self.repo.create_appointment(
            self.db,
            patient_id=user.id,
            professional_id=professional.id,
            family_member_id=data.family_member_id,
            patient_name=data.patient_name or user.full_name,
            patient_email=data.patient_email or user.email,
            patient_phone=data.patient_phone or user.phone,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            duration=data.duration,
            visit_type=data.visit_type or "in-person",
            notes=data.notes,
            status="confirmed" if professional.auto_confirm_appointments else "pending",
            **extra,
        )

    def _notify_provider(self, appointment: Appointment, professional):
        create_notification(
            self.db,
            professional.auth_user_id,
            "appointment",
            "New Appointment",
            f"{appointment.patient_name or 'A patient'} booked {appointment.appointment_date.isoformat()} "
            f"at {appointment.appointment_time}",
            metadata={"appointment_id": appointment.id},
            action_url=f"/professional/dashboard/appointments/{appointment.id}",
        )

    def create_appointment(self, data: AppointmentCreate, user: Profile) -> Appointment:
        """Book without payment (cash at the visit or free consultation)"""
        professional = self._prepare_booking(data, user)
        self._ensure_not_duplicate(data, user)

        appointment = self._new_appointment(
            data,
            user,
            professional,
            payment_method=data.payment_method,
            payment_status="pending" if data.payment_method == "cash" else "unpaid",
        )
        self._notify_provider(appointment, professional)
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment.id} booked with {professional.id} ({appointment.status})")
        return appointment

    def create_with_wallet(self, data: WalletAppointmentCreate, user: Profile):
        """
        Book and pay a deposit from the patient's wallet. Nothing is booked
        when the balance does not cover the amount.
        """
        if not data.payment_amount or data.payment_amount <= 0:
            raise HTTPException(status_code=400, detail="Invalid payment amount.")
        if data.patient_id and data.patient_id != user.id:
            raise HTTPException(status_code=403, detail="Wallet payment is only for your own account.")

        professional = self._prepare_booking(data, user)

        # Row stays locked until commit
        wallet = WalletRepository.get_wallet(self.db, user.id, for_update=True)
        balance = float(wallet.balance or 0) if wallet else 0.0
        if balance < data.payment_amount:
            self.db.rollback()
            return JSONResponse(
                status_code=400,
                content={
                    "success": False,
                    "detail": "Insufficient balance",
                    "balance": balance,
                    "required": data.payment_amount,
                },
            )

        self._ensure_not_duplicate(data, user)

        try:
            appointment = self._new_appointment(
                data,
                user,
                professional,
                payment_method="wallet",
                payment_status="paid",
                payment_amount=data.payment_amount,
            )
            deposit = self.wallets.pay_deposit(user, appointment, data.payment_amount)
            self._notify_provider(appointment, professional)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(f"❌ Wallet booking failed for user {user.id}")
            raise

        self.db.refresh(appointment)
        wallet = WalletRepository.get_wallet(self.db, user.id)
        logger.info(f"💳 Appointment {appointment.id} paid from wallet, deposit {deposit.id} frozen")
        return {
            "success": True,
            "appointment": appointment,
            "deposit_id": deposit.id,
            "balance_after": float(wallet.balance),
        }

    # ========================================================================
    # STATUS
    # ========================================================================

    def update_status(self, appointment_id: str, data: AppointmentStatusUpdate, user: Profile) -> Appointment:
        appointment = self.get_appointment(appointment_id, user)
        if caller_relation(appointment, user) != "provider":
            raise HTTPException(status_code=403, detail="Only the provider can update the status")
        if appointment.status not in STATUS_TRANSITIONS[data.status]:
            raise HTTPException(
                status_code=400, detail=f"Cannot mark a {appointment.status} appointment as {data.status}"
            )

        appointment.status = data.status
        if data.status == "completed":
            # The visit happened, the provider keeps the deposit
            for deposit in appointment.deposits:
                if deposit.status == "frozen":
                    deposit.status = "released"
                    appointment.deposit_status = "released"
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    # ========================================================================
    # CANCELLATION
    # ========================================================================

    def cancel_appointment(self, appointment_id: str, user: Profile, reason: Optional[str] = None) -> dict:
        """Cancel and refund the frozen deposit following the refund policy"""
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        if appointment.status == "cancelled":
            raise HTTPException(status_code=400, detail="Appointment is already cancelled")

        relation = caller_relation(appointment, user)
        if not relation:
            raise HTTPException(status_code=403, detail="Unauthorized to cancel this appointment")

        try:
            refund = None
            deposit = self.wallets.find_deposit(appointment)
            if deposit is not None and deposit.status == "frozen":
                refund = self.wallets.settle_deposit(appointment, deposit, relation, reason)

            appointment.status = "cancelled"
            appointment.cancelled_by = relation
            appointment.cancellation_reason = reason
            appointment.cancelled_at = utcnow()

            if relation == "provider":
                create_notification(
                    self.db,
                    appointment.patient_id,
                    "appointment_cancelled",
                    "Appointment Cancelled",
                    f"Your appointment on {appointment.appointment_date.isoformat()} at "
                    f"{appointment.appointment_time} was cancelled by the provider",
                    metadata={"appointment_id": appointment.id},
                )
            elif appointment.professional is not None:
                create_notification(
                    self.db,
                    appointment.professional.auth_user_id,
                    "appointment_cancelled",
                    "Appointment Cancelled",
                    f"{appointment.patient_name or 'A patient'} cancelled the appointment on "
                    f"{appointment.appointment_date.isoformat()} at {appointment.appointment_time}",
                    metadata={"appointment_id": appointment.id},
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(f"❌ Cancellation failed for appointment {appointment_id}")
            raise

        logger.info(f"🚫 Appointment {appointment_id} cancelled by {relation}")
        return {
            "success": True,
            "appointment_id": appointment_id,
            "cancelled_by": relation,
            "reason": reason or "No reason provided",
            "refund": refund
            or {
                "deposit_amount": 0,
                "refund_amount": 0,
                "refund_percentage": 0,
                "message": "No deposit found",
            },
            "message": cancellation_message(refund),
        }
