"""Scheduling repository - Database operations for availability"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment, BlockedSlot, Professional, TimeOffRequest

INACTIVE_APPOINTMENT_STATUSES = ("cancelled", "rejected")


class SchedulingRepository:
    """Repository for scheduling database operations"""

    @staticmethod
    def get_professional(db: Session, professional_id: str) -> Optional[Professional]:
        return db.query(Professional).filter(Professional.id == professional_id).first()

    @staticmethod
    def get_booked_appointments(db: Session, professional_id: str, day: date) -> list[Appointment]:
        return (
            db.query(Appointment)
            .filter(
                Appointment.professional_id == professional_id,
                Appointment.appointment_date == day,
                Appointment.status.notin_(INACTIVE_APPOINTMENT_STATUSES),
            )
            .all()
        )

    @staticmethod
    def get_approved_time_off(
        db: Session, professional_id: str, day: date, all_day: Optional[bool] = None
    ) -> list[TimeOffRequest]:
        query = db.query(TimeOffRequest).filter(
            TimeOffRequest.professional_id == professional_id,
            TimeOffRequest.status == "approved",
            TimeOffRequest.start_date <= day,
            TimeOffRequest.end_date >= day,
        )
        if all_day is not None:
            query = query.filter(TimeOffRequest.all_day.is_(all_day))
        return query.all()

    # ========================================================================
    # TIME OFF
    # ========================================================================

    @staticmethod
    def list_time_off(
        db: Session,
        professional_id: str,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_employee: bool = False,
        employee_id: Optional[str] = None,
    ) -> list[TimeOffRequest]:
        query = db.query(TimeOffRequest).filter(TimeOffRequest.professional_id == professional_id)
        if status:
            query = query.filter(TimeOffRequest.status == status)
        if start_date:
            query = query.filter(TimeOffRequest.start_date >= start_date)
        if end_date:
            query = query.filter(TimeOffRequest.end_date <= end_date)
        if employee_id:
            query = query.filter(TimeOffRequest.employee_id == employee_id)
        elif not include_employee:
            query = query.filter(TimeOffRequest.is_employee_request.is_(False))
        return query.order_by(TimeOffRequest.start_date.desc()).all()

    @staticmethod
    def get_time_off(db: Session, professional_id: str, request_id: str) -> Optional[TimeOffRequest]:
        return (
            db.query(TimeOffRequest)
            .filter(TimeOffRequest.id == request_id, TimeOffRequest.professional_id == professional_id)
            .first()
        )

    @staticmethod
    def has_overlapping_approved(db: Session, professional_id: str, start: date, end: date) -> bool:
        return (
            db.query(TimeOffRequest.id)
            .filter(
                TimeOffRequest.professional_id == professional_id,
                TimeOffRequest.status == "approved",
                TimeOffRequest.start_date <= end,
                TimeOffRequest.end_date >= start,
            )
            .first()
            is not None
        )

    @staticmethod
    def create_time_off(db: Session, **data) -> TimeOffRequest:
        request = TimeOffRequest(**data)
        db.add(request)
        db.flush()
        return request

    # ========================================================================
    # BLOCKED SLOTS
    # ========================================================================

    @staticmethod
    def get_blocked_slots(db: Session, professional_id: str, day: Optional[date] = None) -> list[BlockedSlot]:
        query = db.query(BlockedSlot).filter(BlockedSlot.professional_id == professional_id)
        if day:
            query = query.filter(BlockedSlot.slot_date == day)
        return query.order_by(BlockedSlot.slot_date, BlockedSlot.start_time).all()

    @staticmethod
    def get_blocked_slot(db: Session, professional_id: str, slot_id: str) -> Optional[BlockedSlot]:
        return (
            db.query(BlockedSlot)
            .filter(BlockedSlot.id == slot_id, BlockedSlot.professional_id == professional_id)
            .first()
        )
