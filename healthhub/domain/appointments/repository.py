"""Appointment repository - Database operations for appointments"""

from datetime import date
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Appointment, Professional


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def get_professional(db: Session, professional_id: str) -> Optional[Professional]:
        return db.query(Professional).filter(Professional.id == professional_id).first()

    @staticmethod
    def find_duplicate(
        db: Session, patient_id: str, professional_id: str, day: date, hhmm: str
    ) -> Optional[Appointment]:
        """A live booking of the same patient with the same provider at the same time"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.patient_id == patient_id,
                Appointment.professional_id == professional_id,
                Appointment.appointment_date == day,
                Appointment.appointment_time == hhmm,
                Appointment.status != "cancelled",
            )
            .first()
        )

    @staticmethod
    def list_for_user(
        db: Session,
        user_id: str,
        as_provider: bool = False,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Appointment]:
        query = db.query(Appointment)
        if as_provider:
            owned = db.query(Professional.id).filter(Professional.auth_user_id == user_id)
            query = query.filter(Appointment.professional_id.in_(owned))
        else:
            query = query.filter(Appointment.patient_id == user_id)
        if status:
            query = query.filter(or_(*[Appointment.status == s for s in status.split(",")]))
        return (
            query.order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def create_appointment(db: Session, **data) -> Appointment:
        appointment = Appointment(**data)
        db.add(appointment)
        db.flush()
        return appointment
