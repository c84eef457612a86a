"""Prescription repository - Database operations for prescriptions"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment
from ...models_clinical import Prescription

MAX_UNLINKED_PRESCRIPTIONS = 20


class PrescriptionRepository:
    """Repository for prescription database operations"""

    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def list_for_appointment(db: Session, appointment_id: str) -> list[Prescription]:
        return (
            db.query(Prescription)
            .filter(Prescription.appointment_id == appointment_id)
            .order_by(Prescription.created_at.desc())
            .all()
        )

    @staticmethod
    def list_unlinked(db: Session, patient_id: str, doctor_id: str) -> list[Prescription]:
        """Prescriptions the doctor wrote for the patient outside any appointment"""
        return (
            db.query(Prescription)
            .filter(
                Prescription.patient_id == patient_id,
                Prescription.doctor_id == doctor_id,
                Prescription.appointment_id.is_(None),
            )
            .order_by(Prescription.created_at.desc())
            .limit(MAX_UNLINKED_PRESCRIPTIONS)
            .all()
        )
