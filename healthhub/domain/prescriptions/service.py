"""Prescription service - Writing and reading appointment prescriptions"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...employee_auth import PracticeActor
from ...models import Appointment, Profile
from ...models_clinical import Prescription
from ...notifications import create_notification
from ...security_utils import sanitize_text
from ...sequences import next_document_number
from ...shared.clock import utcnow
from .repository import PrescriptionRepository
from .schemas import PrescriptionCreate

logger = logging.getLogger(__name__)


class PrescriptionService:
    """Service layer for prescription business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PrescriptionRepository()

    def _appointment_or_404(self, appointment_id: str) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        return appointment

    def create_prescription(
        self, actor: PracticeActor, appointment_id: str, data: PrescriptionCreate
    ) -> Prescription:
        appointment = self._appointment_or_404(appointment_id)
        if appointment.professional_id != actor.professional_id:
            raise HTTPException(status_code=403, detail="Not authorized to prescribe for this appointment")
        if not data.medications:
            raise HTTPException(status_code=400, detail="At least one medication is required")

        prefix = f"RX-{utcnow().strftime('%Y%m%d')}"
        prescription = Prescription(
            prescription_number=next_document_number(self.db, actor.professional_id, "prescription", prefix),
            doctor_id=actor.professional_id,
            patient_id=appointment.patient_id,
            family_member_id=data.family_member_id or appointment.family_member_id,
            appointment_id=appointment.id,
            diagnosis=sanitize_text(data.diagnosis),
            notes=sanitize_text(data.notes),
            medications=[m.model_dump() for m in data.medications],
            status="sent" if data.send else "active",
            valid_until=data.valid_until,
        )
        self.db.add(prescription)
        self.db.flush()

        create_notification(
            self.db,
            appointment.patient_id,
            "prescription_created",
            "New Prescription",
            f"Dr. {actor.professional.business_name} has written you a prescription",
            metadata={"prescription_id": prescription.id, "appointment_id": appointment.id},
            action_url=f"/dashboard/appointments/{appointment.id}",
        )
        self.db.commit()
        self.db.refresh(prescription)
        logger.info(
            f"💊 Prescription {prescription.prescription_number} written by {actor.actor_name} "
            f"for appointment {appointment.id}"
        )
        return prescription

    def list_prescriptions(self, appointment_id: str, user: Profile) -> list[Prescription]:
        """
        Prescriptions of an appointment.

        When none are linked to the visit, falls back to the prescriptions the
        same doctor wrote for the patient without an appointment. Readable by
        the patient, the appointment's provider and any prescribing doctor.
        """
        appointment = self._appointment_or_404(appointment_id)
        prescriptions = self.repo.list_for_appointment(self.db, appointment_id)
        if not prescriptions and appointment.patient_id and appointment.professional_id:
            prescriptions = self.repo.list_unlinked(
                self.db, appointment.patient_id, appointment.professional_id
            )

        is_patient = appointment.patient_id == user.id
        is_provider = appointment.professional is not None and appointment.professional.auth_user_id == user.id
        is_prescriber = any(p.doctor is not None and p.doctor.auth_user_id == user.id for p in prescriptions)
        if not (is_patient or is_provider or is_prescriber):
            logger.warning(f"⛔ {user.id} denied prescriptions of appointment {appointment_id}")
            raise HTTPException(status_code=403, detail="Not authorized to view this appointment")
        return prescriptions
