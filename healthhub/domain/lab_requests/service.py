"""Lab request service - Ordering tests and routing them to a laboratory"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...employee_auth import PracticeActor
from ...models import Appointment, Profile
from ...models_clinical import LabTestRequest
from ...models_messaging import ChatMessage, ChatThread, ChatThreadMember
from ...notifications import create_notification
from ...security_utils import sanitize_text
from ...sequences import next_document_number
from ...shared.clock import utcnow
from .repository import LabRequestRepository
from .schemas import LabRequestCreate, LabRequestSend

logger = logging.getLogger(__name__)

DOCTOR_TYPES = ("doctor", "clinic")
# Requests a laboratory has started on can no longer be redirected
LOCKED_STATUSES = ("processing", "fulfilled")


def lab_request_number(appointment_id: Optional[str], now) -> str:
    """'LT-DDMMYY-{last 6 hex of the visit}', the caller appends a counter"""
    visit_ref = appointment_id.replace("-", "")[-6:].lower() if appointment_id else "000000"
    return f"LT-{now.strftime('%d%m%y')}-{visit_ref}"


class LabRequestService:
    """Service layer for lab request business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = LabRequestRepository()

    def list_test_types(self):
        return self.repo.list_test_types(self.db)

    # ========================================================================
    # CREATE
    # ========================================================================

    def create_request(self, actor: PracticeActor, data: LabRequestCreate) -> dict:
        if not data.patient_id or not data.test_type_ids:
            raise HTTPException(status_code=400, detail="Missing required fields")
        if not self.repo.get_profile(self.db, data.patient_id):
            raise HTTPException(status_code=404, detail="Patient not found")

        test_type_ids = list(dict.fromkeys(data.test_type_ids))
        known = self.repo.existing_test_type_ids(self.db, test_type_ids)
        unknown = [t for t in test_type_ids if t not in known]
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown lab test: {unknown[0]}")

        if data.appointment_id:
            appointment = self.db.query(Appointment).filter(Appointment.id == data.appointment_id).first()
            if not appointment or appointment.professional_id != actor.professional_id:
                raise HTTPException(status_code=404, detail="Appointment not found")

        laboratory = None
        if data.laboratory_id:
            laboratory = self.repo.get_laboratory(self.db, data.laboratory_id)
            if not laboratory:
                raise HTTPException(status_code=404, detail="Laboratory not found")

        now = utcnow()
        prefix = lab_request_number(data.appointment_id, now)
        lab_request = LabTestRequest(
            request_number=next_document_number(self.db, actor.professional_id, "lab_request", prefix),
            doctor_id=actor.professional_id,
            patient_id=data.patient_id,
            family_member_id=data.family_member_id,
            appointment_id=data.appointment_id,
            laboratory_id=data.laboratory_id,
            clinical_notes=sanitize_text(data.clinical_notes),
            diagnosis=sanitize_text(data.diagnosis),
            priority=data.priority,
            # Without a laboratory the request is a draft to print or send later
            status="sent_to_lab" if laboratory else "pending",
            chifa_number=data.chifa_number,
            is_chifa_eligible=data.is_chifa_eligible,
            requested_at=now,
            sent_to_lab_at=now if laboratory else None,
        )
        self.db.add(lab_request)
        self.db.flush()
        self.repo.add_items(self.db, lab_request.id, test_type_ids)

        doctor_name = actor.professional.business_name
        if laboratory:
            self._notify_laboratory(lab_request, laboratory, doctor_name)
            create_notification(
                self.db,
                lab_request.patient_id,
                "lab_request_created",
                "Lab Tests Requested",
                f"Dr. {doctor_name} has requested lab tests for you",
                metadata={"request_id": lab_request.id, "laboratory_name": laboratory.business_name},
            )

        self.db.commit()
        self.db.refresh(lab_request)
        logger.info(
            f"🧪 Lab request {lab_request.request_number} created by {actor.actor_name} "
            f"({len(test_type_ids)} test(s), status {lab_request.status})"
        )
        return {
            "success": True,
            "labRequest": lab_request,
            "message": "Lab request sent to laboratory"
            if laboratory
            else "Lab request created as draft. You can print it or send it to a laboratory.",
        }

    def _notify_laboratory(self, lab_request: LabTestRequest, laboratory, doctor_name: str):
        create_notification(
            self.db,
            laboratory.auth_user_id,
            "new_lab_request",
            "New Lab Request",
            f"Dr. {doctor_name} has sent a lab test request",
            metadata={
                "request_id": lab_request.id,
                "doctor_name": doctor_name,
                "priority": lab_request.priority,
            },
            action_url="/professional/dashboard",
        )

    # ========================================================================
    # READ
    # ========================================================================

    def list_for_patient(self, user: Profile, status: Optional[str] = None) -> list[LabTestRequest]:
        return self.repo.list_requests(self.db, patient_id=user.id, status=status)

    def list_for_practice(self, actor: PracticeActor, status: Optional[str] = None) -> list[LabTestRequest]:
        """Doctors see what they ordered, laboratories what was sent to them"""
        if actor.professional.type == "laboratory":
            return self.repo.list_requests(self.db, laboratory_id=actor.professional_id, status=status)
        return self.repo.list_requests(self.db, doctor_id=actor.professional_id, status=status)

    # ========================================================================
    # SEND
    # ========================================================================

    def send_to_laboratory(self, request_id: str, data: LabRequestSend, user: Profile) -> dict:
        """Route a draft (or denied) request to a laboratory, by its doctor or its patient"""
        if not data.laboratory_id:
            raise HTTPException(status_code=400, detail="laboratory_id is required")

        lab_request = self.repo.get_request(self.db, request_id)
        if not lab_request:
            raise HTTPException(status_code=404, detail="Lab request not found")

        is_doctor = lab_request.doctor is not None and lab_request.doctor.auth_user_id == user.id
        if not is_doctor and lab_request.patient_id != user.id:
            raise HTTPException(status_code=403, detail="Not authorized")
        if lab_request.status in LOCKED_STATUSES:
            raise HTTPException(status_code=400, detail="Lab request is already being processed")

        laboratory = self.repo.get_laboratory(self.db, data.laboratory_id)
        if not laboratory:
            raise HTTPException(status_code=404, detail="Laboratory not found")

        lab_request.laboratory_id = laboratory.id
        lab_request.status = "sent_to_lab"
        lab_request.sent_to_lab_at = utcnow()

        thread = self._lab_thread(lab_request, laboratory)
        if thread:
            self.db.add(
                ChatMessage(
                    thread_id=thread.id,
                    sender_id=user.id,
                    message_type="system",
                    content=f"Lab request sent to {laboratory.business_name}",
                )
            )
            thread.updated_at = utcnow()

        self._notify_laboratory(lab_request, laboratory, lab_request.doctor.business_name)
        create_notification(
            self.db,
            lab_request.patient_id,
            "lab_request_created",
            "Lab Tests Sent to Laboratory",
            f"Your lab request has been sent to {laboratory.business_name}",
            metadata={"request_id": lab_request.id, "laboratory_name": laboratory.business_name},
        )

        self.db.commit()
        self.db.refresh(lab_request)
        logger.info(f"🧪 Lab request {lab_request.request_number} sent to {laboratory.business_name}")
        return {
            "success": True,
            "labRequest": lab_request,
            "threadId": thread.id if thread else None,
            "message": "Lab request sent to laboratory successfully",
        }

    def _lab_thread(self, lab_request: LabTestRequest, laboratory) -> Optional[ChatThread]:
        """Find or open the doctor/laboratory conversation of the visit"""
        if not lab_request.appointment_id:
            return None
        thread = self.repo.find_lab_thread(self.db, lab_request.appointment_id, laboratory.auth_user_id)
        if thread:
            return thread

        doctor_user_id = lab_request.doctor.auth_user_id
        thread = ChatThread(
            title=f"Lab Request - {laboratory.business_name or 'Laboratory'}",
            thread_type="group",
            order_type="lab",
            order_id=lab_request.appointment_id,
            created_by=doctor_user_id,
        )
        self.db.add(thread)
        self.db.flush()
        self.db.add(ChatThreadMember(thread_id=thread.id, user_id=doctor_user_id, role="owner"))
        self.db.add(ChatThreadMember(thread_id=thread.id, user_id=laboratory.auth_user_id))
        logger.info(f"💬 Lab thread {thread.id} opened for appointment {lab_request.appointment_id}")
        return thread
