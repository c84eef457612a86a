"""Lab request repository - Database operations for lab test orders"""

from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Professional, Profile
from ...models_clinical import LabTestItem, LabTestRequest, LabTestType
from ...models_messaging import ChatThread, ChatThreadMember

MAX_LAB_REQUESTS = 50


class LabRequestRepository:
    """Repository for lab request database operations"""

    @staticmethod
    def get_request(db: Session, request_id: str) -> Optional[LabTestRequest]:
        return db.query(LabTestRequest).filter(LabTestRequest.id == request_id).first()

    @staticmethod
    def get_profile(db: Session, user_id: str) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.id == user_id).first()

    @staticmethod
    def get_laboratory(db: Session, laboratory_id: str) -> Optional[Professional]:
        return (
            db.query(Professional)
            .filter(Professional.id == laboratory_id, Professional.type == "laboratory")
            .first()
        )

    @staticmethod
    def list_test_types(db: Session) -> list[LabTestType]:
        return (
            db.query(LabTestType)
            .filter(LabTestType.is_active.is_(True))
            .order_by(LabTestType.category, LabTestType.name)
            .all()
        )

    @staticmethod
    def existing_test_type_ids(db: Session, test_type_ids: list[str]) -> set[str]:
        rows = db.query(LabTestType.id).filter(LabTestType.id.in_(test_type_ids)).all()
        return {row.id for row in rows}

    @staticmethod
    def add_items(db: Session, request_id: str, test_type_ids: list[str]):
        for test_type_id in test_type_ids:
            db.add(LabTestItem(request_id=request_id, test_type_id=test_type_id))

    @staticmethod
    def list_requests(
        db: Session,
        doctor_id: Optional[str] = None,
        laboratory_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = MAX_LAB_REQUESTS,
    ) -> list[LabTestRequest]:
        """Newest first, filtered by whichever party is asking"""
        query = db.query(LabTestRequest).options(
            selectinload(LabTestRequest.items).selectinload(LabTestItem.test_type)
        )
        if doctor_id:
            query = query.filter(LabTestRequest.doctor_id == doctor_id)
        if laboratory_id:
            query = query.filter(LabTestRequest.laboratory_id == laboratory_id)
        if patient_id:
            query = query.filter(LabTestRequest.patient_id == patient_id)
        if status:
            query = query.filter(LabTestRequest.status == status)
        return query.order_by(LabTestRequest.created_at.desc()).limit(limit).all()

    @staticmethod
    def find_lab_thread(db: Session, appointment_id: str, laboratory_owner_id: str) -> Optional[ChatThread]:
        """The lab conversation of an appointment the laboratory already belongs to"""
        lab_members = db.query(ChatThreadMember.thread_id).filter(
            ChatThreadMember.user_id == laboratory_owner_id
        )
        return (
            db.query(ChatThread)
            .filter(
                ChatThread.order_type == "lab",
                ChatThread.order_id == appointment_id,
                ChatThread.id.in_(lab_members),
            )
            .first()
        )
