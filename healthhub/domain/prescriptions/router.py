"""Prescriptions router - FastAPI endpoints for appointment prescriptions"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...employee_auth import PracticeActor, require_permission
from ...models import Profile
from ..lab_requests.service import DOCTOR_TYPES
from .schemas import PrescriptionCreate, PrescriptionResponse
from .service import PrescriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Prescriptions"])

prescriber = require_permission(
    "actions", "create_prescriptions", professional_types=DOCTOR_TYPES, not_found_detail="Not authorized as a doctor"
)


def get_prescription_service(db: Session = Depends(get_db)) -> PrescriptionService:
    """Dependency injection for PrescriptionService"""
    return PrescriptionService(db)


@router.get("/{appointment_id}/prescriptions")
async def list_prescriptions(
    appointment_id: str,
    current_user: Profile = Depends(get_current_user),
    service: PrescriptionService = Depends(get_prescription_service),
):
    prescriptions = service.list_prescriptions(appointment_id, current_user)
    return {"prescriptions": [PrescriptionResponse.model_validate(p) for p in prescriptions]}


@router.post("/{appointment_id}/prescriptions", response_model=PrescriptionResponse, status_code=201)
async def create_prescription(
    appointment_id: str,
    data: PrescriptionCreate,
    actor: PracticeActor = Depends(prescriber),
    service: PrescriptionService = Depends(get_prescription_service),
):
    return service.create_prescription(actor, appointment_id, data)
