"""Lab requests router - FastAPI endpoints for doctor test orders"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...employee_auth import PracticeActor, practice_actor, require_permission
from ...models import Profile
from .schemas import LabRequestCreate, LabRequestResponse, LabRequestSend, LabTestTypeResponse
from .service import DOCTOR_TYPES, LabRequestService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lab-requests", tags=["Lab Requests"])

prescriber = require_permission(
    "actions", "create_prescriptions", professional_types=DOCTOR_TYPES, not_found_detail="Not authorized as a doctor"
)
lab_request_reader = practice_actor(
    professional_types=DOCTOR_TYPES + ("laboratory",),
    any_of=[("dashboard", "lab_requests"), ("dashboard", "requests")],
)


def get_lab_request_service(db: Session = Depends(get_db)) -> LabRequestService:
    """Dependency injection for LabRequestService"""
    return LabRequestService(db)


def serialize(result: dict) -> dict:
    result["labRequest"] = LabRequestResponse.model_validate(result["labRequest"])
    return result


@router.get("/test-types", response_model=list[LabTestTypeResponse])
async def list_test_types(service: LabRequestService = Depends(get_lab_request_service)):
    """Active catalog of orderable tests"""
    return service.list_test_types()


@router.post("", status_code=201)
async def create_lab_request(
    data: LabRequestCreate,
    actor: PracticeActor = Depends(prescriber),
    service: LabRequestService = Depends(get_lab_request_service),
):
    """Order tests, sent straight away when a laboratory is given"""
    return serialize(service.create_request(actor, data))


@router.get("")
async def list_my_lab_requests(
    status: Optional[str] = Query(None),
    current_user: Profile = Depends(get_current_user),
    service: LabRequestService = Depends(get_lab_request_service),
):
    requests = service.list_for_patient(current_user, status)
    return {"labRequests": [LabRequestResponse.model_validate(r) for r in requests]}


@router.get("/practice")
async def list_practice_lab_requests(
    status: Optional[str] = Query(None),
    actor: PracticeActor = Depends(lab_request_reader),
    service: LabRequestService = Depends(get_lab_request_service),
):
    requests = service.list_for_practice(actor, status)
    return {"labRequests": [LabRequestResponse.model_validate(r) for r in requests]}


@router.post("/{request_id}/send")
async def send_lab_request(
    request_id: str,
    data: LabRequestSend,
    current_user: Profile = Depends(get_current_user),
    service: LabRequestService = Depends(get_lab_request_service),
):
    return serialize(service.send_to_laboratory(request_id, data, current_user))
