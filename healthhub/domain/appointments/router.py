"""Appointment router - FastAPI endpoints for booking and cancellation"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .schemas import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatusUpdate,
    CancelAppointmentRequest,
    WalletAppointmentCreate,
)
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    role: Literal["patient", "provider"] = Query("patient"),
    status: Optional[str] = Query(None, description="Comma separated statuses"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: Profile = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Caller's appointments, as patient or as provider"""
    return service.list_appointments(current_user, role, status, limit, offset)


@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    current_user: Profile = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.create_appointment(data, current_user)


@router.post("/with-wallet", status_code=201)
async def create_appointment_with_wallet(
    data: WalletAppointmentCreate,
    current_user: Profile = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book and pay the deposit from the wallet"""
    result = service.create_with_wallet(data, current_user)
    if isinstance(result, JSONResponse):
        return result
    result["appointment"] = AppointmentResponse.model_validate(result["appointment"])
    return result


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    current_user: Profile = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointment(appointment_id, current_user)


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: str,
    data: AppointmentStatusUpdate,
    current_user: Profile = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Provider confirms, completes or marks a no-show"""
    return service.update_status(appointment_id, data, current_user)


@router.post("/{appointment_id}/cancel")
async def cancel_appointment(
    appointment_id: str,
    data: Optional[CancelAppointmentRequest] = None,
    current_user: Profile = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Cancel an appointment and refund its deposit per the cancellation policy"""
    reason = data.reason if data else None
    return service.cancel_appointment(appointment_id, current_user, reason)
