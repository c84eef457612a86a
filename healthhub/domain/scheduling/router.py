"""Scheduling router - Slots, time off and blocked slots of a professional"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...employee_auth import PracticeActor, practice_actor
from .schemas import (
    BlockedSlotCreate,
    BlockedSlotResponse,
    TimeOffCreate,
    TimeOffResponse,
    TimeOffReview,
)
from .service import SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/professionals", tags=["Scheduling"])

# Any staff member of the practice may file time off
staff_actor = practice_actor()
calendar_actor = practice_actor(
    any_of=[("dashboard", "appointments"), ("actions", "create_appointments")]
)


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    """Dependency injection for SchedulingService"""
    return SchedulingService(db)


# ============================================================================
# PUBLIC AVAILABILITY
# ============================================================================


@router.get("/{professional_id}/slots")
async def get_slots(
    professional_id: str,
    date: str = Query(..., description="YYYY-MM-DD"),
    duration: int = Query(30, ge=5, le=480),
    show_all: bool = Query(False),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Available slots for a date (show_all=true also returns taken slots)"""
    return service.get_slots(professional_id, date, duration, show_all)


# ============================================================================
# TIME OFF
# ============================================================================


@router.get("/{professional_id}/time-off")
async def list_time_off(
    professional_id: str,
    status: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    include_employee: bool = Query(False),
    actor: PracticeActor = Depends(staff_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    requests = service.list_time_off(actor, professional_id, status, start_date, end_date, include_employee)
    return {"requests": [TimeOffResponse.model_validate(r) for r in requests]}


@router.post("/{professional_id}/time-off", status_code=201)
async def create_time_off(
    professional_id: str,
    data: TimeOffCreate,
    actor: PracticeActor = Depends(staff_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    request = service.create_time_off(actor, professional_id, data)
    return {"request": TimeOffResponse.model_validate(request)}


@router.patch("/{professional_id}/time-off/{request_id}")
async def review_time_off(
    professional_id: str,
    request_id: str,
    data: TimeOffReview,
    actor: PracticeActor = Depends(staff_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Approve, reject or cancel a request"""
    request = service.review_time_off(actor, professional_id, request_id, data)
    return {"request": TimeOffResponse.model_validate(request)}


@router.delete("/{professional_id}/time-off/{request_id}")
async def delete_time_off(
    professional_id: str,
    request_id: str,
    actor: PracticeActor = Depends(staff_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.delete_time_off(actor, professional_id, request_id)


# ============================================================================
# BLOCKED SLOTS
# ============================================================================


@router.get("/{professional_id}/blocked-slots", response_model=list[BlockedSlotResponse])
async def list_blocked_slots(
    professional_id: str,
    slot_date: Optional[date] = Query(None),
    actor: PracticeActor = Depends(calendar_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.list_blocked_slots(actor, professional_id, slot_date)


@router.post("/{professional_id}/blocked-slots", response_model=BlockedSlotResponse, status_code=201)
async def create_blocked_slot(
    professional_id: str,
    data: BlockedSlotCreate,
    actor: PracticeActor = Depends(calendar_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.create_blocked_slot(actor, professional_id, data)


@router.delete("/{professional_id}/blocked-slots/{slot_id}")
async def delete_blocked_slot(
    professional_id: str,
    slot_id: str,
    actor: PracticeActor = Depends(calendar_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.delete_blocked_slot(actor, professional_id, slot_id)
