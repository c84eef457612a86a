"""Scheduling service - Slot availability, time off and blocked slots"""

import logging
from datetime import date, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...employee_auth import PracticeActor
from ...models import BlockedSlot, TimeOffRequest
from ...models_staff import ProfessionalEmployee
from ...permissions import has_permission
from ...shared.clock import from_minutes, to_minutes, utcnow
from ...shared.validators import parse_date
from .hours import day_name, is_unavailable_date, resolve_hours
from .repository import SchedulingRepository
from .schemas import BlockedSlotCreate, TimeOffCreate, TimeOffReview

logger = logging.getLogger(__name__)

DEFAULT_APPOINTMENT_MINUTES = 30


def overlaps(start: int, end: int, other_start: int, other_end: int) -> bool:
    return not (end <= other_start or start >= other_end)


def date_range(start: date, end: date) -> list[str]:
    days = []
    current = start
    while current <= end:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


class SchedulingService:
    """Service layer for scheduling business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    # ========================================================================
    # SLOTS
    # ========================================================================

    def get_slots(self, professional_id: str, day_str: str, duration: int = 30, show_all: bool = False) -> dict:
        """Bookable slots of `duration` minutes for a provider on a day"""
        try:
            day = parse_date(day_str)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        professional = self.repo.get_professional(self.db, professional_id)
        if not professional:
            raise HTTPException(status_code=404, detail="Professional not found")

        if not professional.is_active:
            return {"slots": [], "message": "Provider is not currently accepting appointments"}

        weekday = day_name(day)
        hours = resolve_hours(professional.working_hours, day)
        if hours is None:
            return {"slots": [], "message": f"Closed on {weekday}"}

        if is_unavailable_date(professional, day):
            return {"slots": [], "message": "This date is blocked"}

        if self.repo.get_approved_time_off(self.db, professional_id, day, all_day=True):
            return {"slots": [], "message": "Provider is on leave this day"}

        open_time, close_time = hours
        busy = []
        for appointment in self.repo.get_booked_appointments(self.db, professional_id, day):
            start = to_minutes(appointment.appointment_time)
            busy.append((start, start + (appointment.duration or DEFAULT_APPOINTMENT_MINUTES)))
        for block in self.repo.get_blocked_slots(self.db, professional_id, day):
            busy.append((to_minutes(block.start_time), to_minutes(block.end_time)))
        for leave in self.repo.get_approved_time_off(self.db, professional_id, day, all_day=False):
            if leave.start_time and leave.end_time:
                busy.append((to_minutes(leave.start_time), to_minutes(leave.end_time)))

        slots = []
        minutes = to_minutes(open_time)
        close_minutes = to_minutes(close_time)
        while minutes + duration <= close_minutes:
            end = minutes + duration
            available = not any(overlaps(minutes, end, s, e) for s, e in busy)
            if show_all or available:
                slots.append(
                    {"time": from_minutes(minutes), "endTime": from_minutes(end), "available": available}
                )
            minutes = end

        return {
            "date": day.isoformat(),
            "dayOfWeek": weekday,
            "openTime": open_time,
            "closeTime": close_time,
            "slotDuration": duration,
            "slots": slots,
            "totalSlots": len(slots),
            "availableSlots": sum(1 for s in slots if s["available"]),
        }

    # ========================================================================
    # TIME OFF
    # ========================================================================

    @staticmethod
    def _ensure_same_practice(actor: PracticeActor, professional_id: str):
        if actor.professional_id != professional_id:
            raise HTTPException(status_code=403, detail="Unauthorized")

    def _sync_unavailable_dates(self, request: TimeOffRequest, add: bool):
        """Mirror approved all-day leave into the professional's unavailable_dates"""
        if not request.all_day:
            return
        professional = self.repo.get_professional(self.db, request.professional_id)
        days = date_range(request.start_date, request.end_date)
        existing = list(professional.unavailable_dates or [])
        if add:
            updated = existing + [d for d in days if d not in existing]
        else:
            updated = [d for d in existing if d not in days]
        professional.unavailable_dates = sorted(updated)

    def list_time_off(
        self,
        actor: PracticeActor,
        professional_id: str,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_employee: bool = False,
    ) -> list[TimeOffRequest]:
        self._ensure_same_practice(actor, professional_id)
        employee_id = None
        if actor.is_employee and not has_permission(actor.permissions, "actions", "manage_employees"):
            employee_id = actor.actor_id
        return self.repo.list_time_off(
            self.db, professional_id, status, start_date, end_date, include_employee, employee_id
        )

    def create_time_off(self, actor: PracticeActor, professional_id: str, data: TimeOffCreate) -> TimeOffRequest:
        """Owner requests are approved immediately, employee requests wait for review"""
        self._ensure_same_practice(actor, professional_id)

        if data.end_date < data.start_date:
            raise HTTPException(status_code=400, detail="End date must be after start date")
        if not data.all_day and not (data.start_time and data.end_time):
            raise HTTPException(
                status_code=400, detail="start_time and end_time are required for partial-day time off"
            )
        if self.repo.has_overlapping_approved(self.db, professional_id, data.start_date, data.end_date):
            raise HTTPException(status_code=400, detail="Overlapping time-off request already exists")

        employee_id = actor.actor_id if actor.is_employee else data.employee_id
        if employee_id and not actor.is_employee:
            employee = (
                self.db.query(ProfessionalEmployee)
                .filter(
                    ProfessionalEmployee.id == employee_id,
                    ProfessionalEmployee.professional_id == professional_id,
                )
                .first()
            )
            if not employee:
                raise HTTPException(status_code=404, detail="Employee not found")

        auto_approved = not employee_id
        now = utcnow()
        request = self.repo.create_time_off(
            self.db,
            professional_id=professional_id,
            request_type=data.request_type,
            start_date=data.start_date,
            end_date=data.end_date,
            all_day=data.all_day,
            start_time=None if data.all_day else data.start_time,
            end_time=None if data.all_day else data.end_time,
            reason=data.reason,
            status="approved" if auto_approved else "pending",
            requested_by=actor.actor_id,
            requested_by_name=actor.actor_name,
            is_employee_request=bool(employee_id),
            employee_id=employee_id,
            reviewed_by=actor.actor_id if auto_approved else None,
            reviewed_by_name=actor.actor_name if auto_approved else None,
            reviewed_at=now if auto_approved else None,
        )
        if auto_approved:
            self._sync_unavailable_dates(request, add=True)

        self.db.commit()
        self.db.refresh(request)
        logger.info(f"🗓️ Time off {request.id} created ({request.status}) for professional {professional_id}")
        return request

    def review_time_off(
        self, actor: PracticeActor, professional_id: str, request_id: str, data: TimeOffReview
    ) -> TimeOffRequest:
        self._ensure_same_practice(actor, professional_id)
        request = self.repo.get_time_off(self.db, professional_id, request_id)
        if not request:
            raise HTTPException(status_code=404, detail="Time-off request not found")

        can_review = not actor.is_employee or has_permission(
            actor.permissions, "actions", "manage_employees"
        )

        if data.action == "cancel":
            if not can_review and request.employee_id != actor.actor_id:
                raise HTTPException(status_code=403, detail="Insufficient permissions")
            if request.status not in ("pending", "approved"):
                raise HTTPException(status_code=400, detail=f"Cannot cancel a {request.status} request")
            was_approved = request.status == "approved"
            request.status = "cancelled"
            if was_approved:
                self._sync_unavailable_dates(request, add=False)
        else:
            if not can_review:
                raise HTTPException(status_code=403, detail="Insufficient permissions")
            if request.status != "pending":
                raise HTTPException(status_code=400, detail="Only pending requests can be reviewed")
            if data.action == "approve" and self.repo.has_overlapping_approved(
                self.db, professional_id, request.start_date, request.end_date
            ):
                raise HTTPException(status_code=400, detail="Overlapping time-off request already exists")
            request.status = "approved" if data.action == "approve" else "rejected"
            request.reviewed_by = actor.actor_id
            request.reviewed_by_name = actor.actor_name
            request.reviewed_at = utcnow()
            request.review_notes = data.review_notes
            if request.status == "approved":
                self._sync_unavailable_dates(request, add=True)

        self.db.commit()
        self.db.refresh(request)
        return request

    def delete_time_off(self, actor: PracticeActor, professional_id: str, request_id: str) -> dict:
        self._ensure_same_practice(actor, professional_id)
        if actor.is_employee and not has_permission(actor.permissions, "actions", "manage_employees"):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        request = self.repo.get_time_off(self.db, professional_id, request_id)
        if not request:
            raise HTTPException(status_code=404, detail="Time-off request not found")
        if request.status == "approved":
            self._sync_unavailable_dates(request, add=False)
        self.db.delete(request)
        self.db.commit()
        return {"success": True}

    # ========================================================================
    # BLOCKED SLOTS
    # ========================================================================

    def list_blocked_slots(
        self, actor: PracticeActor, professional_id: str, day: Optional[date] = None
    ) -> list[BlockedSlot]:
        self._ensure_same_practice(actor, professional_id)
        return self.repo.get_blocked_slots(self.db, professional_id, day)

    def create_blocked_slot(self, actor: PracticeActor, professional_id: str, data: BlockedSlotCreate) -> BlockedSlot:
        self._ensure_same_practice(actor, professional_id)
        if to_minutes(data.end_time) <= to_minutes(data.start_time):
            raise HTTPException(status_code=400, detail="End time must be after start time")
        block = BlockedSlot(
            professional_id=professional_id,
            slot_date=data.slot_date,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
        )
        self.db.add(block)
        self.db.commit()
        self.db.refresh(block)
        return block

    def delete_blocked_slot(self, actor: PracticeActor, professional_id: str, slot_id: str) -> dict:
        self._ensure_same_practice(actor, professional_id)
        block = self.repo.get_blocked_slot(self.db, professional_id, slot_id)
        if not block:
            raise HTTPException(status_code=404, detail="Blocked slot not found")
        self.db.delete(block)
        self.db.commit()
        return {"success": True}
