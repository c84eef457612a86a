"""Working hours resolution shared by slot generation and booking checks"""

from datetime import date
from typing import Optional

from fastapi import HTTPException

from ...models import Professional
from ...shared.clock import to_minutes

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

DEFAULT_OPEN = "08:00"
DEFAULT_CLOSE = "18:00"
# Sunday and Friday are short days when nothing is configured
SHORT_DAY_HOURS = {"sunday": ("09:00", "13:00"), "friday": ("09:00", "13:00")}


def day_name(day: date) -> str:
    return DAY_NAMES[day.weekday()]


def find_day_schedule(working_hours: Optional[dict], day: date) -> Optional[dict]:
    """Entry for the day: 'monday', then 'Monday', then a 'weekdays' fallback"""
    working_hours = working_hours or {}
    name = day_name(day)
    for key in (name, name.capitalize(), "weekdays", "Weekdays"):
        schedule = working_hours.get(key)
        if isinstance(schedule, dict):
            return schedule
    return None


def resolve_hours(working_hours: Optional[dict], day: date) -> Optional[tuple[str, str]]:
    """
    Opening hours for a day.

    Returns:
        (open, close) as 'HH:MM', or None when closed that day
    """
    schedule = find_day_schedule(working_hours, day)
    if schedule is None:
        return SHORT_DAY_HOURS.get(day_name(day), (DEFAULT_OPEN, DEFAULT_CLOSE))

    if schedule.get("isOpen") is False:
        return None
    if schedule.get("open") == "00:00" and schedule.get("close") == "00:00":
        return None
    return schedule.get("open") or DEFAULT_OPEN, schedule.get("close") or DEFAULT_CLOSE


def is_unavailable_date(professional: Professional, day: date) -> bool:
    return day.isoformat() in (professional.unavailable_dates or [])


def ensure_bookable(professional: Professional, day: date, hhmm: str):
    """Reject a booking outside the provider's schedule with a 400"""
    if is_unavailable_date(professional, day):
        raise HTTPException(
            status_code=400,
            detail="This date is not available for the selected provider. Please choose another date.",
        )

    hours = resolve_hours(professional.working_hours, day)
    if hours is None:
        raise HTTPException(
            status_code=400,
            detail="The provider is not available on this day. Please choose another date.",
        )

    open_time, close_time = hours
    minutes = to_minutes(hhmm)
    if minutes < to_minutes(open_time) or minutes > to_minutes(close_time):
        raise HTTPException(
            status_code=400,
            detail=f"This time is outside the provider's hours ({open_time}-{close_time}). Please choose another time.",
        )
