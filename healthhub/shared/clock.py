"""Time helpers - all persisted timestamps are naive UTC"""

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def combine_date_time(day: date, hhmm: str) -> datetime:
    """Combine an appointment date with its 'HH:MM' (or 'HH:MM:SS') time string"""
    parts = [int(p) for p in hhmm.split(":")]
    while len(parts) < 3:
        parts.append(0)
    return datetime.combine(day, time(parts[0], parts[1], parts[2]))


def to_minutes(hhmm: Optional[str]) -> Optional[int]:
    """'09:30' -> 570"""
    if not hhmm:
        return None
    hour, minute = hhmm.split(":")[:2]
    return int(hour) * 60 + int(minute)


def from_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
