"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_time


class TimeSlot(BaseModel):
    time: str
    endTime: str
    available: bool


class TimeOffCreate(BaseModel):
    """Schema for requesting time off"""

    request_type: str
    start_date: date
    end_date: date
    all_day: bool = True
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None
    employee_id: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time(cls, v):
        return validate_time(v)


class TimeOffReview(BaseModel):
    action: Literal["approve", "reject", "cancel"]
    review_notes: Optional[str] = None


class TimeOffResponse(BaseModel):
    id: str
    professional_id: str
    request_type: str
    start_date: date
    end_date: date
    all_day: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None
    status: str
    requested_by: Optional[str] = None
    requested_by_name: Optional[str] = None
    is_employee_request: bool
    employee_id: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_by_name: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BlockedSlotCreate(BaseModel):
    slot_date: date
    start_time: str
    end_time: str
    reason: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time(cls, v):
        return validate_time(v)


class BlockedSlotResponse(BaseModel):
    id: str
    professional_id: str
    slot_date: date
    start_time: str
    end_time: str
    reason: Optional[str] = None

    class Config:
        from_attributes = True
