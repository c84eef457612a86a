"""Appointment domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_time


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment"""

    professional_id: str
    appointment_date: date
    appointment_time: str
    duration: int = 30
    visit_type: str = "in-person"
    notes: Optional[str] = None
    patient_id: Optional[str] = None
    patient_name: Optional[str] = None
    patient_email: Optional[str] = None
    patient_phone: Optional[str] = None
    family_member_id: Optional[str] = None
    payment_method: Optional[str] = None

    @field_validator("appointment_time")
    @classmethod
    def check_time(cls, v):
        return validate_time(v)

    @field_validator("duration")
    @classmethod
    def check_duration(cls, v):
        if v <= 0 or v > 480:
            raise ValueError("Duration must be between 1 and 480 minutes")
        return v


class WalletAppointmentCreate(AppointmentCreate):
    """Booking paid from the patient's wallet"""

    payment_amount: float


class CancelAppointmentRequest(BaseModel):
    reason: Optional[str] = None


class AppointmentStatusUpdate(BaseModel):
    status: Literal["confirmed", "completed", "no_show"]


class AppointmentResponse(BaseModel):
    id: str
    patient_id: Optional[str] = None
    professional_id: Optional[str] = None
    family_member_id: Optional[str] = None
    patient_name: Optional[str] = None
    patient_email: Optional[str] = None
    patient_phone: Optional[str] = None
    appointment_date: date
    appointment_time: str
    duration: int
    visit_type: Optional[str] = None
    notes: Optional[str] = None
    status: str
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    payment_amount: Optional[float] = None
    deposit_status: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
