"""Prescription domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class MedicationItem(BaseModel):
    medication_name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    quantity: Optional[int] = None

    @field_validator("medication_name")
    @classmethod
    def check_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Medication name is required")
        return v


class PrescriptionCreate(BaseModel):
    """Schema for a prescription written during an appointment"""

    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    medications: list[MedicationItem] = []
    valid_until: Optional[date] = None
    family_member_id: Optional[str] = None
    send: bool = False


class PrescriptionResponse(BaseModel):
    id: str
    prescription_number: str
    doctor_id: str
    patient_id: Optional[str] = None
    family_member_id: Optional[str] = None
    appointment_id: Optional[str] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    medications: list[dict] = []
    status: str
    valid_until: Optional[date] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
