"""Lab request domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class LabRequestCreate(BaseModel):
    """Schema for a doctor ordering lab tests"""

    patient_id: Optional[str] = None
    family_member_id: Optional[str] = None
    appointment_id: Optional[str] = None
    test_type_ids: list[str] = []
    clinical_notes: Optional[str] = None
    diagnosis: Optional[str] = None
    priority: Literal["normal", "urgent"] = "normal"
    laboratory_id: Optional[str] = None
    chifa_number: Optional[str] = None
    is_chifa_eligible: bool = False


class LabRequestSend(BaseModel):
    laboratory_id: Optional[str] = None


class LabTestTypeResponse(BaseModel):
    id: str
    name: str
    name_ar: Optional[str] = None
    category: Optional[str] = None

    class Config:
        from_attributes = True


class LabTestItemResponse(BaseModel):
    id: str
    test_type_id: str
    test_type: Optional[LabTestTypeResponse] = None
    result_value: Optional[str] = None
    result_unit: Optional[str] = None
    reference_range: Optional[str] = None

    class Config:
        from_attributes = True


class LabRequestResponse(BaseModel):
    id: str
    request_number: str
    doctor_id: str
    patient_id: str
    family_member_id: Optional[str] = None
    appointment_id: Optional[str] = None
    laboratory_id: Optional[str] = None
    clinical_notes: Optional[str] = None
    diagnosis: Optional[str] = None
    priority: str
    status: str
    chifa_number: Optional[str] = None
    is_chifa_eligible: bool = False
    requested_at: Optional[datetime] = None
    sent_to_lab_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    items: list[LabTestItemResponse] = []

    class Config:
        from_attributes = True
