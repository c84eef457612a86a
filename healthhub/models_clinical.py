from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_uuid


class LabTestType(Base):
    """Catalog entry a doctor can order (CBC, glycemia, ...)"""

    __tablename__ = "lab_test_types"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    name_ar = Column(String(255), nullable=True)
    category = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class LabTestRequest(Base):
    __tablename__ = "lab_test_requests"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    request_number = Column(String(50), index=True, nullable=False)  # LT-DDMMYY-{visit}-{n}
    doctor_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    patient_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    family_member_id = Column(String(36), nullable=True)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), index=True, nullable=True)
    laboratory_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=True)
    clinical_notes = Column(Text, nullable=True)
    diagnosis = Column(Text, nullable=True)
    priority = Column(String(20), default="normal", nullable=False)  # normal, urgent
    # pending, sent_to_lab, processing, fulfilled, denied
    status = Column(String(30), default="pending", nullable=False, index=True)
    chifa_number = Column(String(50), nullable=True)
    is_chifa_eligible = Column(Boolean, default=False, nullable=False)
    requested_at = Column(DateTime, nullable=True)
    sent_to_lab_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    doctor = relationship("Professional", foreign_keys=[doctor_id])
    laboratory = relationship("Professional", foreign_keys=[laboratory_id])
    items = relationship("LabTestItem", back_populates="request", cascade="all, delete-orphan")


class LabTestItem(Base):
    __tablename__ = "lab_test_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    request_id = Column(String(36), ForeignKey("lab_test_requests.id"), index=True, nullable=False)
    test_type_id = Column(String(36), ForeignKey("lab_test_types.id"), nullable=False)
    result_value = Column(String(255), nullable=True)
    result_unit = Column(String(50), nullable=True)
    reference_range = Column(String(100), nullable=True)

    request = relationship("LabTestRequest", back_populates="items")
    test_type = relationship("LabTestType")


class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    prescription_number = Column(String(50), index=True, nullable=False)  # RX-YYYYMMDD-n
    doctor_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    patient_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=True)
    family_member_id = Column(String(36), nullable=True)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), index=True, nullable=True)
    diagnosis = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    # [{"medication_name", "dosage", "frequency", "duration", "quantity"}]
    medications = Column(JSON, nullable=False)
    status = Column(String(30), default="active", nullable=False)  # active, sent, fulfilled, cancelled
    valid_until = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    doctor = relationship("Professional")
