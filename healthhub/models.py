import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .shared.clock import utcnow


def generate_uuid():
    """Generate a UUID primary key"""
    return str(uuid.uuid4())


class Profile(Base):
    """Account row mirroring a subject of the hosted auth platform"""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)  # Same value as the JWT 'sub' claim
    email = Column(String(255), index=True, nullable=True)
    full_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(50), default="patient", nullable=False)  # patient, professional, admin
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    professionals = relationship("Professional", back_populates="owner")
    wallet = relationship("Wallet", back_populates="user", uselist=False)


class Professional(Base):
    """A provider on the marketplace: doctor, clinic, pharmacy, lab, supplier..."""

    __tablename__ = "professionals"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    auth_user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    business_name = Column(String(255), nullable=False)
    # doctor, clinic, pharmacy, laboratory, nurse, ambulance, pharma_supplier, equipment_supplier
    type = Column(String(50), nullable=False, index=True)
    practice_code = Column(String(20), unique=True, index=True, nullable=True)  # Staff login code
    specialty = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address_line1 = Column(String(500), nullable=True)
    wilaya = Column(String(100), nullable=True)
    commune = Column(String(100), nullable=True)
    # {"monday": {"open": "08:00", "close": "17:00", "isOpen": true}, ...} or {"weekdays": {...}}
    working_hours = Column(JSON, nullable=True)
    unavailable_dates = Column(JSON, default=list, nullable=True)  # ["2025-03-01", ...]
    auto_confirm_appointments = Column(Boolean, default=False, nullable=False)
    consultation_fee = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    owner = relationship("Profile", back_populates="professionals")
    employees = relationship("ProfessionalEmployee", back_populates="professional")
    roles = relationship("EmployeeRole", back_populates="professional")


class Wallet(Base):
    __tablename__ = "wallets"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), unique=True, nullable=False)
    balance = Column(Float, default=0, nullable=False)
    currency = Column(String(3), default="DZD", nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("Profile", back_populates="wallet")
    transactions = relationship("WalletTransaction", back_populates="wallet")


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    wallet_id = Column(String(36), ForeignKey("wallets.id"), index=True, nullable=False)
    type = Column(String(30), nullable=False)  # topup, deposit, refund, payment
    amount = Column(Float, nullable=False)  # Deposits are stored negative
    description = Column(Text, nullable=True)
    reference_type = Column(String(50), nullable=True)  # appointment, deposit
    reference_id = Column(String(36), nullable=True, index=True)
    balance_after = Column(Float, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    wallet = relationship("Wallet", back_populates="transactions")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    patient_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=True)
    professional_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=True)
    family_member_id = Column(String(36), nullable=True)
    patient_name = Column(String(255), nullable=True)
    patient_email = Column(String(255), nullable=True)
    patient_phone = Column(String(50), nullable=True)
    appointment_date = Column(Date, nullable=False, index=True)
    appointment_time = Column(String(8), nullable=False)  # HH:MM
    duration = Column(Integer, default=30, nullable=False)  # minutes
    visit_type = Column(String(50), default="in-person")  # in-person, e-visit, home-visit
    notes = Column(Text, nullable=True)
    # pending, confirmed, completed, cancelled, rejected, no_show
    status = Column(String(30), default="pending", nullable=False)
    payment_method = Column(String(30), nullable=True)  # wallet, cash
    payment_status = Column(String(30), default="unpaid")  # unpaid, paid
    payment_amount = Column(Float, nullable=True)
    deposit_status = Column(String(30), nullable=True)  # frozen, refunded, forfeited
    cancelled_by = Column(String(20), nullable=True)  # patient, provider, system
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    professional = relationship("Professional")
    deposits = relationship("BookingDeposit", back_populates="appointment")


class BookingDeposit(Base):
    """Funds frozen from a patient wallet until the appointment settles"""

    __tablename__ = "booking_deposits"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), index=True, nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(String(20), default="frozen", nullable=False)  # frozen, refunded, forfeited, released
    debit_transaction_id = Column(String(36), nullable=True)
    refund_amount = Column(Float, nullable=True)
    refund_percentage = Column(Integer, nullable=True)
    refund_reason = Column(Text, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    refund_transaction_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointment = relationship("Appointment", back_populates="deposits")


class TimeOffRequest(Base):
    __tablename__ = "time_off_requests"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    professional_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    request_type = Column(String(30), nullable=False)  # vacation, sick, personal, training
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    all_day = Column(Boolean, default=True, nullable=False)
    start_time = Column(String(8), nullable=True)
    end_time = Column(String(8), nullable=True)
    reason = Column(Text, nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected, cancelled
    requested_by = Column(String(36), nullable=True)
    requested_by_name = Column(String(255), nullable=True)
    is_employee_request = Column(Boolean, default=False, nullable=False)
    employee_id = Column(String(36), ForeignKey("professional_employees.id"), nullable=True)
    reviewed_by = Column(String(36), nullable=True)
    reviewed_by_name = Column(String(255), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class BlockedSlot(Base):
    __tablename__ = "blocked_slots"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    professional_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    slot_date = Column(Date, nullable=False)
    start_time = Column(String(8), nullable=False)
    end_time = Column(String(8), nullable=False)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), index=True, nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    meta = Column("metadata", JSON, nullable=True)
    action_url = Column(String(500), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
