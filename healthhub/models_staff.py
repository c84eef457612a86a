from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_uuid
from .shared.clock import utcnow


class EmployeeRole(Base):
    """Named permission set owned by a professional"""

    __tablename__ = "employee_roles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    professional_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    permissions = Column(JSON, nullable=False)  # {"dashboard": {...}, "actions": {...}, "data": {...}}
    is_system = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    professional = relationship("Professional", back_populates="roles")
    employees = relationship("ProfessionalEmployee", back_populates="role")


class ProfessionalEmployee(Base):
    __tablename__ = "professional_employees"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    professional_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    role_id = Column(String(36), ForeignKey("employee_roles.id"), nullable=True)
    username = Column(String(20), nullable=False, index=True)  # Lowercase, unique per professional
    pin_hash = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    login_count = Column(Integer, default=0, nullable=False)
    permissions_override = Column(JSON, nullable=True)  # Partial permission map
    notes = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    professional = relationship("Professional", back_populates="employees")
    role = relationship("EmployeeRole", back_populates="employees")
    sessions = relationship("EmployeeSession", back_populates="employee", cascade="all, delete-orphan")


class EmployeeSession(Base):
    __tablename__ = "employee_sessions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    employee_id = Column(
        String(36), ForeignKey("professional_employees.id"), index=True, nullable=False
    )
    session_token = Column(String(128), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    last_activity = Column(DateTime, default=utcnow)

    employee = relationship("ProfessionalEmployee", back_populates="sessions")


class EmployeeLoginAttempt(Base):
    __tablename__ = "employee_login_attempts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    professional_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    username = Column(String(50), nullable=False)
    success = Column(Boolean, nullable=False)
    ip_address = Column(String(64), nullable=True)
    attempted_at = Column(DateTime, default=utcnow, index=True)
