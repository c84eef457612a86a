"""Staff domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class StaffLoginRequest(BaseModel):
    practiceCode: str
    username: str
    pin: str


class EmployeeCreate(BaseModel):
    """Schema for adding an employee to a practice"""

    username: str
    displayName: str
    pin: Optional[str] = None
    roleId: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    permissionsOverride: Optional[dict] = None


class EmployeeUpdate(BaseModel):
    displayName: Optional[str] = None
    roleId: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    isActive: Optional[bool] = None
    permissionsOverride: Optional[dict] = None
    resetPin: bool = False
    newPin: Optional[str] = None


class RoleSummary(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    permissions: dict
    is_system: bool

    class Config:
        from_attributes = True


class EmployeeResponse(BaseModel):
    id: str
    professional_id: str
    role_id: Optional[str] = None
    username: str
    display_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    login_count: int = 0
    permissions_override: Optional[dict] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    role: Optional[RoleSummary] = None

    class Config:
        from_attributes = True


class RoleCreate(BaseModel):
    name: str
    description: Optional[str] = None
    permissions: Optional[dict] = None


class RoleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    permissions: Optional[dict] = None
    is_active: Optional[bool] = None


class RoleResponse(RoleSummary):
    professional_id: str
    is_active: bool
    created_at: Optional[datetime] = None
