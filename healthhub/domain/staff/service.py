"""Staff service - Employee login, employee accounts and roles"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...employee_auth import (
    AuthenticatedEmployee,
    EmployeeAuthError,
    PracticeActor,
    authenticate_employee,
    invalidate_all_employee_sessions,
    invalidate_employee_session,
)
from ...models_staff import EmployeeRole, ProfessionalEmployee
from ...permissions import DEFAULT_ROLES, default_permissions, merge_permissions
from ...security_utils import generate_random_pin, hash_pin
from ...shared.validators import normalize_username, validate_pin_format
from .repository import StaffRepository
from .schemas import EmployeeCreate, EmployeeUpdate, RoleCreate, RoleUpdate, StaffLoginRequest

logger = logging.getLogger(__name__)


class StaffService:
    """Service layer for staff business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = StaffRepository()

    # ========================================================================
    # SESSION
    # ========================================================================

    def login(
        self, data: StaffLoginRequest, ip_address: Optional[str], user_agent: Optional[str]
    ) -> tuple[AuthenticatedEmployee, str]:
        if not data.practiceCode or not data.username or not data.pin:
            raise HTTPException(status_code=400, detail="Practice code, username and PIN are required")
        try:
            return authenticate_employee(
                self.db, data.practiceCode, data.username, data.pin, ip_address, user_agent
            )
        except EmployeeAuthError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message) from e

    def logout(self, token: Optional[str]) -> dict:
        if token:
            invalidate_employee_session(self.db, token)
        return {"success": True}

    # ========================================================================
    # EMPLOYEES
    # ========================================================================

    @staticmethod
    def _ensure_same_practice(actor: PracticeActor, professional_id: str):
        if actor.professional_id != professional_id:
            raise HTTPException(status_code=403, detail="Forbidden")

    def _ensure_role(self, professional_id: str, role_id: Optional[str]):
        if role_id and not self.repo.get_role(self.db, professional_id, role_id):
            raise HTTPException(status_code=400, detail="Role not found")

    def list_employees(self, actor: PracticeActor, professional_id: str) -> list[ProfessionalEmployee]:
        self._ensure_same_practice(actor, professional_id)
        return self.repo.list_employees(self.db, professional_id)

    def create_employee(self, actor: PracticeActor, professional_id: str, data: EmployeeCreate) -> dict:
        """Create an employee, a 4-digit PIN is generated when none is given"""
        self._ensure_same_practice(actor, professional_id)

        if not data.username or not data.displayName:
            raise HTTPException(status_code=400, detail="Username and display name are required")
        try:
            username = normalize_username(data.username)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        pin = data.pin or generate_random_pin(4)
        if not validate_pin_format(pin):
            raise HTTPException(status_code=400, detail="PIN must be 4-6 digits")

        if self.repo.username_taken(self.db, professional_id, username):
            raise HTTPException(status_code=400, detail="Username already exists")
        self._ensure_role(professional_id, data.roleId)

        employee = ProfessionalEmployee(
            professional_id=professional_id,
            role_id=data.roleId,
            username=username,
            pin_hash=hash_pin(pin),
            display_name=data.displayName.strip(),
            phone=data.phone,
            email=data.email,
            notes=data.notes,
            permissions_override=data.permissionsOverride,
            created_by=actor.actor_id,
        )
        self.db.add(employee)
        self.db.commit()
        self.db.refresh(employee)
        logger.info(f"🆕 Employee {username} created for professional {professional_id}")

        temporary_pin = None if data.pin else pin
        return {
            "employee": employee,
            "temporaryPin": temporary_pin,
            "message": f"Employee created. Temporary PIN: {pin}" if temporary_pin else "Employee created",
        }

    def update_employee(
        self, actor: PracticeActor, professional_id: str, employee_id: str, data: EmployeeUpdate
    ) -> dict:
        self._ensure_same_practice(actor, professional_id)
        employee = self.repo.get_employee(self.db, professional_id, employee_id)
        if not employee:
            raise HTTPException(status_code=404, detail="Employee not found")

        if data.displayName is not None:
            employee.display_name = data.displayName
        if data.roleId is not None:
            self._ensure_role(professional_id, data.roleId)
            employee.role_id = data.roleId or None
        if data.phone is not None:
            employee.phone = data.phone or None
        if data.email is not None:
            employee.email = data.email or None
        if data.notes is not None:
            employee.notes = data.notes or None
        if data.permissionsOverride is not None:
            employee.permissions_override = data.permissionsOverride

        revoke_sessions = False
        if data.isActive is not None:
            if employee.is_active and not data.isActive:
                revoke_sessions = True
            employee.is_active = data.isActive

        temporary_pin = None
        if data.resetPin or data.newPin:
            pin = data.newPin or generate_random_pin(4)
            if not validate_pin_format(pin):
                raise HTTPException(status_code=400, detail="PIN must be 4-6 digits")
            employee.pin_hash = hash_pin(pin)
            revoke_sessions = True
            if not data.newPin:
                temporary_pin = pin

        self.db.commit()
        if revoke_sessions:
            invalidate_all_employee_sessions(self.db, employee.id)
        self.db.refresh(employee)

        return {
            "employee": employee,
            "temporaryPin": temporary_pin,
            "message": f"PIN reset. New PIN: {temporary_pin}" if temporary_pin else "Employee updated",
        }

    def delete_employee(self, actor: PracticeActor, professional_id: str, employee_id: str) -> dict:
        self._ensure_same_practice(actor, professional_id)
        employee = self.repo.get_employee(self.db, professional_id, employee_id)
        if not employee:
            raise HTTPException(status_code=404, detail="Employee not found")
        # Sessions go with the employee (delete-orphan cascade)
        self.db.delete(employee)
        self.db.commit()
        logger.info(f"🗑️ Employee {employee_id} deleted from professional {professional_id}")
        return {"success": True}

    # ========================================================================
    # ROLES
    # ========================================================================

    def list_roles(self, actor: PracticeActor, professional_id: str) -> list[EmployeeRole]:
        """List roles, creating the default system roles on first access"""
        self._ensure_same_practice(actor, professional_id)
        roles = self.repo.list_roles(self.db, professional_id)
        if roles:
            return roles

        for template in DEFAULT_ROLES:
            self.db.add(
                EmployeeRole(
                    professional_id=professional_id,
                    name=template["name"],
                    description=template["description"],
                    permissions=merge_permissions(default_permissions(), template["permissions"]),
                    is_system=template["is_system"],
                )
            )
        self.db.commit()
        logger.info(f"🔧 Default roles created for professional {professional_id}")
        return self.repo.list_roles(self.db, professional_id)

    def create_role(self, actor: PracticeActor, professional_id: str, data: RoleCreate) -> EmployeeRole:
        self._ensure_same_practice(actor, professional_id)
        name = (data.name or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Role name is required")
        if self.repo.role_name_taken(self.db, professional_id, name):
            raise HTTPException(status_code=400, detail="Role name already exists")

        role = EmployeeRole(
            professional_id=professional_id,
            name=name,
            description=data.description,
            permissions=merge_permissions(default_permissions(), data.permissions),
            is_system=False,
        )
        self.db.add(role)
        self.db.commit()
        self.db.refresh(role)
        return role

    def update_role(
        self, actor: PracticeActor, professional_id: str, role_id: str, data: RoleUpdate
    ) -> EmployeeRole:
        """System roles keep their name, their permissions may be tuned"""
        self._ensure_same_practice(actor, professional_id)
        role = self.repo.get_role(self.db, professional_id, role_id)
        if not role:
            raise HTTPException(status_code=404, detail="Role not found")

        if data.name is not None and not role.is_system:
            name = data.name.strip()
            if not name:
                raise HTTPException(status_code=400, detail="Role name is required")
            if self.repo.role_name_taken(self.db, professional_id, name, exclude_id=role.id):
                raise HTTPException(status_code=400, detail="Role name already exists")
            role.name = name
        if data.description is not None:
            role.description = data.description
        if data.permissions is not None:
            role.permissions = merge_permissions(default_permissions(), data.permissions)
        if data.is_active is not None:
            role.is_active = data.is_active

        self.db.commit()
        self.db.refresh(role)
        return role

    def delete_role(self, actor: PracticeActor, professional_id: str, role_id: str) -> dict:
        self._ensure_same_practice(actor, professional_id)
        role = self.repo.get_role(self.db, professional_id, role_id)
        if not role:
            raise HTTPException(status_code=404, detail="Role not found")
        if role.is_system:
            raise HTTPException(status_code=400, detail="Cannot delete system roles")

        # Employees of the role are detached (role_id nulled on flush)
        self.db.delete(role)
        self.db.commit()
        return {"success": True}
