"""Staff repository - Database operations for employees and roles"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models_staff import EmployeeRole, ProfessionalEmployee


class StaffRepository:
    """Repository for employee and role database operations"""

    # ========================================================================
    # EMPLOYEES
    # ========================================================================

    @staticmethod
    def list_employees(db: Session, professional_id: str) -> list[ProfessionalEmployee]:
        return (
            db.query(ProfessionalEmployee)
            .options(joinedload(ProfessionalEmployee.role))
            .filter(ProfessionalEmployee.professional_id == professional_id)
            .order_by(ProfessionalEmployee.created_at.desc())
            .all()
        )

    @staticmethod
    def get_employee(db: Session, professional_id: str, employee_id: str) -> Optional[ProfessionalEmployee]:
        return (
            db.query(ProfessionalEmployee)
            .filter(
                ProfessionalEmployee.id == employee_id,
                ProfessionalEmployee.professional_id == professional_id,
            )
            .first()
        )

    @staticmethod
    def username_taken(db: Session, professional_id: str, username: str) -> bool:
        return (
            db.query(ProfessionalEmployee.id)
            .filter(
                ProfessionalEmployee.professional_id == professional_id,
                ProfessionalEmployee.username == username,
            )
            .first()
            is not None
        )

    # ========================================================================
    # ROLES
    # ========================================================================

    @staticmethod
    def list_roles(db: Session, professional_id: str) -> list[EmployeeRole]:
        """System roles first, then alphabetical"""
        return (
            db.query(EmployeeRole)
            .filter(EmployeeRole.professional_id == professional_id)
            .order_by(EmployeeRole.is_system.desc(), EmployeeRole.name)
            .all()
        )

    @staticmethod
    def get_role(db: Session, professional_id: str, role_id: str) -> Optional[EmployeeRole]:
        return (
            db.query(EmployeeRole)
            .filter(EmployeeRole.id == role_id, EmployeeRole.professional_id == professional_id)
            .first()
        )

    @staticmethod
    def role_name_taken(
        db: Session, professional_id: str, name: str, exclude_id: Optional[str] = None
    ) -> bool:
        query = db.query(EmployeeRole.id).filter(
            EmployeeRole.professional_id == professional_id,
            func.lower(EmployeeRole.name) == name.lower(),
        )
        if exclude_id:
            query = query.filter(EmployeeRole.id != exclude_id)
        return query.first() is not None
