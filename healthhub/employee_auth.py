"""
Employee Authentication

PIN-based authentication for the staff of a professional (clinic, pharmacy,
laboratory...). Employees sign in with the practice code, their username and
a 4-6 digit PIN and receive an opaque session token carried in the
``employee_session`` cookie or the ``X-Employee-Session`` header.
"""

import logging
from datetime import timedelta
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from .auth import get_or_create_profile, security, verify_access_token
from .config import EMPLOYEE_SESSION_HOURS
from .database import get_db
from .models import Professional
from .models_staff import EmployeeLoginAttempt, EmployeeSession, ProfessionalEmployee
from .permissions import (
    default_permissions,
    full_permissions,
    has_any_permission,
    has_permission,
    merge_permissions,
)
from .security_utils import generate_session_token, log_security_event, verify_pin
from .shared.clock import utcnow

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

SESSION_EXPIRY_HOURS = EMPLOYEE_SESSION_HOURS
MAX_LOGIN_ATTEMPTS = 5
LOCKOUT_MINUTES = 15

EMPLOYEE_SESSION_COOKIE = "employee_session"
EMPLOYEE_SESSION_HEADER = "X-Employee-Session"


class EmployeeAuthError(Exception):
    """Raised when an employee login is refused"""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticatedEmployee:
    """An employee resolved from a valid session, with effective permissions"""

    def __init__(
        self,
        employee: ProfessionalEmployee,
        professional: Professional,
        session: EmployeeSession,
        permissions: dict,
    ):
        self.employee = employee
        self.professional = professional
        self.session = session
        self.permissions = permissions

    def to_dict(self) -> dict:
        role = self.employee.role
        return {
            "employee": {
                "id": self.employee.id,
                "professional_id": self.employee.professional_id,
                "role_id": self.employee.role_id,
                "username": self.employee.username,
                "display_name": self.employee.display_name,
                "phone": self.employee.phone,
                "email": self.employee.email,
                "avatar_url": self.employee.avatar_url,
                "is_active": self.employee.is_active,
                "role": (
                    {"id": role.id, "name": role.name, "is_system": role.is_system}
                    if role
                    else None
                ),
            },
            "professional": {
                "id": self.professional.id,
                "business_name": self.professional.business_name,
                "type": self.professional.type,
                "practice_code": self.professional.practice_code,
            },
            "permissions": self.permissions,
            "session": {
                "id": self.session.id,
                "expires_at": self.session.expires_at.isoformat(),
            },
        }


def effective_permissions(employee: ProfessionalEmployee) -> dict:
    """Role permissions overlaid with the employee's own overrides"""
    role_permissions = employee.role.permissions if employee.role else default_permissions()
    return merge_permissions(role_permissions, employee.permissions_override)


# ============================================================================
# SESSION MANAGEMENT
# ============================================================================


def get_session_expiry():
    return utcnow() + timedelta(hours=SESSION_EXPIRY_HOURS)


def create_employee_session(
    db: Session,
    employee: ProfessionalEmployee,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> EmployeeSession:
    """Create a session for the employee and update login bookkeeping"""
    now = utcnow()
    session = EmployeeSession(
        employee_id=employee.id,
        session_token=generate_session_token(),
        expires_at=get_session_expiry(),
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
        created_at=now,
        last_activity=now,
    )
    db.add(session)

    employee.last_login = now
    employee.login_count = (employee.login_count or 0) + 1

    db.commit()
    db.refresh(session)
    return session


def validate_employee_session(db: Session, token: Optional[str]) -> Optional[AuthenticatedEmployee]:
    """Resolve a session token, None when expired, unknown or the employee is inactive"""
    if not token:
        return None

    now = utcnow()
    session = (
        db.query(EmployeeSession)
        .filter(EmployeeSession.session_token == token, EmployeeSession.expires_at > now)
        .first()
    )
    if not session:
        return None

    employee = session.employee
    if not employee or not employee.is_active:
        return None

    professional = db.query(Professional).filter(Professional.id == employee.professional_id).first()
    if not professional:
        return None

    session.last_activity = now
    db.commit()

    return AuthenticatedEmployee(employee, professional, session, effective_permissions(employee))


def invalidate_employee_session(db: Session, token: str) -> bool:
    """Delete a session (logout)"""
    deleted = db.query(EmployeeSession).filter(EmployeeSession.session_token == token).delete()
    db.commit()
    return deleted > 0


def invalidate_all_employee_sessions(db: Session, employee_id: str) -> int:
    """Delete every session of an employee, returns how many were removed"""
    deleted = db.query(EmployeeSession).filter(EmployeeSession.employee_id == employee_id).delete()
    db.commit()
    if deleted:
        logger.info(f"🔒 Invalidated {deleted} session(s) for employee {employee_id}")
    return deleted


def purge_expired_sessions(db: Session) -> int:
    deleted = db.query(EmployeeSession).filter(EmployeeSession.expires_at <= utcnow()).delete()
    db.commit()
    return deleted


# ============================================================================
# LOGIN RATE LIMITING
# ============================================================================


def check_login_rate_limit(db: Session, professional_id: str, username: str) -> tuple[bool, int]:
    """
    Count recent failed attempts for this practice/username.

    Returns:
        Tuple of (allowed, remaining_attempts)
    """
    cutoff = utcnow() - timedelta(minutes=LOCKOUT_MINUTES)
    attempts = (
        db.query(EmployeeLoginAttempt)
        .filter(
            EmployeeLoginAttempt.professional_id == professional_id,
            EmployeeLoginAttempt.username == username,
            EmployeeLoginAttempt.success.is_(False),
            EmployeeLoginAttempt.attempted_at >= cutoff,
        )
        .count()
    )
    if attempts >= MAX_LOGIN_ATTEMPTS:
        return False, 0
    return True, MAX_LOGIN_ATTEMPTS - attempts


def record_login_attempt(
    db: Session, professional_id: str, username: str, success: bool, ip_address: Optional[str] = None
):
    db.add(
        EmployeeLoginAttempt(
            professional_id=professional_id,
            username=username,
            success=success,
            ip_address=ip_address,
        )
    )
    db.commit()


# ============================================================================
# AUTHENTICATION
# ============================================================================


def authenticate_employee(
    db: Session,
    practice_code: str,
    username: str,
    pin: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> tuple[AuthenticatedEmployee, str]:
    """
    Authenticate an employee with practice code, username and PIN.

    Returns:
        Tuple of (authenticated employee, session token)

    Raises:
        EmployeeAuthError: unknown practice code, lockout or bad credentials
    """
    professional = (
        db.query(Professional)
        .filter(Professional.practice_code == (practice_code or "").strip().upper())
        .first()
    )
    if not professional:
        raise EmployeeAuthError("Invalid practice code")

    username = (username or "").strip().lower()

    allowed, remaining = check_login_rate_limit(db, professional.id, username)
    if not allowed:
        log_security_event(
            "employee_lockout",
            ip_address=ip_address,
            details={"professional_id": professional.id, "username": username},
        )
        raise EmployeeAuthError(
            f"Too many failed attempts. Try again after {LOCKOUT_MINUTES} minutes.",
            status_code=429,
        )

    employee = (
        db.query(ProfessionalEmployee)
        .filter(
            ProfessionalEmployee.professional_id == professional.id,
            ProfessionalEmployee.username == username,
            ProfessionalEmployee.is_active.is_(True),
        )
        .first()
    )

    if not employee or not verify_pin(pin or "", employee.pin_hash):
        record_login_attempt(db, professional.id, username, False, ip_address)
        logger.warning(f"⚠️ Failed employee login for {username} at {professional.practice_code}")
        raise EmployeeAuthError(f"Invalid credentials. {remaining - 1} attempts remaining.")

    record_login_attempt(db, professional.id, username, True, ip_address)
    session = create_employee_session(db, employee, ip_address, user_agent)
    log_security_event(
        "employee_login",
        user_id=employee.id,
        ip_address=ip_address,
        details={"professional_id": professional.id},
    )

    authenticated = AuthenticatedEmployee(
        employee, professional, session, effective_permissions(employee)
    )
    return authenticated, session.session_token


# ============================================================================
# FASTAPI DEPENDENCIES
# ============================================================================


def session_token_from_request(request: Request) -> Optional[str]:
    return request.cookies.get(EMPLOYEE_SESSION_COOKIE) or request.headers.get(
        EMPLOYEE_SESSION_HEADER
    )


async def get_current_employee(
    request: Request, db: Session = Depends(get_db)
) -> AuthenticatedEmployee:
    authenticated = validate_employee_session(db, session_token_from_request(request))
    if not authenticated:
        raise HTTPException(status_code=401, detail="Employee session expired or invalid")
    return authenticated


class PracticeActor:
    """
    Whoever is operating a practice dashboard: the owner (Bearer token) or one
    of its employees (PIN session). Owners implicitly hold every permission.
    """

    def __init__(
        self,
        professional: Professional,
        actor_id: str,
        actor_name: str,
        is_employee: bool,
        permissions: dict,
    ):
        self.professional = professional
        self.actor_id = actor_id
        self.actor_name = actor_name
        self.is_employee = is_employee
        self.permissions = permissions

    @property
    def professional_id(self) -> str:
        return self.professional.id

    def can_any(self, checks: Iterable[tuple]) -> bool:
        return has_any_permission(self.permissions, checks)


def practice_actor(
    professional_types: Iterable[str] = (),
    any_of: Iterable[tuple] = (),
    not_found_detail: str = "Professional not found",
):
    """
    Build a dependency resolving the practice actor.

    Args:
        professional_types: Accepted professional types, empty for any
        any_of: (category, flag) pairs, at least one must be granted to employees
        not_found_detail: 404 detail when an owner has no matching professional
    """
    professional_types = tuple(professional_types)
    any_of = tuple(any_of)

    async def dependency(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        db: Session = Depends(get_db),
    ) -> PracticeActor:
        token = session_token_from_request(request)
        if token:
            authenticated = validate_employee_session(db, token)
            if not authenticated:
                raise HTTPException(status_code=401, detail="Employee session expired or invalid")
            if professional_types and authenticated.professional.type not in professional_types:
                raise HTTPException(status_code=403, detail="Not available for this practice type")
            actor = PracticeActor(
                authenticated.professional,
                authenticated.employee.id,
                authenticated.employee.display_name or "Staff",
                True,
                authenticated.permissions,
            )
        elif credentials:
            profile = get_or_create_profile(verify_access_token(credentials.credentials), db)
            query = db.query(Professional).filter(Professional.auth_user_id == profile.id)
            # Owners of several practices act on the one named in the path
            path_professional_id = request.path_params.get("professional_id")
            if path_professional_id:
                query = query.filter(Professional.id == path_professional_id)
            if professional_types:
                query = query.filter(Professional.type.in_(professional_types))
            professional = query.first()
            if not professional:
                raise HTTPException(status_code=404, detail=not_found_detail)
            actor = PracticeActor(
                professional, profile.id, profile.full_name or "Owner", False, full_permissions()
            )
        else:
            raise HTTPException(status_code=401, detail="Unauthorized")

        if any_of and not actor.can_any(any_of):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return actor

    return dependency


def require_permission(
    category: str,
    flag: str,
    professional_types: Iterable[str] = (),
    not_found_detail: str = "Professional not found",
):
    """
    Dependency for practice routes gated by a single permission flag.

    Owners pass (they hold every permission), employees need the flag granted.
    """
    resolve_actor = practice_actor(professional_types, not_found_detail=not_found_detail)

    async def dependency(actor: PracticeActor = Depends(resolve_actor)) -> PracticeActor:
        if not has_permission(actor.permissions, category, flag):
            logger.warning(f"⛔ {actor.actor_name} lacks {category}.{flag} on {actor.professional_id}")
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return actor

    return dependency
