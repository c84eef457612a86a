"""Staff router - Employee PIN login and practice staff management"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ...config import EMPLOYEE_COOKIE_SECURE
from ...database import get_db
from ...employee_auth import (
    EMPLOYEE_SESSION_COOKIE,
    SESSION_EXPIRY_HOURS,
    AuthenticatedEmployee,
    PracticeActor,
    get_current_employee,
    require_permission,
    session_token_from_request,
)
from ...rate_limiter import client_ip, create_rate_limiter
from .schemas import (
    EmployeeCreate,
    EmployeeResponse,
    EmployeeUpdate,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    StaffLoginRequest,
)
from .service import StaffService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Staff"])

login_rate_limit = create_rate_limiter(limit=20, window_seconds=60, key_prefix="staff_login")
staff_manager = require_permission("actions", "manage_employees")


def get_staff_service(db: Session = Depends(get_db)) -> StaffService:
    """Dependency injection for StaffService"""
    return StaffService(db)


# ============================================================================
# EMPLOYEE SESSION
# ============================================================================


@router.post("/staff/login")
async def staff_login(
    data: StaffLoginRequest,
    request: Request,
    response: Response,
    _: None = Depends(login_rate_limit),
    service: StaffService = Depends(get_staff_service),
):
    """Sign in with practice code, username and PIN"""
    authenticated, token = service.login(data, client_ip(request), request.headers.get("user-agent"))
    response.set_cookie(
        key=EMPLOYEE_SESSION_COOKIE,
        value=token,
        max_age=SESSION_EXPIRY_HOURS * 3600,
        httponly=True,
        secure=EMPLOYEE_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
    return {"success": True, "session_token": token, **authenticated.to_dict()}


@router.post("/staff/logout")
async def staff_logout(
    request: Request,
    response: Response,
    service: StaffService = Depends(get_staff_service),
):
    result = service.logout(session_token_from_request(request))
    response.delete_cookie(EMPLOYEE_SESSION_COOKIE, path="/")
    return result


@router.get("/staff/me")
async def staff_me(employee: AuthenticatedEmployee = Depends(get_current_employee)):
    """Current employee, practice and effective permissions"""
    return employee.to_dict()


# ============================================================================
# EMPLOYEES
# ============================================================================


@router.get("/professionals/{professional_id}/employees")
async def list_employees(
    professional_id: str,
    actor: PracticeActor = Depends(staff_manager),
    service: StaffService = Depends(get_staff_service),
):
    employees = service.list_employees(actor, professional_id)
    return {"employees": [EmployeeResponse.model_validate(e) for e in employees]}


@router.post("/professionals/{professional_id}/employees", status_code=201)
async def create_employee(
    professional_id: str,
    data: EmployeeCreate,
    actor: PracticeActor = Depends(staff_manager),
    service: StaffService = Depends(get_staff_service),
):
    """Create an employee, the generated PIN is only returned here"""
    result = service.create_employee(actor, professional_id, data)
    result["employee"] = EmployeeResponse.model_validate(result["employee"])
    return result


@router.patch("/professionals/{professional_id}/employees/{employee_id}")
async def update_employee(
    professional_id: str,
    employee_id: str,
    data: EmployeeUpdate,
    actor: PracticeActor = Depends(staff_manager),
    service: StaffService = Depends(get_staff_service),
):
    result = service.update_employee(actor, professional_id, employee_id, data)
    result["employee"] = EmployeeResponse.model_validate(result["employee"])
    return result


@router.delete("/professionals/{professional_id}/employees/{employee_id}")
async def delete_employee(
    professional_id: str,
    employee_id: str,
    actor: PracticeActor = Depends(staff_manager),
    service: StaffService = Depends(get_staff_service),
):
    return service.delete_employee(actor, professional_id, employee_id)


# ============================================================================
# ROLES
# ============================================================================


@router.get("/professionals/{professional_id}/roles")
async def list_roles(
    professional_id: str,
    actor: PracticeActor = Depends(staff_manager),
    service: StaffService = Depends(get_staff_service),
):
    roles = service.list_roles(actor, professional_id)
    return {"roles": [RoleResponse.model_validate(r) for r in roles]}


@router.post("/professionals/{professional_id}/roles", response_model=RoleResponse, status_code=201)
async def create_role(
    professional_id: str,
    data: RoleCreate,
    actor: PracticeActor = Depends(staff_manager),
    service: StaffService = Depends(get_staff_service),
):
    return service.create_role(actor, professional_id, data)


@router.patch("/professionals/{professional_id}/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    professional_id: str,
    role_id: str,
    data: RoleUpdate,
    actor: PracticeActor = Depends(staff_manager),
    service: StaffService = Depends(get_staff_service),
):
    return service.update_role(actor, professional_id, role_id, data)


@router.delete("/professionals/{professional_id}/roles/{role_id}")
async def delete_role(
    professional_id: str,
    role_id: str,
    actor: PracticeActor = Depends(staff_manager),
    service: StaffService = Depends(get_staff_service),
):
    return service.delete_role(actor, professional_id, role_id)
