"""POS router - FastAPI endpoints for the pharmacy point of sale"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...employee_auth import PracticeActor, require_permission
from .schemas import (
    CustomerCreate,
    CustomerResponse,
    DrawerCreate,
    DrawerResponse,
    SaleCreate,
    SaleResponse,
    SessionClose,
    SessionOpen,
    SessionResponse,
)
from .service import PosService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pharmacy/pos", tags=["Pharmacy POS"])

cashier = require_permission(
    "dashboard", "pos", professional_types=("pharmacy",), not_found_detail="Pharmacy not found"
)
pos_manager = require_permission(
    "actions", "manage_settings", professional_types=("pharmacy",), not_found_detail="Pharmacy not found"
)


def get_pos_service(db: Session = Depends(get_db)) -> PosService:
    """Dependency injection for PosService"""
    return PosService(db)


# ============================================================================
# DRAWERS & CUSTOMERS
# ============================================================================


@router.get("/drawers")
async def list_drawers(
    actor: PracticeActor = Depends(cashier),
    service: PosService = Depends(get_pos_service),
):
    return {"drawers": [DrawerResponse.model_validate(d) for d in service.list_drawers(actor)]}


@router.post("/drawers", status_code=201)
async def create_drawer(
    data: DrawerCreate,
    actor: PracticeActor = Depends(pos_manager),
    service: PosService = Depends(get_pos_service),
):
    return {"drawer": DrawerResponse.model_validate(service.create_drawer(actor, data))}


@router.get("/customers")
async def search_customers(
    search: Optional[str] = Query(None),
    actor: PracticeActor = Depends(cashier),
    service: PosService = Depends(get_pos_service),
):
    return {"customers": [CustomerResponse.model_validate(c) for c in service.search_customers(actor, search)]}


@router.post("/customers", status_code=201)
async def create_customer(
    data: CustomerCreate,
    actor: PracticeActor = Depends(cashier),
    service: PosService = Depends(get_pos_service),
):
    return {"customer": CustomerResponse.model_validate(service.create_customer(actor, data))}


# ============================================================================
# SESSIONS
# ============================================================================


@router.get("/sessions")
async def list_sessions(
    status: Optional[str] = Query(None),
    drawer_id: Optional[str] = Query(None),
    active_only: bool = Query(False),
    actor: PracticeActor = Depends(cashier),
    service: PosService = Depends(get_pos_service),
):
    sessions, current = service.list_sessions(actor, status, drawer_id, active_only)
    return {
        "sessions": [SessionResponse.model_validate(s) for s in sessions],
        "current_session": SessionResponse.model_validate(current) if current else None,
    }


@router.post("/sessions")
async def open_session(
    data: SessionOpen,
    actor: PracticeActor = Depends(cashier),
    service: PosService = Depends(get_pos_service),
):
    result = service.open_session(actor, data)
    result["session"] = SessionResponse.model_validate(result["session"])
    return result


@router.patch("/sessions")
async def close_session(
    data: SessionClose,
    id: Optional[str] = Query(None),
    actor: PracticeActor = Depends(cashier),
    service: PosService = Depends(get_pos_service),
):
    """Close a session, the body carries the counted amounts"""
    result = service.close_session(actor, id, data)
    result["session"] = SessionResponse.model_validate(result["session"])
    return result


# ============================================================================
# SALES
# ============================================================================


@router.get("/sales")
async def list_sales(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    session_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None),
    actor: PracticeActor = Depends(cashier),
    service: PosService = Depends(get_pos_service),
):
    result = service.list_sales(
        actor,
        page=page,
        per_page=per_page,
        session_id=session_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    result["data"] = [SaleResponse.model_validate(s) for s in result["data"]]
    return result


@router.post("/sales")
async def create_sale(
    data: SaleCreate,
    actor: PracticeActor = Depends(cashier),
    service: PosService = Depends(get_pos_service),
):
    result = service.create_sale(actor, data)
    result["sale"] = SaleResponse.model_validate(result["sale"])
    return result
