"""Supplier router - FastAPI endpoints for purchase orders and the audit log"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...employee_auth import PracticeActor, practice_actor, require_permission
from .repository import SUPPLIER_TYPES
from .schemas import AuditLogResponse, BuyerOrderAction, OrderCreate, OrderResponse, SupplierOrderAction
from .service import SupplierService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Supplier Orders"])

buyer = practice_actor(
    any_of=[("dashboard", "orders"), ("actions", "process_orders")],
    not_found_detail="Professional profile not found",
)
supplier = practice_actor(
    professional_types=SUPPLIER_TYPES,
    any_of=[("dashboard", "orders"), ("actions", "process_orders")],
    not_found_detail="Supplier profile not found",
)
supplier_auditor = require_permission(
    "actions", "manage_settings", professional_types=SUPPLIER_TYPES, not_found_detail="Supplier profile not found"
)


def get_supplier_service(db: Session = Depends(get_db)) -> SupplierService:
    """Dependency injection for SupplierService"""
    return SupplierService(db)


def _serialize_page(result: dict) -> dict:
    result["data"] = [OrderResponse.model_validate(o) for o in result["data"]]
    return result


# ============================================================================
# BUYER ORDERS
# ============================================================================


@router.get("/suppliers/orders")
async def list_buyer_orders(
    status: Optional[str] = Query(None),
    supplier_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    date_range: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    sort_by: str = Query("created_at"),
    sort_dir: str = Query("desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    actor: PracticeActor = Depends(buyer),
    service: SupplierService = Depends(get_supplier_service),
):
    """Orders placed by the caller's practice, with its unpaid balance"""
    result = service.list_buyer_orders(
        actor,
        supplier_id=supplier_id,
        status=status,
        search=search,
        date_range=date_range,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_dir=sort_dir,
        page=page,
        limit=limit,
    )
    return _serialize_page(result)


@router.post("/suppliers/orders", status_code=201)
async def create_order(
    data: OrderCreate,
    actor: PracticeActor = Depends(buyer),
    service: SupplierService = Depends(get_supplier_service),
):
    order = service.create_order(actor, data)
    return {"success": True, "order": OrderResponse.model_validate(order)}


@router.patch("/suppliers/orders")
async def update_buyer_order(
    data: BuyerOrderAction,
    actor: PracticeActor = Depends(buyer),
    service: SupplierService = Depends(get_supplier_service),
):
    order = service.buyer_action(actor, data)
    return {"success": True, "order": OrderResponse.model_validate(order)}


# ============================================================================
# SUPPLIER ORDERS
# ============================================================================


@router.get("/supplier/orders")
async def list_supplier_orders(
    status: Optional[str] = Query(None),
    buyer_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    date_range: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    sort_by: str = Query("created_at"),
    sort_dir: str = Query("desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    actor: PracticeActor = Depends(supplier),
    service: SupplierService = Depends(get_supplier_service),
):
    result = service.list_supplier_orders(
        actor,
        buyer_id=buyer_id,
        status=status,
        search=search,
        date_range=date_range,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_dir=sort_dir,
        page=page,
        limit=limit,
    )
    return _serialize_page(result)


@router.patch("/supplier/orders")
async def update_supplier_order(
    data: SupplierOrderAction,
    actor: PracticeActor = Depends(supplier),
    service: SupplierService = Depends(get_supplier_service),
):
    order = service.supplier_action(actor, data)
    return {"success": True, "order": OrderResponse.model_validate(order)}


# ============================================================================
# AUDIT LOG
# ============================================================================


@router.get("/supplier/audit")
async def list_audit(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    entity_type: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    order_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    actor: PracticeActor = Depends(supplier_auditor),
    service: SupplierService = Depends(get_supplier_service),
):
    result = service.list_audit(
        actor,
        page=page,
        limit=limit,
        entity_type=entity_type,
        action=action,
        order_id=order_id,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )
    result["data"] = [AuditLogResponse.model_validate(e) for e in result["data"]]
    return result


@router.get("/supplier/audit/summary")
async def audit_summary(
    period: str = Query("month"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    actor: PracticeActor = Depends(supplier_auditor),
    service: SupplierService = Depends(get_supplier_service),
):
    return service.audit_summary(actor, period, date_from, date_to)
