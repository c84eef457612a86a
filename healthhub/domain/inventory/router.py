"""Inventory router - FastAPI endpoints for pharmacy stock management"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...employee_auth import PracticeActor, practice_actor, require_permission
from .schemas import ProductCreate, ProductUpdate, StockAdjustment, StockReceive, WebhookCreate, WebhookUpdate
from .service import InventoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pharmacy/inventory", tags=["Pharmacy Inventory"])

inventory_reader = practice_actor(
    professional_types=("pharmacy",),
    any_of=[("dashboard", "inventory"), ("actions", "manage_inventory")],
    not_found_detail="Pharmacy not found",
)
inventory_manager = require_permission(
    "actions", "manage_inventory", professional_types=("pharmacy",), not_found_detail="Pharmacy not found"
)
integrations_manager = require_permission(
    "actions", "manage_settings", professional_types=("pharmacy",), not_found_detail="Pharmacy not found"
)


def get_inventory_service(db: Session = Depends(get_db)) -> InventoryService:
    """Dependency injection for InventoryService"""
    return InventoryService(db)


# ============================================================================
# PRODUCTS
# ============================================================================


@router.get("/products")
async def list_products(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    is_chifa_listed: Optional[bool] = Query(None),
    requires_prescription: Optional[bool] = Query(None),
    is_controlled: Optional[bool] = Query(None),
    is_active: bool = Query(True),
    low_stock_only: bool = Query(False),
    out_of_stock_only: bool = Query(False),
    sort_field: str = Query("name"),
    sort_dir: str = Query("asc"),
    actor: PracticeActor = Depends(inventory_reader),
    service: InventoryService = Depends(get_inventory_service),
):
    """Catalog with current stock per product and low / out of stock stats"""
    return service.list_products(
        actor,
        page=page,
        per_page=per_page,
        low_stock_only=low_stock_only,
        out_of_stock_only=out_of_stock_only,
        search=search,
        category=category,
        is_chifa_listed=is_chifa_listed,
        requires_prescription=requires_prescription,
        is_controlled=is_controlled,
        is_active=is_active,
        sort_field=sort_field,
        sort_dir=sort_dir,
    )


@router.post("/products")
async def create_product(
    data: ProductCreate,
    actor: PracticeActor = Depends(inventory_manager),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.create_product(actor, data)


@router.get("/products/{product_id}")
async def get_product(
    product_id: str,
    actor: PracticeActor = Depends(inventory_reader),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.get_product(actor, product_id)


@router.patch("/products/{product_id}")
async def update_product(
    product_id: str,
    data: ProductUpdate,
    actor: PracticeActor = Depends(inventory_manager),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.update_product(actor, product_id, data)


@router.delete("/products/{product_id}")
async def delete_product(
    product_id: str,
    actor: PracticeActor = Depends(inventory_manager),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.delete_product(actor, product_id)


# ============================================================================
# STOCK & ADJUSTMENTS
# ============================================================================


@router.get("/stock")
async def list_stock(
    product_id: Optional[str] = Query(None),
    expiring_within_days: Optional[int] = Query(None, ge=0),
    expired_only: bool = Query(False),
    active_only: bool = Query(True),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    actor: PracticeActor = Depends(inventory_reader),
    service: InventoryService = Depends(get_inventory_service),
):
    """Batches in first-expired-first-out order with the total stock value"""
    return service.list_stock(
        actor,
        page=page,
        per_page=per_page,
        product_id=product_id,
        expiring_within_days=expiring_within_days,
        expired_only=expired_only,
        active_only=active_only,
    )


@router.post("/stock")
async def receive_stock(
    data: StockReceive,
    actor: PracticeActor = Depends(inventory_manager),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.receive_stock(actor, data)


@router.get("/adjustments")
async def list_adjustments(
    product_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    actor: PracticeActor = Depends(inventory_reader),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.list_adjustments(actor, product_id, page, per_page)


@router.post("/adjustments")
async def adjust_stock(
    data: StockAdjustment,
    actor: PracticeActor = Depends(inventory_manager),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.adjust_stock(actor, data)


@router.get("/alerts")
async def list_alerts(
    type: Optional[str] = Query(None, description="low_stock, expiring, expired or all"),
    actor: PracticeActor = Depends(inventory_reader),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.list_alerts(actor, type)


# ============================================================================
# WEBHOOK INTEGRATIONS
# ============================================================================


@router.get("/integrations/webhooks")
async def list_webhooks(
    actor: PracticeActor = Depends(integrations_manager),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.list_webhooks(actor)


@router.post("/integrations/webhooks")
async def create_webhook(
    data: WebhookCreate,
    actor: PracticeActor = Depends(integrations_manager),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.create_webhook(actor, data)


@router.patch("/integrations/webhooks")
async def update_webhook(
    data: WebhookUpdate,
    actor: PracticeActor = Depends(integrations_manager),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.update_webhook(actor, data)


@router.delete("/integrations/webhooks")
async def delete_webhook(
    id: Optional[str] = Query(None),
    actor: PracticeActor = Depends(integrations_manager),
    service: InventoryService = Depends(get_inventory_service),
):
    return service.delete_webhook(actor, id)
