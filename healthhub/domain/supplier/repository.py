"""Supplier repository - Database operations for purchase orders and the audit log"""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from ...models import Professional
from ...models_supplier import (
    SupplierAuditLog,
    SupplierBuyerLink,
    SupplierProduct,
    SupplierPurchaseOrder,
    SupplierSettings,
)

SUPPLIER_TYPES = ("pharma_supplier", "equipment_supplier")
SORTABLE_FIELDS = ("created_at", "total", "status", "order_number")
UNPAID_STATUSES = ("shipped", "delivered", "completed")


class SupplierRepository:
    """Repository for B2B procurement database operations"""

    @staticmethod
    def get_supplier(db: Session, supplier_id: str) -> Optional[Professional]:
        return (
            db.query(Professional)
            .filter(Professional.id == supplier_id, Professional.type.in_(SUPPLIER_TYPES))
            .first()
        )

    @staticmethod
    def get_link(db: Session, supplier_id: str, buyer_id: str) -> Optional[SupplierBuyerLink]:
        return (
            db.query(SupplierBuyerLink)
            .filter(SupplierBuyerLink.supplier_id == supplier_id, SupplierBuyerLink.buyer_id == buyer_id)
            .first()
        )

    @staticmethod
    def get_settings(db: Session, supplier_id: str) -> Optional[SupplierSettings]:
        return db.query(SupplierSettings).filter(SupplierSettings.supplier_id == supplier_id).first()

    @staticmethod
    def get_products(db: Session, supplier_id: str, product_ids: Iterable[str]) -> list[SupplierProduct]:
        return (
            db.query(SupplierProduct)
            .filter(
                SupplierProduct.supplier_id == supplier_id,
                SupplierProduct.id.in_(list(product_ids)),
                SupplierProduct.is_active.is_(True),
            )
            .all()
        )

    # ========================================================================
    # ORDERS
    # ========================================================================

    @staticmethod
    def get_order(
        db: Session,
        order_id: str,
        buyer_id: Optional[str] = None,
        supplier_id: Optional[str] = None,
    ) -> Optional[SupplierPurchaseOrder]:
        query = (
            db.query(SupplierPurchaseOrder)
            .options(selectinload(SupplierPurchaseOrder.items))
            .filter(SupplierPurchaseOrder.id == order_id)
        )
        if buyer_id:
            query = query.filter(SupplierPurchaseOrder.buyer_id == buyer_id)
        if supplier_id:
            query = query.filter(SupplierPurchaseOrder.supplier_id == supplier_id)
        return query.first()

    @staticmethod
    def list_orders(
        db: Session,
        buyer_id: Optional[str] = None,
        supplier_id: Optional[str] = None,
        statuses: Optional[list[str]] = None,
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[SupplierPurchaseOrder], int]:
        query = db.query(SupplierPurchaseOrder)
        if buyer_id:
            query = query.filter(SupplierPurchaseOrder.buyer_id == buyer_id)
        if supplier_id:
            query = query.filter(SupplierPurchaseOrder.supplier_id == supplier_id)
        if statuses:
            query = query.filter(SupplierPurchaseOrder.status.in_(statuses))
        if search:
            query = query.filter(SupplierPurchaseOrder.order_number.ilike(f"%{search}%"))
        if date_from:
            query = query.filter(SupplierPurchaseOrder.created_at >= date_from)
        if date_to:
            query = query.filter(SupplierPurchaseOrder.created_at <= date_to)

        total = query.count()
        column = getattr(SupplierPurchaseOrder, sort_by if sort_by in SORTABLE_FIELDS else "created_at")
        orders = (
            query.options(
                joinedload(SupplierPurchaseOrder.buyer),
                joinedload(SupplierPurchaseOrder.supplier),
                selectinload(SupplierPurchaseOrder.items),
            )
            .order_by(column.asc() if sort_dir == "asc" else column.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return orders, total

    @staticmethod
    def unpaid_summary(db: Session, buyer_id: str) -> tuple[int, float]:
        count, amount = (
            db.query(func.count(SupplierPurchaseOrder.id), func.coalesce(func.sum(SupplierPurchaseOrder.total), 0))
            .filter(
                SupplierPurchaseOrder.buyer_id == buyer_id,
                SupplierPurchaseOrder.status.in_(UNPAID_STATUSES),
                SupplierPurchaseOrder.paid_at.is_(None),
            )
            .one()
        )
        return count, float(amount)

    # ========================================================================
    # AUDIT
    # ========================================================================

    @staticmethod
    def list_audit(
        db: Session,
        supplier_id: str,
        entity_type: Optional[str] = None,
        action: Optional[str] = None,
        order_id: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[SupplierAuditLog], int]:
        query = db.query(SupplierAuditLog).filter(SupplierAuditLog.supplier_id == supplier_id)
        if entity_type:
            query = query.filter(SupplierAuditLog.entity_type == entity_type)
        if action:
            query = query.filter(SupplierAuditLog.action == action)
        if order_id:
            query = query.filter(SupplierAuditLog.order_id == order_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    SupplierAuditLog.entity_ref.ilike(pattern),
                    SupplierAuditLog.actor_name.ilike(pattern),
                    SupplierAuditLog.notes.ilike(pattern),
                )
            )
        if date_from:
            query = query.filter(SupplierAuditLog.created_at >= date_from)
        if date_to:
            query = query.filter(SupplierAuditLog.created_at <= date_to)

        total = query.count()
        entries = (
            query.order_by(SupplierAuditLog.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return entries, total

    @staticmethod
    def audit_between(db: Session, supplier_id: str, date_from: datetime, date_to: datetime) -> list[SupplierAuditLog]:
        return (
            db.query(SupplierAuditLog)
            .filter(
                SupplierAuditLog.supplier_id == supplier_id,
                SupplierAuditLog.created_at >= date_from,
                SupplierAuditLog.created_at <= date_to,
            )
            .order_by(SupplierAuditLog.created_at.asc())
            .all()
        )
