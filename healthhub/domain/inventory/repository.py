"""Inventory repository - Database operations for products, batches and transactions"""

from datetime import date, timedelta
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from ...models_pharmacy import (
    InventoryTransaction,
    PharmacyIntegration,
    PharmacyInventory,
    PharmacyProduct,
)

SORTABLE_FIELDS = ("name", "selling_price", "purchase_price", "created_at", "barcode", "category")
ADJUSTMENT_TYPES = ("adjustment_add", "adjustment_remove")


class InventoryRepository:
    """Repository for pharmacy inventory database operations"""

    # ========================================================================
    # PRODUCTS
    # ========================================================================

    @staticmethod
    def get_product(db: Session, pharmacy_id: str, product_id: str) -> Optional[PharmacyProduct]:
        return (
            db.query(PharmacyProduct)
            .filter(PharmacyProduct.id == product_id, PharmacyProduct.pharmacy_id == pharmacy_id)
            .first()
        )

    @staticmethod
    def find_by_barcode(
        db: Session, pharmacy_id: str, barcode: str, exclude_id: Optional[str] = None
    ) -> Optional[PharmacyProduct]:
        query = db.query(PharmacyProduct).filter(
            PharmacyProduct.pharmacy_id == pharmacy_id, PharmacyProduct.barcode == barcode
        )
        if exclude_id:
            query = query.filter(PharmacyProduct.id != exclude_id)
        return query.first()

    @staticmethod
    def list_products(
        db: Session,
        pharmacy_id: str,
        search: Optional[str] = None,
        category: Optional[str] = None,
        is_chifa_listed: Optional[bool] = None,
        requires_prescription: Optional[bool] = None,
        is_controlled: Optional[bool] = None,
        is_active: bool = True,
        sort_field: str = "name",
        sort_dir: str = "asc",
        page: int = 1,
        per_page: int = 50,
    ) -> tuple[list[PharmacyProduct], int]:
        query = db.query(PharmacyProduct).filter(
            PharmacyProduct.pharmacy_id == pharmacy_id, PharmacyProduct.is_active.is_(is_active)
        )
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    PharmacyProduct.name.ilike(pattern),
                    PharmacyProduct.generic_name.ilike(pattern),
                    PharmacyProduct.barcode.ilike(pattern),
                    PharmacyProduct.dci_code.ilike(pattern),
                )
            )
        if category:
            query = query.filter(PharmacyProduct.category == category)
        if is_chifa_listed is not None:
            query = query.filter(PharmacyProduct.is_chifa_listed.is_(is_chifa_listed))
        if requires_prescription is not None:
            query = query.filter(PharmacyProduct.requires_prescription.is_(requires_prescription))
        if is_controlled is not None:
            query = query.filter(PharmacyProduct.is_controlled.is_(is_controlled))

        total = query.count()

        column = getattr(PharmacyProduct, sort_field if sort_field in SORTABLE_FIELDS else "name")
        query = query.order_by(column.desc() if sort_dir == "desc" else column.asc())
        products = query.offset((page - 1) * per_page).limit(per_page).all()
        return products, total

    @staticmethod
    def products_with_batches(db: Session, pharmacy_id: str) -> list[PharmacyProduct]:
        return (
            db.query(PharmacyProduct)
            .options(selectinload(PharmacyProduct.batches))
            .filter(PharmacyProduct.pharmacy_id == pharmacy_id, PharmacyProduct.is_active.is_(True))
            .all()
        )

    # ========================================================================
    # STOCK
    # ========================================================================

    @staticmethod
    def stock_totals(db: Session, product_ids: list[str]) -> dict[str, dict]:
        """Active stock per product: {product_id: {"total": n, "available": n}}"""
        if not product_ids:
            return {}
        rows = (
            db.query(
                PharmacyInventory.product_id,
                func.coalesce(func.sum(PharmacyInventory.quantity), 0),
                func.coalesce(func.sum(PharmacyInventory.reserved_quantity), 0),
            )
            .filter(
                PharmacyInventory.product_id.in_(product_ids),
                PharmacyInventory.is_active.is_(True),
            )
            .group_by(PharmacyInventory.product_id)
            .all()
        )
        return {
            product_id: {"total": int(total), "available": int(total) - int(reserved)}
            for product_id, total, reserved in rows
        }

    @staticmethod
    def active_batches(db: Session, pharmacy_id: str, product_id: str) -> list[PharmacyInventory]:
        """First-expired-first-out order, batches without expiry last"""
        return (
            db.query(PharmacyInventory)
            .filter(
                PharmacyInventory.pharmacy_id == pharmacy_id,
                PharmacyInventory.product_id == product_id,
                PharmacyInventory.is_active.is_(True),
            )
            .order_by(
                PharmacyInventory.expiry_date.is_(None),
                PharmacyInventory.expiry_date.asc(),
                PharmacyInventory.created_at.asc(),
            )
            .all()
        )

    @staticmethod
    def list_batches(
        db: Session,
        pharmacy_id: str,
        product_id: Optional[str] = None,
        expiring_within_days: Optional[int] = None,
        expired_only: bool = False,
        active_only: bool = True,
        page: int = 1,
        per_page: int = 50,
        today: Optional[date] = None,
    ) -> tuple[list[PharmacyInventory], int]:
        today = today or date.today()
        query = (
            db.query(PharmacyInventory)
            .options(joinedload(PharmacyInventory.product))
            .filter(PharmacyInventory.pharmacy_id == pharmacy_id)
        )
        if active_only:
            query = query.filter(PharmacyInventory.is_active.is_(True))
        if product_id:
            query = query.filter(PharmacyInventory.product_id == product_id)
        if expired_only:
            query = query.filter(PharmacyInventory.expiry_date < today)
        elif expiring_within_days is not None:
            query = query.filter(
                PharmacyInventory.expiry_date >= today,
                PharmacyInventory.expiry_date <= today + timedelta(days=expiring_within_days),
            )

        total = query.count()
        batches = (
            query.order_by(PharmacyInventory.expiry_date.is_(None), PharmacyInventory.expiry_date.asc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return batches, total

    # ========================================================================
    # TRANSACTIONS
    # ========================================================================

    @staticmethod
    def recent_transactions(db: Session, product_id: str, limit: int = 10) -> list[InventoryTransaction]:
        return (
            db.query(InventoryTransaction)
            .filter(InventoryTransaction.product_id == product_id)
            .order_by(InventoryTransaction.created_at.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def list_adjustments(
        db: Session, pharmacy_id: str, product_id: Optional[str] = None, page: int = 1, per_page: int = 50
    ) -> tuple[list[InventoryTransaction], int]:
        query = db.query(InventoryTransaction).filter(
            InventoryTransaction.pharmacy_id == pharmacy_id,
            InventoryTransaction.transaction_type.in_(ADJUSTMENT_TYPES),
        )
        if product_id:
            query = query.filter(InventoryTransaction.product_id == product_id)
        total = query.count()
        rows = (
            query.order_by(InventoryTransaction.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return rows, total

    # ========================================================================
    # INTEGRATIONS
    # ========================================================================

    @staticmethod
    def list_webhooks(db: Session, pharmacy_id: str) -> list[PharmacyIntegration]:
        return (
            db.query(PharmacyIntegration)
            .filter(
                PharmacyIntegration.pharmacy_id == pharmacy_id,
                PharmacyIntegration.integration_type == "webhook",
            )
            .order_by(PharmacyIntegration.created_at.desc())
            .all()
        )

    @staticmethod
    def get_webhook(db: Session, pharmacy_id: str, webhook_id: str) -> Optional[PharmacyIntegration]:
        return (
            db.query(PharmacyIntegration)
            .filter(
                PharmacyIntegration.id == webhook_id,
                PharmacyIntegration.pharmacy_id == pharmacy_id,
                PharmacyIntegration.integration_type == "webhook",
            )
            .first()
        )
