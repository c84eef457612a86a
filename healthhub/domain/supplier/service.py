"""Supplier service - Purchase orders between practices and their suppliers"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...employee_auth import PracticeActor
from ...models_supplier import SupplierPurchaseOrder, SupplierPurchaseOrderItem
from ...notifications import create_notification
from ...sequences import next_document_number
from ...shared.clock import utcnow
from .audit import record_audit, summarize
from .repository import UNPAID_STATUSES, SupplierRepository
from .schemas import BuyerOrderAction, OrderCreate, SupplierOrderAction

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = UNPAID_STATUSES
SUPPLIER_FINAL_STATUSES = ("delivered", "completed", "cancelled")

# Buyer-facing notification titles per status set by the supplier
STATUS_TITLES = {
    "confirmed": "Order Confirmed",
    "rejected": "Order Rejected",
    "processing": "Order Processing",
    "shipped": "Order Shipped",
    "cancelled": "Order Cancelled",
}

SUMMARY_PERIODS = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


def resolve_date_range(
    date_range: Optional[str],
    date_from: Optional[datetime],
    date_to: Optional[datetime],
    now: Optional[datetime] = None,
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Shortcut ranges (today, week, month) take precedence over explicit bounds"""
    now = now or utcnow()
    if date_range == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0), None
    if date_range == "week":
        return now - timedelta(days=7), None
    if date_range == "month":
        return now - timedelta(days=30), None
    return date_from, date_to


def parse_statuses(status: Optional[str]) -> Optional[list[str]]:
    """'submitted,confirmed' -> ['submitted', 'confirmed']"""
    if not status or status == "all":
        return None
    return [s.strip() for s in status.split(",") if s.strip()]


def audit_actor_name(actor: PracticeActor) -> str:
    """Employees are recorded by name, owners by their business"""
    return actor.actor_name if actor.is_employee else actor.professional.business_name


def order_snapshot(order: SupplierPurchaseOrder) -> dict:
    return {
        "status": order.status,
        "total": order.total,
        "paid": order.paid_at is not None,
        "tracking_number": order.tracking_number,
    }


class SupplierService:
    """Service layer for B2B procurement business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SupplierRepository()

    # ========================================================================
    # LISTING
    # ========================================================================

    def list_buyer_orders(self, actor: PracticeActor, **filters) -> dict:
        result = self._list_orders(buyer_id=actor.professional_id, **filters)
        unpaid_count, unpaid_amount = self.repo.unpaid_summary(self.db, actor.professional_id)
        result["unpaid_orders_count"] = unpaid_count
        result["unpaid_amount"] = round(unpaid_amount, 2)
        return result

    def list_supplier_orders(self, actor: PracticeActor, buyer_id: Optional[str] = None, **filters) -> dict:
        return self._list_orders(supplier_id=actor.professional_id, buyer_id=buyer_id, **filters)

    def _list_orders(
        self,
        buyer_id: Optional[str] = None,
        supplier_id: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        date_range: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        date_from, date_to = resolve_date_range(date_range, date_from, date_to)
        orders, total = self.repo.list_orders(
            self.db,
            buyer_id=buyer_id,
            supplier_id=supplier_id,
            statuses=parse_statuses(status),
            search=search,
            date_from=date_from,
            date_to=date_to,
            sort_by=sort_by,
            sort_dir=sort_dir,
            page=page,
            limit=limit,
        )
        return {
            "data": orders,
            "total": total,
            "page": page,
            "limit": limit,
            "hasMore": page * limit < total,
        }

    # ========================================================================
    # BUYER SIDE
    # ========================================================================

    def create_order(self, actor: PracticeActor, data: OrderCreate) -> SupplierPurchaseOrder:
        """Place a purchase order, submitted right away unless saved as draft"""
        if not data.supplier_id or not data.items:
            raise HTTPException(status_code=400, detail="supplier_id and items are required")

        buyer = actor.professional
        supplier = self.repo.get_supplier(self.db, data.supplier_id)
        if not supplier:
            raise HTTPException(status_code=404, detail="Supplier not found")
        if supplier.id == buyer.id:
            raise HTTPException(status_code=400, detail="Cannot order from yourself")

        link = self.repo.get_link(self.db, supplier.id, buyer.id)
        settings = self.repo.get_settings(self.db, supplier.id)
        link_active = link is not None and link.status == "active"
        if not link_active and not (settings and settings.accept_orders_from_anyone):
            raise HTTPException(status_code=403, detail="Not authorized to order from this supplier")

        products = {p.id: p for p in self.repo.get_products(self.db, supplier.id, [i.product_id for i in data.items])}
        if len(products) != len({i.product_id for i in data.items}):
            raise HTTPException(status_code=400, detail="Some products not found")

        errors = []
        for item in data.items:
            product = products[item.product_id]
            if item.quantity < (product.min_order_qty or 1):
                errors.append(f"{product.name}: Minimum order quantity is {product.min_order_qty}")
            if not product.in_stock:
                errors.append(f"{product.name}: Out of stock")
            elif product.stock_quantity is not None and item.quantity > product.stock_quantity:
                errors.append(f"{product.name}: Only {product.stock_quantity} available")
        if errors:
            raise HTTPException(status_code=400, detail="; ".join(errors))

        discount_percent = link.discount_percent if link_active else 0
        now = utcnow()
        order = SupplierPurchaseOrder(
            order_number=next_document_number(self.db, supplier.id, "po", f"PO-{now:%Y%m%d}"),
            buyer_id=buyer.id,
            supplier_id=supplier.id,
            link_id=link.id if link else None,
            status="draft",
            shipping_cost=settings.default_shipping_cost if settings else 0,
            expected_delivery_date=data.expected_delivery_date,
            delivery_address=data.delivery_address or buyer.address_line1,
            delivery_wilaya=data.delivery_wilaya or buyer.wilaya,
            delivery_commune=data.delivery_commune or buyer.commune,
            buyer_notes=data.buyer_notes,
            created_at=now,
        )

        subtotal = 0.0
        gross = 0.0
        for item in data.items:
            product = products[item.product_id]
            line_gross = item.quantity * product.unit_price
            line_total = round(line_gross * (1 - (discount_percent or 0) / 100), 2)
            gross += line_gross
            subtotal += line_total
            order.items.append(
                SupplierPurchaseOrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    product_sku=product.sku,
                    product_barcode=product.barcode,
                    quantity=item.quantity,
                    unit_price=product.unit_price,
                    discount_percent=discount_percent or 0,
                    line_total=line_total,
                    notes=item.notes,
                )
            )

        order.subtotal = round(subtotal, 2)
        order.discount_amount = round(gross - subtotal, 2)
        order.total = round(order.subtotal + (order.tax_amount or 0) + (order.shipping_cost or 0), 2)
        self.db.add(order)
        self.db.flush()

        record_audit(
            self.db,
            supplier.id,
            "order",
            order.id,
            "create",
            actor_id=actor.actor_id,
            actor_type="buyer",
            actor_name=audit_actor_name(actor),
            entity_ref=order.order_number,
            new_values={"status": order.status, "total": order.total, "items": len(order.items)},
            buyer_id=buyer.id,
            order_id=order.id,
        )

        if data.status != "draft":
            self._submit(actor, order, supplier, link_active, settings)

        self.db.commit()
        self.db.refresh(order)
        logger.info(f"📦 Order {order.order_number} placed by {buyer.id} with {supplier.id} ({order.status})")
        return order

    def _submit(self, actor: PracticeActor, order: SupplierPurchaseOrder, supplier, link_active: bool, settings):
        before = order_snapshot(order)
        now = utcnow()
        order.status = "submitted"
        order.submitted_at = now
        if settings and settings.auto_accept_orders and link_active:
            order.status = "confirmed"
            order.confirmed_at = now
            for item in order.items:
                item.item_status = "accepted"

        record_audit(
            self.db,
            order.supplier_id,
            "order",
            order.id,
            "approval" if order.status == "confirmed" else "status_change",
            actor_id=actor.actor_id,
            actor_type="buyer",
            actor_name=audit_actor_name(actor),
            entity_ref=order.order_number,
            old_values=before,
            new_values=order_snapshot(order),
            buyer_id=order.buyer_id,
            order_id=order.id,
        )

        if settings is None or settings.notify_new_orders:
            create_notification(
                self.db,
                supplier.auth_user_id,
                "supplier_order",
                "New Purchase Order",
                f"Order {order.order_number} from {actor.professional.business_name} "
                f"({order.total:.2f} DZD)",
                metadata={"order_id": order.id, "status": order.status},
                action_url=f"/supplier/orders/{order.id}",
            )

    def buyer_action(self, actor: PracticeActor, data: BuyerOrderAction) -> SupplierPurchaseOrder:
        """Apply a buyer action: submit, cancel, confirm_delivery or mark_paid"""
        if not data.order_id or not data.action:
            raise HTTPException(status_code=400, detail="order_id and action are required")

        order = self.repo.get_order(self.db, data.order_id, buyer_id=actor.professional_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")

        before = order_snapshot(order)
        now = utcnow()

        if data.action == "submit":
            if order.status != "draft":
                raise HTTPException(status_code=400, detail="Can only submit draft orders")
            supplier = self.repo.get_supplier(self.db, order.supplier_id)
            link = self.repo.get_link(self.db, order.supplier_id, order.buyer_id)
            settings = self.repo.get_settings(self.db, order.supplier_id)
            self._submit(actor, order, supplier, link is not None and link.status == "active", settings)
            self.db.commit()
            self.db.refresh(order)
            return order

        if data.action == "cancel":
            if order.status not in ("draft", "submitted"):
                raise HTTPException(status_code=400, detail="Cannot cancel this order")
            order.status = "cancelled"
            order.buyer_notes = data.buyer_notes or "Cancelled by buyer"
            audit_action = "cancellation"
        elif data.action == "confirm_delivery":
            if order.status != "shipped":
                raise HTTPException(status_code=400, detail="Can only confirm delivery for shipped orders")
            order.status = "delivered"
            order.delivered_at = now
            order.actual_delivery_date = now.date()
            audit_action = "delivery"
        elif data.action == "mark_paid":
            self._mark_paid(order, now)
            audit_action = "payment_marked"
        else:
            raise HTTPException(status_code=400, detail="Invalid action")

        self._audit_transition(actor, order, "buyer", audit_action, before)
        supplier = order.supplier
        if supplier:
            create_notification(
                self.db,
                supplier.auth_user_id,
                "supplier_order",
                f"Order {order.order_number} Updated",
                f"{actor.professional.business_name} {self._buyer_verb(data.action)} order {order.order_number}",
                metadata={"order_id": order.id, "status": order.status},
                action_url=f"/supplier/orders/{order.id}",
            )

        self.db.commit()
        self.db.refresh(order)
        logger.info(f"📦 Buyer {actor.professional_id} applied '{data.action}' to {order.order_number}")
        return order

    @staticmethod
    def _buyer_verb(action: str) -> str:
        return {
            "cancel": "cancelled",
            "confirm_delivery": "confirmed delivery of",
            "mark_paid": "marked as paid",
        }[action]

    # ========================================================================
    # SUPPLIER SIDE
    # ========================================================================

    def supplier_action(self, actor: PracticeActor, data: SupplierOrderAction) -> SupplierPurchaseOrder:
        """Apply a supplier action and notify the buyer"""
        if not data.order_id or not data.action:
            raise HTTPException(status_code=400, detail="order_id and action are required")

        order = self.repo.get_order(self.db, data.order_id, supplier_id=actor.professional_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")

        before = order_snapshot(order)
        now = utcnow()

        if data.action == "confirm":
            if order.status != "submitted":
                raise HTTPException(status_code=400, detail="Can only confirm submitted orders")
            order.status = "confirmed"
            order.confirmed_at = now
            if data.expected_delivery_date:
                order.expected_delivery_date = data.expected_delivery_date
            if data.supplier_notes:
                order.supplier_notes = data.supplier_notes
            for item in order.items:
                item.item_status = "accepted"
            audit_action = "approval"
        elif data.action == "reject":
            if order.status != "submitted":
                raise HTTPException(status_code=400, detail="Can only reject submitted orders")
            order.status = "rejected"
            order.rejection_reason = data.rejection_reason or "Order rejected"
            audit_action = "rejection"
        elif data.action == "process":
            if order.status != "confirmed":
                raise HTTPException(status_code=400, detail="Can only process confirmed orders")
            order.status = "processing"
            audit_action = "status_change"
        elif data.action == "ship":
            if order.status not in ("confirmed", "processing"):
                raise HTTPException(status_code=400, detail="Can only ship confirmed or processing orders")
            order.status = "shipped"
            order.shipped_at = now
            order.tracking_number = data.tracking_number
            order.carrier = data.carrier
            audit_action = "shipment"
        elif data.action == "cancel":
            if order.status in SUPPLIER_FINAL_STATUSES:
                raise HTTPException(status_code=400, detail="Cannot cancel this order")
            order.status = "cancelled"
            order.supplier_notes = data.supplier_notes or "Cancelled by supplier"
            audit_action = "cancellation"
        elif data.action == "mark_paid":
            self._mark_paid(order, now)
            audit_action = "payment_marked"
        else:
            raise HTTPException(status_code=400, detail="Invalid action")

        self._audit_transition(actor, order, "supplier", audit_action, before, notes=data.supplier_notes)

        buyer = order.buyer
        if buyer:
            if data.action == "mark_paid":
                title, status_text = "Payment Recorded", "marked as paid"
            else:
                title, status_text = STATUS_TITLES[order.status], order.status
            create_notification(
                self.db,
                buyer.auth_user_id,
                "supplier_order",
                title,
                f"Order {order.order_number} from {actor.professional.business_name} has been {status_text}",
                metadata={"order_id": order.id, "status": order.status},
                action_url=f"/professional/dashboard/orders/{order.id}",
            )

        self.db.commit()
        self.db.refresh(order)
        logger.info(f"📦 Supplier {actor.professional_id} applied '{data.action}' to {order.order_number}")
        return order

    # ========================================================================
    # SHARED TRANSITIONS
    # ========================================================================

    @staticmethod
    def _mark_paid(order: SupplierPurchaseOrder, now: datetime):
        if order.status not in PAYABLE_STATUSES:
            raise HTTPException(status_code=400, detail="Can only mark delivered/shipped orders as paid")
        if order.paid_at:
            raise HTTPException(status_code=400, detail="Order is already marked as paid")
        order.paid_at = now

    def _audit_transition(
        self,
        actor: PracticeActor,
        order: SupplierPurchaseOrder,
        actor_type: str,
        action: str,
        before: dict,
        notes: Optional[str] = None,
    ):
        amount_before = amount_after = None
        if action == "payment_marked":
            amount_before, amount_after = 0.0, order.total
        elif action == "cancellation" and order.paid_at:
            amount_before, amount_after = order.total, 0.0

        record_audit(
            self.db,
            order.supplier_id,
            "payment" if action == "payment_marked" else "order",
            order.id,
            action,
            actor_id=actor.actor_id,
            actor_type=actor_type,
            actor_name=audit_actor_name(actor),
            entity_ref=order.order_number,
            old_values=before,
            new_values=order_snapshot(order),
            buyer_id=order.buyer_id,
            order_id=order.id,
            amount_before=amount_before,
            amount_after=amount_after,
            notes=notes,
        )

    # ========================================================================
    # AUDIT
    # ========================================================================

    def list_audit(self, actor: PracticeActor, page: int = 1, limit: int = 50, **filters) -> dict:
        entries, total = self.repo.list_audit(
            self.db, actor.professional_id, page=page, limit=limit, **filters
        )
        return {"data": entries, "total": total, "page": page, "limit": limit, "hasMore": page * limit < total}

    def audit_summary(
        self,
        actor: PracticeActor,
        period: str = "month",
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> dict:
        if period not in SUMMARY_PERIODS:
            raise HTTPException(status_code=400, detail="Invalid period")
        date_to = date_to or utcnow()
        date_from = date_from or date_to - SUMMARY_PERIODS[period]
        entries = self.repo.audit_between(self.db, actor.professional_id, date_from, date_to)
        summary = summarize(entries, date_from, date_to)
        summary["period"] = period
        return summary
