"""
Supplier audit trail
Every order transition a supplier or its buyers make is recorded here
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models_supplier import SupplierAuditLog

logger = logging.getLogger(__name__)

ENTITY_TYPES = ("order", "payment", "product", "buyer", "settings")

ACTION_LABELS = {
    "create": "Created",
    "update": "Updated",
    "delete": "Deleted",
    "status_change": "Status changed",
    "payment_received": "Payment received",
    "payment_marked": "Marked as paid",
    "shipment": "Shipped",
    "delivery": "Delivered",
    "cancellation": "Cancelled",
    "rejection": "Rejected",
    "approval": "Approved",
}

ENTITY_LABELS = {
    "order": "Order",
    "payment": "Payment",
    "product": "Product",
    "buyer": "Buyer",
    "settings": "Settings",
}

# An order reaching one of these counts as completed in the summary
COMPLETED_STATUSES = ("delivered", "completed")


def action_label(entity_type: str, action: str) -> str:
    """'order' + 'shipment' -> 'Order shipped'"""
    entity = ENTITY_LABELS.get(entity_type, entity_type.capitalize())
    label = ACTION_LABELS.get(action, action.replace("_", " "))
    return f"{entity} {label[0].lower()}{label[1:]}"


def changed_fields(old_values: Optional[dict], new_values: Optional[dict]) -> list[str]:
    old_values = old_values or {}
    new_values = new_values or {}
    return sorted(key for key in set(old_values) | set(new_values) if old_values.get(key) != new_values.get(key))


def record_audit(
    db: Session,
    supplier_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    actor_id: Optional[str] = None,
    actor_type: str = "supplier",
    actor_name: Optional[str] = None,
    entity_ref: Optional[str] = None,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
    buyer_id: Optional[str] = None,
    order_id: Optional[str] = None,
    amount_before: Optional[float] = None,
    amount_after: Optional[float] = None,
    notes: Optional[str] = None,
) -> SupplierAuditLog:
    """Queue an audit row in the current transaction, caller commits"""
    amount_change = None
    if amount_before is not None or amount_after is not None:
        amount_change = round((amount_after or 0) - (amount_before or 0), 2)

    entry = SupplierAuditLog(
        supplier_id=supplier_id,
        actor_id=actor_id,
        actor_type=actor_type,
        actor_name=actor_name,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_ref=entity_ref,
        action=action,
        action_label=action_label(entity_type, action),
        old_values=old_values,
        new_values=new_values,
        changed_fields=changed_fields(old_values, new_values),
        buyer_id=buyer_id,
        order_id=order_id,
        amount_before=amount_before,
        amount_after=amount_after,
        amount_change=amount_change,
        notes=notes,
    )
    db.add(entry)
    logger.debug(f"📝 Audit {entity_type}.{action} queued for supplier {supplier_id}")
    return entry


def summarize(entries: Iterable[SupplierAuditLog], date_from: datetime, date_to: datetime) -> dict:
    """Fold audit rows into the dashboard summary"""
    by_entity_type: dict = {}
    by_action: dict = {}
    timeline: dict = {}
    credits = 0.0
    debits = 0.0
    orders_created = 0
    orders_completed = 0
    payments_received = 0
    products_updated = 0
    total = 0

    for entry in entries:
        total += 1
        by_entity_type[entry.entity_type] = by_entity_type.get(entry.entity_type, 0) + 1
        by_action[entry.action] = by_action.get(entry.action, 0) + 1

        day = entry.created_at.date().isoformat() if entry.created_at else "unknown"
        timeline[day] = timeline.get(day, 0) + 1

        change = entry.amount_change or 0
        if change > 0:
            credits += change
        elif change < 0:
            debits += -change

        if entry.entity_type == "order" and entry.action == "create":
            orders_created += 1
        if entry.entity_type == "order" and (entry.new_values or {}).get("status") in COMPLETED_STATUSES:
            orders_completed += 1
        if entry.action in ("payment_marked", "payment_received"):
            payments_received += 1
        if entry.entity_type == "product" and entry.action in ("create", "update"):
            products_updated += 1

    return {
        "date_range": {"from": date_from.isoformat(), "to": date_to.isoformat()},
        "total_events": total,
        "by_entity_type": by_entity_type,
        "by_action": by_action,
        "financial": {
            "total_credits": round(credits, 2),
            "total_debits": round(debits, 2),
            "net_change": round(credits - debits, 2),
        },
        "timeline": [{"date": day, "count": count} for day, count in sorted(timeline.items())],
        "orders_created": orders_created,
        "orders_completed": orders_completed,
        "payments_received": payments_received,
        "products_updated": products_updated,
    }
