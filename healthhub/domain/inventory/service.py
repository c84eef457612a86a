"""Inventory service - Products, stock, adjustments, alerts and webhook integrations"""

import logging
from datetime import date, timedelta
from typing import Optional
from urllib.parse import urlparse

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...employee_auth import PracticeActor
from ...models_pharmacy import (
    InventoryTransaction,
    PharmacyIntegration,
    PharmacyInventory,
    PharmacyProduct,
    WebhookDelivery,
)
from . import calculations, webhooks
from .repository import InventoryRepository
from .schemas import (
    BatchResponse,
    InventoryTransactionResponse,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    StockAdjustment,
    StockReceive,
    WebhookCreate,
    WebhookUpdate,
)

logger = logging.getLogger(__name__)

REASON_LABELS = {
    "count_correction": "Inventory Count Correction",
    "damage": "Damaged Product",
    "theft": "Theft",
    "expiry": "Expired Product",
    "quality_issue": "Quality Issue",
    "data_entry_error": "Data Entry Error",
    "initial_stock": "Initial Stock",
    "other": "Other",
}

SECRET_MASK = "********"
SEVERITY_ORDER = {"critical": 0, "warning": 1, "info": 2}
ALERT_FILTERS = ("all", "low_stock", "expiring", "expired")

NULLABLE_PRODUCT_FIELDS = (
    "barcode",
    "sku",
    "name_ar",
    "generic_name",
    "dci_code",
    "category",
    "form",
    "dosage",
    "manufacturer",
    "purchase_price",
    "tarif_reference",
)


def product_payload(product: PharmacyProduct, stock: Optional[dict] = None) -> dict:
    """Serialized product with its stock figures"""
    data = ProductResponse.model_validate(product).model_dump(mode="json")
    stock = stock or {"total": 0, "available": 0}
    data["current_stock"] = stock["total"]
    data["available_stock"] = stock["available"]
    data["stock_status"] = calculations.stock_status(stock["total"], product.min_stock_level or 0)["status"]
    return data


def masked_webhook(integration: PharmacyIntegration) -> dict:
    config = dict(integration.config or {})
    config["secret"] = SECRET_MASK if config.get("secret") else None
    return {
        "id": integration.id,
        "name": integration.name,
        "config": config,
        "is_active": integration.is_active,
        "last_sync_at": integration.last_sync_at.isoformat() if integration.last_sync_at else None,
        "last_sync_status": integration.last_sync_status,
        "last_error": integration.last_error,
        "created_at": integration.created_at.isoformat() if integration.created_at else None,
    }


def valid_webhook_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class InventoryService:
    """Service layer for pharmacy inventory business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = InventoryRepository()

    def _product_or_404(self, pharmacy_id: str, product_id: str) -> PharmacyProduct:
        product = self.repo.get_product(self.db, pharmacy_id, product_id)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        return product

    def _current_stock(self, pharmacy_id: str, product_id: str) -> int:
        return sum(b.quantity for b in self.repo.active_batches(self.db, pharmacy_id, product_id))

    # ========================================================================
    # PRODUCTS
    # ========================================================================

    def list_products(
        self,
        actor: PracticeActor,
        page: int = 1,
        per_page: int = 50,
        low_stock_only: bool = False,
        out_of_stock_only: bool = False,
        **filters,
    ) -> dict:
        products, total = self.repo.list_products(
            self.db, actor.professional_id, page=page, per_page=per_page, **filters
        )
        totals = self.repo.stock_totals(self.db, [p.id for p in products])
        enriched = [product_payload(p, totals.get(p.id)) for p in products]

        stats = {
            "total_active": sum(1 for p in enriched if p["is_active"]),
            "low_stock": sum(
                1 for p in enriched if calculations.is_low_stock(p["current_stock"], p["min_stock_level"])
            ),
            "out_of_stock": sum(1 for p in enriched if p["current_stock"] <= 0),
        }

        data = enriched
        if low_stock_only:
            data = [p for p in enriched if calculations.is_low_stock(p["current_stock"], p["min_stock_level"])]
        if out_of_stock_only:
            data = [p for p in enriched if p["current_stock"] <= 0]

        return {
            "data": data,
            "total": total,
            "page": page,
            "per_page": per_page,
            "total_pages": -(-total // per_page) if per_page else 0,
            "stats": stats,
        }

    def get_product(self, actor: PracticeActor, product_id: str) -> dict:
        product = self._product_or_404(actor.professional_id, product_id)
        batches = self.repo.active_batches(self.db, actor.professional_id, product_id)

        total = sum(b.quantity for b in batches)
        reserved = sum(b.reserved_quantity or 0 for b in batches)
        value = sum(b.quantity * (b.purchase_price_unit or product.purchase_price or 0) for b in batches)

        payload = product_payload(product, {"total": total, "available": total - reserved})
        payload["reserved_stock"] = reserved
        payload["total_value"] = calculations.round2(value)
        return {
            "product": payload,
            "inventory": [BatchResponse.model_validate(b).model_dump(mode="json") for b in batches],
            "recent_transactions": [
                InventoryTransactionResponse.model_validate(t).model_dump(mode="json")
                for t in self.repo.recent_transactions(self.db, product_id)
            ],
        }

    def create_product(self, actor: PracticeActor, data: ProductCreate) -> dict:
        if not data.name or not data.selling_price:
            raise HTTPException(status_code=400, detail="Name and selling price are required")

        pharmacy_id = actor.professional_id
        if data.barcode and self.repo.find_by_barcode(self.db, pharmacy_id, data.barcode):
            raise HTTPException(status_code=400, detail="A product with this barcode already exists")

        is_chifa_listed = bool(data.is_chifa_listed)
        margin = (
            calculations.margin_percent(data.purchase_price, data.selling_price)
            if data.purchase_price
            else None
        )
        tva_rate = data.tva_rate
        if tva_rate is None:
            tva_rate = calculations.default_tva_rate(data.category, is_chifa_listed)
        if tva_rate not in calculations.TVA_RATES:
            raise HTTPException(status_code=400, detail="TVA rate must be 0, 9 or 19")
        if (data.reimbursement_rate or 0) not in calculations.REIMBURSEMENT_RATES:
            raise HTTPException(status_code=400, detail="Reimbursement rate must be 0, 80 or 100")

        product = PharmacyProduct(
            pharmacy_id=pharmacy_id,
            barcode=data.barcode or None,
            sku=data.sku or None,
            name=data.name.strip(),
            name_ar=data.name_ar or None,
            generic_name=data.generic_name or None,
            dci_code=data.dci_code or None,
            category=data.category or None,
            form=data.form or None,
            dosage=data.dosage or None,
            manufacturer=data.manufacturer or None,
            purchase_price=data.purchase_price or None,
            selling_price=data.selling_price,
            margin_percent=margin,
            is_chifa_listed=is_chifa_listed,
            reimbursement_rate=data.reimbursement_rate or 0,
            tarif_reference=data.tarif_reference or None,
            requires_prescription=bool(data.requires_prescription),
            is_controlled=bool(data.is_controlled),
            min_stock_level=data.min_stock_level or 0,
            reorder_quantity=data.reorder_quantity or 0,
            tva_rate=tva_rate,
            source="manual",
            created_by=actor.actor_id,
        )
        self.db.add(product)
        self.db.flush()

        payload = product_payload(product)
        webhooks.emit_event(self.db, pharmacy_id, "product.created", {"product": payload})
        self.db.commit()
        logger.info(f"📦 Product {product.id} created by {actor.actor_name} ({pharmacy_id})")
        return {"success": True, "product": payload, "message": "Product created successfully"}

    def update_product(self, actor: PracticeActor, product_id: str, data: ProductUpdate) -> dict:
        pharmacy_id = actor.professional_id
        product = self._product_or_404(pharmacy_id, product_id)
        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_PRODUCT_FIELDS
        }

        if changes.get("barcode") and changes["barcode"] != product.barcode:
            if self.repo.find_by_barcode(self.db, pharmacy_id, changes["barcode"], exclude_id=product_id):
                raise HTTPException(status_code=400, detail="A product with this barcode already exists")
        if "tva_rate" in changes and changes["tva_rate"] not in calculations.TVA_RATES:
            raise HTTPException(status_code=400, detail="TVA rate must be 0, 9 or 19")
        if "reimbursement_rate" in changes and changes["reimbursement_rate"] not in calculations.REIMBURSEMENT_RATES:
            raise HTTPException(status_code=400, detail="Reimbursement rate must be 0, 80 or 100")
        if "name" in changes and not changes["name"].strip():
            raise HTTPException(status_code=400, detail="Name cannot be empty")

        for field, value in changes.items():
            if isinstance(value, str) and field != "name":
                value = value or None
            setattr(product, field, value)

        if "purchase_price" in changes or "selling_price" in changes:
            product.margin_percent = (
                calculations.margin_percent(product.purchase_price, product.selling_price)
                if product.purchase_price
                else None
            )

        self.db.flush()
        payload = product_payload(product)
        webhooks.emit_event(
            self.db, pharmacy_id, "product.updated", {"product": payload, "changes": changes}
        )
        self.db.commit()
        return {"success": True, "product": payload, "message": "Product updated successfully"}

    def delete_product(self, actor: PracticeActor, product_id: str) -> dict:
        """Soft delete, refused while the product still has stock"""
        pharmacy_id = actor.professional_id
        product = self._product_or_404(pharmacy_id, product_id)

        if self._current_stock(pharmacy_id, product_id) > 0:
            raise HTTPException(
                status_code=400,
                detail="Cannot delete product with active stock. Adjust stock to 0 first.",
            )

        product.is_active = False
        webhooks.emit_event(
            self.db, pharmacy_id, "product.deleted", {"product": {"id": product.id, "name": product.name}}
        )
        self.db.commit()
        return {"success": True, "message": f'Product "{product.name}" has been deactivated'}

    # ========================================================================
    # STOCK
    # ========================================================================

    def list_stock(self, actor: PracticeActor, page: int = 1, per_page: int = 50, **filters) -> dict:
        batches, total = self.repo.list_batches(
            self.db, actor.professional_id, page=page, per_page=per_page, **filters
        )
        data = []
        total_value = 0.0
        for batch in batches:
            row = BatchResponse.model_validate(batch).model_dump(mode="json")
            product = batch.product
            row["product"] = {
                "id": product.id,
                "name": product.name,
                "barcode": product.barcode,
                "selling_price": product.selling_price,
                "min_stock_level": product.min_stock_level,
            }
            if batch.expiry_date:
                row["expiry_status"] = calculations.expiry_status(batch.expiry_date)["status"]
            total_value += batch.quantity * (batch.purchase_price_unit or product.purchase_price or 0)
            data.append(row)

        return {
            "data": data,
            "total": total,
            "page": page,
            "per_page": per_page,
            "total_pages": -(-total // per_page) if per_page else 0,
            "total_value": calculations.round2(total_value),
        }

    def receive_stock(self, actor: PracticeActor, data: StockReceive) -> dict:
        if not data.product_id or not data.quantity or data.quantity <= 0:
            raise HTTPException(status_code=400, detail="Product ID and positive quantity are required")

        pharmacy_id = actor.professional_id
        product = self._product_or_404(pharmacy_id, data.product_id)
        current = self._current_stock(pharmacy_id, product.id)
        unit_price = data.purchase_price_unit or product.purchase_price

        batch = PharmacyInventory(
            pharmacy_id=pharmacy_id,
            product_id=product.id,
            batch_number=data.batch_number or None,
            lot_number=data.lot_number or None,
            quantity=data.quantity,
            reserved_quantity=0,
            purchase_price_unit=unit_price,
            expiry_date=data.expiry_date,
            received_date=date.today(),
            location=data.location or None,
            is_active=True,
        )
        self.db.add(batch)
        self.db.flush()

        self.db.add(
            InventoryTransaction(
                pharmacy_id=pharmacy_id,
                product_id=product.id,
                inventory_id=batch.id,
                transaction_type="purchase",
                quantity_change=data.quantity,
                quantity_before=current,
                quantity_after=current + data.quantity,
                unit_price=unit_price,
                total_value=data.quantity * (unit_price or 0),
                batch_number=data.batch_number,
                notes=f"Stock received for {product.name}",
                created_by=actor.actor_id,
                created_by_name=actor.actor_name,
            )
        )
        webhooks.emit_event(
            self.db,
            pharmacy_id,
            "stock.received",
            {
                "product_id": product.id,
                "product_name": product.name,
                "quantity": data.quantity,
                "batch_number": data.batch_number,
                "expiry_date": data.expiry_date.isoformat() if data.expiry_date else None,
            },
        )
        self.db.commit()
        self.db.refresh(batch)
        return {
            "success": True,
            "inventory": BatchResponse.model_validate(batch).model_dump(mode="json"),
            "message": f"Added {data.quantity} units to stock",
        }

    # ========================================================================
    # ADJUSTMENTS
    # ========================================================================

    def adjust_stock(self, actor: PracticeActor, data: StockAdjustment) -> dict:
        """
        Add or remove units of a product.

        Removals consume batches first-expired-first-out; additions go to the
        given batch or open a new one at the product's purchase price.
        """
        if not data.product_id or not data.quantity or data.quantity <= 0 or not data.reason_code:
            raise HTTPException(
                status_code=400, detail="Product ID, positive quantity, and reason are required"
            )
        if data.adjustment_type not in ("add", "remove"):
            raise HTTPException(status_code=400, detail='Adjustment type must be "add" or "remove"')
        if data.reason_code not in REASON_LABELS:
            raise HTTPException(status_code=400, detail="Invalid reason code")

        pharmacy_id = actor.professional_id
        product = self._product_or_404(pharmacy_id, data.product_id)
        batches = self.repo.active_batches(self.db, pharmacy_id, product.id)
        current = sum(b.quantity for b in batches)

        change = data.quantity if data.adjustment_type == "add" else -data.quantity
        new_total = current + change
        if new_total < 0:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot remove {data.quantity} units. Current stock is only {current}",
            )

        if data.adjustment_type == "remove":
            remaining = data.quantity
            for batch in batches:
                if remaining <= 0:
                    break
                taken = min(remaining, batch.quantity)
                batch.quantity -= taken
                batch.is_active = batch.quantity > 0
                remaining -= taken
        else:
            target = next((b for b in batches if b.id == data.inventory_id), None) if data.inventory_id else None
            if target:
                target.quantity += data.quantity
            else:
                self.db.add(
                    PharmacyInventory(
                        pharmacy_id=pharmacy_id,
                        product_id=product.id,
                        quantity=data.quantity,
                        reserved_quantity=0,
                        purchase_price_unit=product.purchase_price,
                        received_date=date.today(),
                        is_active=True,
                    )
                )

        label = REASON_LABELS[data.reason_code]
        transaction = InventoryTransaction(
            pharmacy_id=pharmacy_id,
            product_id=product.id,
            inventory_id=data.inventory_id,
            transaction_type="adjustment_add" if change > 0 else "adjustment_remove",
            quantity_change=change,
            quantity_before=current,
            quantity_after=new_total,
            unit_price=product.purchase_price,
            total_value=abs(change) * (product.purchase_price or 0),
            reason_code=data.reason_code,
            notes=data.notes or f"{label} - {product.name}",
            created_by=actor.actor_id,
            created_by_name=actor.actor_name,
            approval_status="approved",
        )
        self.db.add(transaction)
        self.db.flush()

        webhooks.emit_event(
            self.db,
            pharmacy_id,
            "stock.adjusted",
            {
                "product_id": product.id,
                "product_name": product.name,
                "quantity_change": change,
                "reason": label,
                "new_quantity": new_total,
            },
        )
        if new_total == 0:
            webhooks.emit_stock_alert(
                self.db,
                pharmacy_id,
                "out",
                {"product_id": product.id, "product_name": product.name, "current_quantity": 0},
            )
        elif product.min_stock_level and new_total < product.min_stock_level:
            webhooks.emit_stock_alert(
                self.db,
                pharmacy_id,
                "low",
                {
                    "product_id": product.id,
                    "product_name": product.name,
                    "current_quantity": new_total,
                    "min_level": product.min_stock_level,
                },
            )

        self.db.commit()
        self.db.refresh(transaction)
        logger.info(f"📦 Stock of {product.id} adjusted by {change} ({label}) by {actor.actor_name}")
        return {
            "success": True,
            "transaction": InventoryTransactionResponse.model_validate(transaction).model_dump(mode="json"),
            "new_stock_level": new_total,
            "message": f"Stock adjusted by {'+' if change > 0 else ''}{change} units. New level: {new_total}",
        }

    def list_adjustments(
        self, actor: PracticeActor, product_id: Optional[str] = None, page: int = 1, per_page: int = 50
    ) -> dict:
        rows, total = self.repo.list_adjustments(self.db, actor.professional_id, product_id, page, per_page)
        return {
            "data": [InventoryTransactionResponse.model_validate(r).model_dump(mode="json") for r in rows],
            "total": total,
            "page": page,
            "per_page": per_page,
            "total_pages": -(-total // per_page) if per_page else 0,
        }

    # ========================================================================
    # ALERTS
    # ========================================================================

    def list_alerts(self, actor: PracticeActor, alert_type: Optional[str] = None, today: Optional[date] = None) -> dict:
        """Low / out of stock and expiry alerts, critical first"""
        alert_type = alert_type or "all"
        if alert_type not in ALERT_FILTERS:
            raise HTTPException(status_code=400, detail="Invalid alert type")

        today = today or date.today()
        in_7_days = today + timedelta(days=7)
        in_30_days = today + timedelta(days=30)
        want_stock = alert_type in ("all", "low_stock")
        want_expiring = alert_type in ("all", "expiring")
        want_expired = alert_type in ("all", "expired")

        alerts = []
        for product in self.repo.products_with_batches(self.db, actor.professional_id):
            stocked = [b for b in product.batches if b.is_active and b.quantity > 0]
            total = sum(b.quantity for b in stocked)
            base = {"product_id": product.id, "product_name": product.name, "product_barcode": product.barcode}

            if want_stock and product.min_stock_level > 0:
                if total == 0:
                    alerts.append(
                        {
                            **base,
                            "id": f"{product.id}-out",
                            "alert_type": "out_of_stock",
                            "severity": "critical",
                            "message": f"{product.name} - Out of stock",
                            "current_quantity": 0,
                            "min_stock_level": product.min_stock_level,
                        }
                    )
                elif total < product.min_stock_level:
                    alerts.append(
                        {
                            **base,
                            "id": f"{product.id}-low",
                            "alert_type": "low_stock",
                            "severity": "critical" if total < product.min_stock_level / 2 else "warning",
                            "message": f"{product.name} - Low stock ({total} units)",
                            "current_quantity": total,
                            "min_stock_level": product.min_stock_level,
                        }
                    )

            if not (want_expiring or want_expired):
                continue
            for batch in stocked:
                if not batch.expiry_date:
                    continue
                days = (batch.expiry_date - today).days
                label = f"{product.name} (Batch: {batch.batch_number or 'N/A'})"
                batch_base = {
                    **base,
                    "inventory_id": batch.id,
                    "batch_number": batch.batch_number,
                    "expiry_date": batch.expiry_date.isoformat(),
                    "quantity": batch.quantity,
                    "days_until_expiry": days,
                }
                if batch.expiry_date < today:
                    if want_expired:
                        alerts.append(
                            {
                                **batch_base,
                                "id": f"{batch.id}-expired",
                                "alert_type": "expired",
                                "severity": "critical",
                                "message": f"{label} - EXPIRED",
                            }
                        )
                elif batch.expiry_date <= in_7_days:
                    if want_expiring:
                        alerts.append(
                            {
                                **batch_base,
                                "id": f"{batch.id}-exp7",
                                "alert_type": "expiring_7",
                                "severity": "critical",
                                "message": f"{label} - Expires in {days} day(s)",
                            }
                        )
                elif batch.expiry_date <= in_30_days and want_expiring:
                    alerts.append(
                        {
                            **batch_base,
                            "id": f"{batch.id}-exp30",
                            "alert_type": "expiring_30",
                            "severity": "warning",
                            "message": f"{label} - Expires in {days} days",
                        }
                    )

        alerts.sort(
            key=lambda a: (
                SEVERITY_ORDER.get(a["severity"], 2),
                a.get("days_until_expiry", 999),
            )
        )

        def count(key: str, value: str) -> int:
            return sum(1 for a in alerts if a[key] == value)

        summary = {
            "total": len(alerts),
            "critical": count("severity", "critical"),
            "warning": count("severity", "warning"),
            "out_of_stock": count("alert_type", "out_of_stock"),
            "low_stock": count("alert_type", "low_stock"),
            "expired": count("alert_type", "expired"),
            "expiring_7": count("alert_type", "expiring_7"),
            "expiring_30": count("alert_type", "expiring_30"),
        }
        return {"alerts": alerts, "summary": summary}

    # ========================================================================
    # WEBHOOK INTEGRATIONS
    # ========================================================================

    def list_webhooks(self, actor: PracticeActor) -> dict:
        return {"webhooks": [masked_webhook(w) for w in self.repo.list_webhooks(self.db, actor.professional_id)]}

    def _validate_events(self, events: Optional[list[str]]):
        unknown = [e for e in events or [] if e not in webhooks.WEBHOOK_EVENTS]
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown webhook event: {unknown[0]}")

    def create_webhook(self, actor: PracticeActor, data: WebhookCreate) -> dict:
        if not data.name or not data.url:
            raise HTTPException(status_code=400, detail="Name and URL are required")
        if not valid_webhook_url(data.url):
            raise HTTPException(status_code=400, detail="Invalid URL format")
        self._validate_events(data.events)

        config = {"url": data.url}
        if data.secret:
            config["secret"] = data.secret
        if data.events:
            config["events"] = data.events

        integration = PharmacyIntegration(
            pharmacy_id=actor.professional_id,
            integration_type="webhook",
            name=data.name,
            config=config,
            is_active=True,
        )
        self.db.add(integration)
        self.db.commit()
        self.db.refresh(integration)
        logger.info(f"🔗 Webhook {integration.id} created for pharmacy {actor.professional_id}")
        return {"success": True, "webhook": masked_webhook(integration), "message": "Webhook created successfully"}

    def update_webhook(self, actor: PracticeActor, data: WebhookUpdate) -> dict:
        if not data.id:
            raise HTTPException(status_code=400, detail="Webhook ID is required")
        integration = self.repo.get_webhook(self.db, actor.professional_id, data.id)
        if not integration:
            raise HTTPException(status_code=404, detail="Webhook not found")
        if data.url and not valid_webhook_url(data.url):
            raise HTTPException(status_code=400, detail="Invalid URL format")
        self._validate_events(data.events)

        # JSON column: assign a new dict so the change is tracked
        config = dict(integration.config or {})
        if data.url:
            config["url"] = data.url
        if data.secret:
            config["secret"] = data.secret
        if data.events is not None:
            config["events"] = data.events
        integration.config = config

        if data.name:
            integration.name = data.name
        if data.is_active is not None:
            integration.is_active = data.is_active

        self.db.commit()
        return {"success": True, "message": "Webhook updated"}

    def delete_webhook(self, actor: PracticeActor, webhook_id: Optional[str]) -> dict:
        if not webhook_id:
            raise HTTPException(status_code=400, detail="Webhook ID is required")
        integration = self.repo.get_webhook(self.db, actor.professional_id, webhook_id)
        if not integration:
            raise HTTPException(status_code=404, detail="Webhook not found")

        self.db.query(WebhookDelivery).filter(
            WebhookDelivery.integration_id == integration.id
        ).delete()
        self.db.delete(integration)
        self.db.commit()
        return {"success": True, "message": "Webhook deleted"}
