"""POS service - Cash drawer sessions, checkout and Chifa claims"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...employee_auth import PracticeActor
from ...models_pharmacy import (
    CashDrawer,
    CashDrawerSession,
    ChifaClaim,
    InventoryTransaction,
    PosCustomer,
    PosSale,
    PosSaleItem,
)
from ...sequences import next_document_number
from ...shared.clock import utcnow
from ..inventory.repository import InventoryRepository
from . import pricing
from .repository import PosRepository
from .schemas import CustomerCreate, DrawerCreate, SaleCreate, SessionClose, SessionOpen

logger = logging.getLogger(__name__)


def chifa_batch_number(when: datetime) -> str:
    """Monthly CNAS batch, e.g. CHIFA-2025-03"""
    return f"CHIFA-{when:%Y-%m}"


class PosService:
    """Service layer for point of sale business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PosRepository()
        self.inventory = InventoryRepository()

    # ========================================================================
    # DRAWERS & CUSTOMERS
    # ========================================================================

    def list_drawers(self, actor: PracticeActor) -> list[CashDrawer]:
        return self.repo.list_drawers(self.db, actor.professional_id)

    def create_drawer(self, actor: PracticeActor, data: DrawerCreate) -> CashDrawer:
        drawer = CashDrawer(pharmacy_id=actor.professional_id, name=data.name.strip(), code=data.code)
        self.db.add(drawer)
        self.db.commit()
        self.db.refresh(drawer)
        return drawer

    def search_customers(self, actor: PracticeActor, search: Optional[str] = None) -> list[PosCustomer]:
        return self.repo.search_customers(self.db, actor.professional_id, search)

    def create_customer(self, actor: PracticeActor, data: CustomerCreate) -> PosCustomer:
        customer = PosCustomer(
            pharmacy_id=actor.professional_id,
            full_name=data.full_name.strip(),
            phone=data.phone,
            chifa_number=data.chifa_number,
        )
        self.db.add(customer)
        self.db.commit()
        self.db.refresh(customer)
        return customer

    # ========================================================================
    # SESSIONS
    # ========================================================================

    def list_sessions(
        self,
        actor: PracticeActor,
        status: Optional[str] = None,
        drawer_id: Optional[str] = None,
        active_only: bool = False,
    ) -> tuple[list[CashDrawerSession], Optional[CashDrawerSession]]:
        """Sessions newest first, plus the currently open one if any"""
        sessions = self.repo.list_sessions(
            self.db, actor.professional_id, "open" if active_only else status, drawer_id
        )
        current = next((s for s in sessions if s.status == "open"), None)
        return sessions, current

    def open_session(self, actor: PracticeActor, data: SessionOpen) -> dict:
        if not data.drawer_id:
            raise HTTPException(status_code=400, detail="Drawer ID is required")

        pharmacy_id = actor.professional_id
        drawer = self.repo.get_drawer(self.db, pharmacy_id, data.drawer_id)
        if not drawer or not drawer.is_active:
            raise HTTPException(status_code=404, detail="Drawer not found")

        existing = self.repo.open_session_for_drawer(self.db, drawer.id)
        if existing:
            raise HTTPException(
                status_code=400, detail=f"Drawer already has open session: {existing.session_number}"
            )

        now = utcnow()
        session = CashDrawerSession(
            pharmacy_id=pharmacy_id,
            drawer_id=drawer.id,
            session_number=next_document_number(self.db, pharmacy_id, "session", f"SESSION-{now:%Y-%m-%d}"),
            status="open",
            opened_at=now,
            opened_by=actor.actor_id,
            opened_by_name=actor.actor_name,
            opening_balance=data.opening_balance or 0,
            opening_notes=data.opening_notes,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        logger.info(f"💰 Session {session.session_number} opened by {actor.actor_name}")
        return {"success": True, "session": session, "message": f"Session {session.session_number} opened"}

    def close_session(self, actor: PracticeActor, session_id: Optional[str], data: SessionClose) -> dict:
        """Close with reconciliation against the session's completed sales"""
        if not session_id:
            raise HTTPException(status_code=400, detail="Session ID is required")

        session = self.repo.get_session(self.db, actor.professional_id, session_id)
        if not session:
            raise HTTPException(status_code=404, detail="Session not found")
        if session.status != "open":
            raise HTTPException(status_code=400, detail="Session is not open")

        sales = self.repo.completed_sales_for_session(self.db, session.id)
        totals = pricing.reconcile_session(session.opening_balance, sales, data.counted_cash)

        session.status = "closed"
        session.closed_at = utcnow()
        session.closed_by = actor.actor_id
        session.closed_by_name = actor.actor_name
        session.counted_cash = data.counted_cash
        session.counted_cards = data.counted_cards
        session.counted_cheques = data.counted_cheques
        session.variance_notes = data.variance_notes
        for field, value in totals.items():
            setattr(session, field, value)

        self.db.commit()
        self.db.refresh(session)

        variance = totals["variance_cash"]
        logger.info(f"💰 Session {session.session_number} closed, variance {variance:.2f}")
        return {
            "success": True,
            "session": session,
            "summary": {
                "system_cash": totals["system_cash"],
                "counted_cash": data.counted_cash,
                "variance": variance,
                "system_chifa": totals["system_chifa"],
            },
            "message": f"Session closed. Variance: {'+' if variance >= 0 else ''}{variance:.2f} DZD",
        }

    # ========================================================================
    # SALES
    # ========================================================================

    def list_sales(self, actor: PracticeActor, page: int = 1, per_page: int = 50, **filters) -> dict:
        sales, total = self.repo.list_sales(
            self.db, actor.professional_id, page=page, per_page=per_page, **filters
        )
        return {"data": sales, "total": total, "page": page, "per_page": per_page}

    def create_sale(self, actor: PracticeActor, data: SaleCreate) -> dict:
        """
        Complete a checkout.

        Lines are priced server side from the catalog (the cashier may override
        the unit price), stock is consumed first-expired-first-out and every
        reimbursable line becomes a pending Chifa claim.
        """
        if not data.items:
            raise HTTPException(status_code=400, detail="Cart is empty")

        pharmacy_id = actor.professional_id

        if data.session_id:
            session = self.repo.get_session(self.db, pharmacy_id, data.session_id)
            if not session:
                raise HTTPException(status_code=404, detail="Session not found")
            if session.status != "open":
                raise HTTPException(status_code=400, detail="Session is not open")

        customer = None
        if data.customer_id:
            customer = self.repo.get_customer(self.db, pharmacy_id, data.customer_id)
            if not customer:
                raise HTTPException(status_code=404, detail="Customer not found")

        products = {}
        requested = defaultdict(int)
        for item in data.items:
            if item.product_id not in products:
                product = self.inventory.get_product(self.db, pharmacy_id, item.product_id)
                if not product or not product.is_active:
                    raise HTTPException(status_code=404, detail=f"Product not found: {item.product_id}")
                products[item.product_id] = product
            requested[item.product_id] += item.quantity

        batches = {}
        for product_id, quantity in requested.items():
            batches[product_id] = self.inventory.active_batches(self.db, pharmacy_id, product_id)
            available = sum(b.quantity for b in batches[product_id])
            if available < quantity:
                raise HTTPException(
                    status_code=400,
                    detail=f"Insufficient stock for {products[product_id].name}. Available: {available}",
                )

        lines = []
        for item in data.items:
            product = products[item.product_id]
            is_chifa = product.is_chifa_listed if item.is_chifa_item is None else item.is_chifa_item
            rate = product.reimbursement_rate if item.reimbursement_rate is None else item.reimbursement_rate
            line = pricing.price_line(
                unit_price=product.selling_price if item.unit_price is None else item.unit_price,
                quantity=item.quantity,
                discount_amount=item.discount_amount,
                discount_percent=item.discount_percent,
                tva_rate=product.tva_rate if item.tva_rate is None else item.tva_rate,
                is_chifa_item=bool(is_chifa),
                reimbursement_rate=rate or 0,
            )
            lines.append((item, product, line, bool(is_chifa), rate or 0))

        totals = pricing.sale_totals([line for _, _, line, _, _ in lines], data.discount_percent)
        payments = data.payments
        if not pricing.covers_patient_share(payments.total, totals["patient_total"]):
            raise HTTPException(
                status_code=400,
                detail=f"Insufficient payment. Patient owes {totals['patient_total']:.2f} DZD",
            )

        now = utcnow()
        sale = PosSale(
            pharmacy_id=pharmacy_id,
            sale_number=next_document_number(self.db, pharmacy_id, "sale", "TICKET"),
            session_id=data.session_id,
            customer_id=customer.id if customer else None,
            customer_name=data.customer_name or (customer.full_name if customer else None),
            customer_phone=data.customer_phone or (customer.phone if customer else None),
            discount_percent=data.discount_percent,
            paid_cash=payments.cash,
            paid_card=payments.card,
            paid_cheque=payments.cheque,
            paid_mobile=payments.mobile,
            paid_credit=payments.credit,
            change_given=pricing.change_due(payments.total, totals["patient_total"]),
            status="completed",
            created_by=actor.actor_id,
            created_by_name=actor.actor_name,
            created_at=now,
            **totals,
        )
        self.db.add(sale)
        self.db.flush()

        for item, product, line, is_chifa, rate in lines:
            sale.items.append(
                PosSaleItem(
                    product_id=product.id,
                    product_name=product.name,
                    product_barcode=product.barcode,
                    quantity=item.quantity,
                    unit_price=product.selling_price if item.unit_price is None else item.unit_price,
                    discount_amount=line["discount_amount"],
                    discount_percent=item.discount_percent,
                    tva_rate=product.tva_rate if item.tva_rate is None else item.tva_rate,
                    tva_amount=line["tva_amount"],
                    is_chifa_item=is_chifa,
                    reimbursement_rate=rate,
                    chifa_amount=line["chifa_amount"],
                    patient_amount=line["patient_amount"],
                    line_total=line["line_total"],
                )
            )
            self._deduct_stock(actor, sale, product, batches[product.id], item.quantity, line["line_total"])

            if line["chifa_amount"] > 0:
                self.db.add(
                    ChifaClaim(
                        pharmacy_id=pharmacy_id,
                        batch_number=chifa_batch_number(now),
                        sale_id=sale.id,
                        patient_name=sale.customer_name,
                        patient_chifa_number=data.patient_chifa_number
                        or (customer.chifa_number if customer else None),
                        product_id=product.id,
                        product_name=product.name,
                        quantity=item.quantity,
                        reimbursement_rate=rate,
                        amount_claimed=line["chifa_amount"],
                        status="pending",
                        sale_date=now,
                    )
                )

        if customer and totals["patient_total"] > 0:
            points = pricing.loyalty_points(totals["patient_total"])
            sale.loyalty_points_earned = points
            customer.loyalty_points = (customer.loyalty_points or 0) + points

        self.db.commit()
        self.db.refresh(sale)
        logger.info(f"🧾 Sale {sale.sale_number} completed: {sale.total_amount:.2f} DZD by {actor.actor_name}")
        return {
            "success": True,
            "sale": sale,
            "change_given": sale.change_given,
            "message": f"Sale {sale.sale_number} completed",
        }

    def _deduct_stock(self, actor: PracticeActor, sale: PosSale, product, batches, quantity: int, line_total: float):
        """Consume batches in the order given (FEFO) and log a sale transaction"""
        before = sum(b.quantity for b in batches)
        remaining = quantity
        for batch in batches:
            if remaining <= 0:
                break
            taken = min(remaining, batch.quantity)
            batch.quantity -= taken
            batch.is_active = batch.quantity > 0
            remaining -= taken

        self.db.add(
            InventoryTransaction(
                pharmacy_id=sale.pharmacy_id,
                product_id=product.id,
                transaction_type="sale",
                quantity_change=-quantity,
                quantity_before=before,
                quantity_after=before - quantity,
                unit_price=product.selling_price,
                total_value=line_total,
                reference_type="sale",
                reference_id=sale.id,
                notes=f"Sale {sale.sale_number}",
                created_by=actor.actor_id,
                created_by_name=actor.actor_name,
            )
        )
