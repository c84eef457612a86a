"""POS repository - Database operations for drawers, sessions and sales"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload, selectinload

from ...models_pharmacy import CashDrawer, CashDrawerSession, PosCustomer, PosSale

MAX_SESSIONS = 100


class PosRepository:
    """Repository for point of sale database operations"""

    @staticmethod
    def list_drawers(db: Session, pharmacy_id: str) -> list[CashDrawer]:
        return (
            db.query(CashDrawer)
            .filter(CashDrawer.pharmacy_id == pharmacy_id, CashDrawer.is_active.is_(True))
            .order_by(CashDrawer.name.asc())
            .all()
        )

    @staticmethod
    def get_drawer(db: Session, pharmacy_id: str, drawer_id: str) -> Optional[CashDrawer]:
        return (
            db.query(CashDrawer)
            .filter(CashDrawer.id == drawer_id, CashDrawer.pharmacy_id == pharmacy_id)
            .first()
        )

    # ========================================================================
    # SESSIONS
    # ========================================================================

    @staticmethod
    def list_sessions(
        db: Session,
        pharmacy_id: str,
        status: Optional[str] = None,
        drawer_id: Optional[str] = None,
    ) -> list[CashDrawerSession]:
        query = (
            db.query(CashDrawerSession)
            .options(joinedload(CashDrawerSession.drawer))
            .filter(CashDrawerSession.pharmacy_id == pharmacy_id)
        )
        if status:
            query = query.filter(CashDrawerSession.status == status)
        if drawer_id:
            query = query.filter(CashDrawerSession.drawer_id == drawer_id)
        return query.order_by(CashDrawerSession.opened_at.desc()).limit(MAX_SESSIONS).all()

    @staticmethod
    def get_session(db: Session, pharmacy_id: str, session_id: str) -> Optional[CashDrawerSession]:
        return (
            db.query(CashDrawerSession)
            .filter(CashDrawerSession.id == session_id, CashDrawerSession.pharmacy_id == pharmacy_id)
            .first()
        )

    @staticmethod
    def open_session_for_drawer(db: Session, drawer_id: str) -> Optional[CashDrawerSession]:
        return (
            db.query(CashDrawerSession)
            .filter(CashDrawerSession.drawer_id == drawer_id, CashDrawerSession.status == "open")
            .first()
        )

    @staticmethod
    def completed_sales_for_session(db: Session, session_id: str) -> list[PosSale]:
        return (
            db.query(PosSale)
            .filter(PosSale.session_id == session_id, PosSale.status == "completed")
            .all()
        )

    # ========================================================================
    # SALES
    # ========================================================================

    @staticmethod
    def list_sales(
        db: Session,
        pharmacy_id: str,
        session_id: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 50,
    ) -> tuple[list[PosSale], int]:
        query = db.query(PosSale).filter(PosSale.pharmacy_id == pharmacy_id)
        if session_id:
            query = query.filter(PosSale.session_id == session_id)
        if status:
            query = query.filter(PosSale.status == status)
        if date_from:
            query = query.filter(PosSale.created_at >= date_from)
        if date_to:
            query = query.filter(PosSale.created_at <= date_to)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    PosSale.sale_number.ilike(pattern),
                    PosSale.customer_name.ilike(pattern),
                    PosSale.customer_phone.ilike(pattern),
                )
            )

        total = query.count()
        sales = (
            query.options(selectinload(PosSale.items))
            .order_by(PosSale.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return sales, total

    # ========================================================================
    # CUSTOMERS
    # ========================================================================

    @staticmethod
    def get_customer(db: Session, pharmacy_id: str, customer_id: str) -> Optional[PosCustomer]:
        return (
            db.query(PosCustomer)
            .filter(PosCustomer.id == customer_id, PosCustomer.pharmacy_id == pharmacy_id)
            .first()
        )

    @staticmethod
    def search_customers(db: Session, pharmacy_id: str, search: Optional[str] = None) -> list[PosCustomer]:
        query = db.query(PosCustomer).filter(PosCustomer.pharmacy_id == pharmacy_id)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    PosCustomer.full_name.ilike(pattern),
                    PosCustomer.phone.ilike(pattern),
                    PosCustomer.chifa_number.ilike(pattern),
                )
            )
        return query.order_by(PosCustomer.full_name.asc()).limit(50).all()
