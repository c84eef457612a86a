from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_uuid
from .shared.clock import utcnow


class PharmacyProduct(Base):
    """Catalog entry of a pharmacy (stock levels live in PharmacyInventory batches)"""

    __tablename__ = "pharmacy_products"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pharmacy_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    barcode = Column(String(64), nullable=True, index=True)
    sku = Column(String(64), nullable=True)
    name = Column(String(255), nullable=False)
    name_ar = Column(String(255), nullable=True)
    generic_name = Column(String(255), nullable=True)
    dci_code = Column(String(64), nullable=True)
    category = Column(String(64), nullable=True)  # medications, cosmetics, parapharmacie, ...
    form = Column(String(64), nullable=True)
    dosage = Column(String(64), nullable=True)
    manufacturer = Column(String(255), nullable=True)
    purchase_price = Column(Float, nullable=True)
    selling_price = Column(Float, nullable=False)
    margin_percent = Column(Float, nullable=True)
    is_chifa_listed = Column(Boolean, default=False, nullable=False)
    reimbursement_rate = Column(Integer, default=0, nullable=False)  # 0, 80, 100
    tarif_reference = Column(Float, nullable=True)
    requires_prescription = Column(Boolean, default=False, nullable=False)
    is_controlled = Column(Boolean, default=False, nullable=False)
    min_stock_level = Column(Integer, default=0, nullable=False)
    reorder_quantity = Column(Integer, default=0, nullable=False)
    tva_rate = Column(Integer, default=0, nullable=False)  # 0, 9, 19
    source = Column(String(20), default="manual")
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    batches = relationship("PharmacyInventory", back_populates="product")


class PharmacyInventory(Base):
    """A received batch of a product"""

    __tablename__ = "pharmacy_inventory"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pharmacy_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("pharmacy_products.id"), index=True, nullable=False)
    batch_number = Column(String(64), nullable=True)
    lot_number = Column(String(64), nullable=True)
    quantity = Column(Integer, default=0, nullable=False)
    reserved_quantity = Column(Integer, default=0, nullable=False)
    purchase_price_unit = Column(Float, nullable=True)
    expiry_date = Column(Date, nullable=True)
    received_date = Column(Date, nullable=True)
    location = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    product = relationship("PharmacyProduct", back_populates="batches")


class InventoryTransaction(Base):
    __tablename__ = "inventory_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pharmacy_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("pharmacy_products.id"), index=True, nullable=False)
    inventory_id = Column(String(36), nullable=True)
    # purchase, sale, adjustment_add, adjustment_remove, return_customer, expired, damage
    transaction_type = Column(String(30), nullable=False, index=True)
    quantity_change = Column(Integer, nullable=False)
    quantity_before = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=True)
    total_value = Column(Float, nullable=True)
    reference_type = Column(String(30), nullable=True)
    reference_id = Column(String(36), nullable=True)
    batch_number = Column(String(64), nullable=True)
    reason_code = Column(String(30), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_by_name = Column(String(255), nullable=True)
    approval_status = Column(String(20), default="approved")
    created_at = Column(DateTime, default=utcnow, index=True)

    product = relationship("PharmacyProduct")


class PharmacyIntegration(Base):
    """External integration of a pharmacy (webhook endpoints for now)"""

    __tablename__ = "pharmacy_integrations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pharmacy_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    name = Column(String(255), nullable=True)
    integration_type = Column(String(30), default="webhook", nullable=False)
    config = Column(JSON, nullable=False)  # {"url": ..., "secret": ..., "events": [...]}
    is_active = Column(Boolean, default=True, nullable=False)
    last_sync_at = Column(DateTime, nullable=True)
    last_sync_status = Column(String(20), nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class WebhookDelivery(Base):
    __tablename__ = "webhook_deliveries"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    integration_id = Column(String(36), ForeignKey("pharmacy_integrations.id"), index=True, nullable=False)
    pharmacy_id = Column(String(36), nullable=False)
    event_type = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)  # pending, success, failed
    attempts = Column(Integer, default=0, nullable=False)
    max_attempts = Column(Integer, default=3, nullable=False)
    next_retry_at = Column(DateTime, nullable=True, index=True)
    response_status = Column(Integer, nullable=True)
    response_body = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    integration = relationship("PharmacyIntegration")


class CashDrawer(Base):
    __tablename__ = "pharmacy_cash_drawers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pharmacy_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    name = Column(String(100), nullable=False)
    code = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class CashDrawerSession(Base):
    __tablename__ = "cash_drawer_sessions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pharmacy_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    drawer_id = Column(String(36), ForeignKey("pharmacy_cash_drawers.id"), index=True, nullable=False)
    session_number = Column(String(50), nullable=False)
    status = Column(String(20), default="open", nullable=False)  # open, closed
    opened_at = Column(DateTime, default=utcnow)
    opened_by = Column(String(36), nullable=True)
    opened_by_name = Column(String(255), nullable=True)
    opening_balance = Column(Float, default=0, nullable=False)
    opening_notes = Column(Text, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    closed_by = Column(String(36), nullable=True)
    closed_by_name = Column(String(255), nullable=True)
    counted_cash = Column(Float, nullable=True)
    counted_cards = Column(Float, nullable=True)
    counted_cheques = Column(Float, nullable=True)
    system_cash = Column(Float, nullable=True)
    system_cards = Column(Float, nullable=True)
    system_cheques = Column(Float, nullable=True)
    system_chifa = Column(Float, nullable=True)
    variance_cash = Column(Float, nullable=True)
    variance_notes = Column(Text, nullable=True)

    drawer = relationship("CashDrawer")


class PosCustomer(Base):
    __tablename__ = "pos_customers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pharmacy_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    chifa_number = Column(String(50), nullable=True)
    loyalty_points = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class PosSale(Base):
    __tablename__ = "pos_sales"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pharmacy_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    sale_number = Column(String(50), nullable=False, index=True)
    session_id = Column(String(36), ForeignKey("cash_drawer_sessions.id"), index=True, nullable=True)
    customer_id = Column(String(36), ForeignKey("pos_customers.id"), nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    subtotal = Column(Float, default=0, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    discount_percent = Column(Float, default=0, nullable=False)
    tax_amount = Column(Float, default=0, nullable=False)
    total_amount = Column(Float, default=0, nullable=False)
    chifa_total = Column(Float, default=0, nullable=False)
    patient_total = Column(Float, default=0, nullable=False)
    paid_cash = Column(Float, default=0, nullable=False)
    paid_card = Column(Float, default=0, nullable=False)
    paid_cheque = Column(Float, default=0, nullable=False)
    paid_mobile = Column(Float, default=0, nullable=False)
    paid_credit = Column(Float, default=0, nullable=False)
    change_given = Column(Float, default=0, nullable=False)
    loyalty_points_earned = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default="completed", nullable=False)  # completed, voided, returned
    created_by = Column(String(36), nullable=True)
    created_by_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    items = relationship("PosSaleItem", back_populates="sale", cascade="all, delete-orphan")


class PosSaleItem(Base):
    __tablename__ = "pos_sale_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    sale_id = Column(String(36), ForeignKey("pos_sales.id"), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("pharmacy_products.id"), nullable=False)
    product_name = Column(String(255), nullable=False)
    product_barcode = Column(String(64), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    discount_percent = Column(Float, default=0, nullable=False)
    tva_rate = Column(Integer, default=0, nullable=False)
    tva_amount = Column(Float, default=0, nullable=False)
    is_chifa_item = Column(Boolean, default=False, nullable=False)
    reimbursement_rate = Column(Integer, default=0, nullable=False)
    chifa_amount = Column(Float, default=0, nullable=False)
    patient_amount = Column(Float, default=0, nullable=False)
    line_total = Column(Float, nullable=False)

    sale = relationship("PosSale", back_populates="items")


class ChifaClaim(Base):
    """Line of a monthly CNAS reimbursement batch"""

    __tablename__ = "chifa_claims"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pharmacy_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    batch_number = Column(String(30), nullable=False, index=True)  # CHIFA-YYYY-MM
    sale_id = Column(String(36), ForeignKey("pos_sales.id"), nullable=False)
    patient_name = Column(String(255), nullable=True)
    patient_chifa_number = Column(String(50), nullable=True)
    product_id = Column(String(36), nullable=False)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    reimbursement_rate = Column(Integer, nullable=False)
    amount_claimed = Column(Float, nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    sale_date = Column(DateTime, default=utcnow)


class DocumentSequence(Base):
    """Per-pharmacy counters backing ticket and session numbers"""

    __tablename__ = "document_sequences"
    __table_args__ = (UniqueConstraint("pharmacy_id", "sequence_type", "prefix"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pharmacy_id = Column(String(36), nullable=False)
    sequence_type = Column(String(30), nullable=False)  # sale, session, po
    prefix = Column(String(50), nullable=False)
    last_value = Column(Integer, default=0, nullable=False)
