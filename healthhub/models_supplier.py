from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_uuid
from .shared.clock import utcnow


class SupplierProduct(Base):
    __tablename__ = "supplier_product_catalog"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    supplier_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    sku = Column(String(64), nullable=True)
    barcode = Column(String(64), nullable=True)
    unit_price = Column(Float, nullable=False)
    min_order_qty = Column(Integer, default=1, nullable=False)
    stock_quantity = Column(Integer, nullable=True)  # None = not tracked
    in_stock = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class SupplierBuyerLink(Base):
    __tablename__ = "supplier_buyer_links"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    supplier_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    buyer_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, active, suspended
    discount_percent = Column(Float, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class SupplierSettings(Base):
    __tablename__ = "supplier_settings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    supplier_id = Column(String(36), ForeignKey("professionals.id"), unique=True, nullable=False)
    accept_orders_from_anyone = Column(Boolean, default=False, nullable=False)
    auto_accept_orders = Column(Boolean, default=False, nullable=False)
    notify_new_orders = Column(Boolean, default=True, nullable=False)
    default_shipping_cost = Column(Float, default=0, nullable=False)


class SupplierPurchaseOrder(Base):
    __tablename__ = "supplier_purchase_orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_number = Column(String(50), nullable=False, index=True)  # PO-YYYYMMDD-n
    buyer_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    supplier_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    link_id = Column(String(36), ForeignKey("supplier_buyer_links.id"), nullable=True)
    # draft, submitted, confirmed, processing, shipped, delivered, completed, rejected, cancelled
    status = Column(String(30), default="draft", nullable=False, index=True)
    subtotal = Column(Float, default=0, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    tax_amount = Column(Float, default=0, nullable=False)
    shipping_cost = Column(Float, default=0, nullable=False)
    total = Column(Float, default=0, nullable=False)
    expected_delivery_date = Column(Date, nullable=True)
    actual_delivery_date = Column(Date, nullable=True)
    delivery_address = Column(String(500), nullable=True)
    delivery_wilaya = Column(String(100), nullable=True)
    delivery_commune = Column(String(100), nullable=True)
    buyer_notes = Column(Text, nullable=True)
    supplier_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    tracking_number = Column(String(100), nullable=True)
    carrier = Column(String(100), nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    shipped_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    buyer = relationship("Professional", foreign_keys=[buyer_id])
    supplier = relationship("Professional", foreign_keys=[supplier_id])
    items = relationship(
        "SupplierPurchaseOrderItem", back_populates="order", cascade="all, delete-orphan"
    )


class SupplierPurchaseOrderItem(Base):
    __tablename__ = "supplier_purchase_order_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("supplier_purchase_orders.id"), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("supplier_product_catalog.id"), nullable=False)
    product_name = Column(String(255), nullable=False)
    product_sku = Column(String(64), nullable=True)
    product_barcode = Column(String(64), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    discount_percent = Column(Float, default=0, nullable=False)
    line_total = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)
    item_status = Column(String(20), default="pending", nullable=False)  # pending, accepted

    order = relationship("SupplierPurchaseOrder", back_populates="items")


class SupplierAuditLog(Base):
    __tablename__ = "supplier_audit_log"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    supplier_id = Column(String(36), ForeignKey("professionals.id"), index=True, nullable=False)
    actor_id = Column(String(36), nullable=True)
    actor_type = Column(String(20), nullable=True)  # supplier, buyer, system
    actor_name = Column(String(255), nullable=True)
    entity_type = Column(String(30), nullable=False, index=True)  # order, payment, product, ...
    entity_id = Column(String(36), nullable=False)
    entity_ref = Column(String(100), nullable=True)
    action = Column(String(30), nullable=False, index=True)
    action_label = Column(String(100), nullable=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    changed_fields = Column(JSON, nullable=True)
    buyer_id = Column(String(36), nullable=True)
    order_id = Column(String(36), nullable=True, index=True)
    amount_before = Column(Float, nullable=True)
    amount_after = Column(Float, nullable=True)
    amount_change = Column(Float, nullable=True)
    currency = Column(String(3), default="DZD", nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
