import pytest
from conftest import (
    auth_headers,
    create_employee,
    create_professional,
    create_profile,
    employee_headers,
    login_employee,
)

from healthhub.models import Notification
from healthhub.models_supplier import (
    SupplierAuditLog,
    SupplierBuyerLink,
    SupplierProduct,
    SupplierSettings,
)

BUYER_ORDERS = "/suppliers/orders"
SUPPLIER_ORDERS = "/supplier/orders"


@pytest.fixture()
def trade(db):
    """A pharmacy with an active 10% link to a wholesaler"""
    buyer_owner = create_profile(db, full_name="Samir Haddad", role="professional")
    buyer = create_professional(db, buyer_owner, type="pharmacy", business_name="Pharmacie El Feth")
    supplier_owner = create_profile(db, full_name="Karima Ouali", role="professional")
    supplier = create_professional(
        db, supplier_owner, type="pharma_supplier", business_name="Biopharm Distribution", practice_code="BIO001"
    )

    db.add(SupplierBuyerLink(supplier_id=supplier.id, buyer_id=buyer.id, status="active", discount_percent=10))
    db.add(SupplierSettings(supplier_id=supplier.id, default_shipping_cost=500))
    paracetamol = SupplierProduct(
        supplier_id=supplier.id, name="Paracetamol 500mg x100", sku="PAR-500", unit_price=200, min_order_qty=5
    )
    gloves = SupplierProduct(supplier_id=supplier.id, name="Gants nitrile M", unit_price=50)
    db.add_all([paracetamol, gloves])
    db.commit()

    return {
        "buyer_owner": buyer_owner,
        "buyer": buyer,
        "supplier_owner": supplier_owner,
        "supplier": supplier,
        "paracetamol": paracetamol,
        "gloves": gloves,
        "buyer_headers": auth_headers(buyer_owner.id),
        "supplier_headers": auth_headers(supplier_owner.id),
    }


def place_order(client, trade, **fields):
    payload = {
        "supplier_id": trade["supplier"].id,
        "items": [
            {"product_id": trade["paracetamol"].id, "quantity": 10},
            {"product_id": trade["gloves"].id, "quantity": 4},
        ],
        **fields,
    }
    return client.post(BUYER_ORDERS, json=payload, headers=trade["buyer_headers"])


def supplier_action(client, trade, order_id, action, **fields):
    return client.patch(
        SUPPLIER_ORDERS,
        json={"order_id": order_id, "action": action, **fields},
        headers=trade["supplier_headers"],
    )


def buyer_action(client, trade, order_id, action, **fields):
    return client.patch(
        BUYER_ORDERS,
        json={"order_id": order_id, "action": action, **fields},
        headers=trade["buyer_headers"],
    )


def test_order_is_priced_from_catalog_with_link_discount(client, db, trade):
    response = place_order(client, trade)

    assert response.status_code == 201, response.text
    order = response.json()["order"]
    assert order["status"] == "submitted"
    assert order["order_number"].startswith("PO-")
    assert order["order_number"].endswith("-1")
    # 2000 + 200 gross, minus 10%, plus shipping
    assert order["subtotal"] == 1980
    assert order["discount_amount"] == 220
    assert order["shipping_cost"] == 500
    assert order["total"] == 2480
    assert {i["discount_percent"] for i in order["items"]} == {10}
    assert order["delivery_wilaya"] == "Alger"
    assert order["delivery_address"] == "12 Rue Didouche Mourad"

    notifications = db.query(Notification).filter(Notification.user_id == trade["supplier_owner"].id).all()
    assert len(notifications) == 1
    assert notifications[0].title == "New Purchase Order"


def test_order_numbers_are_sequential_per_supplier(client, trade):
    first = place_order(client, trade).json()["order"]["order_number"]
    second = place_order(client, trade).json()["order"]["order_number"]

    assert first.rsplit("-", 1)[0] == second.rsplit("-", 1)[0]
    assert second.endswith("-2")


def test_auto_accept_confirms_on_submit(client, db, trade):
    settings = db.query(SupplierSettings).filter(SupplierSettings.supplier_id == trade["supplier"].id).one()
    settings.auto_accept_orders = True
    db.commit()

    order = place_order(client, trade).json()["order"]

    assert order["status"] == "confirmed"
    assert order["confirmed_at"] is not None
    assert {i["item_status"] for i in order["items"]} == {"accepted"}


def test_unlinked_buyer_needs_open_supplier(client, db, trade):
    db.query(SupplierBuyerLink).delete()
    db.commit()

    refused = place_order(client, trade)
    assert refused.status_code == 403
    assert refused.json()["detail"] == "Not authorized to order from this supplier"

    settings = db.query(SupplierSettings).filter(SupplierSettings.supplier_id == trade["supplier"].id).one()
    settings.accept_orders_from_anyone = True
    db.commit()

    accepted = place_order(client, trade)
    assert accepted.status_code == 201
    # No active link, no discount
    assert accepted.json()["order"]["subtotal"] == 2200


def test_item_errors_are_reported_together(client, db, trade):
    gloves = db.get(SupplierProduct, trade["gloves"].id)
    gloves.in_stock = False
    db.commit()

    response = place_order(
        client,
        trade,
        items=[
            {"product_id": trade["paracetamol"].id, "quantity": 2},
            {"product_id": trade["gloves"].id, "quantity": 1},
        ],
    )

    assert response.status_code == 400
    assert response.json()["detail"] == (
        "Paracetamol 500mg x100: Minimum order quantity is 5; Gants nitrile M: Out of stock"
    )


def test_tracked_stock_limits_quantity(client, db, trade):
    gloves = db.get(SupplierProduct, trade["gloves"].id)
    gloves.stock_quantity = 3
    db.commit()

    response = place_order(client, trade)

    assert response.status_code == 400
    assert response.json()["detail"] == "Gants nitrile M: Only 3 available"


@pytest.mark.parametrize(
    "payload, status, detail",
    [
        ({"items": []}, 400, "supplier_id and items are required"),
        ({"supplier_id": "missing"}, 404, "Supplier not found"),
        ({"items": [{"product_id": "missing", "quantity": 1}]}, 400, "Some products not found"),
    ],
)
def test_order_request_errors(client, trade, payload, status, detail):
    response = place_order(client, trade, **payload)
    assert response.status_code == status
    assert response.json()["detail"] == detail


def test_supplier_cannot_order_from_itself(client, trade):
    response = client.post(
        BUYER_ORDERS,
        json={"supplier_id": trade["supplier"].id, "items": [{"product_id": trade["gloves"].id, "quantity": 1}]},
        headers=trade["supplier_headers"],
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot order from yourself"


def test_full_order_lifecycle(client, db, trade):
    order = place_order(client, trade, status="draft").json()["order"]
    assert order["status"] == "draft"
    order_id = order["id"]

    assert buyer_action(client, trade, order_id, "submit").json()["order"]["status"] == "submitted"
    assert supplier_action(client, trade, order_id, "confirm", supplier_notes="Livraison jeudi").status_code == 200
    assert supplier_action(client, trade, order_id, "process").json()["order"]["status"] == "processing"

    shipped = supplier_action(client, trade, order_id, "ship", tracking_number="YAL-889", carrier="Yalidine")
    assert shipped.json()["order"]["tracking_number"] == "YAL-889"

    listing = client.get(BUYER_ORDERS, headers=trade["buyer_headers"]).json()
    assert listing["unpaid_orders_count"] == 1
    assert listing["unpaid_amount"] == 2480

    paid = buyer_action(client, trade, order_id, "mark_paid")
    assert paid.json()["order"]["paid_at"] is not None
    again = supplier_action(client, trade, order_id, "mark_paid")
    assert again.status_code == 400
    assert again.json()["detail"] == "Order is already marked as paid"

    delivered = buyer_action(client, trade, order_id, "confirm_delivery").json()["order"]
    assert delivered["status"] == "delivered"
    assert delivered["actual_delivery_date"] is not None

    listing = client.get(BUYER_ORDERS, headers=trade["buyer_headers"]).json()
    assert listing["unpaid_orders_count"] == 0
    assert listing["total"] == 1

    titles = [
        n.title
        for n in db.query(Notification).filter(Notification.user_id == trade["buyer_owner"].id).all()
    ]
    assert {"Order Confirmed", "Order Processing", "Order Shipped"} <= set(titles)


def test_invalid_transitions(client, trade):
    order_id = place_order(client, trade, status="draft").json()["order"]["id"]

    response = supplier_action(client, trade, order_id, "confirm")
    assert response.status_code == 400
    assert response.json()["detail"] == "Can only confirm submitted orders"

    response = buyer_action(client, trade, order_id, "mark_paid")
    assert response.json()["detail"] == "Can only mark delivered/shipped orders as paid"

    response = buyer_action(client, trade, order_id, "confirm_delivery")
    assert response.json()["detail"] == "Can only confirm delivery for shipped orders"

    response = buyer_action(client, trade, order_id, "teleport")
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid action"


def test_rejection_and_cancellation(client, trade):
    rejected_id = place_order(client, trade).json()["order"]["id"]
    rejected = supplier_action(client, trade, rejected_id, "reject").json()["order"]
    assert rejected["status"] == "rejected"
    assert rejected["rejection_reason"] == "Order rejected"

    cancelled_id = place_order(client, trade).json()["order"]["id"]
    cancelled = buyer_action(client, trade, cancelled_id, "cancel").json()["order"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["buyer_notes"] == "Cancelled by buyer"

    response = supplier_action(client, trade, cancelled_id, "cancel")
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot cancel this order"


def test_orders_are_scoped_to_their_parties(client, db, trade):
    order_id = place_order(client, trade).json()["order"]["id"]

    other_owner = create_profile(db, full_name="Other Wholesaler", role="professional")
    create_professional(db, other_owner, type="pharma_supplier", business_name="Autre Grossiste")

    response = client.patch(
        SUPPLIER_ORDERS, json={"order_id": order_id, "action": "confirm"}, headers=auth_headers(other_owner.id)
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Order not found"


def test_supplier_endpoints_require_supplier_profile(client, trade):
    response = client.get(SUPPLIER_ORDERS, headers=trade["buyer_headers"])
    assert response.status_code == 404
    assert response.json()["detail"] == "Supplier profile not found"


def test_supplier_listing_filters_by_status(client, trade):
    first = place_order(client, trade).json()["order"]["id"]
    place_order(client, trade, status="draft")
    supplier_action(client, trade, first, "confirm")

    response = client.get(SUPPLIER_ORDERS, params={"status": "confirmed"}, headers=trade["supplier_headers"])

    body = response.json()
    assert body["total"] == 1
    assert body["data"][0]["id"] == first
    assert body["hasMore"] is False


def test_audit_trail_and_summary(client, db, trade):
    order = place_order(client, trade).json()["order"]
    supplier_action(client, trade, order["id"], "confirm")
    supplier_action(client, trade, order["id"], "ship", tracking_number="YAL-1")
    buyer_action(client, trade, order["id"], "mark_paid")

    audit = client.get("/supplier/audit", headers=trade["supplier_headers"])
    assert audit.status_code == 200, audit.text
    actions = {e["action"] for e in audit.json()["data"]}
    assert actions == {"create", "status_change", "approval", "shipment", "payment_marked"}

    payment = db.query(SupplierAuditLog).filter(SupplierAuditLog.action == "payment_marked").one()
    assert payment.entity_type == "payment"
    assert payment.actor_type == "buyer"
    assert payment.actor_name == "Pharmacie El Feth"
    assert payment.amount_change == 2480
    assert payment.action_label == "Payment marked as paid"

    filtered = client.get(
        "/supplier/audit", params={"entity_type": "order"}, headers=trade["supplier_headers"]
    ).json()
    assert filtered["total"] == 4

    summary = client.get("/supplier/audit/summary", params={"period": "week"}, headers=trade["supplier_headers"])
    assert summary.status_code == 200
    body = summary.json()
    assert body["period"] == "week"
    assert body["total_events"] == 5
    assert body["orders_created"] == 1
    assert body["payments_received"] == 1
    assert body["financial"] == {"total_credits": 2480, "total_debits": 0, "net_change": 2480}
    assert body["by_entity_type"] == {"order": 4, "payment": 1}


def test_audit_rejects_unknown_period(client, trade):
    response = client.get("/supplier/audit/summary", params={"period": "decade"}, headers=trade["supplier_headers"])
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid period"


def test_audit_requires_settings_permission(client, db, trade):
    create_employee(db, trade["supplier"], username="yanis", pin="2468")
    token = login_employee(client, "BIO001", "yanis", "2468")

    response = client.get("/supplier/audit", headers=employee_headers(token))
    assert response.status_code == 403
