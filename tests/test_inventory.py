import asyncio
import json
from datetime import date, timedelta

import httpx
import pytest
from conftest import (
    auth_headers,
    create_employee,
    create_professional,
    create_profile,
    employee_headers,
    login_employee,
)

from healthhub.domain.inventory.webhooks import process_pending_webhooks
from healthhub.models_pharmacy import PharmacyInventory, WebhookDelivery
from healthhub.security_utils import verify_signature_header

BASE = "/pharmacy/inventory"


@pytest.fixture()
def pharmacy(db):
    owner = create_profile(db, full_name="Pharmacie El Amel", role="professional")
    professional = create_professional(
        db, owner, type="pharmacy", business_name="Pharmacie El Amel", practice_code="PHA001"
    )
    return owner, professional


def create_product(client, owner, **overrides):
    payload = {
        "name": "Doliprane 1000mg",
        "barcode": "6130000000011",
        "category": "medications",
        "purchase_price": 100,
        "selling_price": 150,
        "min_stock_level": 10,
    }
    payload.update(overrides)
    response = client.post(f"{BASE}/products", json=payload, headers=auth_headers(owner.id))
    assert response.status_code == 200, response.text
    return response.json()["product"]


def test_create_product_computes_margin_and_tva(client, pharmacy):
    owner, _ = pharmacy

    product = create_product(client, owner, name="Creme Hydratante", barcode="111", category="cosmetics")

    assert product["margin_percent"] == pytest.approx(50)
    assert product["tva_rate"] == 19
    assert product["current_stock"] == 0
    assert product["stock_status"] == "out"


def test_product_validation(client, pharmacy):
    owner, _ = pharmacy
    create_product(client, owner)

    duplicate = client.post(
        f"{BASE}/products",
        json={"name": "Copy", "barcode": "6130000000011", "selling_price": 10},
        headers=auth_headers(owner.id),
    )
    assert duplicate.json()["detail"] == "A product with this barcode already exists"

    missing_price = client.post(f"{BASE}/products", json={"name": "No price"}, headers=auth_headers(owner.id))
    assert missing_price.status_code == 400

    bad_tva = client.post(
        f"{BASE}/products", json={"name": "Odd", "selling_price": 10, "tva_rate": 7}, headers=auth_headers(owner.id)
    )
    assert bad_tva.json()["detail"] == "TVA rate must be 0, 9 or 19"


def test_update_recomputes_margin(client, pharmacy):
    owner, _ = pharmacy
    product = create_product(client, owner)

    response = client.patch(
        f"{BASE}/products/{product['id']}",
        json={"selling_price": 200, "manufacturer": "Sanofi"},
        headers=auth_headers(owner.id),
    )

    updated = response.json()["product"]
    assert updated["margin_percent"] == pytest.approx(100)
    assert updated["manufacturer"] == "Sanofi"


def test_receive_adjust_and_delete(client, db, pharmacy):
    owner, _ = pharmacy
    product = create_product(client, owner)
    headers = auth_headers(owner.id)

    received = client.post(
        f"{BASE}/stock",
        json={"product_id": product["id"], "quantity": 20, "batch_number": "B-01"},
        headers=headers,
    )
    assert received.json()["message"] == "Added 20 units to stock"

    too_many = client.post(
        f"{BASE}/adjustments",
        json={"product_id": product["id"], "adjustment_type": "remove", "quantity": 25, "reason_code": "damage"},
        headers=headers,
    )
    assert too_many.json()["detail"] == "Cannot remove 25 units. Current stock is only 20"

    bad_reason = client.post(
        f"{BASE}/adjustments",
        json={"product_id": product["id"], "quantity": 1, "reason_code": "lost_it"},
        headers=headers,
    )
    assert bad_reason.json()["detail"] == "Invalid reason code"

    removed = client.post(
        f"{BASE}/adjustments",
        json={"product_id": product["id"], "adjustment_type": "remove", "quantity": 5, "reason_code": "damage"},
        headers=headers,
    ).json()
    assert removed["new_stock_level"] == 15
    assert removed["transaction"]["transaction_type"] == "adjustment_remove"
    assert removed["transaction"]["notes"] == "Damaged Product - Doliprane 1000mg"

    detail = client.get(f"{BASE}/products/{product['id']}", headers=headers).json()
    assert detail["product"]["current_stock"] == 15
    assert detail["product"]["total_value"] == 1500
    assert len(detail["recent_transactions"]) == 2

    blocked = client.delete(f"{BASE}/products/{product['id']}", headers=headers)
    assert blocked.status_code == 400

    client.post(
        f"{BASE}/adjustments",
        json={"product_id": product["id"], "adjustment_type": "remove", "quantity": 15, "reason_code": "expiry"},
        headers=headers,
    )
    deleted = client.delete(f"{BASE}/products/{product['id']}", headers=headers)
    assert deleted.json()["message"] == 'Product "Doliprane 1000mg" has been deactivated'


def test_removal_consumes_earliest_expiry_first(client, db, pharmacy):
    owner, _ = pharmacy
    product = create_product(client, owner)
    headers = auth_headers(owner.id)
    later = date.today() + timedelta(days=300)
    sooner = date.today() + timedelta(days=60)
    for batch_number, expiry in (("LATE", later), ("SOON", sooner)):
        client.post(
            f"{BASE}/stock",
            json={"product_id": product["id"], "quantity": 10, "batch_number": batch_number, "expiry_date": expiry.isoformat()},
            headers=headers,
        )

    client.post(
        f"{BASE}/adjustments",
        json={"product_id": product["id"], "adjustment_type": "remove", "quantity": 12, "reason_code": "count_correction"},
        headers=headers,
    )

    batches = {b.batch_number: b for b in db.query(PharmacyInventory).all()}
    assert batches["SOON"].quantity == 0
    assert batches["SOON"].is_active is False
    assert batches["LATE"].quantity == 8


def test_alerts(client, pharmacy):
    owner, _ = pharmacy
    headers = auth_headers(owner.id)
    low = create_product(client, owner, name="Amoxil", barcode="222")
    create_product(client, owner, name="Ventoline", barcode="333", min_stock_level=5)
    client.post(
        f"{BASE}/stock",
        json={
            "product_id": low["id"],
            "quantity": 3,
            "batch_number": "AMX-9",
            "expiry_date": (date.today() + timedelta(days=5)).isoformat(),
        },
        headers=headers,
    )

    body = client.get(f"{BASE}/alerts", headers=headers).json()

    assert body["summary"]["low_stock"] == 1
    assert body["summary"]["out_of_stock"] == 1
    assert body["summary"]["expiring_7"] == 1
    assert body["summary"]["critical"] == 3
    assert body["alerts"][0]["alert_type"] == "expiring_7"

    expiring_only = client.get(f"{BASE}/alerts", params={"type": "expiring"}, headers=headers).json()
    assert [a["alert_type"] for a in expiring_only["alerts"]] == ["expiring_7"]

    assert client.get(f"{BASE}/alerts", params={"type": "weird"}, headers=headers).status_code == 400


def test_list_products_with_low_stock_filter(client, pharmacy):
    owner, _ = pharmacy
    headers = auth_headers(owner.id)
    product = create_product(client, owner)
    create_product(client, owner, name="Aspegic", barcode="444")
    client.post(f"{BASE}/stock", json={"product_id": product["id"], "quantity": 4}, headers=headers)

    body = client.get(f"{BASE}/products", params={"low_stock_only": "true"}, headers=headers).json()

    assert body["total"] == 2
    assert body["stats"] == {"total_active": 2, "low_stock": 1, "out_of_stock": 1}
    assert [p["name"] for p in body["data"]] == ["Doliprane 1000mg"]


def test_access_rules(client, db, pharmacy):
    _, professional = pharmacy
    doctor_owner = create_profile(db, role="professional")
    create_professional(db, doctor_owner, type="doctor")

    not_pharmacy = client.get(f"{BASE}/products", headers=auth_headers(doctor_owner.id))
    assert not_pharmacy.status_code == 404
    assert not_pharmacy.json()["detail"] == "Pharmacy not found"

    create_employee(db, professional, username="walid", pin="1357")
    token = login_employee(client, "PHA001", "walid", "1357")
    assert client.get(f"{BASE}/products", headers=employee_headers(token)).status_code == 403
    assert client.get(f"{BASE}/products").status_code == 401


def test_webhook_management(client, pharmacy):
    owner, _ = pharmacy
    headers = auth_headers(owner.id)

    bad_url = client.post(
        f"{BASE}/integrations/webhooks", json={"name": "ERP", "url": "ftp://erp.local"}, headers=headers
    )
    assert bad_url.json()["detail"] == "Invalid URL format"

    bad_event = client.post(
        f"{BASE}/integrations/webhooks",
        json={"name": "ERP", "url": "https://erp.example.com/hook", "events": ["order.created"]},
        headers=headers,
    )
    assert bad_event.json()["detail"] == "Unknown webhook event: order.created"

    created = client.post(
        f"{BASE}/integrations/webhooks",
        json={"name": "ERP", "url": "https://erp.example.com/hook", "secret": "s3cret"},
        headers=headers,
    ).json()["webhook"]
    assert created["config"]["secret"] == "********"

    listed = client.get(f"{BASE}/integrations/webhooks", headers=headers).json()["webhooks"]
    assert [w["id"] for w in listed] == [created["id"]]

    updated = client.patch(
        f"{BASE}/integrations/webhooks", json={"id": created["id"], "is_active": False}, headers=headers
    )
    assert updated.json()["success"] is True

    assert client.delete(f"{BASE}/integrations/webhooks", params={"id": created["id"]}, headers=headers).json()[
        "success"
    ]
    assert client.get(f"{BASE}/integrations/webhooks", headers=headers).json()["webhooks"] == []


def _deliver(db, handler):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await process_pending_webhooks(db, client=http)

    return asyncio.run(run())


def test_events_are_queued_and_delivered_signed(client, db, pharmacy):
    owner, _ = pharmacy
    headers = auth_headers(owner.id)
    client.post(
        f"{BASE}/integrations/webhooks",
        json={
            "name": "ERP",
            "url": "https://erp.example.com/hook",
            "secret": "s3cret",
            "events": ["product.created"],
        },
        headers=headers,
    )
    product = create_product(client, owner)
    # Not subscribed to stock events
    client.post(f"{BASE}/stock", json={"product_id": product["id"], "quantity": 5}, headers=headers)

    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200, text="ok")

    assert _deliver(db, handler) == 1

    request = received[0]
    assert request.headers["X-Webhook-Event"] == "product.created"
    assert verify_signature_header("s3cret", request.content, request.headers["X-Webhook-Signature"])
    body = json.loads(request.content)
    assert body["data"]["product"]["id"] == product["id"]

    delivery = db.query(WebhookDelivery).one()
    assert delivery.status == "success"
    assert delivery.integration.last_sync_status == "success"


def test_failed_delivery_is_rescheduled(client, db, pharmacy):
    owner, _ = pharmacy
    client.post(
        f"{BASE}/integrations/webhooks",
        json={"name": "ERP", "url": "https://erp.example.com/hook"},
        headers=auth_headers(owner.id),
    )
    create_product(client, owner)

    assert _deliver(db, lambda request: httpx.Response(503, text="down")) == 1

    delivery = db.query(WebhookDelivery).one()
    assert delivery.status == "pending"
    assert delivery.attempts == 1
    assert delivery.error_message.startswith("HTTP 503")
    # Backed off, nothing is due yet
    assert _deliver(db, lambda request: httpx.Response(200)) == 0
