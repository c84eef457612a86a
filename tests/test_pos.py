from types import SimpleNamespace

import pytest
from conftest import (
    auth_headers,
    create_professional,
    create_profile,
    employee_headers,
    login_employee,
)

from healthhub.domain.pos import pricing
from healthhub.models_pharmacy import ChifaClaim, InventoryTransaction, PharmacyInventory, PosCustomer

POS = "/pharmacy/pos"
INVENTORY = "/pharmacy/inventory"


# ============================================================================
# PRICING
# ============================================================================


def test_price_line_with_discount_tva_and_chifa():
    line = pricing.price_line(
        unit_price=1000,
        quantity=2,
        discount_percent=10,
        tva_rate=19,
        is_chifa_item=True,
        reimbursement_rate=80,
    )
    assert line == {
        "line_subtotal": 2000,
        "discount_amount": 200,
        "tva_amount": 342,
        "line_total": 2142,
        "chifa_amount": 1713.6,
        "patient_amount": 428.4,
    }


def test_explicit_discount_amount_wins():
    line = pricing.price_line(unit_price=300, quantity=1, discount_amount=50, discount_percent=50)
    assert line["discount_amount"] == 50
    assert line["line_total"] == 250


def test_line_discount_is_capped_at_line_subtotal():
    line = pricing.price_line(unit_price=500, quantity=1, discount_amount=5000, tva_rate=19)
    assert line["discount_amount"] == 500
    assert line["tva_amount"] == 0
    assert line["line_total"] == 0
    assert line["patient_amount"] == 0


def test_overall_discount_comes_off_patient_share():
    lines = [pricing.price_line(500, 1), pricing.price_line(1000, 1, is_chifa_item=True, reimbursement_rate=100)]
    totals = pricing.sale_totals(lines, discount_percent=10)
    assert totals["discount_amount"] == 150
    assert totals["total_amount"] == 1350
    assert totals["chifa_total"] == 1000
    assert totals["patient_total"] == 350


def test_payment_helpers():
    assert pricing.change_due(1000, 995) == 5
    assert pricing.change_due(900, 995) == 0
    assert pricing.covers_patient_share(994.995, 995)
    assert not pricing.covers_patient_share(990, 995)
    assert pricing.loyalty_points(995) == 9


def test_reconcile_session():
    sales = [
        SimpleNamespace(paid_cash=1000, change_given=5, paid_card=0, paid_cheque=0, chifa_total=1600),
        SimpleNamespace(paid_cash=0, change_given=0, paid_card=700, paid_cheque=None, chifa_total=0),
    ]
    totals = pricing.reconcile_session(5000, sales, counted_cash=5990)
    assert totals == {
        "system_cash": 5995,
        "system_cards": 700,
        "system_cheques": 0,
        "system_chifa": 1600,
        "variance_cash": -5,
    }


# ============================================================================
# CHECKOUT
# ============================================================================


@pytest.fixture()
def shop(client, db):
    owner = create_profile(db, full_name="Pharmacie Ibn Sina", role="professional")
    professional = create_professional(db, owner, type="pharmacy", practice_code="IBN001")
    headers = auth_headers(owner.id)

    def product(stock, **fields):
        response = client.post(f"{INVENTORY}/products", json=fields, headers=headers)
        product_id = response.json()["product"]["id"]
        client.post(f"{INVENTORY}/stock", json={"product_id": product_id, "quantity": stock}, headers=headers)
        return product_id

    chifa_id = product(name="Glucophage 850", selling_price=1000, is_chifa_listed=True, reimbursement_rate=80, stock=10)
    cream_id = product(name="Avene Cleanance", selling_price=500, category="cosmetics", stock=5)

    drawer = client.post(f"{POS}/drawers", json={"name": "Caisse 1"}, headers=headers).json()["drawer"]
    opened = client.post(
        f"{POS}/sessions", json={"drawer_id": drawer["id"], "opening_balance": 5000}, headers=headers
    ).json()
    return SimpleNamespace(
        owner=owner,
        professional=professional,
        headers=headers,
        chifa_id=chifa_id,
        cream_id=cream_id,
        drawer=drawer,
        session=opened["session"],
    )


def sale_payload(shop, cash=1000, **overrides):
    payload = {
        "session_id": shop.session["id"],
        "items": [
            {"product_id": shop.chifa_id, "quantity": 2},
            {"product_id": shop.cream_id, "quantity": 1},
        ],
        "payments": {"cash": cash},
    }
    payload.update(overrides)
    return payload


def test_session_numbering_and_single_open_session(client, shop):
    assert shop.session["session_number"].startswith("SESSION-")
    assert shop.session["session_number"].endswith("-1")
    assert shop.session["status"] == "open"

    again = client.post(f"{POS}/sessions", json={"drawer_id": shop.drawer["id"]}, headers=shop.headers)
    assert again.status_code == 400
    assert again.json()["detail"] == f"Drawer already has open session: {shop.session['session_number']}"

    listed = client.get(f"{POS}/sessions", headers=shop.headers).json()
    assert listed["current_session"]["id"] == shop.session["id"]


def test_sale_prices_lines_and_consumes_stock(client, db, shop):
    customer = client.post(
        f"{POS}/customers", json={"full_name": "Fatima Z.", "chifa_number": "CH-778"}, headers=shop.headers
    ).json()["customer"]

    response = client.post(f"{POS}/sales", json=sale_payload(shop, customer_id=customer["id"]), headers=shop.headers)

    assert response.status_code == 200, response.text
    sale = response.json()["sale"]
    assert sale["sale_number"] == "TICKET-1"
    assert sale["subtotal"] == 2500
    assert sale["tax_amount"] == 95
    assert sale["total_amount"] == 2595
    assert sale["chifa_total"] == 1600
    assert sale["patient_total"] == 995
    assert sale["change_given"] == 5
    assert sale["customer_name"] == "Fatima Z."
    assert sale["loyalty_points_earned"] == 9
    assert len(sale["items"]) == 2

    claim = db.query(ChifaClaim).one()
    assert claim.amount_claimed == 1600
    assert claim.patient_chifa_number == "CH-778"
    assert claim.batch_number.startswith("CHIFA-")

    stock = db.query(PharmacyInventory).filter(PharmacyInventory.product_id == shop.chifa_id).one()
    assert stock.quantity == 8
    assert db.query(InventoryTransaction).filter(InventoryTransaction.transaction_type == "sale").count() == 2
    assert db.query(PosCustomer).one().loyalty_points == 9


def test_sale_rejections(client, shop):
    short = client.post(f"{POS}/sales", json=sale_payload(shop, cash=100), headers=shop.headers)
    assert short.json()["detail"] == "Insufficient payment. Patient owes 995.00 DZD"

    too_many = client.post(
        f"{POS}/sales",
        json=sale_payload(shop, items=[{"product_id": shop.cream_id, "quantity": 6}]),
        headers=shop.headers,
    )
    assert too_many.json()["detail"] == "Insufficient stock for Avene Cleanance. Available: 5"

    empty = client.post(f"{POS}/sales", json=sale_payload(shop, items=[]), headers=shop.headers)
    assert empty.json()["detail"] == "Cart is empty"

    unknown = client.post(
        f"{POS}/sales", json=sale_payload(shop, items=[{"product_id": "nope", "quantity": 1}]), headers=shop.headers
    )
    assert unknown.status_code == 404


def test_oversized_line_discount_never_makes_a_negative_sale(client, shop):
    payload = sale_payload(shop, cash=0, items=[{"product_id": shop.cream_id, "quantity": 1, "discount_amount": 5000}])

    response = client.post(f"{POS}/sales", json=payload, headers=shop.headers)

    assert response.status_code == 200, response.text
    sale = response.json()["sale"]
    assert sale["total_amount"] == 0
    assert sale["patient_total"] == 0
    assert sale["items"][0]["discount_amount"] == 500


def test_close_session_reconciles_cash(client, shop):
    client.post(f"{POS}/sales", json=sale_payload(shop), headers=shop.headers)

    response = client.patch(
        f"{POS}/sessions", params={"id": shop.session["id"]}, json={"counted_cash": 5990}, headers=shop.headers
    )

    body = response.json()
    assert body["summary"] == {"system_cash": 5995, "counted_cash": 5990, "variance": -5, "system_chifa": 1600}
    assert body["message"] == "Session closed. Variance: -5.00 DZD"
    assert body["session"]["status"] == "closed"

    late_sale = client.post(f"{POS}/sales", json=sale_payload(shop), headers=shop.headers)
    assert late_sale.json()["detail"] == "Session is not open"


def test_cashier_can_sell_but_not_manage_drawers(client, db, shop):
    roles = client.get(f"/professionals/{shop.professional.id}/roles", headers=shop.headers).json()["roles"]
    cashier_role = next(r for r in roles if r["name"] == "Cashier")
    client.post(
        f"/professionals/{shop.professional.id}/employees",
        json={"username": "lydia", "displayName": "Lydia", "pin": "8642", "roleId": cashier_role["id"]},
        headers=shop.headers,
    )
    token = login_employee(client, "IBN001", "lydia", "8642")

    sale = client.post(f"{POS}/sales", json=sale_payload(shop), headers=employee_headers(token)).json()["sale"]
    assert sale["created_by_name"] == "Lydia"

    drawer = client.post(f"{POS}/drawers", json={"name": "Caisse 2"}, headers=employee_headers(token))
    assert drawer.status_code == 403
