from datetime import date, timedelta

import pytest
from conftest import auth_headers, create_professional, create_profile, create_wallet

from healthhub.domain.wallet.service import WalletService
from healthhub.models import Appointment, BookingDeposit, Wallet, WalletTransaction


@pytest.fixture()
def paid_booking(client, db):
    owner = create_profile(db, full_name="Dr. Lina Saidi", role="professional")
    professional = create_professional(db, owner)
    patient = create_profile(db, full_name="Yacine Ait")
    create_wallet(db, patient, 3000)

    day = date.today() + timedelta(days=21)
    day -= timedelta(days=day.weekday())
    response = client.post(
        "/appointments/with-wallet",
        json={
            "professional_id": professional.id,
            "appointment_date": day.isoformat(),
            "appointment_time": "09:30",
            "payment_amount": 1200,
        },
        headers=auth_headers(patient.id),
    )
    assert response.status_code == 201, response.text
    return owner, patient, response.json()


def test_wallet_shows_frozen_deposit(client, paid_booking):
    _, patient, _ = paid_booking

    body = client.get("/wallet", headers=auth_headers(patient.id)).json()

    assert body["balance"] == 1800
    assert body["frozen_amount"] == 1200
    assert body["recent_transactions"][0]["type"] == "deposit"
    assert body["recent_transactions"][0]["amount"] == -1200


def test_wallet_is_created_on_first_access(client, db):
    patient = create_profile(db)
    body = client.get("/wallet", headers=auth_headers(patient.id)).json()
    assert body["balance"] == 0
    assert body["currency"] == "DZD"


def test_preview_does_not_touch_the_deposit(client, db, paid_booking):
    _, patient, booked = paid_booking

    preview = client.get(
        "/wallet/refund",
        params={"appointment_id": booked["appointment"]["id"]},
        headers=auth_headers(patient.id),
    ).json()

    assert preview["refund_percentage"] == 100
    assert preview["refund_amount"] == 1200
    assert preview["can_refund"] is True
    assert preview["refund_policy"]["24-48h"] == "50% refund"
    assert db.query(BookingDeposit).one().status == "frozen"


def test_process_refund_by_deposit_id(client, db, paid_booking):
    _, patient, booked = paid_booking

    response = client.post(
        "/wallet/refund",
        json={"deposit_id": booked["deposit_id"], "reason": "Changed plans"},
        headers=auth_headers(patient.id),
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    assert body["new_status"] == "refunded"
    assert body["refund_transaction_id"]

    again = client.post(
        "/wallet/refund", json={"deposit_id": booked["deposit_id"]}, headers=auth_headers(patient.id)
    )
    assert again.status_code == 400
    assert again.json()["detail"] == "Deposit is already refunded"


def test_refund_requires_a_target(client, paid_booking):
    _, patient, _ = paid_booking
    response = client.post("/wallet/refund", json={}, headers=auth_headers(patient.id))
    assert response.status_code == 400
    assert response.json()["detail"] == "appointment_id or deposit_id required"


def test_refund_by_stranger_is_refused(client, db, paid_booking):
    _, _, booked = paid_booking
    stranger = create_profile(db)
    response = client.post(
        "/wallet/refund", json={"deposit_id": booked["deposit_id"]}, headers=auth_headers(stranger.id)
    )
    assert response.status_code == 403


def test_legacy_debit_is_promoted_to_a_deposit(client, db, paid_booking):
    owner, patient, booked = paid_booking
    appointment_id = booked["appointment"]["id"]
    # Older bookings only have the wallet debit
    db.query(BookingDeposit).delete()
    db.commit()

    body = client.post(
        "/wallet/refund", json={"appointment_id": appointment_id}, headers=auth_headers(owner.id)
    ).json()

    assert body["refund_percentage"] == 100
    deposit = db.query(BookingDeposit).one()
    assert deposit.status == "refunded"
    assert deposit.user_id == patient.id
    assert db.query(WalletTransaction).filter(WalletTransaction.type == "refund").count() == 1
    assert db.query(Appointment).one().deposit_status == "refunded"


def test_deposit_is_refunded_only_once(client, db, paid_booking):
    _, patient, booked = paid_booking
    deposit = db.get(BookingDeposit, booked["deposit_id"])
    assert deposit.status == "frozen"

    refunded = client.post("/wallet/refund", json={"deposit_id": deposit.id}, headers=auth_headers(patient.id))
    assert refunded.json()["refund_amount"] == 1200

    # The copy loaded above is stale; the locked lookup re-reads the row
    appointment = db.get(Appointment, booked["appointment"]["id"])
    found = WalletService(db).find_deposit(appointment)
    assert found is deposit
    assert found.status == "refunded"
    db.rollback()

    cancelled = client.post(f"/appointments/{appointment.id}/cancel", json={}, headers=auth_headers(patient.id))
    assert cancelled.status_code == 200, cancelled.text
    db.expire_all()
    assert db.query(Wallet).filter(Wallet.user_id == patient.id).one().balance == 3000
    assert db.query(WalletTransaction).filter(WalletTransaction.type == "refund").count() == 1
