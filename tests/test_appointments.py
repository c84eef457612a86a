from datetime import date, datetime, timedelta, timezone

import pytest
from conftest import auth_headers, create_professional, create_profile, create_wallet

from healthhub.models import Appointment, BookingDeposit, Notification, Wallet, WalletTransaction


def next_monday(weeks_ahead: int = 2) -> date:
    day = date.today() + timedelta(days=7 * weeks_ahead)
    return day + timedelta(days=-day.weekday())


@pytest.fixture()
def practice(db):
    owner = create_profile(db, full_name="Dr. Karim Haddad", role="professional")
    professional = create_professional(db, owner, business_name="Cabinet Haddad")
    patient = create_profile(db, full_name="Sara Meziane")
    return owner, professional, patient


def booking(professional, **overrides) -> dict:
    payload = {
        "professional_id": professional.id,
        "appointment_date": next_monday().isoformat(),
        "appointment_time": "10:00",
        "duration": 30,
    }
    payload.update(overrides)
    return payload


def test_book_appointment_notifies_provider(client, db, practice):
    owner, professional, patient = practice

    response = client.post("/appointments", json=booking(professional), headers=auth_headers(patient.id))

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["status"] == "pending"
    assert body["patient_name"] == "Sara Meziane"
    assert db.query(Notification).filter(Notification.user_id == owner.id).count() == 1


def test_auto_confirm_and_duplicate_slot(client, db, practice):
    _, professional, patient = practice
    professional.auto_confirm_appointments = True
    db.commit()

    first = client.post("/appointments", json=booking(professional), headers=auth_headers(patient.id))
    assert first.json()["status"] == "confirmed"

    second = client.post("/appointments", json=booking(professional), headers=auth_headers(patient.id))
    assert second.status_code == 409


def test_booking_outside_hours_is_rejected(client, practice):
    _, professional, patient = practice

    response = client.post(
        "/appointments", json=booking(professional, appointment_time="18:30"), headers=auth_headers(patient.id)
    )

    assert response.status_code == 400
    assert "outside the provider's hours (08:00-18:00)" in response.json()["detail"]


def test_booking_at_closing_time_is_accepted(client, practice):
    _, professional, patient = practice

    response = client.post(
        "/appointments", json=booking(professional, appointment_time="18:00"), headers=auth_headers(patient.id)
    )

    assert response.status_code == 201, response.text
    assert response.json()["appointment_time"] == "18:00"


def test_booking_requires_authentication(client, practice):
    _, professional, _ = practice
    assert client.post("/appointments", json=booking(professional)).status_code == 401


def test_wallet_booking_with_insufficient_balance(client, db, practice):
    _, professional, patient = practice
    create_wallet(db, patient, 500)

    response = client.post(
        "/appointments/with-wallet",
        json=booking(professional, payment_amount=1500),
        headers=auth_headers(patient.id),
    )

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "detail": "Insufficient balance",
        "balance": 500.0,
        "required": 1500.0,
    }
    assert db.query(Appointment).count() == 0


def test_wallet_booking_freezes_deposit(client, db, practice):
    _, professional, patient = practice
    create_wallet(db, patient, 2000)

    response = client.post(
        "/appointments/with-wallet",
        json=booking(professional, payment_amount=1500),
        headers=auth_headers(patient.id),
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["balance_after"] == 500.0
    assert body["appointment"]["deposit_status"] == "frozen"
    assert body["appointment"]["payment_status"] == "paid"
    deposit = db.query(BookingDeposit).filter(BookingDeposit.id == body["deposit_id"]).one()
    assert deposit.status == "frozen"
    assert deposit.amount == 1500


def test_early_patient_cancellation_refunds_everything(client, db, practice):
    _, professional, patient = practice
    create_wallet(db, patient, 2000)
    appointment_id = client.post(
        "/appointments/with-wallet",
        json=booking(professional, payment_amount=1500),
        headers=auth_headers(patient.id),
    ).json()["appointment"]["id"]

    response = client.post(
        f"/appointments/{appointment_id}/cancel",
        json={"reason": "Travelling"},
        headers=auth_headers(patient.id),
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["cancelled_by"] == "patient"
    assert body["refund"]["refund_percentage"] == 100
    assert body["refund"]["refund_amount"] == 1500
    assert body["message"] == "Appointment cancelled. Full refund processed."
    db.expire_all()
    assert db.query(Wallet).filter(Wallet.user_id == patient.id).one().balance == 2000


def test_late_patient_cancellation_forfeits_deposit(client, db, practice):
    _, professional, patient = practice
    create_wallet(db, patient, 2000)
    appointment_id = client.post(
        "/appointments/with-wallet",
        json=booking(professional, payment_amount=1000),
        headers=auth_headers(patient.id),
    ).json()["appointment"]["id"]

    # Move the visit to today, well inside the no-refund window
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).one()
    appointment.appointment_date = date.today()
    db.commit()

    body = client.post(f"/appointments/{appointment_id}/cancel", headers=auth_headers(patient.id)).json()

    assert body["refund"]["refund_percentage"] == 0
    assert body["refund"]["forfeit_amount"] == 1000
    assert body["refund"]["new_status"] == "forfeited"
    assert body["reason"] == "No reason provided"


def test_cancellation_between_24_and_48_hours_refunds_half(client, db, practice):
    _, professional, patient = practice
    create_wallet(db, patient, 2000)
    appointment_id = client.post(
        "/appointments/with-wallet",
        json=booking(professional, payment_amount=1000),
        headers=auth_headers(patient.id),
    ).json()["appointment"]["id"]

    starts = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=36)
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).one()
    appointment.appointment_date = starts.date()
    appointment.appointment_time = starts.strftime("%H:%M")
    db.commit()

    body = client.post(f"/appointments/{appointment_id}/cancel", headers=auth_headers(patient.id)).json()

    assert body["refund"]["refund_percentage"] == 50
    assert body["refund"]["refund_amount"] == 500
    assert body["refund"]["forfeit_amount"] == 500
    assert body["refund"]["new_status"] == "refunded"

    db.expire_all()
    refund = db.query(WalletTransaction).filter(WalletTransaction.type == "refund").one()
    assert refund.description == "Partial refund (50%) - Late cancellation"
    assert refund.balance_after == 1500
    assert db.query(BookingDeposit).one().refund_percentage == 50


def test_provider_cancellation_always_refunds(client, db, practice):
    owner, professional, patient = practice
    create_wallet(db, patient, 2000)
    appointment_id = client.post(
        "/appointments/with-wallet",
        json=booking(professional, payment_amount=1000),
        headers=auth_headers(patient.id),
    ).json()["appointment"]["id"]
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).one()
    appointment.appointment_date = date.today()
    db.commit()

    body = client.post(
        f"/appointments/{appointment_id}/cancel",
        json={"reason": "Doctor unavailable"},
        headers=auth_headers(owner.id),
    ).json()

    assert body["cancelled_by"] == "provider"
    assert body["refund"]["refund_percentage"] == 100
    assert db.query(Notification).filter(Notification.user_id == patient.id).count() == 1


def test_cancelling_twice_fails(client, practice):
    _, professional, patient = practice
    appointment_id = client.post(
        "/appointments", json=booking(professional), headers=auth_headers(patient.id)
    ).json()["id"]

    client.post(f"/appointments/{appointment_id}/cancel", headers=auth_headers(patient.id))
    again = client.post(f"/appointments/{appointment_id}/cancel", headers=auth_headers(patient.id))

    assert again.status_code == 400
    assert again.json()["detail"] == "Appointment is already cancelled"


def test_stranger_cannot_view_appointment(client, db, practice):
    _, professional, patient = practice
    stranger = create_profile(db, full_name="Nobody")
    appointment_id = client.post(
        "/appointments", json=booking(professional), headers=auth_headers(patient.id)
    ).json()["id"]

    assert client.get(f"/appointments/{appointment_id}", headers=auth_headers(stranger.id)).status_code == 403


def test_provider_completes_visit_and_keeps_deposit(client, db, practice):
    owner, professional, patient = practice
    create_wallet(db, patient, 2000)
    appointment_id = client.post(
        "/appointments/with-wallet",
        json=booking(professional, payment_amount=800),
        headers=auth_headers(patient.id),
    ).json()["appointment"]["id"]

    response = client.patch(
        f"/appointments/{appointment_id}/status", json={"status": "completed"}, headers=auth_headers(owner.id)
    )

    assert response.status_code == 200
    assert response.json()["deposit_status"] == "released"

    patient_try = client.patch(
        f"/appointments/{appointment_id}/status", json={"status": "confirmed"}, headers=auth_headers(patient.id)
    )
    assert patient_try.status_code == 403
