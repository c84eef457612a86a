from datetime import date

import pytest
from conftest import auth_headers, create_professional, create_profile

from healthhub.models import Appointment, Notification
from healthhub.models_clinical import Prescription
from healthhub.shared.clock import utcnow

AMOXICILLIN = {"medication_name": "Amoxicilline 1g", "dosage": "1 comprimé", "frequency": "2x/jour", "duration": "7 jours"}


@pytest.fixture()
def visit(db):
    doctor_owner = create_profile(db, full_name="Dr. Lina Saadi", role="professional")
    doctor = create_professional(db, doctor_owner, business_name="Lina Saadi")
    patient = create_profile(db, full_name="Omar T.")
    appointment = Appointment(
        patient_id=patient.id,
        professional_id=doctor.id,
        appointment_date=date(2025, 6, 2),
        appointment_time="09:30",
        status="completed",
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return doctor_owner, doctor, patient, appointment


def test_doctor_writes_prescription_for_visit(client, db, visit):
    doctor_owner, doctor, patient, appointment = visit

    response = client.post(
        f"/appointments/{appointment.id}/prescriptions",
        json={"diagnosis": "Angine", "medications": [AMOXICILLIN], "send": True},
        headers=auth_headers(doctor_owner.id),
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["status"] == "sent"
    assert body["patient_id"] == patient.id
    assert body["doctor_id"] == doctor.id
    assert body["prescription_number"] == f"RX-{utcnow().strftime('%Y%m%d')}-1"
    assert body["medications"][0]["medication_name"] == "Amoxicilline 1g"

    notice = db.query(Notification).filter(Notification.user_id == patient.id).one()
    assert notice.type == "prescription_created"
    assert notice.message == "Dr. Lina Saadi has written you a prescription"

    second = client.post(
        f"/appointments/{appointment.id}/prescriptions",
        json={"medications": [AMOXICILLIN]},
        headers=auth_headers(doctor_owner.id),
    ).json()
    assert second["status"] == "active"
    assert second["prescription_number"].endswith("-2")


def test_prescription_needs_medications_and_the_visit_provider(client, db, visit):
    doctor_owner, _, _, appointment = visit
    other_owner = create_profile(db, full_name="Dr. Other", role="professional")
    create_professional(db, other_owner, business_name="Other Cabinet")

    empty = client.post(
        f"/appointments/{appointment.id}/prescriptions", json={"medications": []}, headers=auth_headers(doctor_owner.id)
    )
    assert empty.status_code == 400
    assert empty.json()["detail"] == "At least one medication is required"

    foreign = client.post(
        f"/appointments/{appointment.id}/prescriptions",
        json={"medications": [AMOXICILLIN]},
        headers=auth_headers(other_owner.id),
    )
    assert foreign.status_code == 403

    missing = client.post(
        "/appointments/missing/prescriptions", json={"medications": [AMOXICILLIN]}, headers=auth_headers(doctor_owner.id)
    )
    assert missing.status_code == 404


def test_patient_and_provider_can_list_prescriptions(client, db, visit):
    doctor_owner, _, patient, appointment = visit
    client.post(
        f"/appointments/{appointment.id}/prescriptions",
        json={"medications": [AMOXICILLIN]},
        headers=auth_headers(doctor_owner.id),
    )

    for user_id in (patient.id, doctor_owner.id):
        listed = client.get(f"/appointments/{appointment.id}/prescriptions", headers=auth_headers(user_id))
        assert listed.status_code == 200
        assert len(listed.json()["prescriptions"]) == 1

    stranger = create_profile(db, full_name="Curious")
    denied = client.get(f"/appointments/{appointment.id}/prescriptions", headers=auth_headers(stranger.id))
    assert denied.status_code == 403
    assert denied.json()["detail"] == "Not authorized to view this appointment"


def test_unlinked_prescriptions_fill_an_empty_visit(client, db, visit):
    _, doctor, patient, appointment = visit
    db.add(
        Prescription(
            prescription_number="RX-20250601-1",
            doctor_id=doctor.id,
            patient_id=patient.id,
            medications=[AMOXICILLIN],
            status="active",
        )
    )
    db.commit()

    listed = client.get(f"/appointments/{appointment.id}/prescriptions", headers=auth_headers(patient.id)).json()

    assert [p["prescription_number"] for p in listed["prescriptions"]] == ["RX-20250601-1"]
    assert listed["prescriptions"][0]["appointment_id"] is None
