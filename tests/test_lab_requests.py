from datetime import date

import pytest
from conftest import (
    auth_headers,
    create_employee,
    create_professional,
    create_profile,
    employee_headers,
    login_employee,
)

from healthhub.models import Appointment, Notification
from healthhub.models_clinical import LabTestRequest, LabTestType
from healthhub.models_messaging import ChatMessage, ChatThread, ChatThreadMember
from healthhub.shared.clock import utcnow


@pytest.fixture()
def clinic(db):
    doctor_owner = create_profile(db, full_name="Dr. Karim Haddad", role="professional")
    doctor = create_professional(db, doctor_owner, business_name="Karim Haddad", practice_code="DOC001")
    lab_owner = create_profile(db, full_name="Labo Owner", role="professional")
    laboratory = create_professional(db, lab_owner, type="laboratory", business_name="Labo Pasteur")
    patient = create_profile(db, full_name="Yasmine B.")
    cbc = LabTestType(name="Complete blood count", category="Hematology")
    glycemia = LabTestType(name="Fasting glycemia", category="Biochemistry")
    db.add_all([cbc, glycemia])
    db.commit()
    return doctor_owner, doctor, lab_owner, laboratory, patient, [cbc.id, glycemia.id]


def book_visit(db, doctor, patient) -> Appointment:
    appointment = Appointment(
        patient_id=patient.id,
        professional_id=doctor.id,
        appointment_date=date(2025, 6, 2),
        appointment_time="10:00",
        status="confirmed",
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def test_test_type_catalog_is_public(client, clinic):
    names = [t["name"] for t in client.get("/lab-requests/test-types").json()]
    assert names == ["Fasting glycemia", "Complete blood count"]


def test_request_without_laboratory_is_a_draft(client, db, clinic):
    doctor_owner, doctor, lab_owner, _, patient, test_ids = clinic

    response = client.post(
        "/lab-requests",
        json={"patient_id": patient.id, "test_type_ids": test_ids, "diagnosis": "<i>Fatigue</i>"},
        headers=auth_headers(doctor_owner.id),
    )

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["message"].startswith("Lab request created as draft")
    lab_request = body["labRequest"]
    assert lab_request["status"] == "pending"
    assert lab_request["diagnosis"] == "Fatigue"
    assert lab_request["request_number"] == f"LT-{utcnow().strftime('%d%m%y')}-000000-1"
    assert sorted(i["test_type_id"] for i in lab_request["items"]) == sorted(test_ids)
    assert db.query(Notification).count() == 0

    doctor_view = client.get("/lab-requests/practice", headers=auth_headers(doctor_owner.id)).json()
    assert [r["id"] for r in doctor_view["labRequests"]] == [lab_request["id"]]
    patient_view = client.get("/lab-requests", headers=auth_headers(patient.id)).json()
    assert [r["id"] for r in patient_view["labRequests"]] == [lab_request["id"]]
    lab_view = client.get("/lab-requests/practice", headers=auth_headers(lab_owner.id)).json()
    assert lab_view["labRequests"] == []


def test_request_with_laboratory_is_sent_and_notified(client, db, clinic):
    doctor_owner, doctor, lab_owner, laboratory, patient, test_ids = clinic
    appointment = book_visit(db, doctor, patient)

    response = client.post(
        "/lab-requests",
        json={
            "patient_id": patient.id,
            "appointment_id": appointment.id,
            "test_type_ids": test_ids[:1],
            "laboratory_id": laboratory.id,
            "priority": "urgent",
        },
        headers=auth_headers(doctor_owner.id),
    )

    assert response.status_code == 201, response.text
    lab_request = response.json()["labRequest"]
    assert lab_request["status"] == "sent_to_lab"
    assert lab_request["sent_to_lab_at"] is not None
    visit_ref = appointment.id.replace("-", "")[-6:]
    assert lab_request["request_number"].endswith(f"-{visit_ref}-1")

    lab_notice = db.query(Notification).filter(Notification.user_id == lab_owner.id).one()
    assert lab_notice.type == "new_lab_request"
    assert lab_notice.message == "Dr. Karim Haddad has sent a lab test request"
    assert lab_notice.meta["priority"] == "urgent"
    patient_notice = db.query(Notification).filter(Notification.user_id == patient.id).one()
    assert patient_notice.type == "lab_request_created"

    lab_view = client.get("/lab-requests/practice", headers=auth_headers(lab_owner.id)).json()
    assert [r["id"] for r in lab_view["labRequests"]] == [lab_request["id"]]


def test_request_validation(client, clinic):
    doctor_owner, _, _, _, patient, test_ids = clinic
    headers = auth_headers(doctor_owner.id)

    missing = client.post("/lab-requests", json={"patient_id": patient.id}, headers=headers)
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Missing required fields"

    unknown = client.post(
        "/lab-requests", json={"patient_id": patient.id, "test_type_ids": ["nope"]}, headers=headers
    )
    assert unknown.status_code == 400
    assert unknown.json()["detail"] == "Unknown lab test: nope"

    no_lab = client.post(
        "/lab-requests",
        json={"patient_id": patient.id, "test_type_ids": test_ids, "laboratory_id": "missing"},
        headers=headers,
    )
    assert no_lab.status_code == 404
    assert no_lab.json()["detail"] == "Laboratory not found"


def test_only_doctors_with_prescribing_rights_can_order(client, db, clinic):
    _, doctor, lab_owner, _, patient, test_ids = clinic
    payload = {"patient_id": patient.id, "test_type_ids": test_ids}

    not_doctor = client.post("/lab-requests", json=payload, headers=auth_headers(lab_owner.id))
    assert not_doctor.status_code == 404
    assert not_doctor.json()["detail"] == "Not authorized as a doctor"

    create_employee(db, doctor, username="amel", pin="5150")
    token = login_employee(client, "DOC001", "amel", "5150")
    restricted = client.post("/lab-requests", json=payload, headers=employee_headers(token))
    assert restricted.status_code == 403


def test_patient_sends_draft_to_laboratory(client, db, clinic):
    doctor_owner, doctor, lab_owner, laboratory, patient, test_ids = clinic
    appointment = book_visit(db, doctor, patient)
    draft = client.post(
        "/lab-requests",
        json={"patient_id": patient.id, "appointment_id": appointment.id, "test_type_ids": test_ids},
        headers=auth_headers(doctor_owner.id),
    ).json()["labRequest"]

    response = client.post(
        f"/lab-requests/{draft['id']}/send",
        json={"laboratory_id": laboratory.id},
        headers=auth_headers(patient.id),
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["labRequest"]["status"] == "sent_to_lab"
    assert body["labRequest"]["laboratory_id"] == laboratory.id

    thread = db.query(ChatThread).one()
    assert body["threadId"] == thread.id
    assert thread.title == "Lab Request - Labo Pasteur"
    assert (thread.order_type, thread.order_id) == ("lab", appointment.id)
    members = {m.user_id for m in db.query(ChatThreadMember).filter(ChatThreadMember.thread_id == thread.id)}
    assert members == {doctor_owner.id, lab_owner.id}
    message = db.query(ChatMessage).one()
    assert (message.message_type, message.content) == ("system", "Lab request sent to Labo Pasteur")

    again = client.post(
        f"/lab-requests/{draft['id']}/send",
        json={"laboratory_id": laboratory.id},
        headers=auth_headers(doctor_owner.id),
    )
    assert again.json()["threadId"] == thread.id
    assert db.query(ChatThread).count() == 1


def test_send_is_refused_to_strangers_and_once_processing(client, db, clinic):
    doctor_owner, _, _, laboratory, patient, test_ids = clinic
    draft = client.post(
        "/lab-requests",
        json={"patient_id": patient.id, "test_type_ids": test_ids},
        headers=auth_headers(doctor_owner.id),
    ).json()["labRequest"]
    stranger = create_profile(db, full_name="Someone Else")

    assert client.post(
        f"/lab-requests/{draft['id']}/send", json={}, headers=auth_headers(patient.id)
    ).status_code == 400
    assert client.post(
        f"/lab-requests/{draft['id']}/send",
        json={"laboratory_id": laboratory.id},
        headers=auth_headers(stranger.id),
    ).status_code == 403
    assert client.post(
        "/lab-requests/missing/send", json={"laboratory_id": laboratory.id}, headers=auth_headers(patient.id)
    ).status_code == 404

    db.query(LabTestRequest).filter(LabTestRequest.id == draft["id"]).update({"status": "processing"})
    db.commit()
    locked = client.post(
        f"/lab-requests/{draft['id']}/send",
        json={"laboratory_id": laboratory.id},
        headers=auth_headers(patient.id),
    )
    assert locked.status_code == 400
    assert locked.json()["detail"] == "Lab request is already being processed"
