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

from healthhub.models import Appointment, BlockedSlot, Professional

MONDAY = "2025-06-02"
FRIDAY = "2025-06-06"
SATURDAY = "2025-06-07"


@pytest.fixture()
def practice(db):
    owner = create_profile(db, full_name="Dr. Omar Benali", role="professional")
    professional = create_professional(
        db,
        owner,
        practice_code="BEN001",
        working_hours={"saturday": {"isOpen": False}, "wednesday": {"open": "14:00", "close": "16:00"}},
    )
    return owner, professional


def test_default_weekday_slots(client, practice):
    _, professional = practice

    body = client.get(f"/professionals/{professional.id}/slots", params={"date": MONDAY}).json()

    assert body["dayOfWeek"] == "monday"
    assert (body["openTime"], body["closeTime"]) == ("08:00", "18:00")
    assert body["totalSlots"] == 20
    assert body["slots"][0] == {"time": "08:00", "endTime": "08:30", "available": True}
    assert body["slots"][-1]["endTime"] == "18:00"


def test_friday_is_a_short_day_by_default(client, practice):
    _, professional = practice
    body = client.get(f"/professionals/{professional.id}/slots", params={"date": FRIDAY, "duration": 60}).json()
    assert (body["openTime"], body["closeTime"]) == ("09:00", "13:00")
    assert [s["time"] for s in body["slots"]] == ["09:00", "10:00", "11:00", "12:00"]


def test_configured_hours_and_closed_day(client, practice):
    _, professional = practice

    closed = client.get(f"/professionals/{professional.id}/slots", params={"date": SATURDAY}).json()
    assert closed == {"slots": [], "message": "Closed on saturday"}

    wednesday = client.get(f"/professionals/{professional.id}/slots", params={"date": "2025-06-04"}).json()
    assert wednesday["totalSlots"] == 4


def test_booked_and_blocked_times_are_unavailable(client, db, practice):
    _, professional = practice
    db.add(
        Appointment(
            professional_id=professional.id,
            appointment_date=date(2025, 6, 2),
            appointment_time="10:00",
            duration=30,
            status="confirmed",
        )
    )
    db.add(
        BlockedSlot(
            professional_id=professional.id,
            slot_date=date(2025, 6, 2),
            start_time="12:00",
            end_time="13:00",
        )
    )
    db.commit()

    body = client.get(
        f"/professionals/{professional.id}/slots", params={"date": MONDAY, "show_all": "true"}
    ).json()

    taken = [s["time"] for s in body["slots"] if not s["available"]]
    assert taken == ["10:00", "12:00", "12:30"]
    assert body["availableSlots"] == 17

    only_free = client.get(f"/professionals/{professional.id}/slots", params={"date": MONDAY}).json()
    assert "10:00" not in [s["time"] for s in only_free["slots"]]


def test_invalid_date_and_unknown_professional(client, practice):
    _, professional = practice
    assert client.get(f"/professionals/{professional.id}/slots", params={"date": "June 2"}).status_code == 400
    assert client.get("/professionals/missing/slots", params={"date": MONDAY}).status_code == 404


def test_owner_time_off_is_approved_and_blocks_the_days(client, db, practice):
    owner, professional = practice

    response = client.post(
        f"/professionals/{professional.id}/time-off",
        json={"request_type": "vacation", "start_date": "2025-06-02", "end_date": "2025-06-03"},
        headers=auth_headers(owner.id),
    )

    assert response.status_code == 201, response.text
    assert response.json()["request"]["status"] == "approved"
    db.expire_all()
    refreshed = db.query(Professional).filter(Professional.id == professional.id).one()
    assert refreshed.unavailable_dates == ["2025-06-02", "2025-06-03"]

    slots = client.get(f"/professionals/{professional.id}/slots", params={"date": MONDAY}).json()
    assert slots == {"slots": [], "message": "This date is blocked"}

    overlapping = client.post(
        f"/professionals/{professional.id}/time-off",
        json={"request_type": "personal", "start_date": "2025-06-03", "end_date": "2025-06-05"},
        headers=auth_headers(owner.id),
    )
    assert overlapping.status_code == 400


def test_time_off_ending_before_it_starts_is_rejected(client, practice):
    owner, professional = practice

    response = client.post(
        f"/professionals/{professional.id}/time-off",
        json={"request_type": "vacation", "start_date": "2025-06-05", "end_date": "2025-06-02"},
        headers=auth_headers(owner.id),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "End date must be after start date"


def test_partial_day_leave_blocks_only_its_hours(client, db, practice):
    owner, professional = practice

    response = client.post(
        f"/professionals/{professional.id}/time-off",
        json={
            "request_type": "personal",
            "start_date": MONDAY,
            "end_date": MONDAY,
            "all_day": False,
            "start_time": "14:00",
            "end_time": "15:00",
        },
        headers=auth_headers(owner.id),
    )
    assert response.json()["request"]["status"] == "approved"

    db.expire_all()
    assert not db.query(Professional).filter(Professional.id == professional.id).one().unavailable_dates

    body = client.get(
        f"/professionals/{professional.id}/slots", params={"date": MONDAY, "show_all": "true"}
    ).json()
    assert [s["time"] for s in body["slots"] if not s["available"]] == ["14:00", "14:30"]
    assert body["availableSlots"] == 18


def test_inactive_provider_has_no_slots(client, db, practice):
    _, professional = practice
    professional.is_active = False
    db.commit()

    body = client.get(f"/professionals/{professional.id}/slots", params={"date": MONDAY}).json()

    assert body == {"slots": [], "message": "Provider is not currently accepting appointments"}


def test_employee_request_waits_for_owner_review(client, db, practice):
    owner, professional = practice
    create_employee(db, professional, username="samir", pin="2468")
    token = login_employee(client, "BEN001", "samir", "2468")

    created = client.post(
        f"/professionals/{professional.id}/time-off",
        json={"request_type": "sick", "start_date": "2025-06-09", "end_date": "2025-06-09"},
        headers=employee_headers(token),
    )
    assert created.status_code == 201, created.text
    request = created.json()["request"]
    assert request["status"] == "pending"
    assert request["is_employee_request"] is True

    # Employees without manage_employees cannot approve their own leave
    self_review = client.patch(
        f"/professionals/{professional.id}/time-off/{request['id']}",
        json={"action": "approve"},
        headers=employee_headers(token),
    )
    assert self_review.status_code == 403

    approved = client.patch(
        f"/professionals/{professional.id}/time-off/{request['id']}",
        json={"action": "approve", "review_notes": "Get well soon"},
        headers=auth_headers(owner.id),
    )
    assert approved.json()["request"]["status"] == "approved"
    assert approved.json()["request"]["reviewed_by"] == owner.id

    again = client.patch(
        f"/professionals/{professional.id}/time-off/{request['id']}",
        json={"action": "reject"},
        headers=auth_headers(owner.id),
    )
    assert again.status_code == 400


def test_cancelling_approved_leave_frees_the_days(client, db, practice):
    owner, professional = practice
    request_id = client.post(
        f"/professionals/{professional.id}/time-off",
        json={"request_type": "training", "start_date": "2025-06-10", "end_date": "2025-06-10"},
        headers=auth_headers(owner.id),
    ).json()["request"]["id"]

    response = client.patch(
        f"/professionals/{professional.id}/time-off/{request_id}",
        json={"action": "cancel"},
        headers=auth_headers(owner.id),
    )

    assert response.json()["request"]["status"] == "cancelled"
    db.expire_all()
    assert not db.query(Professional).filter(Professional.id == professional.id).one().unavailable_dates


def test_blocked_slot_crud(client, practice):
    owner, professional = practice
    base = f"/professionals/{professional.id}/blocked-slots"

    bad = client.post(
        base,
        json={"slot_date": MONDAY, "start_time": "11:00", "end_time": "10:00"},
        headers=auth_headers(owner.id),
    )
    assert bad.status_code == 400

    created = client.post(
        base,
        json={"slot_date": MONDAY, "start_time": "11:00", "end_time": "11:30", "reason": "Meeting"},
        headers=auth_headers(owner.id),
    )
    assert created.status_code == 201
    slot_id = created.json()["id"]

    assert len(client.get(base, headers=auth_headers(owner.id)).json()) == 1
    assert client.delete(f"{base}/{slot_id}", headers=auth_headers(owner.id)).json() == {"success": True}
    assert client.delete(f"{base}/{slot_id}", headers=auth_headers(owner.id)).status_code == 404
