from datetime import datetime, timedelta

import pytest

from healthhub.domain.appointments.refund_policy import (
    calculate_refund,
    calculate_refund_percentage,
    deposit_outcome,
    refund_message,
)

APPOINTMENT_AT = datetime(2025, 6, 10, 9, 0)


@pytest.mark.parametrize(
    "hours_before, expected",
    [
        (72, 100),
        (48, 100),
        (47.5, 50),
        (24, 50),
        (23.9, 0),
        (1, 0),
        (-2, 0),
    ],
)
def test_patient_refund_follows_notice_period(hours_before, expected):
    cancel_at = APPOINTMENT_AT - timedelta(hours=hours_before)
    assert calculate_refund_percentage(APPOINTMENT_AT, cancel_at, "patient") == expected


@pytest.mark.parametrize("cancelled_by", ["provider", "system"])
def test_provider_and_system_cancellations_are_fully_refunded(cancelled_by):
    cancel_at = APPOINTMENT_AT - timedelta(hours=1)
    assert calculate_refund_percentage(APPOINTMENT_AT, cancel_at, cancelled_by) == 100


def test_calculate_refund_splits_deposit():
    assert calculate_refund(1500, 100) == (1500.0, 0.0)
    assert calculate_refund(1500, 50) == (750.0, 750.0)
    assert calculate_refund(1500, 0) == (0.0, 1500.0)
    assert calculate_refund(None, 50) == (0.0, 0.0)


def test_refund_messages_and_outcome():
    assert refund_message(100) == "Full refund processed"
    assert refund_message(50) == "Partial refund (50%) processed"
    assert refund_message(0).startswith("No refund")
    assert deposit_outcome(0) == "forfeited"
    assert deposit_outcome(50) == "refunded"
