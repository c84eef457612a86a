"""
Cancellation refund policy for booking deposits

- 48h or more before the appointment: 100% refund
- between 24h and 48h: 50% refund
- under 24h (or already past): no refund, the deposit is forfeited
- cancelled by the provider or the system: always 100%
"""

from datetime import datetime
from typing import Optional

from ...shared.clock import utcnow

FULL_REFUND_HOURS = 48
PARTIAL_REFUND_HOURS = 24
PARTIAL_REFUND_PERCENTAGE = 50

ALWAYS_REFUNDED_BY = ("provider", "system")

REFUND_POLICY = {
    "48h+": "100% refund",
    "24-48h": "50% refund",
    "<24h": "No refund",
}


def hours_until(appointment_at: datetime, cancel_at: Optional[datetime] = None) -> float:
    cancel_at = cancel_at or utcnow()
    return (appointment_at - cancel_at).total_seconds() / 3600


def calculate_refund_percentage(
    appointment_at: datetime,
    cancel_at: Optional[datetime] = None,
    cancelled_by: str = "patient",
) -> int:
    """Refund percentage (0, 50 or 100) for a cancellation"""
    if cancelled_by in ALWAYS_REFUNDED_BY:
        return 100

    remaining = hours_until(appointment_at, cancel_at)
    if remaining >= FULL_REFUND_HOURS:
        return 100
    if remaining >= PARTIAL_REFUND_HOURS:
        return PARTIAL_REFUND_PERCENTAGE
    return 0


def calculate_refund(amount: float, percentage: int) -> tuple[float, float]:
    """
    Split a deposit into what goes back to the patient and what is kept.

    Returns:
        Tuple of (refund_amount, forfeit_amount)
    """
    amount = float(amount or 0)
    refund_amount = round(amount * percentage / 100, 2)
    return refund_amount, round(amount - refund_amount, 2)


def refund_message(percentage: int) -> str:
    if percentage == 100:
        return "Full refund processed"
    if percentage == PARTIAL_REFUND_PERCENTAGE:
        return f"Partial refund ({PARTIAL_REFUND_PERCENTAGE}%) processed"
    if percentage > 0:
        return f"Partial refund ({percentage}%) processed"
    return "No refund - late cancellation (deposit forfeited)"


def refund_description(percentage: int, reason: Optional[str] = None) -> str:
    """Wallet transaction description for a refund"""
    if percentage == 100:
        return f"Full refund - {reason or 'Appointment cancelled'}"
    return f"Partial refund ({percentage}%) - {reason or 'Late cancellation'}"


def deposit_outcome(percentage: int) -> str:
    """New deposit status once the refund is settled"""
    return "forfeited" if percentage == 0 else "refunded"
