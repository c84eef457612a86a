"""
Pharmacy inventory calculations
Pricing, margins, TVA, CNAS (Chifa) reimbursement, stock and expiry status
"""

import math
from datetime import date
from typing import Iterable, Optional, Union

from ...shared.clock import utcnow

TVA_RATES = (0, 9, 19)
REIMBURSEMENT_RATES = (0, 80, 100)

STANDARD_TVA_CATEGORIES = ("cosmetics", "parapharmacie")
REDUCED_TVA_CATEGORIES = ("medical_devices", "supplements")


def round2(value: float) -> float:
    return round(value + 0.0, 2)


# ============================================================================
# MARGINS
# ============================================================================


def margin_percent(purchase_price: float, selling_price: float) -> float:
    if purchase_price <= 0:
        return 0.0
    return (selling_price - purchase_price) / purchase_price * 100


def selling_price_from_margin(purchase_price: float, margin: float) -> float:
    return purchase_price * (1 + margin / 100)


def purchase_price_from_margin(selling_price: float, margin: float) -> float:
    if margin <= -100:
        return selling_price
    return selling_price / (1 + margin / 100)


# ============================================================================
# TVA
# ============================================================================


def tva_from_ttc(price_ttc: float, rate: int) -> float:
    """TVA contained in a tax-inclusive price"""
    if rate == 0:
        return 0.0
    return price_ttc - price_ttc / (1 + rate / 100)


def price_ht(price_ttc: float, rate: int) -> float:
    if rate == 0:
        return price_ttc
    return price_ttc / (1 + rate / 100)


def price_ttc(price_ht_value: float, rate: int) -> float:
    return price_ht_value * (1 + rate / 100)


def default_tva_rate(category: Optional[str], is_chifa_listed: bool = False) -> int:
    """Reimbursable and ordinary medications are exempt"""
    if is_chifa_listed:
        return 0
    if category in STANDARD_TVA_CATEGORIES:
        return 19
    if category in REDUCED_TVA_CATEGORIES:
        return 9
    return 0


# ============================================================================
# CNAS / CHIFA
# ============================================================================


def chifa_split(
    selling_price: float,
    tarif_reference: Optional[float],
    reimbursement_rate: int,
    quantity: float = 1,
) -> dict:
    """
    Split a line between the CNAS and the patient.

    The reimbursed base is the tarif de reference when the product has one,
    the patient pays whatever the selling price exceeds it by.
    """
    total = selling_price * quantity
    if not reimbursement_rate:
        return {
            "total_amount": total,
            "chifa_covered": 0.0,
            "patient_portion": total,
            "reimbursement_rate": 0,
        }

    base = (tarif_reference or selling_price) * quantity
    covered = round2(base * reimbursement_rate / 100)
    patient = round2(total - covered)
    return {
        "total_amount": total,
        "chifa_covered": max(0.0, covered),
        "patient_portion": max(0.0, patient),
        "reimbursement_rate": reimbursement_rate,
    }


def total_chifa_split(items: Iterable[dict]) -> dict:
    total = covered = patient = 0.0
    for item in items:
        split = chifa_split(
            item["selling_price"],
            item.get("tarif_reference"),
            item["reimbursement_rate"],
            item["quantity"],
        )
        total += split["total_amount"]
        covered += split["chifa_covered"]
        patient += split["patient_portion"]
    return {
        "total_amount": round2(total),
        "chifa_covered": round2(covered),
        "patient_portion": round2(patient),
    }


# ============================================================================
# STOCK VALUE
# ============================================================================


def stock_value(batches: Iterable) -> float:
    """Sum of quantity x unit purchase price over batches (objects or dicts)"""
    total = 0.0
    for batch in batches:
        quantity, unit_price = _batch_fields(batch)
        total += quantity * unit_price
    return total


def average_unit_cost(batches: Iterable) -> float:
    batches = list(batches)
    quantity = sum(_batch_fields(b)[0] for b in batches)
    if quantity == 0:
        return 0.0
    return stock_value(batches) / quantity


def _batch_fields(batch) -> tuple[float, float]:
    if isinstance(batch, dict):
        return batch.get("quantity") or 0, batch.get("purchase_price_unit") or 0
    return batch.quantity or 0, batch.purchase_price_unit or 0


# ============================================================================
# EXPIRY
# ============================================================================


def days_until_expiry(expiry: Union[date, str], today: Optional[date] = None) -> int:
    if isinstance(expiry, str):
        expiry = date.fromisoformat(expiry[:10])
    today = today or utcnow().date()
    return (expiry - today).days


def is_expired(expiry, today: Optional[date] = None) -> bool:
    return days_until_expiry(expiry, today) < 0


def is_expiring_soon(expiry, threshold_days: int = 30, today: Optional[date] = None) -> bool:
    days = days_until_expiry(expiry, today)
    return 0 <= days <= threshold_days


def expiry_status(expiry, today: Optional[date] = None) -> dict:
    days = days_until_expiry(expiry, today)
    if days < 0:
        return {"status": "expired", "label": "Expired", "days": days}
    if days <= 7:
        return {"status": "critical", "label": f"{days}d", "days": days}
    if days <= 90:
        return {"status": "warning", "label": f"{days}d", "days": days}
    return {"status": "ok", "label": f"{days}d", "days": days}


# ============================================================================
# STOCK LEVEL
# ============================================================================


def is_low_stock(current: float, min_level: float) -> bool:
    return 0 < current < min_level


def stock_status(current: float, min_level: float) -> dict:
    if current <= 0:
        return {"status": "out", "label": "Out of Stock"}
    if current < min_level / 2:
        return {"status": "critical", "label": "Critical"}
    if current < min_level:
        return {"status": "low", "label": "Low"}
    return {"status": "ok", "label": "OK"}


def suggest_reorder_quantity(min_level: float, monthly_usage: float, lead_time_days: int = 7) -> int:
    """Minimum level plus lead time demand plus a 20% buffer"""
    lead_time_demand = monthly_usage / 30 * lead_time_days
    return math.ceil(min_level + lead_time_demand + min_level * 0.2)
