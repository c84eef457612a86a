"""
POS pricing
Line totals, TVA, CNAS (Chifa) share and sale totals for a checkout cart
"""

from typing import Iterable

from ..inventory.calculations import chifa_split, round2

PAYMENT_TOLERANCE = 0.01
POINTS_PER_DZD = 100


def price_line(
    unit_price: float,
    quantity: int,
    discount_amount: float = 0,
    discount_percent: float = 0,
    tva_rate: int = 0,
    is_chifa_item: bool = False,
    reimbursement_rate: int = 0,
) -> dict:
    """
    Price one cart line.

    An explicit discount amount wins over the percentage and never exceeds the
    line subtotal. TVA applies to the discounted amount, the CNAS share is taken
    on the tax-inclusive line total.
    """
    line_subtotal = unit_price * quantity
    line_discount = discount_amount or line_subtotal * (discount_percent or 0) / 100
    line_discount = min(line_discount, line_subtotal)
    after_discount = line_subtotal - line_discount
    tva_amount = after_discount * (tva_rate or 0) / 100
    line_total = after_discount + tva_amount

    chifa_amount = 0.0
    patient_amount = line_total
    if is_chifa_item and reimbursement_rate:
        split = chifa_split(line_total, None, reimbursement_rate, 1)
        chifa_amount = split["chifa_covered"]
        patient_amount = split["patient_portion"]

    return {
        "line_subtotal": round2(line_subtotal),
        "discount_amount": round2(line_discount),
        "tva_amount": round2(tva_amount),
        "line_total": round2(line_total),
        "chifa_amount": round2(chifa_amount),
        "patient_amount": round2(patient_amount),
    }


def sale_totals(lines: Iterable[dict], discount_percent: float = 0) -> dict:
    """
    Aggregate priced lines. The overall discount is a percentage of the
    discounted lines before tax and comes off the patient's share.
    """
    lines = list(lines)
    subtotal = sum(line["line_subtotal"] for line in lines)
    line_discounts = sum(line["discount_amount"] for line in lines)
    tax = sum(line["tva_amount"] for line in lines)
    chifa = sum(line["chifa_amount"] for line in lines)
    patient = sum(line["patient_amount"] for line in lines)

    overall_discount = (subtotal - line_discounts) * (discount_percent or 0) / 100
    total = subtotal - line_discounts - overall_discount + tax

    return {
        "subtotal": round2(subtotal),
        "discount_amount": round2(overall_discount),
        "tax_amount": round2(tax),
        "total_amount": round2(total),
        "chifa_total": round2(chifa),
        "patient_total": round2(max(0.0, patient - overall_discount)),
    }


def change_due(total_paid: float, patient_total: float) -> float:
    return round2(max(0.0, total_paid - patient_total))


def covers_patient_share(total_paid: float, patient_total: float) -> bool:
    return total_paid >= patient_total - PAYMENT_TOLERANCE


def loyalty_points(patient_total: float) -> int:
    """One point per 100 DZD paid by the patient"""
    return int(patient_total // POINTS_PER_DZD)


def reconcile_session(opening_balance: float, sales: Iterable, counted_cash: float) -> dict:
    """
    Expected drawer contents for a closing session.

    System cash is the opening float plus cash taken minus change handed back.
    """
    sales = list(sales)
    system_cash = (opening_balance or 0) + sum((s.paid_cash or 0) - (s.change_given or 0) for s in sales)
    return {
        "system_cash": round2(system_cash),
        "system_cards": round2(sum(s.paid_card or 0 for s in sales)),
        "system_cheques": round2(sum(s.paid_cheque or 0 for s in sales)),
        "system_chifa": round2(sum(s.chifa_total or 0 for s in sales)),
        "variance_cash": round2((counted_cash or 0) - system_cash),
    }
