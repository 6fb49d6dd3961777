# FILE: clinicflow/services/medicine_billing.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from clinicflow.models.billing import BillingQueueItem
from clinicflow.models.medicine_bill import (
    MedicineAmountMemory,
    MedicineBill,
    MedicineBillStatus,
)
from clinicflow.services.billing_math import D, money2, money_str, percent_of
from clinicflow.services.billing_queue import BillingStateError
from clinicflow.services.opd_prescriptions import live_prescriptions
from clinicflow.utils.timezone import now_local

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MedicineBillTotals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    grand_total: Decimal


def compute_totals(amounts: Iterable[Any], discount_percent=0,
                   tax_percent=0) -> MedicineBillTotals:
    """
    subtotal = sum(amounts)
    discount = subtotal * d / 100
    tax      = (subtotal - discount) * t / 100
    grand    = subtotal - discount + tax
    """
    subtotal = money2(sum((D(a) for a in amounts), Decimal("0")))
    discount = percent_of(subtotal, discount_percent)
    tax = percent_of(subtotal - discount, tax_percent)
    return MedicineBillTotals(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        grand_total=money2(subtotal - discount + tax),
    )


# ============================================================
# Amount memory
# ============================================================
def _memory_key(medicine: Optional[str], potency: Optional[str]):
    return (medicine or "").strip(), (potency or "").strip()


def lookup_amount(db: Session, medicine: Optional[str],
                  potency: Optional[str]) -> Optional[Decimal]:
    name, pot = _memory_key(medicine, potency)
    if not name:
        return None
    row = (db.query(MedicineAmountMemory).filter(
        MedicineAmountMemory.medicine == name).filter(
            MedicineAmountMemory.potency == pot).first())
    return money2(row.amount) if row else None


def remember_amount(db: Session,
                    medicine: Optional[str],
                    potency: Optional[str],
                    amount,
                    *,
                    now: Optional[datetime] = None) -> None:
    name, pot = _memory_key(medicine, potency)
    if not name or D(amount) <= 0:
        return
    row = (db.query(MedicineAmountMemory).filter(
        MedicineAmountMemory.medicine == name).filter(
            MedicineAmountMemory.potency == pot).first())
    if row is None:
        row = MedicineAmountMemory(medicine=name, potency=pot)
        db.add(row)
        # visible to the next lookup in the same bill
        db.flush()
    row.amount = money2(amount)
    row.last_used_at = now or now_local()


# ============================================================
# Bills
# ============================================================
def get_medicine_bill(db: Session,
                      billing_queue_id: int) -> Optional[MedicineBill]:
    return (db.query(MedicineBill).filter(
        MedicineBill.billing_queue_id == billing_queue_id).first())


def draft_medicine_bill(db: Session,
                        billing_queue_id: int) -> Optional[MedicineBill]:
    """
    Saved bill when there is one, else an unsaved draft with one line per
    live prescription, amounts pre-filled from memory.
    """
    item = db.get(BillingQueueItem, billing_queue_id)
    if not item:
        return None
    saved = get_medicine_bill(db, billing_queue_id)
    if saved:
        return saved

    lines: List[Dict[str, Any]] = []
    for rx in live_prescriptions(db, item.visit_id):
        amount = lookup_amount(db, rx.medicine, rx.potency) or Decimal("0")
        lines.append({
            "prescription_id": rx.id,
            "medicine": rx.medicine,
            "potency": rx.potency,
            "quantity_display": rx.quantity,
            "quantity": rx.bottles or 1,
            "dose_pattern": rx.dose_pattern,
            "frequency": rx.frequency,
            "duration": rx.duration,
            "is_combination": bool(rx.is_combination),
            "combination_content": rx.combination_content,
            "amount": money_str(amount),
        })

    totals = compute_totals([ln["amount"] for ln in lines])
    # transient; never added to the session
    return MedicineBill(
        billing_queue_id=item.id,
        patient_id=item.patient_id,
        visit_id=item.visit_id,
        items=lines,
        subtotal=totals.subtotal,
        discount_percent=Decimal("0"),
        discount_amount=totals.discount_amount,
        tax_percent=Decimal("0"),
        tax_amount=totals.tax_amount,
        grand_total=totals.grand_total,
        status=MedicineBillStatus.DRAFT,
    )


def save_medicine_bill(
    db: Session,
    billing_queue_id: int,
    *,
    items: List[Dict[str, Any]],
    discount_percent=0,
    tax_percent=0,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[MedicineBill]:
    item = db.get(BillingQueueItem, billing_queue_id)
    if not item:
        return None
    now = now or now_local()

    bill = get_medicine_bill(db, billing_queue_id)
    if bill and bill.status == MedicineBillStatus.PAID:
        raise BillingStateError(
            f"Medicine bill of billing item {billing_queue_id} is already paid"
        )

    lines: List[Dict[str, Any]] = []
    for row in items:
        line = dict(row)
        line["amount"] = money_str(line.get("amount"))
        lines.append(line)

    totals = compute_totals([ln["amount"] for ln in lines], discount_percent,
                            tax_percent)

    if bill is None:
        bill = MedicineBill(
            billing_queue_id=item.id,
            patient_id=item.patient_id,
            visit_id=item.visit_id,
        )
        db.add(bill)

    bill.items = lines
    bill.subtotal = totals.subtotal
    bill.discount_percent = money2(discount_percent)
    bill.discount_amount = totals.discount_amount
    bill.tax_percent = money2(tax_percent)
    bill.tax_amount = totals.tax_amount
    bill.grand_total = totals.grand_total
    bill.notes = notes
    bill.status = MedicineBillStatus.SAVED
    bill.updated_at = now

    for line in lines:
        remember_amount(db,
                        line.get("medicine"),
                        line.get("potency"),
                        line["amount"],
                        now=now)

    db.flush()
    logger.info("Medicine bill saved for billing item %s: %d line(s), %s",
                billing_queue_id, len(lines), bill.grand_total)
    return bill
