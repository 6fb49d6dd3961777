# FILE: clinicflow/services/billing_queue.py
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from clinicflow.models.billing import (
    BillingQueueItem,
    BillingReceipt,
    BillingStatus,
    DoctorFee,
    FeeHistory,
    FeeHistoryType,
    PaymentMethod,
    PaymentStatus,
)
from clinicflow.models.medicine_bill import MedicineBill, MedicineBillStatus
from clinicflow.models.opd import Appointment, AppointmentStatus
from clinicflow.services.billing_math import discounted_fee, money2, money_str
from clinicflow.services.billing_numbers import next_receipt_number
from clinicflow.services.errors import WorkflowError, WorkflowStateError
from clinicflow.services.fee_resolution import NEW_PATIENT, resync_pending_fee
from clinicflow.utils.timezone import now_local

logger = logging.getLogger(__name__)


# ============================================================
# Errors
# ============================================================
class BillingError(WorkflowError):
    pass


class BillingStateError(BillingError, WorkflowStateError):
    pass


def _require(item: BillingQueueItem, allowed, action: str) -> None:
    if item.status not in allowed:
        raise BillingStateError(
            f"Cannot {action} a billing item in status '{item.status}'")


# ============================================================
# Fee edit
# ============================================================
def _propagate_fee(db: Session, item: BillingQueueItem) -> None:
    """
    Best effort: keep the appointment and legacy doctor fee rows in line
    with the desk's edit. Missing rows are skipped.
    """
    appt = db.get(Appointment,
                  item.appointment_id) if item.appointment_id else None
    if appt is not None:
        appt.fee_amount = item.fee_amount
        appt.fee_type = item.fee_type
    else:
        logger.debug("Billing item %s: no appointment to update", item.id)

    fees = (db.query(DoctorFee).filter(
        DoctorFee.patient_id == item.patient_id).filter(
            DoctorFee.visit_id == item.visit_id).all())
    if not fees:
        logger.debug("Billing item %s: no doctor fee rows to update", item.id)
    for fee in fees:
        fee.amount = item.fee_amount
        fee.fee_type = item.fee_type
        fee.discount_percent = item.discount_percent


def edit_fee(
    db: Session,
    item_id: int,
    *,
    fee_amount: Optional[Decimal] = None,
    fee_type: Optional[str] = None,
    discount_percent: Optional[Decimal] = None,
    payment_method: Optional[str] = None,
    notes: Optional[str] = None,
) -> Optional[BillingQueueItem]:
    item = db.get(BillingQueueItem, item_id)
    if not item:
        return None
    _require(item, BillingStatus.OPEN, "edit the fee of")

    if fee_amount is not None:
        item.fee_amount = money2(fee_amount)
    if fee_type:
        item.fee_type = fee_type
    if discount_percent is not None:
        item.discount_percent = money2(discount_percent)
    if payment_method:
        item.payment_method = payment_method
    if notes is not None:
        item.notes = notes

    discount, net = discounted_fee(item.fee_amount, item.discount_percent)
    item.discount_amount = discount
    item.net_amount = net

    _propagate_fee(db, item)
    db.flush()
    logger.info("Billing item %s fee edited: %s %s, discount %s%%, net %s",
                item.id, item.fee_amount, item.fee_type, item.discount_percent,
                item.net_amount)
    return item


# ============================================================
# Receipt / complete / reopen
# ============================================================
def generate_receipt(
    db: Session,
    item_id: int,
    *,
    payment_method: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[BillingReceipt]:
    item = db.get(BillingQueueItem, item_id)
    if not item:
        return None
    _require(item, (BillingStatus.PENDING, ), "generate a receipt for")
    now = now or now_local()

    method = payment_method or item.payment_method or PaymentMethod.CASH
    number = next_receipt_number(db, now=now)
    fee = money2(item.fee_amount)

    receipt = BillingReceipt(
        receipt_number=number,
        billing_queue_id=item.id,
        patient_id=item.patient_id,
        visit_id=item.visit_id,
        items=[{
            "description": item.fee_type,
            "quantity": 1,
            "unit_price": money_str(fee),
            "total": money_str(fee),
        }],
        subtotal=fee,
        discount_percent=item.discount_percent,
        discount_amount=item.discount_amount,
        tax_amount=item.tax_amount,
        net_amount=item.net_amount,
        payment_method=method,
        payment_status=PaymentStatus.PAID,
        created_at=now,
    )
    db.add(receipt)

    item.status = BillingStatus.PAID
    item.payment_method = method
    item.payment_status = PaymentStatus.PAID
    item.receipt_number = number
    item.receipt_generated_at = now

    bill = (db.query(MedicineBill).filter(
        MedicineBill.billing_queue_id == item.id).first())
    if bill and bill.status == MedicineBillStatus.SAVED:
        bill.status = MedicineBillStatus.PAID

    db.flush()
    logger.info("Receipt %s generated for billing item %s (%s, %s)", number,
                item.id, item.net_amount, method)
    return receipt


def complete(db: Session,
             item_id: int,
             *,
             now: Optional[datetime] = None) -> Optional[BillingQueueItem]:
    item = db.get(BillingQueueItem, item_id)
    if not item:
        return None
    _require(item, (BillingStatus.PAID, ), "complete")
    now = now or now_local()

    if item.appointment_id:
        appt = db.get(Appointment, item.appointment_id)
        if appt is not None:
            appt.status = AppointmentStatus.COMPLETED

    db.add(
        FeeHistory(
            patient_id=item.patient_id,
            visit_id=item.visit_id,
            receipt_id=item.receipt_number,
            fee_type=(FeeHistoryType.FIRST_VISIT if item.fee_type
                      == NEW_PATIENT else FeeHistoryType.FOLLOW_UP),
            amount=money2(item.net_amount),
            payment_method=item.payment_method or PaymentMethod.CASH,
            payment_status=PaymentStatus.PAID,
            paid_date=now,
        ))

    item.status = BillingStatus.COMPLETED
    item.completed_at = now
    db.flush()
    logger.info("Billing item %s completed", item.id)
    return item


def reopen(db: Session, item_id: int) -> Optional[BillingQueueItem]:
    """completed -> paid. Fee history rows stay as they are."""
    item = db.get(BillingQueueItem, item_id)
    if not item:
        return None
    _require(item, (BillingStatus.COMPLETED, ), "reopen")
    item.status = BillingStatus.PAID
    item.completed_at = None
    db.flush()
    logger.info("Billing item %s reopened", item.id)
    return item


# ============================================================
# Listings
# ============================================================
def list_open(db: Session,
              *,
              now: Optional[datetime] = None) -> List[BillingQueueItem]:
    items = (db.query(BillingQueueItem).filter(
        BillingQueueItem.status.in_(BillingStatus.OPEN)).order_by(
            BillingQueueItem.created_at.asc(),
            BillingQueueItem.id.asc()).all())
    for item in items:
        if item.status == BillingStatus.PENDING:
            resync_pending_fee(db, item, now=now)
    return items


def list_completed(db: Session, *, limit: int = 200) -> List[BillingQueueItem]:
    return (db.query(BillingQueueItem).filter(
        BillingQueueItem.status == BillingStatus.COMPLETED).order_by(
            BillingQueueItem.completed_at.desc(),
            BillingQueueItem.id.desc()).limit(limit).all())


def fee_history(db: Session, patient_id: int) -> List[FeeHistory]:
    return (db.query(FeeHistory).filter(
        FeeHistory.patient_id == patient_id).order_by(
            FeeHistory.paid_date.desc(), FeeHistory.id.desc()).all())


# ============================================================
# Receipts
# ============================================================
def get_receipt(db: Session, receipt_id: int) -> Optional[BillingReceipt]:
    return db.get(BillingReceipt, receipt_id)


def mark_receipt_printed(
        db: Session,
        receipt_id: int,
        *,
        now: Optional[datetime] = None) -> Optional[BillingReceipt]:
    receipt = db.get(BillingReceipt, receipt_id)
    if not receipt:
        return None
    if receipt.printed_at is None:
        receipt.printed_at = now or now_local()
        db.flush()
    return receipt


def mark_receipt_whatsapp_sent(
        db: Session,
        receipt_id: int,
        *,
        now: Optional[datetime] = None) -> Optional[BillingReceipt]:
    receipt = db.get(BillingReceipt, receipt_id)
    if not receipt:
        return None
    if receipt.whatsapp_sent_at is None:
        receipt.whatsapp_sent_at = now or now_local()
        db.flush()
    return receipt

