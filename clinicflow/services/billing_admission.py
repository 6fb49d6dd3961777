# FILE: clinicflow/services/billing_admission.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinicflow.models.billing import BillingQueueItem, BillingStatus, PaymentStatus
from clinicflow.models.pharmacy_queue import PharmacyQueueItem, PharmacyQueueStatus
from clinicflow.services.fee_resolution import FeeContext, resolve_fee

logger = logging.getLogger(__name__)


def find_billing_item_for_visit(db: Session,
                                visit_id: int,
                                *,
                                lock: bool = False) -> Optional[BillingQueueItem]:
    # any status: a completed visit is never admitted again
    q = db.query(BillingQueueItem).filter(BillingQueueItem.visit_id == visit_id)
    if lock:
        # locking read sees rows committed after our snapshot
        q = q.with_for_update()
    return q.first()


def ensure_billing_item(
    db: Session,
    pharmacy_item: PharmacyQueueItem,
    *,
    context: str = FeeContext.BILLING,
    now: Optional[datetime] = None,
) -> Tuple[BillingQueueItem, bool]:
    """
    Returns (billing_item, created). Idempotent per visit.
    """
    existing = find_billing_item_for_visit(db, pharmacy_item.visit_id)
    if existing:
        return existing, False

    quote = resolve_fee(
        db,
        visit_id=pharmacy_item.visit_id,
        patient_id=pharmacy_item.patient_id,
        appointment_id=pharmacy_item.appointment_id,
        context=context,
        now=now,
    )

    item = BillingQueueItem(
        visit_id=pharmacy_item.visit_id,
        patient_id=pharmacy_item.patient_id,
        appointment_id=pharmacy_item.appointment_id or quote.appointment_id,
        prescription_ids=list(pharmacy_item.prescription_ids or []),
        status=BillingStatus.PENDING,
        fee_amount=quote.amount,
        fee_type=quote.fee_type,
        discount_percent=0,
        discount_amount=0,
        tax_amount=0,
        net_amount=quote.amount,
        payment_status=PaymentStatus.PENDING,
        created_by=context,
    )
    try:
        with db.begin_nested():
            db.add(item)
            db.flush()
    except IntegrityError:
        winner = find_billing_item_for_visit(db,
                                             pharmacy_item.visit_id,
                                             lock=True)
        if winner is None:
            raise
        logger.info("Visit %s admitted to billing by a concurrent writer",
                    pharmacy_item.visit_id)
        return winner, False

    logger.info("Visit %s admitted to billing (item %s, %s %s via %s)",
                item.visit_id, item.id, quote.amount, quote.fee_type,
                quote.source)
    return item, True


def sweep_prepared_into_billing(db: Session,
                                *,
                                now: Optional[datetime] = None) -> int:
    """
    Admit every prepared pharmacy item that has no billing row yet.
    Returns how many billing items were created.
    """
    prepared = (db.query(PharmacyQueueItem).filter(
        PharmacyQueueItem.status == PharmacyQueueStatus.PREPARED).order_by(
            PharmacyQueueItem.id.asc()).all())

    created = 0
    for ph in prepared:
        _, was_created = ensure_billing_item(db,
                                             ph,
                                             context=FeeContext.BILLING,
                                             now=now)
        if was_created:
            ph.status = PharmacyQueueStatus.BILLED
            created += 1

    if created:
        db.flush()
        logger.info("Billing sweep admitted %d visit(s)", created)
    return created
