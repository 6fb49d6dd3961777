# FILE: clinicflow/services/fee_resolution.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from clinicflow.core.config import settings
from clinicflow.models.billing import BillingQueueItem, BillingStatus, PaymentStatus
from clinicflow.models.opd import Appointment, AppointmentStatus, Visit
from clinicflow.schemas.billing import FeeSource
from clinicflow.services.billing_math import D, money2
from clinicflow.utils.timezone import now_local, same_local_day

logger = logging.getLogger(__name__)

NEW_PATIENT = "New Patient"
FOLLOW_UP = "Follow Up"
CONSULTATION = "Consultation"


class FeeContext:
    # pharmacy: admission triggered by markPrepared
    # billing: admission by the billing sweep, and fee resync
    PHARMACY = "pharmacy"
    BILLING = "billing"


class FeeOrigin:
    APPOINTMENT = "appointment"
    SAME_DAY_APPOINTMENT = "same_day_appointment"
    VISIT = "visit"
    DEFAULT = "default"


@dataclass(frozen=True)
class FeeQuote:
    amount: Decimal
    fee_type: str
    payment_status: Optional[str] = None
    source: str = FeeOrigin.DEFAULT
    # appointment row the fee was read from, if any
    appointment_id: Optional[int] = None

    @property
    def from_appointment(self) -> bool:
        return self.source in (FeeOrigin.APPOINTMENT,
                               FeeOrigin.SAME_DAY_APPOINTMENT)


def _default_fee_type(context: str) -> str:
    return FOLLOW_UP if context == FeeContext.PHARMACY else CONSULTATION


def _quote_from_appointment(appt: Optional[Appointment], context: str,
                            source: str) -> Optional[FeeQuote]:
    if appt is None:
        return None
    src = FeeSource.model_validate(appt)
    if src.fee_amount is None:
        return None
    return FeeQuote(
        amount=money2(src.fee_amount),
        fee_type=src.fee_type or _default_fee_type(context),
        payment_status=src.fee_status,
        source=source,
        appointment_id=appt.id,
    )


def find_same_day_appointment(
    db: Session,
    patient_id: int,
    *,
    statuses: Optional[Iterable[str]] = None,
    now: Optional[datetime] = None,
) -> Optional[Appointment]:
    """First appointment of the patient on the clinic's current day."""
    now = now or now_local()
    allowed = set(statuses) if statuses is not None else None
    rows = (db.query(Appointment).filter(
        Appointment.patient_id == patient_id).order_by(
            Appointment.id.asc()).all())
    for appt in rows:
        if not same_local_day(appt.appointment_date, now):
            continue
        if allowed is not None and appt.status not in allowed:
            continue
        return appt
    return None


def resolve_fee(
    db: Session,
    *,
    visit_id: Optional[int],
    patient_id: int,
    appointment_id: Optional[int] = None,
    context: str = FeeContext.BILLING,
    now: Optional[datetime] = None,
) -> FeeQuote:
    """
    Consultation fee for a visit, in priority order:

      1. the linked appointment, when it carries a fee
      2. the patient's appointment for today (pharmacy context only looks
         at completed / in-progress ones), when it carries a fee
      3. visit number: first visit -> new patient fee, later -> follow up
    """
    if appointment_id:
        quote = _quote_from_appointment(db.get(Appointment, appointment_id),
                                        context, FeeOrigin.APPOINTMENT)
        if quote:
            return quote

    statuses = None
    if context == FeeContext.PHARMACY:
        statuses = (AppointmentStatus.COMPLETED, AppointmentStatus.IN_PROGRESS)
    quote = _quote_from_appointment(
        find_same_day_appointment(db, patient_id, statuses=statuses, now=now),
        context,
        FeeOrigin.SAME_DAY_APPOINTMENT,
    )
    if quote:
        return quote

    visit = db.get(Visit, visit_id) if visit_id else None
    if visit is not None:
        if visit.visit_number == 1:
            return FeeQuote(money2(settings.NEW_PATIENT_FEE), NEW_PATIENT,
                            source=FeeOrigin.VISIT)
        return FeeQuote(money2(settings.FOLLOW_UP_FEE), FOLLOW_UP,
                        source=FeeOrigin.VISIT)

    return FeeQuote(money2(settings.FOLLOW_UP_FEE), _default_fee_type(context))


def resync_pending_fee(db: Session,
                       item: BillingQueueItem,
                       *,
                       now: Optional[datetime] = None) -> bool:
    """
    Pull late appointment fee edits into a pending billing item.

    Only appointment-sourced quotes are applied, so the visit-number
    fallback never overwrites a fee typed in at the billing desk. The stored
    discount amount is kept and the net recomputed around it.
    """
    if item.status != BillingStatus.PENDING:
        return False

    quote = resolve_fee(
        db,
        visit_id=item.visit_id,
        patient_id=item.patient_id,
        appointment_id=item.appointment_id,
        context=FeeContext.BILLING,
        now=now,
    )
    if not quote.from_appointment:
        return False

    # later desk edits propagate to the row the fee came from
    if not item.appointment_id and quote.appointment_id:
        item.appointment_id = quote.appointment_id

    payment_status = item.payment_status
    if quote.payment_status in PaymentStatus.ALL:
        payment_status = quote.payment_status

    if (money2(item.fee_amount) == quote.amount
            and item.fee_type == quote.fee_type
            and item.payment_status == payment_status):
        return False

    logger.info(
        "Billing item %s fee resynced from appointment: %s %s -> %s %s",
        item.id, item.fee_amount, item.fee_type, quote.amount, quote.fee_type)
    item.fee_amount = quote.amount
    item.fee_type = quote.fee_type
    item.payment_status = payment_status
    item.net_amount = money2(quote.amount - D(item.discount_amount))
    db.flush()
    return True
