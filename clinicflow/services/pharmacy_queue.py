# FILE: clinicflow/services/pharmacy_queue.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinicflow.core.config import settings
from clinicflow.models.opd import Appointment, AppointmentStatus, Prescription, Visit
from clinicflow.models.patient import Patient
from clinicflow.models.pharmacy_queue import PharmacyQueueItem, PharmacyQueueStatus
from clinicflow.services.billing_admission import ensure_billing_item
from clinicflow.services.errors import WorkflowError, WorkflowStateError
from clinicflow.services.fee_resolution import FeeContext, find_same_day_appointment
from clinicflow.services.opd_prescriptions import live_prescriptions, prescription_signature
from clinicflow.utils.timezone import now_local

logger = logging.getLogger(__name__)


# ============================================================
# Errors
# ============================================================
class PharmacyError(WorkflowError):
    pass


class PharmacyStateError(PharmacyError, WorkflowStateError):
    pass


@dataclass
class PharmacyQueueEntry:
    """Queue row joined with live patient / visit / prescriptions."""
    item: PharmacyQueueItem
    patient: Optional[Patient] = None
    visit: Optional[Visit] = None
    prescriptions: List[Prescription] = field(default_factory=list)


@dataclass
class PharmacyQueueListing:
    entries: List[PharmacyQueueEntry]
    changed: int = 0

    @property
    def notification(self) -> Optional[str]:
        if not self.changed:
            return None
        return f"{self.changed} prescription(s) updated by doctor"


# ============================================================
# Helpers
# ============================================================
def _require(item: PharmacyQueueItem, allowed: Tuple[str, ...],
             action: str) -> None:
    if item.status not in allowed:
        raise PharmacyStateError(
            f"Cannot {action} a pharmacy item in status '{item.status}'")


def _ordered(q):
    return q.order_by(
        PharmacyQueueItem.priority.desc(),
        PharmacyQueueItem.created_at.asc(),
        PharmacyQueueItem.id.asc(),
    )


def _live_item_for_visit(db: Session,
                         visit_id: int,
                         *,
                         lock: bool = False) -> Optional[PharmacyQueueItem]:
    q = (db.query(PharmacyQueueItem).filter(
        PharmacyQueueItem.visit_id == visit_id).filter(
            PharmacyQueueItem.status != PharmacyQueueStatus.STOPPED).order_by(
                PharmacyQueueItem.id.desc()))
    if lock:
        # locking read sees rows committed after our snapshot
        q = q.with_for_update()
    return q.first()


def _observe(item: PharmacyQueueItem, rows: List[Prescription]) -> bool:
    """
    Compare the visit's current prescriptions against the item's watermark.
    First sighting only records it. Returns True on a fresh change.
    """
    sig = prescription_signature(rows)
    if item.last_seen_signature is None:
        item.last_seen_signature = sig
        return False
    if item.last_seen_signature == sig:
        return False
    item.last_seen_signature = sig
    item.has_updates = True
    return True


def _enrich(db: Session,
            items: List[PharmacyQueueItem],
            *,
            notify: bool = True) -> PharmacyQueueListing:
    entries: List[PharmacyQueueEntry] = []
    changed = 0
    for item in items:
        rows = live_prescriptions(db, item.visit_id)
        if _observe(item, rows):
            changed += 1
        entries.append(
            PharmacyQueueEntry(
                item=item,
                patient=item.patient,
                visit=item.visit,
                prescriptions=rows,
            ))
    if changed:
        db.flush()
    if not notify:
        # flag stays on the item, only the active queue announces it
        return PharmacyQueueListing(entries=entries)
    if changed:
        logger.warning("%d prescription(s) updated by doctor", changed)
    return PharmacyQueueListing(entries=entries, changed=changed)


# ============================================================
# Enqueue
# ============================================================
def send_to_pharmacy(
    db: Session,
    visit_id: int,
    *,
    priority: bool = False,
    appointment_id: Optional[int] = None,
) -> Optional[PharmacyQueueItem]:
    """
    Doctor hands the visit to the pharmacy. An existing live item for the
    visit is refreshed and returned instead of creating a second one.
    """
    visit = db.get(Visit, visit_id)
    if not visit:
        return None

    rows = live_prescriptions(db, visit_id)
    rx_ids = [p.id for p in rows]
    appointment_id = appointment_id or visit.appointment_id

    item = _live_item_for_visit(db, visit_id)
    if item:
        item.prescription_ids = rx_ids
        item.priority = bool(priority)
        if appointment_id and not item.appointment_id:
            item.appointment_id = appointment_id
        db.flush()
        return item

    item = PharmacyQueueItem(
        visit_id=visit.id,
        active_visit_id=visit.id,
        patient_id=visit.patient_id,
        appointment_id=appointment_id,
        prescription_ids=rx_ids,
        priority=bool(priority),
        status=PharmacyQueueStatus.PENDING,
        last_seen_signature=prescription_signature(rows),
        has_updates=False,
    )
    try:
        with db.begin_nested():
            db.add(item)
            db.flush()
    except IntegrityError:
        # concurrent sender won the active_visit_id slot
        logger.info("Visit %s already queued by a concurrent request",
                    visit_id)
        return _live_item_for_visit(db, visit_id, lock=True)

    logger.info("Visit %s sent to pharmacy (item %s, %d rx, priority=%s)",
                visit_id, item.id, len(rx_ids), item.priority)
    return item


# ============================================================
# Listings
# ============================================================
def list_active(db: Session) -> PharmacyQueueListing:
    items = _ordered(
        db.query(PharmacyQueueItem).filter(
            PharmacyQueueItem.status.in_(PharmacyQueueStatus.ACTIVE))).all()
    return _enrich(db, items)


def list_prepared(db: Session) -> PharmacyQueueListing:
    items = _ordered(
        db.query(PharmacyQueueItem).filter(
            PharmacyQueueItem.status == PharmacyQueueStatus.PREPARED)).all()
    return _enrich(db, items, notify=False)


def refresh_watermarks(db: Session) -> int:
    """Poller entry point: change detection over every active item."""
    return list_active(db).changed


def queue_stats(db: Session) -> Dict[str, int]:
    counts = dict(
        db.query(PharmacyQueueItem.status,
                 func.count(PharmacyQueueItem.id)).group_by(
                     PharmacyQueueItem.status).all())
    with_updates = (db.query(func.count(PharmacyQueueItem.id)).filter(
        PharmacyQueueItem.has_updates.is_(True)).filter(
            PharmacyQueueItem.status.in_(
                PharmacyQueueStatus.ACTIVE +
                (PharmacyQueueStatus.PREPARED, ))).scalar())
    return {
        "pending": int(counts.get(PharmacyQueueStatus.PENDING, 0)),
        "preparing": int(counts.get(PharmacyQueueStatus.PREPARING, 0)),
        "prepared": int(counts.get(PharmacyQueueStatus.PREPARED, 0)),
        "with_updates": int(with_updates or 0),
    }


# ============================================================
# Transitions
# ============================================================
def start_preparing(db: Session,
                    item_id: int) -> Optional[PharmacyQueueItem]:
    item = db.get(PharmacyQueueItem, item_id)
    if not item:
        return None
    _require(item, (PharmacyQueueStatus.PENDING, ), "start preparing")
    item.status = PharmacyQueueStatus.PREPARING
    db.flush()
    logger.info("Pharmacy item %s preparing", item.id)
    return item


def mark_prepared(
    db: Session,
    item_id: int,
    *,
    prepared_by: str = "pharmacy",
    now: Optional[datetime] = None,
) -> Optional[PharmacyQueueItem]:
    item = db.get(PharmacyQueueItem, item_id)
    if not item:
        return None
    _require(item, PharmacyQueueStatus.ACTIVE, "mark prepared")
    now = now or now_local()

    item.status = PharmacyQueueStatus.PREPARED
    item.prepared_by = prepared_by
    item.prepared_at = now
    item.has_updates = False
    item.last_seen_signature = prescription_signature(
        live_prescriptions(db, item.visit_id))
    db.flush()

    appt = find_same_day_appointment(
        db,
        item.patient_id,
        statuses=(AppointmentStatus.COMPLETED, AppointmentStatus.IN_PROGRESS),
        now=now,
    )

    # admission must read the appointment before it moves on
    if settings.PHARMACY_INLINE_BILLING:
        ensure_billing_item(db, item, context=FeeContext.PHARMACY, now=now)

    if appt:
        appt.status = AppointmentStatus.MEDICINES_PREPARED
        db.flush()

    logger.info("Pharmacy item %s prepared by %s", item.id, prepared_by)
    return item


def reopen(db: Session,
           item_id: int,
           *,
           now: Optional[datetime] = None) -> Optional[PharmacyQueueItem]:
    item = db.get(PharmacyQueueItem, item_id)
    if not item:
        return None
    _require(item, (PharmacyQueueStatus.PREPARED, PharmacyQueueStatus.BILLED),
             "reopen")

    item.status = PharmacyQueueStatus.PENDING
    appt: Optional[Appointment] = find_same_day_appointment(
        db,
        item.patient_id,
        statuses=(AppointmentStatus.MEDICINES_PREPARED, ),
        now=now,
    )
    if appt:
        appt.status = AppointmentStatus.COMPLETED
    db.flush()
    logger.info("Pharmacy item %s reopened", item.id)
    return item


def stop(db: Session, item_id: int,
         reason: str) -> Optional[PharmacyQueueItem]:
    item = db.get(PharmacyQueueItem, item_id)
    if not item:
        return None
    _require(item, PharmacyQueueStatus.ACTIVE, "stop")
    item.status = PharmacyQueueStatus.STOPPED
    item.stop_reason = reason
    item.active_visit_id = None
    db.flush()
    logger.info("Pharmacy item %s stopped: %s", item.id, reason)
    return item


def mark_delivered(
        db: Session,
        item_id: int,
        *,
        now: Optional[datetime] = None) -> Optional[PharmacyQueueItem]:
    item = db.get(PharmacyQueueItem, item_id)
    if not item:
        return None
    _require(item, (PharmacyQueueStatus.PREPARED, PharmacyQueueStatus.BILLED),
             "deliver")
    item.status = PharmacyQueueStatus.DELIVERED
    item.delivered_at = now or now_local()
    db.flush()
    logger.info("Pharmacy item %s delivered", item.id)
    return item


def acknowledge_updates(db: Session,
                        item_id: int) -> Optional[PharmacyQueueItem]:
    item = db.get(PharmacyQueueItem, item_id)
    if not item:
        return None
    item.has_updates = False
    item.last_seen_signature = prescription_signature(
        live_prescriptions(db, item.visit_id))
    db.flush()
    return item
