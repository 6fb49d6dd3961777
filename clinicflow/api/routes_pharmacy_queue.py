# FILE: clinicflow/api/routes_pharmacy_queue.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clinicflow.api.deps import get_db
from clinicflow.models.pharmacy_queue import PharmacyQueueItem
from clinicflow.schemas.opd import PrescriptionOut
from clinicflow.schemas.pharmacy_queue import (
    MarkPreparedIn,
    PharmacyQueueEntryOut,
    PharmacyQueueItemOut,
    PharmacyQueueListOut,
    PharmacyQueueStatsOut,
    StopIn,
)
from clinicflow.services import pharmacy_queue as svc

router = APIRouter(prefix="/pharmacy/queue", tags=["Pharmacy Queue"])
logger = logging.getLogger(__name__)


def _listing_out(listing: svc.PharmacyQueueListing) -> PharmacyQueueListOut:
    items = []
    for entry in listing.entries:
        out = PharmacyQueueEntryOut.model_validate(entry.item)
        out.prescriptions = [
            PrescriptionOut.model_validate(p) for p in entry.prescriptions
        ]
        items.append(out)
    return PharmacyQueueListOut(items=items,
                                notification=listing.notification)


def _done(db: Session, item: PharmacyQueueItem | None) -> PharmacyQueueItem:
    if not item:
        raise HTTPException(status_code=404,
                            detail="Pharmacy queue item not found")
    db.commit()
    db.refresh(item)
    return item


@router.get("/active", response_model=PharmacyQueueListOut)
def active_queue(db: Session = Depends(get_db)):
    out = _listing_out(svc.list_active(db))
    # watermarks may have moved
    db.commit()
    return out


@router.get("/prepared", response_model=PharmacyQueueListOut)
def prepared_queue(db: Session = Depends(get_db)):
    out = _listing_out(svc.list_prepared(db))
    db.commit()
    return out


@router.get("/stats", response_model=PharmacyQueueStatsOut)
def queue_stats(db: Session = Depends(get_db)):
    return PharmacyQueueStatsOut(**svc.queue_stats(db))


@router.post("/{item_id}/start", response_model=PharmacyQueueItemOut)
def start_preparing(item_id: int, db: Session = Depends(get_db)):
    return _done(db, svc.start_preparing(db, item_id))


@router.post("/{item_id}/prepared", response_model=PharmacyQueueItemOut)
def mark_prepared(
        item_id: int,
        payload: MarkPreparedIn | None = None,
        db: Session = Depends(get_db),
):
    payload = payload or MarkPreparedIn()
    return _done(db,
                 svc.mark_prepared(db, item_id,
                                   prepared_by=payload.prepared_by))


@router.post("/{item_id}/reopen", response_model=PharmacyQueueItemOut)
def reopen(item_id: int, db: Session = Depends(get_db)):
    return _done(db, svc.reopen(db, item_id))


@router.post("/{item_id}/stop", response_model=PharmacyQueueItemOut)
def stop(item_id: int, payload: StopIn, db: Session = Depends(get_db)):
    return _done(db, svc.stop(db, item_id, payload.reason))


@router.post("/{item_id}/deliver", response_model=PharmacyQueueItemOut)
def deliver(item_id: int, db: Session = Depends(get_db)):
    return _done(db, svc.mark_delivered(db, item_id))


@router.post("/{item_id}/acknowledge", response_model=PharmacyQueueItemOut)
def acknowledge(item_id: int, db: Session = Depends(get_db)):
    return _done(db, svc.acknowledge_updates(db, item_id))
