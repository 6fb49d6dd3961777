# FILE: clinicflow/api/routes_billing_queue.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clinicflow.api.deps import get_db
from clinicflow.models.billing import BillingQueueItem, BillingReceipt
from clinicflow.schemas.billing import (
    BillingQueueEntryOut,
    BillingQueueItemOut,
    BillingReceiptOut,
    FeeEditIn,
    FeeHistoryOut,
    GenerateReceiptIn,
    SweepOut,
)
from clinicflow.schemas.opd import PrescriptionOut
from clinicflow.services import billing_queue as svc
from clinicflow.services.billing_admission import sweep_prepared_into_billing
from clinicflow.services.opd_prescriptions import live_prescriptions

router = APIRouter(prefix="/billing", tags=["Billing Queue"])
logger = logging.getLogger(__name__)


def _entry_out(db: Session, item: BillingQueueItem) -> BillingQueueEntryOut:
    out = BillingQueueEntryOut.model_validate(item)
    out.prescriptions = [
        PrescriptionOut.model_validate(p)
        for p in live_prescriptions(db, item.visit_id)
    ]
    return out


def _item_done(db: Session,
               item: Optional[BillingQueueItem]) -> BillingQueueItem:
    if not item:
        raise HTTPException(status_code=404,
                            detail="Billing queue item not found")
    db.commit()
    db.refresh(item)
    return item


def _receipt_done(db: Session,
                  receipt: Optional[BillingReceipt]) -> BillingReceipt:
    if not receipt:
        raise HTTPException(status_code=404, detail="Receipt not found")
    db.commit()
    db.refresh(receipt)
    return receipt


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------
@router.get("/queue/open", response_model=List[BillingQueueEntryOut])
def open_queue(db: Session = Depends(get_db)):
    items = svc.list_open(db)
    # pending fees may have been resynced
    db.commit()
    return [_entry_out(db, it) for it in items]


@router.get("/queue/completed", response_model=List[BillingQueueEntryOut])
def completed_queue(db: Session = Depends(get_db)):
    return [_entry_out(db, it) for it in svc.list_completed(db)]


@router.post("/queue/sweep", response_model=SweepOut)
def sweep(db: Session = Depends(get_db)):
    created = sweep_prepared_into_billing(db)
    db.commit()
    return SweepOut(created=created)


@router.patch("/queue/{item_id}/fee", response_model=BillingQueueItemOut)
def edit_fee(item_id: int, payload: FeeEditIn, db: Session = Depends(get_db)):
    item = svc.edit_fee(db, item_id, **payload.model_dump())
    return _item_done(db, item)


@router.post("/queue/{item_id}/receipt", response_model=BillingReceiptOut)
def generate_receipt(
        item_id: int,
        payload: Optional[GenerateReceiptIn] = None,
        db: Session = Depends(get_db),
):
    payload = payload or GenerateReceiptIn()
    receipt = svc.generate_receipt(db,
                                   item_id,
                                   payment_method=payload.payment_method)
    return _receipt_done(db, receipt)


@router.post("/queue/{item_id}/complete", response_model=BillingQueueItemOut)
def complete(item_id: int, db: Session = Depends(get_db)):
    return _item_done(db, svc.complete(db, item_id))


@router.post("/queue/{item_id}/reopen", response_model=BillingQueueItemOut)
def reopen(item_id: int, db: Session = Depends(get_db)):
    return _item_done(db, svc.reopen(db, item_id))


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------
@router.get("/receipts/{receipt_id}", response_model=BillingReceiptOut)
def get_receipt(receipt_id: int, db: Session = Depends(get_db)):
    receipt = svc.get_receipt(db, receipt_id)
    if not receipt:
        raise HTTPException(status_code=404, detail="Receipt not found")
    return receipt


@router.post("/receipts/{receipt_id}/printed",
             response_model=BillingReceiptOut)
def mark_printed(receipt_id: int, db: Session = Depends(get_db)):
    return _receipt_done(db, svc.mark_receipt_printed(db, receipt_id))


@router.post("/receipts/{receipt_id}/whatsapp-sent",
             response_model=BillingReceiptOut)
def mark_whatsapp_sent(receipt_id: int, db: Session = Depends(get_db)):
    return _receipt_done(db, svc.mark_receipt_whatsapp_sent(db, receipt_id))


@router.get("/patients/{patient_id}/fee-history",
            response_model=List[FeeHistoryOut])
def fee_history(patient_id: int, db: Session = Depends(get_db)):
    return svc.fee_history(db, patient_id)
