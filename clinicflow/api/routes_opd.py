# FILE: clinicflow/api/routes_opd.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clinicflow.api.deps import get_db
from clinicflow.schemas.opd import PrescriptionOut, PrescriptionSetIn, SendToPharmacyIn
from clinicflow.schemas.pharmacy_queue import PharmacyQueueItemOut
from clinicflow.services import opd_prescriptions, pharmacy_queue

router = APIRouter(prefix="/opd", tags=["OPD"])
logger = logging.getLogger(__name__)


@router.put("/visits/{visit_id}/prescriptions",
            response_model=List[PrescriptionOut])
def save_prescriptions(
        visit_id: int,
        payload: PrescriptionSetIn,
        db: Session = Depends(get_db),
):
    rows = opd_prescriptions.replace_prescriptions(
        db, visit_id, [r.model_dump() for r in payload.rows])
    if rows is None:
        raise HTTPException(status_code=404, detail="Visit not found")
    db.commit()
    return opd_prescriptions.live_prescriptions(db, visit_id)


@router.post("/visits/{visit_id}/send-to-pharmacy",
             response_model=PharmacyQueueItemOut)
def send_to_pharmacy(
        visit_id: int,
        payload: Optional[SendToPharmacyIn] = None,
        db: Session = Depends(get_db),
):
    payload = payload or SendToPharmacyIn()
    item = pharmacy_queue.send_to_pharmacy(
        db,
        visit_id,
        priority=payload.priority,
        appointment_id=payload.appointment_id,
    )
    if not item:
        raise HTTPException(status_code=404, detail="Visit not found")
    db.commit()
    db.refresh(item)
    return item
