# FILE: clinicflow/api/routes_medicine_bills.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clinicflow.api.deps import get_db
from clinicflow.schemas.medicine_bill import MedicineBillIn, MedicineBillOut
from clinicflow.services import medicine_billing as svc

router = APIRouter(prefix="/billing", tags=["Medicine Bills"])


@router.get("/queue/{item_id}/medicine-bill", response_model=MedicineBillOut)
def get_medicine_bill(item_id: int, db: Session = Depends(get_db)):
    bill = svc.draft_medicine_bill(db, item_id)
    if bill is None:
        raise HTTPException(status_code=404,
                            detail="Billing queue item not found")
    return bill


@router.put("/queue/{item_id}/medicine-bill", response_model=MedicineBillOut)
def save_medicine_bill(item_id: int,
                       payload: MedicineBillIn,
                       db: Session = Depends(get_db)):
    bill = svc.save_medicine_bill(
        db,
        item_id,
        items=[it.model_dump() for it in payload.items],
        discount_percent=payload.discount_percent,
        tax_percent=payload.tax_percent,
        notes=payload.notes,
    )
    if bill is None:
        raise HTTPException(status_code=404,
                            detail="Billing queue item not found")
    db.commit()
    db.refresh(bill)
    return bill
