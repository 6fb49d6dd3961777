# clinicflow/schemas/pharmacy_queue.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from clinicflow.schemas.opd import PatientMiniOut, VisitMiniOut, PrescriptionOut


class PharmacyQueueItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    visit_id: int
    patient_id: int
    appointment_id: Optional[int] = None
    prescription_ids: List[int] = []
    priority: bool = False
    status: str
    stop_reason: Optional[str] = None
    prepared_by: Optional[str] = None
    prepared_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    has_updates: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None


class PharmacyQueueEntryOut(PharmacyQueueItemOut):
    """Queue row joined with the live patient / visit / prescriptions."""
    patient: Optional[PatientMiniOut] = None
    visit: Optional[VisitMiniOut] = None
    prescriptions: List[PrescriptionOut] = []


class PharmacyQueueListOut(BaseModel):
    items: List[PharmacyQueueEntryOut] = []
    # e.g. "2 prescription(s) updated by doctor"
    notification: Optional[str] = None


class PharmacyQueueStatsOut(BaseModel):
    pending: int = 0
    preparing: int = 0
    prepared: int = 0
    with_updates: int = 0


class MarkPreparedIn(BaseModel):
    prepared_by: str = "pharmacy"


class StopIn(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
