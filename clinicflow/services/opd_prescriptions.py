# FILE: clinicflow/services/opd_prescriptions.py
from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from clinicflow.models.opd import Prescription, Visit

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = (
    "medicine",
    "potency",
    "quantity",
    "dose_form",
    "dose_pattern",
    "frequency",
    "duration",
    "duration_days",
    "bottles",
    "instructions",
    "is_combination",
    "combination_name",
    "combination_content",
)


def live_prescriptions(db: Session, visit_id: int) -> List[Prescription]:
    """Current doctor-side rows of a visit, in display order."""
    return (db.query(Prescription).filter(
        Prescription.visit_id == visit_id).order_by(
            Prescription.row_order.asc(), Prescription.id.asc()).all())


def prescription_signature(rows: Iterable[Prescription]) -> str:
    """
    Content hash of a prescription set. Changes on add / remove / reorder
    and on any edit of a clinical field, not only on id churn.
    """
    payload = [[getattr(p, "id", None)] +
               [getattr(p, f, None) for f in _EDITABLE_FIELDS] for p in rows]
    raw = json.dumps(payload, default=str, separators=(",", ":"))
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


def replace_prescriptions(
    db: Session,
    visit_id: int,
    rows: List[Dict[str, Any]],
) -> Optional[List[Prescription]]:
    """
    Doctor saves the whole treatment plan. Rows carrying the id of an
    existing prescription of this visit are updated in place, rows without
    one are created, and rows that disappeared are deleted. Row order is
    the list order.
    """
    visit = db.get(Visit, visit_id)
    if not visit:
        return None

    existing = {p.id: p for p in live_prescriptions(db, visit_id)}
    keep: set[int] = set()

    for idx, row in enumerate(rows):
        rx_id = row.get("id")
        rx = existing.get(rx_id) if rx_id else None
        if rx is None:
            rx = Prescription(visit_id=visit.id, patient_id=visit.patient_id)
            db.add(rx)
        for field in _EDITABLE_FIELDS:
            if field in row:
                setattr(rx, field, row[field])
        rx.row_order = idx
        if rx.id:
            keep.add(rx.id)

    for rx_id, rx in existing.items():
        if rx_id not in keep:
            db.delete(rx)

    db.flush()
    logger.info("Visit %s prescriptions saved (%d rows)", visit_id, len(rows))
    return live_prescriptions(db, visit_id)
