# FILE: clinicflow/services/billing_numbers.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy.orm import Session

from clinicflow.core.config import settings
from clinicflow.models.billing import BillingNumberSeries
from clinicflow.utils.timezone import now_local

RECEIPT_DOC_TYPE = "RECEIPT"


def next_number(
    db: Session,
    *,
    doc_type: str,
    prefix: str,
    padding: int = 6,
) -> str:
    row = (db.query(BillingNumberSeries).filter(
        BillingNumberSeries.doc_type == doc_type).filter(
            BillingNumberSeries.prefix == (prefix or "")).filter(
                BillingNumberSeries.is_active.is_(True)).with_for_update().first())

    if not row:
        row = BillingNumberSeries(
            doc_type=doc_type,
            prefix=prefix or "",
            padding=padding,
            next_number=1,
            is_active=True,
        )
        db.add(row)
        db.flush()

    n = int(row.next_number or 1)
    row.next_number = n + 1
    db.flush()

    return f"{row.prefix}{str(n).zfill(int(row.padding or padding))}"


def receipt_prefix(now: datetime | None = None) -> str:
    now = now or now_local()
    return f"{settings.RECEIPT_PREFIX}-{now:%Y}-"


def next_receipt_number(db: Session, *, now: datetime | None = None) -> str:
    """RCP-2026-000001; the year lives in the prefix so each year is its own series."""
    return next_number(
        db,
        doc_type=RECEIPT_DOC_TYPE,
        prefix=receipt_prefix(now),
        padding=settings.RECEIPT_PADDING,
    )
