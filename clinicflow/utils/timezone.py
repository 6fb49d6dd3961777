# FILE: clinicflow/utils/timezone.py
from __future__ import annotations

from datetime import datetime, date
from typing import Optional, Union
from zoneinfo import ZoneInfo

from clinicflow.core.config import settings


def clinic_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def now_local() -> datetime:
    """
    Returns a *naive* datetime representing clinic local time.
    All DateTime columns are naive and hold clinic local time.
    """
    return datetime.now(clinic_tz()).replace(tzinfo=None)


def local_date(value: Optional[Union[date, datetime]]) -> Optional[date]:
    """
    - naive datetime -> already clinic local, take its date
    - aware datetime -> converted to the clinic timezone first
    - date -> returned as-is
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(clinic_tz())
        return value.date()
    return value


def same_local_day(a: Optional[Union[date, datetime]],
                   b: Optional[Union[date, datetime]]) -> bool:
    da, db_ = local_date(a), local_date(b)
    if da is None or db_ is None:
        return False
    return da == db_
