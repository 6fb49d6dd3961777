# clinicflow/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All clinic tables (patients, visits, queues, bills) inherit from this."""
    pass


# Import all models so metadata is complete for create_all()
from clinicflow.models import (  # noqa: F401,E402
    patient,
    opd,
    pharmacy_queue,
    billing,
    medicine_bill,
)
