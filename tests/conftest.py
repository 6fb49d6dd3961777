"""
Shared fixtures: a fresh in-memory SQLite database per test, seed
helpers for patients / appointments / visits / prescriptions, and a
FastAPI TestClient bound to the same database.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["WORKFLOW_POLLING_ENABLED"] = "false"
os.environ.setdefault("PHARMACY_INLINE_BILLING", "true")

from datetime import timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from clinicflow.api.deps import get_db  # noqa: E402
from clinicflow.db.base import Base  # noqa: E402
from clinicflow.db.session import make_engine  # noqa: E402
from clinicflow.main import app  # noqa: E402
from clinicflow.models import (  # noqa: E402
    Appointment,
    AppointmentStatus,
    Patient,
    Prescription,
    Visit,
)
from clinicflow.utils.timezone import now_local  # noqa: E402


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False,
                        autoflush=False,
                        bind=engine,
                        future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


class Seed:
    """Small factory for the OPD rows the workflow reads."""

    def __init__(self, db):
        self.db = db
        self._reg = 0

    def patient(self, first_name="Asha", last_name="Kumar"):
        self._reg += 1
        p = Patient(
            registration_number=f"REG{self._reg:04d}",
            first_name=first_name,
            last_name=last_name,
            mobile_number="9000000000",
        )
        self.db.add(p)
        self.db.flush()
        return p

    def appointment(self,
                    patient,
                    *,
                    status=AppointmentStatus.COMPLETED,
                    fee_amount=None,
                    fee_type=None,
                    fee_status=None,
                    days_ago=0):
        a = Appointment(
            patient_id=patient.id,
            appointment_date=now_local() - timedelta(days=days_ago),
            status=status,
            fee_amount=(Decimal(str(fee_amount))
                        if fee_amount is not None else None),
            fee_type=fee_type,
            fee_status=fee_status,
        )
        self.db.add(a)
        self.db.flush()
        return a

    def visit(self, patient, *, visit_number=1, appointment=None):
        v = Visit(
            patient_id=patient.id,
            appointment_id=appointment.id if appointment else None,
            visit_number=visit_number,
            visit_date=now_local(),
        )
        self.db.add(v)
        self.db.flush()
        return v

    def rx(self, visit, medicine, *, potency=None, bottles=None, row_order=None):
        count = (self.db.query(Prescription).filter(
            Prescription.visit_id == visit.id).count())
        p = Prescription(
            visit_id=visit.id,
            patient_id=visit.patient_id,
            row_order=count if row_order is None else row_order,
            medicine=medicine,
            potency=potency,
            bottles=bottles,
        )
        self.db.add(p)
        self.db.flush()
        return p


@pytest.fixture
def seed(db):
    return Seed(db)
