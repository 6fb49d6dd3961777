# FILE: clinicflow/models/patient.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
)

from clinicflow.db.base import Base
from clinicflow.utils.timezone import now_local


class Patient(Base):
    """
    Read-only here: registration and demographics are owned by the
    front desk. Queues only join on it for display.
    """
    __tablename__ = "patients"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    registration_number = Column(String(32), index=True, nullable=False)

    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=True)
    mobile_number = Column(String(20), index=True, nullable=True)
    age = Column(Integer, nullable=True)
    sex = Column(String(16), nullable=True)

    created_at = Column(DateTime, default=now_local)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local)

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.last_name]
        return " ".join([x for x in parts if x]).strip()
