# FILE: clinicflow/models/pharmacy_queue.py
from __future__ import annotations

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Boolean,
    ForeignKey,
    JSON,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from clinicflow.db.base import Base
from clinicflow.utils.timezone import now_local


class PharmacyQueueStatus:
    PENDING = "pending"
    PREPARING = "preparing"
    PREPARED = "prepared"
    DELIVERED = "delivered"
    STOPPED = "stopped"
    BILLED = "billed"

    ACTIVE = (PENDING, PREPARING)


class PharmacyQueueItem(Base):
    """
    One visit's prescriptions waiting at (or handled by) the pharmacy.

    active_visit_id mirrors visit_id until the item is stopped, then goes
    NULL. The unique constraint on it allows many stopped rows per visit
    (multiple NULLs) but only one live row.
    """

    __tablename__ = "pharmacy_queue_items"
    __table_args__ = (
        UniqueConstraint("active_visit_id",
                         name="uq_pharmacy_queue_active_visit"),
        Index("ix_pharmacy_queue_status_created", "status", "created_at"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
            "mysql_collate": "utf8mb4_unicode_ci",
        },
    )

    id = Column(Integer, primary_key=True, index=True)
    visit_id = Column(
        Integer,
        ForeignKey("opd_visits.id"),
        nullable=False,
        index=True,
    )
    active_visit_id = Column(Integer, nullable=True)
    patient_id = Column(
        Integer,
        ForeignKey("patients.id"),
        nullable=False,
        index=True,
    )
    appointment_id = Column(
        Integer,
        ForeignKey("opd_appointments.id"),
        nullable=True,
    )

    # snapshot taken when the doctor sent the visit to pharmacy
    prescription_ids = Column(JSON, nullable=False, default=list)
    priority = Column(Boolean, nullable=False, default=False)
    status = Column(String(16),
                    nullable=False,
                    default=PharmacyQueueStatus.PENDING)

    stop_reason = Column(Text, nullable=True)
    prepared_by = Column(String(120), nullable=True)
    prepared_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)

    # doctor-edit watermark
    last_seen_signature = Column(String(64), nullable=True)
    has_updates = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=now_local)
    updated_at = Column(DateTime,
                        nullable=False,
                        default=now_local,
                        onupdate=now_local)

    patient = relationship("Patient", foreign_keys=[patient_id])
    visit = relationship("Visit", foreign_keys=[visit_id])
