# FILE: clinicflow/models/opd.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Index,
)
from sqlalchemy.orm import relationship

from clinicflow.db.base import Base
from clinicflow.utils.timezone import now_local


class AppointmentStatus:
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    MEDICINES_PREPARED = "medicines-prepared"
    CANCELLED = "cancelled"


class Appointment(Base):
    """
    Front-desk booking. The workflow only reads the fee fields and moves
    `status` between completed / medicines-prepared.
    """
    __tablename__ = "opd_appointments"
    __table_args__ = (Index("ix_opd_appt_patient_date", "patient_id",
                            "appointment_date"), )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(
        Integer,
        ForeignKey("patients.id"),
        nullable=False,
        index=True,
    )
    appointment_date = Column(DateTime, nullable=False)
    status = Column(String(30), default=AppointmentStatus.SCHEDULED)

    # fee chosen at booking; NULL means "not decided yet"
    fee_amount = Column(Numeric(12, 2), nullable=True)
    fee_type = Column(String(64), nullable=True)
    fee_status = Column(String(16), nullable=True)  # pending / paid / exempt

    created_at = Column(DateTime, default=now_local)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local)

    patient = relationship("Patient", foreign_keys=[patient_id])


class Visit(Base):
    __tablename__ = "opd_visits"

    id = Column(Integer, primary_key=True, index=True)
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
        index=True,
    )
    visit_date = Column(DateTime, default=now_local)
    # 1 = first visit of the patient
    visit_number = Column(Integer, nullable=False, default=1)
    token_number = Column(Integer, nullable=True)

    chief_complaint = Column(String(400), nullable=True)
    diagnosis = Column(Text, nullable=True)
    advice = Column(Text, nullable=True)
    status = Column(String(30), default="open")

    created_at = Column(DateTime, default=now_local)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local)

    patient = relationship("Patient", foreign_keys=[patient_id])
    appointment = relationship("Appointment", foreign_keys=[appointment_id])
    prescriptions = relationship(
        "Prescription",
        back_populates="visit",
        cascade="all, delete-orphan",
        order_by="Prescription.row_order",
    )


class Prescription(Base):
    """One medicine row of a visit's treatment plan (doctor-owned)."""
    __tablename__ = "opd_prescriptions"
    __table_args__ = (Index("ix_opd_rx_visit_order", "visit_id",
                            "row_order"), )

    id = Column(Integer, primary_key=True, index=True)
    visit_id = Column(
        Integer,
        ForeignKey("opd_visits.id"),
        nullable=False,
        index=True,
    )
    patient_id = Column(
        Integer,
        ForeignKey("patients.id"),
        nullable=False,
        index=True,
    )
    row_order = Column(Integer, nullable=False, default=0)

    medicine = Column(String(255), nullable=False)
    potency = Column(String(32), nullable=True)
    quantity = Column(String(32), nullable=True)  # display text e.g. "2dr"
    dose_form = Column(String(64), nullable=True)
    dose_pattern = Column(String(64), nullable=True)
    frequency = Column(String(64), nullable=True)
    duration = Column(String(64), nullable=True)
    duration_days = Column(Integer, nullable=True)
    bottles = Column(Integer, nullable=True)  # billable quantity
    instructions = Column(Text, nullable=True)

    is_combination = Column(Boolean, default=False)
    combination_name = Column(String(255), nullable=True)
    combination_content = Column(Text, nullable=True)

    created_at = Column(DateTime, default=now_local)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local)

    visit = relationship("Visit", back_populates="prescriptions")
