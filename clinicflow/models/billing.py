# FILE: clinicflow/models/billing.py
from __future__ import annotations

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    Boolean,
    DateTime,
    Index,
    ForeignKey,
    UniqueConstraint,
    Text,
    JSON,
)
from sqlalchemy.orm import relationship

from clinicflow.db.base import Base
from clinicflow.utils.timezone import now_local

MYSQL_ARGS = {
    "mysql_engine": "InnoDB",
    "mysql_charset": "utf8mb4",
    "mysql_collate": "utf8mb4_unicode_ci",
}


class BillingStatus:
    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"

    OPEN = (PENDING, PAID)


class PaymentStatus:
    # partial / refunded / exempt are display-only sub-states
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"
    REFUNDED = "refunded"
    EXEMPT = "exempt"

    ALL = (PENDING, PAID, PARTIAL, REFUNDED, EXEMPT)


class PaymentMethod:
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    CHEQUE = "cheque"
    INSURANCE = "insurance"
    EXEMPT = "exempt"

    ALL = (CASH, CARD, UPI, CHEQUE, INSURANCE, EXEMPT)


class FeeHistoryType:
    FIRST_VISIT = "first-visit"
    FOLLOW_UP = "follow-up"


class BillingQueueItem(Base):
    """
    Consultation billing for one visit.

    visit_id is UNIQUE regardless of status: a completed or reopened visit
    must never be admitted a second time.
    """

    __tablename__ = "billing_queue_items"
    __table_args__ = (
        UniqueConstraint("visit_id", name="uq_billing_queue_visit"),
        Index("ix_billing_queue_status_created", "status", "created_at"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    visit_id = Column(Integer, ForeignKey("opd_visits.id"), nullable=False)
    patient_id = Column(Integer,
                        ForeignKey("patients.id"),
                        nullable=False,
                        index=True)
    appointment_id = Column(Integer,
                            ForeignKey("opd_appointments.id"),
                            nullable=True)
    prescription_ids = Column(JSON, nullable=False, default=list)

    status = Column(String(16), nullable=False,
                    default=BillingStatus.PENDING)  # pending | paid | completed

    fee_amount = Column(Numeric(12, 2), nullable=False, default=0)
    fee_type = Column(String(64), nullable=False, default="Consultation")
    discount_percent = Column(Numeric(6, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    net_amount = Column(Numeric(12, 2), nullable=False, default=0)

    payment_method = Column(String(16), nullable=True)
    payment_status = Column(String(16),
                            nullable=False,
                            default=PaymentStatus.PENDING)

    receipt_number = Column(String(32), nullable=True, index=True)
    receipt_generated_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)
    created_by = Column(String(120), nullable=True)
    created_at = Column(DateTime, nullable=False, default=now_local)
    updated_at = Column(DateTime,
                        nullable=False,
                        default=now_local,
                        onupdate=now_local)

    patient = relationship("Patient", foreign_keys=[patient_id])
    visit = relationship("Visit", foreign_keys=[visit_id])
    receipts = relationship("BillingReceipt", back_populates="billing_item")


class BillingReceipt(Base):
    """
    Immutable snapshot taken when a billing item is paid. Only the
    printed / whatsapp markers are ever written afterwards.
    """

    __tablename__ = "billing_receipts"
    __table_args__ = (
        UniqueConstraint("receipt_number", name="uq_billing_receipt_number"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    receipt_number = Column(String(32), nullable=False)
    billing_queue_id = Column(Integer,
                              ForeignKey("billing_queue_items.id"),
                              nullable=False,
                              index=True)
    patient_id = Column(Integer,
                        ForeignKey("patients.id"),
                        nullable=False,
                        index=True)
    visit_id = Column(Integer, ForeignKey("opd_visits.id"), nullable=False)

    # [{description, quantity, unit_price, total}]
    items = Column(JSON, nullable=False, default=list)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount_percent = Column(Numeric(6, 2), nullable=True)
    discount_amount = Column(Numeric(12, 2), nullable=True)
    tax_amount = Column(Numeric(12, 2), nullable=True)
    net_amount = Column(Numeric(12, 2), nullable=False, default=0)

    payment_method = Column(String(16), nullable=False)
    payment_status = Column(String(16),
                            nullable=False,
                            default=PaymentStatus.PAID)

    printed_at = Column(DateTime, nullable=True)
    whatsapp_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=now_local)

    billing_item = relationship("BillingQueueItem", back_populates="receipts")


class BillingNumberSeries(Base):
    """Sequence state for human readable document numbers."""

    __tablename__ = "billing_number_series"
    __table_args__ = (
        UniqueConstraint("doc_type",
                         "prefix",
                         name="uq_billing_number_series_doc_prefix"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True)
    doc_type = Column(String(32), nullable=False)  # RECEIPT
    prefix = Column(String(32), nullable=False, default="")
    padding = Column(Integer, nullable=False, default=6)
    next_number = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)


class FeeHistory(Base):
    """
    Append-only payment audit trail. Rows are never updated or removed,
    even when a completed billing item is reopened.
    """

    __tablename__ = "fee_history"
    __table_args__ = (
        Index("ix_fee_history_patient_paid", "patient_id", "paid_date"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    visit_id = Column(Integer, ForeignKey("opd_visits.id"), nullable=True)
    receipt_id = Column(String(32), nullable=True)  # receipt number
    fee_type = Column(String(16), nullable=False)  # first-visit | follow-up
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(String(16), nullable=False)
    payment_status = Column(String(16), nullable=False)
    paid_date = Column(DateTime, nullable=False, default=now_local)
    created_at = Column(DateTime, nullable=False, default=now_local)


class DoctorFee(Base):
    """Legacy per-visit fee row written by the doctor panel."""

    __tablename__ = "doctor_fees"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer,
                        ForeignKey("patients.id"),
                        nullable=False,
                        index=True)
    visit_id = Column(Integer, ForeignKey("opd_visits.id"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    fee_type = Column(String(64), nullable=False)
    payment_status = Column(String(16),
                            nullable=False,
                            default=PaymentStatus.PENDING)
    discount_percent = Column(Numeric(6, 2), nullable=True)
    discount_reason = Column(String(255), nullable=True)
    payment_method = Column(String(16), nullable=True)
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local)
