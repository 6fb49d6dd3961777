# FILE: clinicflow/models/medicine_bill.py
from __future__ import annotations

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Text,
    JSON,
)
from sqlalchemy.orm import relationship

from clinicflow.db.base import Base
from clinicflow.utils.timezone import now_local


class MedicineBillStatus:
    DRAFT = "draft"
    SAVED = "saved"
    PAID = "paid"


class MedicineBill(Base):
    """
    Pharmacy charge for a billing item, separate from the consultation
    fee receipt. One bill per billing item; saving replaces it wholesale.
    """

    __tablename__ = "medicine_bills"
    __table_args__ = (UniqueConstraint("billing_queue_id",
                                       name="uq_medicine_bill_queue"), )

    id = Column(Integer, primary_key=True, index=True)
    billing_queue_id = Column(Integer,
                              ForeignKey("billing_queue_items.id"),
                              nullable=False)
    patient_id = Column(Integer,
                        ForeignKey("patients.id"),
                        nullable=False,
                        index=True)
    visit_id = Column(Integer, ForeignKey("opd_visits.id"), nullable=False)

    items = Column(JSON, nullable=False, default=list)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount_percent = Column(Numeric(6, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_percent = Column(Numeric(6, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    grand_total = Column(Numeric(12, 2), nullable=False, default=0)

    notes = Column(Text, nullable=True)
    status = Column(String(16), nullable=False,
                    default=MedicineBillStatus.DRAFT)  # draft | saved | paid

    created_at = Column(DateTime, nullable=False, default=now_local)
    updated_at = Column(DateTime,
                        nullable=False,
                        default=now_local,
                        onupdate=now_local)

    billing_item = relationship("BillingQueueItem",
                                foreign_keys=[billing_queue_id])


class MedicineAmountMemory(Base):
    """Last amount charged per (medicine, potency); potency '' when none."""

    __tablename__ = "medicine_amount_memory"
    __table_args__ = (UniqueConstraint("medicine",
                                       "potency",
                                       name="uq_medicine_amount_memory"), )

    id = Column(Integer, primary_key=True, index=True)
    medicine = Column(String(255), nullable=False)
    potency = Column(String(32), nullable=False, default="")
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    last_used_at = Column(DateTime, nullable=False, default=now_local)
