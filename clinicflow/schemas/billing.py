# FILE: clinicflow/schemas/billing.py
from __future__ import annotations

from typing import Optional, Literal, List
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from clinicflow.schemas.opd import PatientMiniOut, VisitMiniOut, PrescriptionOut

PaymentMethodLiteral = Literal["cash", "card", "upi", "cheque", "insurance",
                               "exempt"]


class FeeSource(BaseModel):
    """
    The only appointment fields fee resolution is allowed to read.
    Validated once from the appointment row instead of poking attributes.
    """
    model_config = ConfigDict(from_attributes=True)

    fee_amount: Optional[Decimal] = None
    fee_type: Optional[str] = None
    fee_status: Optional[str] = None


class BillingQueueItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    visit_id: int
    patient_id: int
    appointment_id: Optional[int] = None
    prescription_ids: List[int] = []
    status: str

    fee_amount: Decimal
    fee_type: str
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    net_amount: Decimal

    payment_method: Optional[str] = None
    payment_status: str
    receipt_number: Optional[str] = None
    receipt_generated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class BillingQueueEntryOut(BillingQueueItemOut):
    patient: Optional[PatientMiniOut] = None
    visit: Optional[VisitMiniOut] = None
    prescriptions: List[PrescriptionOut] = []


class FeeEditIn(BaseModel):
    fee_amount: Optional[Decimal] = Field(None, ge=0)
    fee_type: Optional[str] = Field(None, min_length=1, max_length=64)
    discount_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    payment_method: Optional[PaymentMethodLiteral] = None
    notes: Optional[str] = None


class GenerateReceiptIn(BaseModel):
    payment_method: Optional[PaymentMethodLiteral] = None


class ReceiptItemOut(BaseModel):
    description: str
    quantity: int = 1
    unit_price: Decimal
    total: Decimal


class BillingReceiptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    receipt_number: str
    billing_queue_id: int
    patient_id: int
    visit_id: int
    items: List[ReceiptItemOut] = []
    subtotal: Decimal
    discount_percent: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None
    net_amount: Decimal
    payment_method: str
    payment_status: str
    printed_at: Optional[datetime] = None
    whatsapp_sent_at: Optional[datetime] = None
    created_at: datetime


class FeeHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    visit_id: Optional[int] = None
    receipt_id: Optional[str] = None
    fee_type: str
    amount: Decimal
    payment_method: str
    payment_status: str
    paid_date: datetime


class SweepOut(BaseModel):
    created: int = 0
