# clinicflow/schemas/medicine_bill.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MedicineBillItemIn(BaseModel):
    prescription_id: Optional[int] = None
    medicine: str = Field(..., min_length=1)
    potency: Optional[str] = None
    quantity_display: Optional[str] = None
    quantity: int = Field(1, ge=0)
    dose_pattern: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    is_combination: bool = False
    combination_content: Optional[str] = None
    amount: Decimal = Field(Decimal("0"), ge=0)


class MedicineBillItemOut(MedicineBillItemIn):
    pass


class MedicineBillIn(BaseModel):
    items: List[MedicineBillItemIn] = []
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    tax_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    notes: Optional[str] = None


class MedicineBillOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    # None while the bill is an unsaved draft
    id: Optional[int] = None
    billing_queue_id: int
    patient_id: int
    visit_id: int
    items: List[MedicineBillItemOut] = []
    subtotal: Decimal = Decimal("0")
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    tax_percent: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")
    notes: Optional[str] = None
    status: str = "draft"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
