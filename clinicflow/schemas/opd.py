# clinicflow/schemas/opd.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict


class PatientMiniOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    registration_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    mobile_number: Optional[str] = None
    age: Optional[int] = None
    sex: Optional[str] = None


class VisitMiniOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    appointment_id: Optional[int] = None
    visit_number: int
    visit_date: Optional[datetime] = None
    chief_complaint: Optional[str] = None
    diagnosis: Optional[str] = None
    advice: Optional[str] = None
    status: Optional[str] = None


# ---------- Prescriptions ----------
class PrescriptionIn(BaseModel):
    # id of an existing row of the same visit; omitted for new rows
    id: Optional[int] = None
    medicine: str = Field(..., min_length=1)
    potency: Optional[str] = None
    quantity: Optional[str] = None
    dose_form: Optional[str] = None
    dose_pattern: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    duration_days: Optional[int] = None
    bottles: Optional[int] = Field(None, ge=0)
    instructions: Optional[str] = None
    is_combination: bool = False
    combination_name: Optional[str] = None
    combination_content: Optional[str] = None


class PrescriptionSetIn(BaseModel):
    """Full replacement of a visit's prescription rows, in display order."""
    rows: List[PrescriptionIn] = []


class PrescriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    visit_id: int
    patient_id: int
    row_order: int
    medicine: str
    potency: Optional[str] = None
    quantity: Optional[str] = None
    dose_form: Optional[str] = None
    dose_pattern: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    duration_days: Optional[int] = None
    bottles: Optional[int] = None
    instructions: Optional[str] = None
    is_combination: Optional[bool] = False
    combination_name: Optional[str] = None
    combination_content: Optional[str] = None


class SendToPharmacyIn(BaseModel):
    priority: bool = False
    appointment_id: Optional[int] = None
