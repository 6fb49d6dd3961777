# clinicflow/models/__init__.py
from .patient import Patient
from .opd import Appointment, AppointmentStatus, Visit, Prescription
from .pharmacy_queue import PharmacyQueueItem, PharmacyQueueStatus
from .billing import (
    BillingQueueItem,
    BillingReceipt,
    BillingNumberSeries,
    BillingStatus,
    DoctorFee,
    FeeHistory,
    PaymentMethod,
    PaymentStatus,
)
from .medicine_bill import MedicineBill, MedicineAmountMemory, MedicineBillStatus

__all__ = [
    "Patient",
    "Appointment",
    "AppointmentStatus",
    "Visit",
    "Prescription",
    "PharmacyQueueItem",
    "PharmacyQueueStatus",
    "BillingQueueItem",
    "BillingReceipt",
    "BillingNumberSeries",
    "BillingStatus",
    "DoctorFee",
    "FeeHistory",
    "PaymentMethod",
    "PaymentStatus",
    "MedicineBill",
    "MedicineAmountMemory",
    "MedicineBillStatus",
]
