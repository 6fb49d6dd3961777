# clinicflow/api/router.py
from fastapi import APIRouter

from clinicflow.api import (
    routes_opd,
    routes_pharmacy_queue,
    routes_billing_queue,
    routes_medicine_bills,
)

api_router = APIRouter()

# OPD
api_router.include_router(routes_opd.router)

# Pharmacy
api_router.include_router(routes_pharmacy_queue.router)

# Billing
api_router.include_router(routes_billing_queue.router)
api_router.include_router(routes_medicine_bills.router)
