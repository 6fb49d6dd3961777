# clinicflow/core/config.py
import os
from typing import List
from pydantic import BaseModel
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Clinic Workflow API")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api")

    # CORS (env takes priority)
    BACKEND_CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ))

    # ---------- MySQL ----------
    MYSQL_HOST: str = os.getenv("MYSQL_HOST", "localhost")
    MYSQL_PORT: int = int(os.getenv("MYSQL_PORT", "3306"))
    MYSQL_USER: str = os.getenv("MYSQL_USER", "clinic_user")
    MYSQL_PASSWORD: str = os.getenv("MYSQL_PASSWORD", "")
    MYSQL_DB: str = os.getenv("MYSQL_DB", "clinicflow")
    DB_DRIVER: str = os.getenv("DB_DRIVER", "pymysql")

    # DATABASE_URL wins when set (sqlite:// for local runs and tests)
    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL") or (
        f"mysql+{DB_DRIVER}://{quote_plus(MYSQL_USER)}:{quote_plus(MYSQL_PASSWORD)}"
        f"@{MYSQL_HOST}:{MYSQL_PORT}/{MYSQL_DB}?charset=utf8mb4")

    # ---------- Clinic ----------
    TIMEZONE: str = os.getenv("TIMEZONE", "Asia/Kolkata")

    # ---------- Consultation fees ----------
    NEW_PATIENT_FEE: float = float(os.getenv("NEW_PATIENT_FEE", "500") or 500)
    FOLLOW_UP_FEE: float = float(os.getenv("FOLLOW_UP_FEE", "300") or 300)

    # ---------- Receipts ----------
    RECEIPT_PREFIX: str = os.getenv("RECEIPT_PREFIX", "RCP")
    RECEIPT_PADDING: int = int(os.getenv("RECEIPT_PADDING", "6"))

    # ---------- Workflow flags ----------
    # markPrepared admits the visit into billing immediately
    PHARMACY_INLINE_BILLING: bool = _flag("PHARMACY_INLINE_BILLING", "true")
    WORKFLOW_POLLING_ENABLED: bool = _flag("WORKFLOW_POLLING_ENABLED",
                                           "true")
    PHARMACY_POLL_SECONDS: float = float(
        os.getenv("PHARMACY_POLL_SECONDS", "5") or 5)
    BILLING_SWEEP_SECONDS: float = float(
        os.getenv("BILLING_SWEEP_SECONDS", "3") or 3)

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
