# ipd_ledger/core/config.py
import os
from typing import List, Optional
from pydantic import BaseModel
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _mysql_uri() -> str:
    driver = os.getenv("DB_DRIVER", "pymysql")
    user = os.getenv("MYSQL_USER", "ipd_user")
    password = os.getenv("MYSQL_PASSWORD", "")
    host = os.getenv("MYSQL_HOST", "localhost")
    port = os.getenv("MYSQL_PORT", "3306")
    db = os.getenv("MYSQL_DB", "ipd_ledger")

    # Password is URL-encoded (critical if it contains @, :, / etc.)
    auth = f"{quote_plus(user)}:{quote_plus(password)}" if password else quote_plus(user)
    return f"mysql+{driver}://{auth}@{host}:{port}/{db}?charset=utf8mb4"


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "IPD Clinical Ledger")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api")

    # CORS (env takes priority)
    BACKEND_CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ))

    # ---------- Database ----------
    # DATABASE_URL wins; otherwise build the MySQL URI from MYSQL_*
    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL") or _mysql_uri()

    # ---------- Security ----------
    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-this")
    JWT_ALG: str = os.getenv("JWT_ALG", "HS256")

    # ---------- Admission numbers ----------
    HOSPITAL_CODE: str = os.getenv("HOSPITAL_CODE", "NH")

    # ---------- Logging ----------
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # ---------- External directories (optional) ----------
    PATIENT_DIRECTORY_URL: Optional[str] = os.getenv("PATIENT_DIRECTORY_URL") or None
    WARD_DIRECTORY_URL: Optional[str] = os.getenv("WARD_DIRECTORY_URL") or None
    STAFF_DIRECTORY_URL: Optional[str] = os.getenv("STAFF_DIRECTORY_URL") or None
    DIRECTORY_TIMEOUT: float = float(os.getenv("DIRECTORY_TIMEOUT", "3") or 3.0)

    # ---------- Per-kind clinical policy ----------
    WARD_DISCHARGE_ROLES: List[str] = _split_csv(
        os.getenv("WARD_DISCHARGE_ROLES", "doctor,admin"))
    THEATRE_DISCHARGE_ROLES: List[str] = _split_csv(
        os.getenv("THEATRE_DISCHARGE_ROLES", "surgeon,admin"))
    WARD_DIAGNOSIS_ROLES: List[str] = _split_csv(
        os.getenv("WARD_DIAGNOSIS_ROLES", "doctor,admin"))
    THEATRE_DIAGNOSIS_ROLES: List[str] = _split_csv(
        os.getenv("THEATRE_DIAGNOSIS_ROLES", "surgeon,admin"))


settings = Settings()
