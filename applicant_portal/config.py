# applicant_portal/config.py
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "field_catalog.json"


def _csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings:
    DB_URL: str = os.getenv("DB_URL", "sqlite:///./applicant_portal.db")
    API_V1_STR: str = "/v1"
    CORS_ORIGINS: list[str] = _csv(os.getenv("CORS_ORIGINS", "*"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # identity: the upstream Identity Provider puts the opaque user id here
    OWNER_HEADER: str = os.getenv("OWNER_HEADER", "X-Owner-Id")
    ADMIN_API_KEY: str | None = os.getenv("ADMIN_API_KEY") or None

    FIELD_CATALOG_PATH: str = os.getenv("FIELD_CATALOG_PATH", str(DEFAULT_CATALOG_PATH))

    # client side
    API_URL: str = os.getenv("API_URL", "http://localhost:8000")
    AUTOSAVE_INTERVAL_SECONDS: float = float(os.getenv("AUTOSAVE_INTERVAL_SECONDS", "0"))
    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "30"))

settings = Settings()
