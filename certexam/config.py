# certexam/config.py
import os
from pathlib import Path
from typing import Set
from dotenv import load_dotenv

load_dotenv(Path(__file__).with_name(".env"))


def _int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


def _flag(name: str, default: str = "1") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes")


# Days before expires_at during which a certificate reports "expiring_soon"
EXPIRY_WARNING_DAYS = _int("EXPIRY_WARNING_DAYS", 30)

# How many times certificate codes are regenerated after a unique violation
CODE_RETRY_LIMIT = _int("CODE_RETRY_LIMIT", 5)

CATALOG_AUTOLOAD = _flag("CATALOG_AUTOLOAD")

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()


def admin_emails() -> Set[str]:
    raw = os.getenv("ADMIN_EMAILS") or ""
    return {e.strip().lower() for e in raw.split(",") if e.strip()}
