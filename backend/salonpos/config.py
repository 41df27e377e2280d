# backend/salonpos/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/salonpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///salonpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # When no promotion is chosen at checkout, pick the best active one for the shop
    SALES_AUTO_PROMOTION = _env_flag("SALES_AUTO_PROMOTION", False)

    # Retries for lock timeouts / deadlocks around sale mutations
    SALES_LOCK_RETRY_ATTEMPTS = int(os.environ.get("SALES_LOCK_RETRY_ATTEMPTS", "3"))

    RECEIPT_PREFIX = os.environ.get("RECEIPT_PREFIX", "RC")
