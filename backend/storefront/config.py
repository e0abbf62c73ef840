# backend/storefront/config.py
from __future__ import annotations
import os


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///storefront.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "auto" checks the engine for SAVEPOINT support at startup,
    # "transactional" / "sequential" force a builder.
    ORDER_WRITE_MODE = os.environ.get("ORDER_WRITE_MODE", "auto")

    TRANSACTION_MAX_ATTEMPTS = _env_int("TRANSACTION_MAX_ATTEMPTS", 3)
    TRANSACTION_BACKOFF_BASE = _env_float("TRANSACTION_BACKOFF_BASE", 1.0)
    TRANSACTION_BACKOFF_CAP = _env_float("TRANSACTION_BACKOFF_CAP", 5.0)
    TRANSACTION_TIMEOUT_SECONDS = _env_float("TRANSACTION_TIMEOUT_SECONDS", 60.0)

    # Client-submitted totals may drift by one currency unit before we log it
    PRICE_TOLERANCE_CENTS = _env_int("PRICE_TOLERANCE_CENTS", 100)
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "NGN")

    CLIENT_URL = os.environ.get("CLIENT_URL", "https://sqale.shop")
    MEDIA_ROOT = os.environ.get("MEDIA_ROOT", "uploads")
    MEDIA_BASE_URL = os.environ.get("MEDIA_BASE_URL", "/media")

    # bcrypt cost for staff API key secrets
    API_KEY_BCRYPT_ROUNDS = _env_int("API_KEY_BCRYPT_ROUNDS", 12)

    MAX_PAGE_SIZE = _env_int("MAX_PAGE_SIZE", 100)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
