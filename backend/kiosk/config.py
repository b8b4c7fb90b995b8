# backend/kiosk/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/kiosk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location (postgresql://...)
        "sqlite:///kiosk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Receipts and document numbers
    RECEIPT_BRAND = os.environ.get("RECEIPT_BRAND", "ALLIANCE DigiKiosk")
    SALE_NO_PREFIX = os.environ.get("SALE_NO_PREFIX", "ADK")
    RECEIPT_NO_PREFIX = os.environ.get("RECEIPT_NO_PREFIX", "R")
    DEFAULT_LANGUAGE = os.environ.get("DEFAULT_LANGUAGE", "fr")

    # Checkout transaction bounds
    CHECKOUT_TIMEOUT_SECONDS = float(os.environ.get("CHECKOUT_TIMEOUT_SECONDS", "10"))
    CHECKOUT_RETRY_ATTEMPTS = int(os.environ.get("CHECKOUT_RETRY_ATTEMPTS", "3"))
    NUMBER_ALLOCATION_ATTEMPTS = int(os.environ.get("NUMBER_ALLOCATION_ATTEMPTS", "5"))

    # False: malformed payment lines are dropped. True: they reject the checkout.
    STRICT_PAYMENTS = _env_bool("STRICT_PAYMENTS", False)

    # Auth
    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "12"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    ROOT_STAFF_NAME = os.environ.get("ROOT_STAFF_NAME", "ROOT")
    ROOT_STAFF_PIN = os.environ.get("ROOT_STAFF_PIN", "ra-000001")
