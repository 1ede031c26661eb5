# backend/shopledger/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Shop id allowed to act on any shop's orders (None disables the override)
    ADMIN_USER_ID = os.environ.get("ADMIN_USER_ID") or None

    # Reject orders that would drive product stock below zero
    ENFORCE_STOCK_ON_CREATE = _env_flag("ENFORCE_STOCK_ON_CREATE", False)

    # Best-effort order event webhook
    ORDER_WEBHOOK_URL = os.environ.get("ORDER_WEBHOOK_URL") or None
    NOTIFY_TIMEOUT_SECONDS = float(os.environ.get("NOTIFY_TIMEOUT_SECONDS", "3"))
