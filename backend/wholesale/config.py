# backend/wholesale/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/wholesale.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///wholesale.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Invoices fall due this many days after the order is approved
    INVOICE_DUE_DAYS = int(os.environ.get("INVOICE_DUE_DAYS", "30"))

    # Replenishment drafts are deduplicated per store within one window
    REPLENISHMENT_WINDOW_HOURS = int(os.environ.get("REPLENISHMENT_WINDOW_HOURS", "24"))

    # Delivery scheduled_date defaults to approval date + lead days
    DEFAULT_DELIVERY_LEAD_DAYS = int(os.environ.get("DEFAULT_DELIVERY_LEAD_DAYS", "1"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Comma-separated browser origins allowed to call the API
    CORS_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
        if o.strip()
    )
