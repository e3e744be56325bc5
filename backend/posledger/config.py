# backend/posledger/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/posledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///posledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Volume discount kicks in when the undiscounted order total reaches this (300,000.00)
    ORDER_DISCOUNT_THRESHOLD_CENTS = int(os.environ.get("ORDER_DISCOUNT_THRESHOLD_CENTS", "30000000"))

    # Credit invoices fall due this many days after issue
    INVOICE_CREDIT_TERMS_DAYS = int(os.environ.get("INVOICE_CREDIT_TERMS_DAYS", "30"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
