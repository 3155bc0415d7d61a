# backend/ledgerpos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ledgerpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ledgerpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds of cart quiescence before a draft snapshot is written
    AUTOSAVE_DEBOUNCE_SECONDS = float(os.environ.get("AUTOSAVE_DEBOUNCE_SECONDS", "1.5"))

    DEFAULT_BRANCH_ID = os.environ.get("DEFAULT_BRANCH_ID", "MAIN")
    CASH_ACCOUNT_ID = os.environ.get("CASH_ACCOUNT_ID", "cash")

    # Max documents per all-or-nothing batch write
    STORE_BATCH_LIMIT = int(os.environ.get("STORE_BATCH_LIMIT", "400"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
