# backend/stockroom/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockroom.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockroom.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Commit retry on lock/deadlock failures (see services/concurrency.py)
    SYNC_RETRY_ATTEMPTS = int(os.environ.get("SYNC_RETRY_ATTEMPTS", "3"))
    SYNC_RETRY_BACKOFF = float(os.environ.get("SYNC_RETRY_BACKOFF", "0.1"))

    # Replica clients started through the CLI
    SYNC_INTERVAL_SECONDS = float(os.environ.get("SYNC_INTERVAL_SECONDS", "10"))
    SYNC_REQUEST_TIMEOUT = float(os.environ.get("SYNC_REQUEST_TIMEOUT", "30"))

    # ready2order pushes product/group changes to /api/catalog/webhook
    CATALOG_WEBHOOK_ENABLED = os.environ.get("CATALOG_WEBHOOK_ENABLED", "true").lower() == "true"
