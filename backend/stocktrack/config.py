# backend/stocktrack/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stocktrack.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stocktrack.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("STOCKTRACK_LOG_LEVEL", "INFO")

    # Recent-history size for the approval screen
    DECIDED_HISTORY_LIMIT = int(os.environ.get("STOCKTRACK_DECIDED_HISTORY_LIMIT", "20"))

    # Role value (X-Actor-Role header) treated as privileged
    PRIVILEGED_ROLE = "admin"
