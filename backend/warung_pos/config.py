# backend/warung_pos/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/warung_pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///warung_pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Receipt print server (thermal printer bridge)
    PRINT_SERVER_URL = os.environ.get("PRINT_SERVER_URL", "http://localhost:3001")
    PRINTER_NAME = os.environ.get("PRINTER_NAME", "RPP02N")
    PRINT_TIMEOUT_SECONDS = float(os.environ.get("PRINT_TIMEOUT_SECONDS", "5"))
    PRINT_CHARACTER_SET = os.environ.get("PRINT_CHARACTER_SET", "UTF8")
    PRINT_FONT_SIZE = os.environ.get("PRINT_FONT_SIZE", "small")
    PRINT_ALIGNMENT = os.environ.get("PRINT_ALIGNMENT", "left")
    PRINT_ON_COMMIT = _env_bool("PRINT_ON_COMMIT", False)
    PRINT_WORKERS = int(os.environ.get("PRINT_WORKERS", "2"))

    RECEIPT_TITLE = os.environ.get("RECEIPT_TITLE", "DIMSUM WARUNG")
