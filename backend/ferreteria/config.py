# backend/ferreteria/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ferreteria.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ferreteria.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # SQLite only: how long a writer waits on a locked database before
    # raising OperationalError (run_with_retry handles the rest).
    SQLITE_TIMEOUT_SECONDS = float(os.environ.get("SQLITE_TIMEOUT_SECONDS", "15"))

    # Invoice numbering
    INVOICE_POINT_OF_SALE = int(os.environ.get("INVOICE_POINT_OF_SALE", "1"))
    INVOICE_TYPE = os.environ.get("INVOICE_TYPE", "FACTURA_B")

    # Store-credit debts fall due this many days after the sale
    CREDIT_DUE_DAYS = int(os.environ.get("CREDIT_DUE_DAYS", "30"))

    MOVEMENTS_PAGE_SIZE = int(os.environ.get("MOVEMENTS_PAGE_SIZE", "20"))
    MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", "200"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def engine_options_for(uri: str, timeout: float) -> dict:
    """SQLAlchemy engine options derived from the database URI."""
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout}}
    return {"pool_pre_ping": True}
