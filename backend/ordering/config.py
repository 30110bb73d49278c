# backend/ordering/config.py
from __future__ import annotations
import os


def engine_options(database_uri: str, timeout_seconds: int) -> dict:
    """
    Per-dialect bounds on how long a request may wait on the database.

    SQLite: busy timeout while another connection holds the write lock.
    PostgreSQL: statement and lock timeouts, so a blocked row lock fails
    the request instead of hanging it.
    """
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    if database_uri.startswith("postgresql"):
        ms = timeout_seconds * 1000
        return {
            "pool_pre_ping": True,
            "pool_timeout": timeout_seconds,
            "connect_args": {"options": f"-c statement_timeout={ms} -c lock_timeout={ms}"},
        }
    return {"pool_pre_ping": True, "pool_timeout": timeout_seconds}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ordering.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///ordering.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    DB_STATEMENT_TIMEOUT_SECONDS = int(os.environ.get("DB_STATEMENT_TIMEOUT_SECONDS", "10"))
    SQLALCHEMY_ENGINE_OPTIONS = engine_options(SQLALCHEMY_DATABASE_URI, DB_STATEMENT_TIMEOUT_SECONDS)

    ORDER_RETRY_ATTEMPTS = int(os.environ.get("ORDER_RETRY_ATTEMPTS", "3"))

    # Cart checkout floor, in cents (0 disables the check)
    MINIMUM_ORDER_CENTS = int(os.environ.get("MINIMUM_ORDER_CENTS", "0"))

    # Stamped on every delivery created from a confirmed order
    WAREHOUSE_ADDRESS = os.environ.get("WAREHOUSE_ADDRESS", "Main Warehouse")

    BULK_STATUS_MAX_ORDERS = int(os.environ.get("BULK_STATUS_MAX_ORDERS", "50"))
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100
