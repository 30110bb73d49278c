# Overview: Transaction, locking and retry helpers shared by every mutating service.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, InternalError, OrderingError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_transaction()
    takes the database write lock up front instead.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Start the current unit of work as a writer.

    SQLite only allows one writer; BEGIN IMMEDIATE acquires that lock before
    any read so a later UPDATE cannot deadlock against another connection.
    No-op on other dialects (row locks are taken per statement) or when the
    connection already has an open transaction.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Execute func() as one database transaction and commit it.

    Any exception rolls the whole unit back before propagating, so stock
    decrements, balance debits and inserts made earlier in func() never
    survive a later failure.

    Retries on OperationalError (locks, busy database) and StaleDataError
    (optimistic version conflicts). Domain errors propagate unchanged;
    other storage errors are wrapped in InternalError.
    """
    if attempts is None:
        attempts = current_app.config.get("ORDER_RETRY_ATTEMPTS", 3)

    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning("Giving up after %d attempts: %s", attempts, exc.__class__.__name__)
                raise InternalError("The store is busy, please retry the request") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except OrderingError:
            db.session.rollback()
            raise
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("Conflicting write rejected by a uniqueness or integrity rule") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Storage failure")
            raise InternalError("Internal storage error") from exc
        except Exception:
            db.session.rollback()
            raise
