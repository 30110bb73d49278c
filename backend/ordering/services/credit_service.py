# Overview: Credit ledger service; the only writer of Retailer balance and credit limit.

"""
Credit Ledger Service

SIGN CONVENTION:
- current_balance_cents < 0 means the retailer owes money.
- A debit (credit order) is a negative delta; a credit (payment, refund
  after cancellation) is a positive delta.

INVARIANT:
- With credit_limit_check=True the adjustment is applied as one guarded
  statement:
      UPDATE retailers SET current_balance_cents = current_balance_cents + :d
      WHERE id = :id AND current_balance_cents + :d >= -credit_limit_cents
  so two concurrent credit orders cannot both squeeze under the limit.
- credit_limit_check=False is reserved for credits and admin corrective
  adjustments (payment_service.update_retailer_balance).

Functions run inside the caller's transaction and never commit, except
set_credit_limit() which is a standalone admin operation.
"""

from __future__ import annotations

from sqlalchemy import update

from ..errors import NotFoundError, PreconditionFailedError
from ..extensions import db
from ..models import Retailer
from ..validation import MAX_AMOUNT_CENTS, ValidationError, coerce_cents
from . import audit_service
from .concurrency import begin_write_transaction, run_with_retry


def _reload(retailer_id: str) -> Retailer | None:
    return db.session.get(Retailer, retailer_id, populate_existing=True)


def adjust_balance(retailer_id: str, delta_cents: int, *, credit_limit_check: bool) -> Retailer:
    """
    Atomically add delta_cents to the retailer balance.

    Raises:
        NotFoundError: retailer does not exist
        PreconditionFailedError: credit_limit_check is set and the new balance
            would fall below -credit_limit; the balance is left untouched
    """
    criteria = [Retailer.id == retailer_id]
    if credit_limit_check:
        criteria.append(Retailer.current_balance_cents + delta_cents >= -Retailer.credit_limit_cents)

    stmt = (
        update(Retailer)
        .where(*criteria)
        .values(current_balance_cents=Retailer.current_balance_cents + delta_cents)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    retailer = _reload(retailer_id)
    if retailer is None:
        raise NotFoundError("Retailer not found")
    if result.rowcount != 1:
        raise PreconditionFailedError(
            "Order exceeds available credit limit",
            details={
                "current_balance_cents": retailer.current_balance_cents,
                "credit_limit_cents": retailer.credit_limit_cents,
                "available_credit_cents": retailer.available_credit_cents,
                "requested_cents": -delta_cents,
            },
        )
    return retailer


def debit(retailer_id: str, amount_cents: int) -> Retailer:
    """Charge a credit order against the retailer's limit."""
    if amount_cents < 0:
        raise ValidationError("amount must not be negative")
    return adjust_balance(retailer_id, -amount_cents, credit_limit_check=True)


def credit(retailer_id: str, amount_cents: int) -> Retailer:
    """Move the balance toward solvency (payment received, refund)."""
    if amount_cents < 0:
        raise ValidationError("amount must not be negative")
    return adjust_balance(retailer_id, amount_cents, credit_limit_check=False)


def available_credit(retailer: Retailer) -> int:
    return retailer.available_credit_cents


def check_credit_available(retailer: Retailer, amount_cents: int) -> None:
    """
    Read-only pre-check used before any write so a doomed credit order fails
    without touching stock. debit() still re-checks atomically.
    """
    if retailer.current_balance_cents - amount_cents < -retailer.credit_limit_cents:
        raise PreconditionFailedError(
            "Order exceeds available credit limit",
            details={
                "current_balance_cents": retailer.current_balance_cents,
                "credit_limit_cents": retailer.credit_limit_cents,
                "available_credit_cents": retailer.available_credit_cents,
                "requested_cents": amount_cents,
            },
        )


def apply_credit_limit(retailer_id: str, new_limit_cents: int) -> Retailer:
    """Set the credit limit inside the caller's transaction."""
    if new_limit_cents < 0 or new_limit_cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"credit_limit_cents must be between 0 and {MAX_AMOUNT_CENTS}")

    stmt = (
        update(Retailer)
        .where(Retailer.id == retailer_id)
        .values(credit_limit_cents=new_limit_cents)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise NotFoundError("Retailer not found")
    return _reload(retailer_id)


def set_credit_limit(retailer_id: str, new_limit_cents, *, actor_id: str | None = None) -> Retailer:
    limit = coerce_cents(new_limit_cents, "credit_limit_cents")

    def _op():
        begin_write_transaction()
        retailer = _reload(retailer_id)
        if retailer is None:
            raise NotFoundError("Retailer not found")
        old_limit = retailer.credit_limit_cents

        retailer = apply_credit_limit(retailer_id, limit)
        audit_service.record(
            actor_id=actor_id,
            action="credit_limit_updated",
            resource_type="retailer",
            resource_id=retailer_id,
            old_values={"credit_limit_cents": old_limit},
            new_values={"credit_limit_cents": retailer.credit_limit_cents},
        )
        return retailer

    return run_with_retry(_op)
