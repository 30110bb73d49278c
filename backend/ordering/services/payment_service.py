# Overview: Payment recording and admin balance adjustments over the credit ledger.

from __future__ import annotations

import time

from ..errors import NotFoundError, PreconditionFailedError
from ..extensions import db
from ..models import PAYMENT_METHODS, PAYMENT_TYPES, Order, Payment, Retailer
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import ValidationError, coerce_cents, coerce_choice, optional_str, require_str
from . import audit_service, credit_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry


ADJUSTMENT_TYPES = ("credit", "debit", "credit_limit_change")


def _load_retailer_for_update(retailer_id: str) -> Retailer:
    retailer = lock_for_update(db.session.query(Retailer).filter_by(id=retailer_id)).first()
    if retailer is None:
        raise NotFoundError("Retailer not found")
    return retailer


def record_payment(
    retailer_id: str,
    amount_cents,
    *,
    payment_type: str,
    payment_method: str,
    order_id: str | None = None,
    reference_number: str | None = None,
    notes: str | None = None,
    metadata: dict | None = None,
    actor_id: str | None = None,
) -> Payment:
    """
    Append a completed payment and credit the retailer balance once.

    Raises:
        ValidationError: non-positive amount, unknown type or method
        NotFoundError: retailer or order missing
        PreconditionFailedError: order belongs to another retailer
    """
    amount = coerce_cents(amount_cents, "amount_cents", positive=True)
    ptype = coerce_choice(payment_type, "payment_type", PAYMENT_TYPES)
    method = coerce_choice(payment_method, "payment_method", PAYMENT_METHODS)
    reference = optional_str(reference_number, "reference_number", max_length=64)
    clean_notes = optional_str(notes, "notes", max_length=2000)
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object")

    def _op():
        begin_write_transaction()
        if order_id:
            order = db.session.get(Order, order_id)
            if order is None:
                raise NotFoundError("Order not found")
            if order.retailer_id != retailer_id:
                raise PreconditionFailedError("Order does not belong to specified retailer")

        _load_retailer_for_update(retailer_id)

        now = utcnow()
        payment = Payment(
            order_id=order_id,
            retailer_id=retailer_id,
            amount_cents=amount,
            payment_type=ptype,
            payment_method=method,
            status="completed",
            reference_number=reference,
            notes=clean_notes,
            extra_data=dict(metadata or {}),
            collected_by_user_id=actor_id,
            collected_at=now,
        )
        db.session.add(payment)
        db.session.flush()

        retailer = credit_service.credit(retailer_id, amount)

        audit_service.record(
            actor_id=actor_id,
            action="payment_recorded",
            resource_type="payment",
            resource_id=payment.id,
            new_values={
                "payment_amount_cents": amount,
                "payment_type": ptype,
                "retailer_id": retailer_id,
                "new_balance_cents": retailer.current_balance_cents,
            },
        )
        return payment

    return run_with_retry(_op)


def update_retailer_balance(
    retailer_id: str,
    adjustment_type: str,
    amount_cents,
    *,
    reason: str,
    notes: str | None = None,
    actor_id: str | None = None,
) -> dict:
    """
    Admin corrective adjustment.

    Bypasses the credit-limit check on purpose: a debit may push the balance
    below -credit_limit. Balance adjustments are mirrored by a signed
    credit_payment row so the payment history explains the balance.
    """
    kind = coerce_choice(adjustment_type, "adjustment_type", ADJUSTMENT_TYPES)
    amount = coerce_cents(amount_cents, "amount_cents", positive=(kind != "credit_limit_change"))
    clean_reason = require_str(reason, "reason", max_length=500)
    clean_notes = optional_str(notes, "notes", max_length=2000)

    def _op():
        begin_write_transaction()
        retailer = _load_retailer_for_update(retailer_id)
        previous_balance = retailer.current_balance_cents
        previous_limit = retailer.credit_limit_cents

        if kind == "credit_limit_change":
            retailer = credit_service.apply_credit_limit(retailer_id, amount)
        else:
            delta = amount if kind == "credit" else -amount
            retailer = credit_service.adjust_balance(retailer_id, delta, credit_limit_check=False)

            note_text = f"{kind.upper()}: {clean_reason}"
            if clean_notes:
                note_text = f"{note_text} - {clean_notes}"
            db.session.add(Payment(
                retailer_id=retailer_id,
                amount_cents=delta,
                payment_type="credit_payment",
                payment_method="credit",
                status="completed",
                reference_number=f"ADJ-{int(time.time() * 1000)}",
                notes=note_text,
                extra_data={
                    "adjustment_type": kind,
                    "reason": clean_reason,
                    "previous_balance_cents": previous_balance,
                },
                collected_by_user_id=actor_id,
                collected_at=utcnow(),
            ))
            db.session.flush()

        result = {
            "previous_balance_cents": previous_balance,
            "new_balance_cents": retailer.current_balance_cents,
            "previous_credit_limit_cents": previous_limit,
            "new_credit_limit_cents": retailer.credit_limit_cents,
        }
        audit_service.record(
            actor_id=actor_id,
            action="balance_adjustment",
            resource_type="retailer",
            resource_id=retailer_id,
            old_values={
                "current_balance_cents": previous_balance,
                "credit_limit_cents": previous_limit,
            },
            new_values={
                "current_balance_cents": retailer.current_balance_cents,
                "credit_limit_cents": retailer.credit_limit_cents,
                "adjustment_type": kind,
                "adjustment_amount_cents": amount,
                "reason": clean_reason,
            },
        )
        return result

    return run_with_retry(_op)


def list_payments(
    *,
    retailer_id: str | None = None,
    order_id: str | None = None,
    payment_type: str | None = None,
    payment_method: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> dict:
    query = db.session.query(Payment)
    if retailer_id:
        query = query.filter(Payment.retailer_id == retailer_id)
    if order_id:
        query = query.filter(Payment.order_id == order_id)
    if payment_type:
        query = query.filter(Payment.payment_type == coerce_choice(payment_type, "payment_type", PAYMENT_TYPES))
    if payment_method:
        query = query.filter(
            Payment.payment_method == coerce_choice(payment_method, "payment_method", PAYMENT_METHODS)
        )

    try:
        start = parse_iso_datetime(date_from)
        end = parse_iso_datetime(date_to)
    except ValueError:
        raise ValidationError("date_from/date_to must be ISO-8601 datetimes")
    if start:
        query = query.filter(Payment.created_at >= start)
    if end:
        query = query.filter(Payment.created_at <= end)

    total = query.count()
    rows = query.order_by(Payment.created_at.desc(), Payment.id.asc()).offset(offset).limit(limit).all()
    return {"items": [p.to_dict() for p in rows], "total": total, "limit": limit, "offset": offset}


def get_retailer_financials(retailer_id: str, *, payment_limit: int = 10) -> dict:
    retailer = db.session.get(Retailer, retailer_id)
    if retailer is None:
        raise NotFoundError("Retailer not found")
    recent = (
        db.session.query(Payment)
        .filter(Payment.retailer_id == retailer_id)
        .order_by(Payment.created_at.desc(), Payment.id.asc())
        .limit(payment_limit)
        .all()
    )
    return {
        "retailer": retailer.to_dict(),
        "available_credit_cents": credit_service.available_credit(retailer),
        "recent_payments": [p.to_dict() for p in recent],
    }
