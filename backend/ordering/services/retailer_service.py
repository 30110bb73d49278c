# Overview: Retailer account lookups and admin status changes.

from __future__ import annotations

from ..errors import NotFoundError, PreconditionFailedError
from ..extensions import db
from ..models import RETAILER_STATUSES, Retailer
from ..validation import coerce_cents, coerce_choice, optional_str, require_str
from . import audit_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry


# pending -> active | rejected; active <-> suspended; rejected is final
RETAILER_TRANSITIONS = {
    "pending": {"active", "rejected"},
    "active": {"suspended"},
    "suspended": {"active"},
    "rejected": set(),
}


def get_retailer(retailer_id: str) -> Retailer:
    retailer = db.session.get(Retailer, retailer_id)
    if retailer is None:
        raise NotFoundError("Retailer not found")
    return retailer


def list_retailers(*, status: str | None = None) -> list[Retailer]:
    query = db.session.query(Retailer)
    if status:
        query = query.filter(Retailer.status == coerce_choice(status, "status", RETAILER_STATUSES))
    return query.order_by(Retailer.business_name.asc()).all()


def create_retailer(
    business_name: str,
    *,
    phone: str | None = None,
    email: str | None = None,
    credit_limit_cents=0,
    actor_id: str | None = None,
) -> Retailer:
    """Register a retailer in 'pending'; an admin activates it separately."""
    name = require_str(business_name, "business_name", max_length=255)
    clean_phone = optional_str(phone, "phone", max_length=64)
    clean_email = optional_str(email, "email", max_length=255)
    limit = coerce_cents(credit_limit_cents, "credit_limit_cents", default=0)

    def _op():
        retailer = Retailer(
            business_name=name,
            phone=clean_phone,
            email=clean_email,
            credit_limit_cents=limit,
            current_balance_cents=0,
            status="pending",
        )
        db.session.add(retailer)
        db.session.flush()
        audit_service.record(
            actor_id=actor_id,
            action="retailer_created",
            resource_type="retailer",
            resource_id=retailer.id,
            new_values={"business_name": name, "credit_limit_cents": limit, "status": "pending"},
        )
        return retailer

    return run_with_retry(_op)


def set_retailer_status(retailer_id: str, status: str, *, actor_id: str | None = None) -> Retailer:
    target = coerce_choice(status, "status", RETAILER_STATUSES)

    def _op():
        begin_write_transaction()
        retailer = lock_for_update(db.session.query(Retailer).filter_by(id=retailer_id)).first()
        if retailer is None:
            raise NotFoundError("Retailer not found")

        current = retailer.status
        if target not in RETAILER_TRANSITIONS.get(current, set()):
            raise PreconditionFailedError(f"Invalid status transition from {current} to {target}")

        retailer.status = target
        db.session.flush()
        audit_service.record(
            actor_id=actor_id,
            action="retailer_status_updated",
            resource_type="retailer",
            resource_id=retailer.id,
            old_values={"status": current},
            new_values={"status": target},
        )
        return retailer

    return run_with_retry(_op)
