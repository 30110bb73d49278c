# Overview: Delivery bridge; creates deliveries for confirmed orders and tracks their status.

"""
Delivery Bridge

STATE MACHINE (distinct from the order machine):
    pending    -> assigned | cancelled
    assigned   -> picked_up | cancelled | failed
    picked_up  -> in_transit | failed
    in_transit -> delivered | failed
    failed     -> assigned        (re-assignment)
    delivered, cancelled (terminal)

The order engine creates deliveries and reads one signal back: when a
delivery reaches 'delivered', the order is advanced to 'delivered'.
"""

from __future__ import annotations

import secrets
import string
import time

from flask import current_app

from ..errors import ConflictError, NotFoundError, PreconditionFailedError
from ..extensions import db
from ..models import Delivery, DeliveryStatus, Order, PaymentMethod
from ..time_utils import to_utc_z, utcnow
from ..validation import ValidationError, coerce_cents, optional_str
from . import audit_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry


DELIVERY_TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset({DeliveryStatus.ASSIGNED, DeliveryStatus.CANCELLED}),
    DeliveryStatus.ASSIGNED: frozenset({DeliveryStatus.PICKED_UP, DeliveryStatus.CANCELLED, DeliveryStatus.FAILED}),
    DeliveryStatus.PICKED_UP: frozenset({DeliveryStatus.IN_TRANSIT, DeliveryStatus.FAILED}),
    DeliveryStatus.IN_TRANSIT: frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.FAILED}),
    DeliveryStatus.FAILED: frozenset({DeliveryStatus.ASSIGNED}),
    DeliveryStatus.DELIVERED: frozenset(),
    DeliveryStatus.CANCELLED: frozenset(),
}

_RANDOM_ALPHABET = string.ascii_uppercase + string.digits


def generate_delivery_number() -> str:
    stamp = str(int(time.time() * 1000))[-6:]
    suffix = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(4))
    return f"DEL-{stamp}-{suffix}"


def parse_delivery_status(value) -> DeliveryStatus:
    if isinstance(value, DeliveryStatus):
        return value
    try:
        return DeliveryStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in DeliveryStatus)
        raise ValidationError(f"Invalid delivery status '{value}'. Must be one of: {allowed}")


def _tracking_entry(status: str, notes: str | None = None, location: dict | None = None) -> dict:
    return {
        "status": status,
        "timestamp": to_utc_z(utcnow()),
        "notes": notes,
        "location": location,
    }


def create_delivery(order: Order, *, actor_id: str | None = None) -> Delivery:
    """
    Create the delivery record for a freshly confirmed order.

    Runs inside the caller's transaction. Cash orders carry their total as
    cash_to_collect; credit orders collect nothing on delivery.
    """
    existing = db.session.query(Delivery.id).filter_by(order_id=order.id).first()
    if existing is not None:
        raise ConflictError("Delivery already exists for order", details={"order_id": order.id})

    cash_to_collect = order.total_amount_cents if order.payment_method == PaymentMethod.CASH.value else 0
    delivery = Delivery(
        order=order,
        delivery_number=generate_delivery_number(),
        status=DeliveryStatus.PENDING.value,
        priority=1,
        pickup_address=current_app.config.get("WAREHOUSE_ADDRESS", "Main Warehouse"),
        delivery_address=order.delivery_address,
        cash_to_collect_cents=cash_to_collect,
        tracking_updates=[_tracking_entry(DeliveryStatus.PENDING.value, "Delivery created from confirmed order")],
        extra_data={"auto_created": True, "order_number": order.order_number},
    )
    db.session.add(delivery)
    db.session.flush()

    audit_service.record(
        actor_id=actor_id,
        action="delivery_created",
        resource_type="delivery",
        resource_id=delivery.id,
        new_values={
            "order_id": order.id,
            "delivery_number": delivery.delivery_number,
            "cash_to_collect_cents": cash_to_collect,
        },
    )
    return delivery


def _set_status(delivery: Delivery, target: DeliveryStatus, *, notes: str | None, location: dict | None = None) -> None:
    delivery.status = target.value
    if target is DeliveryStatus.PICKED_UP:
        delivery.actual_pickup_time = utcnow()
    elif target is DeliveryStatus.DELIVERED:
        delivery.actual_delivery_time = utcnow()
    # new list so the JSON column is flagged dirty
    delivery.tracking_updates = [*(delivery.tracking_updates or []), _tracking_entry(target.value, notes, location)]


def cancel_open_delivery(order: Order, *, reason: str) -> Delivery | None:
    """Cancel the order's delivery if it has not left the warehouse yet."""
    delivery = order.delivery
    if delivery is None:
        return None
    current = DeliveryStatus(delivery.status)
    if DeliveryStatus.CANCELLED not in DELIVERY_TRANSITIONS[current]:
        current_app.logger.warning(
            "Order %s cancelled while delivery %s is %s",
            order.order_number,
            delivery.delivery_number,
            delivery.status,
        )
        return None
    _set_status(delivery, DeliveryStatus.CANCELLED, notes=f"Order cancelled: {reason}")
    db.session.flush()
    return delivery


def update_delivery_status(
    delivery_id: str,
    status,
    *,
    notes: str | None = None,
    location: dict | None = None,
    cash_collected_cents=None,
    failure_reason: str | None = None,
    actor_id: str | None = None,
) -> Delivery:
    """
    Move a delivery along its state machine.

    Reaching 'delivered' advances the order to 'delivered' in the same
    transaction.
    """
    from .order_service import advance_order_to_delivered

    target = parse_delivery_status(status)
    clean_notes = optional_str(notes, "notes", max_length=2000)
    clean_failure = optional_str(failure_reason, "failure_reason", max_length=2000)
    cash_collected = None
    if cash_collected_cents is not None:
        cash_collected = coerce_cents(cash_collected_cents, "cash_collected_cents")
    if location is not None and not isinstance(location, dict):
        raise ValidationError("location must be an object")

    def _op():
        begin_write_transaction()
        delivery = lock_for_update(db.session.query(Delivery).filter_by(id=delivery_id)).first()
        if delivery is None:
            raise NotFoundError("Delivery not found")

        current = DeliveryStatus(delivery.status)
        if target not in DELIVERY_TRANSITIONS[current]:
            raise PreconditionFailedError(
                f"Invalid status transition from {current.value} to {target.value}",
                details={"current_status": current.value, "requested_status": target.value},
            )
        if target is DeliveryStatus.FAILED and not clean_failure:
            raise ValidationError("failure_reason is required when a delivery fails")

        _set_status(delivery, target, notes=clean_notes, location=location)
        if cash_collected is not None:
            delivery.cash_collected_cents = cash_collected
        if clean_failure is not None:
            delivery.failure_reason = clean_failure
        db.session.flush()

        audit_service.record(
            actor_id=actor_id,
            action="delivery_status_updated",
            resource_type="delivery",
            resource_id=delivery.id,
            old_values={"status": current.value},
            new_values={"status": target.value, "notes": clean_notes},
        )

        if target is DeliveryStatus.DELIVERED:
            advance_order_to_delivered(delivery.order_id, actor_id=actor_id)
        return delivery

    return run_with_retry(_op)


def get_delivery(delivery_id: str) -> Delivery:
    delivery = db.session.get(Delivery, delivery_id)
    if delivery is None:
        raise NotFoundError("Delivery not found")
    return delivery


def list_deliveries(*, status: str | None = None, limit: int = 20, offset: int = 0) -> dict:
    query = db.session.query(Delivery)
    if status:
        query = query.filter(Delivery.status == parse_delivery_status(status).value)
    total = query.count()
    rows = query.order_by(Delivery.created_at.desc(), Delivery.id.asc()).offset(offset).limit(limit).all()
    return {"items": [d.to_dict() for d in rows], "total": total, "limit": limit, "offset": offset}
