# Overview: Order engine; creation, edits, status transitions, cancellation and queries.

"""
Order Engine

================================================================================
TRANSACTION MODEL
================================================================================
Every public mutating function is one database transaction run through
run_with_retry(). Stock decrements, balance debits, inserts and audit entries
made inside it are committed together or rolled back together, so a failure
at any step (e.g. the second product of an order running out of stock)
leaves no partially applied state behind.

Functions suffixed _locked run inside the caller's transaction and never
commit; they are composed by create/update/cancel/bulk and by cart checkout.

SHARED COUNTERS:
- Product.stock_quantity only through stock_service.
- Retailer.current_balance_cents only through credit_service.

DELIVERY BRIDGE:
- pending -> confirmed creates a Delivery inside a SAVEPOINT. A failure
  there is logged and discarded; the status change still commits.
- A delivery reaching 'delivered' calls advance_order_to_delivered().
================================================================================
"""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ConflictError, NotFoundError, OrderingError, PreconditionFailedError
from ..extensions import db
from ..models import CancellationInfo, Order, OrderItem, OrderStatus, Payment, PaymentMethod, Product, Retailer
from ..time_utils import parse_iso_datetime, to_utc_z, utcnow
from ..validation import (
    OrderItemInput,
    ValidationError,
    coerce_choice,
    optional_str,
    parse_delivery_date,
    parse_metadata,
    parse_order_items,
    require_str,
)
from . import audit_service, credit_service, stock_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .order_lifecycle import (
    STOCK_COMMITTED_STATUSES,
    assert_transition,
    can_transition,
    forward_path,
    is_cancellable,
    parse_status,
)


ORDER_NUMBER_ATTEMPTS = 5
_RANDOM_ALPHABET = string.ascii_uppercase + string.digits

PAYMENT_METHOD_VALUES = tuple(m.value for m in PaymentMethod)

SORTABLE_FIELDS = {
    "created_at": Order.created_at,
    "total_amount": Order.total_amount_cents,
    "order_number": Order.order_number,
    "status": Order.status,
}


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    tax_amount_cents: int
    discount_amount_cents: int

    @property
    def total_amount_cents(self) -> int:
        return self.subtotal_cents + self.tax_amount_cents - self.discount_amount_cents


def compute_totals(items: list[OrderItemInput]) -> OrderTotals:
    """subtotal = sum(qty * unit_price); total = subtotal + tax - discount."""
    return OrderTotals(
        subtotal_cents=sum(i.line_subtotal_cents for i in items),
        tax_amount_cents=sum(i.tax_amount_cents for i in items),
        discount_amount_cents=sum(i.discount_amount_cents for i in items),
    )


def generate_order_number() -> str:
    """ORD-<last 6 digits of epoch ms>-<4 random base36 chars>."""
    stamp = str(int(time.time() * 1000))[-6:]
    suffix = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(4))
    return f"ORD-{stamp}-{suffix}"


def _allocate_order_number() -> str:
    for _ in range(ORDER_NUMBER_ATTEMPTS):
        candidate = generate_order_number()
        taken = db.session.query(Order.id).filter_by(order_number=candidate).first()
        if taken is None:
            return candidate
    raise ConflictError("Could not allocate a unique order number")


def _load_order_for_update(order_id: str, *, retailer_id: str | None = None) -> Order:
    query = db.session.query(Order).filter(Order.id == order_id)
    if retailer_id is not None:
        query = query.filter(Order.retailer_id == retailer_id)
    order = lock_for_update(query).first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def _load_active_retailer(retailer_id: str) -> Retailer:
    retailer = lock_for_update(db.session.query(Retailer).filter_by(id=retailer_id)).first()
    if retailer is None:
        raise NotFoundError("Retailer not found")
    if retailer.status != "active":
        raise PreconditionFailedError("Retailer is not active", details={"status": retailer.status})
    return retailer


def _validate_items(items: list[OrderItemInput]) -> None:
    """
    Read-only checks before any write: every product exists, is active and
    covers the requested quantity (summed per product). The guarded
    decrement in stock_service re-checks stock atomically afterwards.
    """
    for item in items:
        if item.total_price_cents < 0:
            raise ValidationError(
                "discount_amount_cents cannot exceed the line amount",
                details={"product_id": item.product_id},
            )

    for product_id, qty in stock_service.aggregate_quantities(items).items():
        product = db.session.get(Product, product_id, populate_existing=True)
        if product is None:
            raise NotFoundError(f"Product not found: {product_id}")
        if not product.is_active:
            raise PreconditionFailedError(f"Product is not active: {product.name}")
        if product.stock_quantity < qty:
            raise PreconditionFailedError(
                f"Insufficient stock for product: {product.name}",
                details={
                    "product_id": product.id,
                    "requested_quantity": qty,
                    "stock_quantity": product.stock_quantity,
                },
            )


def _build_items(order: Order, items: list[OrderItemInput]) -> None:
    for position, item in enumerate(items):
        order.items.append(OrderItem(
            product_id=item.product_id,
            position=position,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            tax_amount_cents=item.tax_amount_cents,
            discount_amount_cents=item.discount_amount_cents,
            total_price_cents=item.total_price_cents,
            notes=item.notes,
        ))


def _apply_totals(order: Order, totals: OrderTotals) -> None:
    order.subtotal_cents = totals.subtotal_cents
    order.tax_amount_cents = totals.tax_amount_cents
    order.discount_amount_cents = totals.discount_amount_cents
    order.total_amount_cents = totals.total_amount_cents


def _create_order_locked(
    *,
    retailer_id: str,
    items: list[OrderItemInput],
    delivery_address: str,
    payment_method: str,
    actor_id: str | None = None,
    delivery_date: str | None = None,
    delivery_time_slot: str | None = None,
    notes: str | None = None,
    metadata: dict | None = None,
) -> Order:
    retailer = _load_active_retailer(retailer_id)
    _validate_items(items)

    totals = compute_totals(items)
    if payment_method == PaymentMethod.CREDIT.value:
        credit_service.check_credit_available(retailer, totals.total_amount_cents)

    order = Order(
        order_number=_allocate_order_number(),
        retailer_id=retailer.id,
        created_by_user_id=actor_id,
        status=OrderStatus.PENDING.value,
        payment_method=payment_method,
        delivery_address=delivery_address,
        delivery_date=delivery_date,
        delivery_time_slot=delivery_time_slot,
        notes=notes,
        extra_data=dict(metadata or {}),
    )
    _apply_totals(order, totals)
    _build_items(order, items)
    db.session.add(order)
    db.session.flush()

    stock_service.reserve_items(items)
    if payment_method == PaymentMethod.CREDIT.value:
        credit_service.debit(retailer.id, totals.total_amount_cents)

    audit_service.record(
        actor_id=actor_id,
        action="order_created",
        resource_type="order",
        resource_id=order.id,
        old_values=None,
        new_values={"order_number": order.order_number, **order.snapshot()},
    )
    return order


def create_order(
    retailer_id: str,
    items,
    delivery_address: str,
    payment_method: str = PaymentMethod.CASH.value,
    *,
    actor_id: str | None = None,
    delivery_date: str | None = None,
    delivery_time_slot: str | None = None,
    notes: str | None = None,
    metadata: dict | None = None,
) -> Order:
    """
    Place an order: validate, reserve stock, debit credit, persist, audit.

    Raises:
        ValidationError: malformed items or fields
        NotFoundError: retailer or product missing
        PreconditionFailedError: retailer inactive, product inactive,
            insufficient stock, credit limit exceeded
        ConflictError: order number collision
    """
    parsed_items = parse_order_items(items)
    address = require_str(delivery_address, "delivery_address")
    method = coerce_choice(payment_method, "payment_method", PAYMENT_METHOD_VALUES, default=PaymentMethod.CASH.value)
    clean_notes = optional_str(notes, "notes", max_length=2000)
    clean_date = parse_delivery_date(delivery_date)
    clean_slot = optional_str(delivery_time_slot, "delivery_time_slot", max_length=64)
    clean_metadata = parse_metadata(metadata)

    def _op():
        begin_write_transaction()
        return _create_order_locked(
            retailer_id=retailer_id,
            items=parsed_items,
            delivery_address=address,
            payment_method=method,
            actor_id=actor_id,
            delivery_date=clean_date,
            delivery_time_slot=clean_slot,
            notes=clean_notes,
            metadata=clean_metadata,
        )

    return run_with_retry(_op)


def update_order(
    order_id: str,
    *,
    items=None,
    delivery_address: str | None = None,
    delivery_date: str | None = None,
    delivery_time_slot: str | None = None,
    payment_method: str | None = None,
    notes: str | None = None,
    metadata: dict | None = None,
    actor_id: str | None = None,
) -> Order:
    """
    Edit a pending order. Replacing items restores the stock of the current
    lines, then validates and reserves the new ones (retract and redo). For
    credit orders the old total is credited back and the new total debited
    under the limit check. Any failure rolls the whole edit back.
    """
    parsed_items = parse_order_items(items) if items is not None else None
    method = None
    if payment_method is not None:
        method = coerce_choice(payment_method, "payment_method", PAYMENT_METHOD_VALUES)
    address = require_str(delivery_address, "delivery_address") if delivery_address is not None else None
    clean_notes = optional_str(notes, "notes", max_length=2000)
    clean_date = parse_delivery_date(delivery_date)
    clean_slot = optional_str(delivery_time_slot, "delivery_time_slot", max_length=64)
    clean_metadata = parse_metadata(metadata)

    def _op():
        begin_write_transaction()
        order = _load_order_for_update(order_id)
        if order.status != OrderStatus.PENDING.value:
            raise PreconditionFailedError("Only pending orders can be updated")

        before = order.snapshot()
        old_method = order.payment_method
        new_method = method or old_method
        rebalance = parsed_items is not None or new_method != old_method

        if rebalance and old_method == PaymentMethod.CREDIT.value:
            credit_service.credit(order.retailer_id, order.total_amount_cents)

        if parsed_items is not None:
            stock_service.release_items(list(order.items))
            order.items.clear()
            db.session.flush()

            _validate_items(parsed_items)
            _build_items(order, parsed_items)
            _apply_totals(order, compute_totals(parsed_items))
            db.session.flush()
            stock_service.reserve_items(parsed_items)

        order.payment_method = new_method
        if rebalance and new_method == PaymentMethod.CREDIT.value:
            credit_service.debit(order.retailer_id, order.total_amount_cents)

        if address is not None:
            order.delivery_address = address
        if clean_date is not None:
            order.delivery_date = clean_date
        if clean_slot is not None:
            order.delivery_time_slot = clean_slot
        if clean_notes is not None:
            order.notes = clean_notes
        if clean_metadata is not None:
            order.extra_data = clean_metadata
        db.session.flush()

        audit_service.record(
            actor_id=actor_id,
            action="order_updated",
            resource_type="order",
            resource_id=order.id,
            old_values=before,
            new_values=order.snapshot(),
        )
        return order

    return run_with_retry(_op)


def _create_delivery_best_effort(order: Order, actor_id: str | None) -> None:
    from .delivery_service import create_delivery

    try:
        with db.session.begin_nested():
            create_delivery(order, actor_id=actor_id)
    except (OrderingError, SQLAlchemyError):
        current_app.logger.exception("Failed to create delivery for order %s", order.order_number)


def _cancel_locked(order: Order, *, reason: str, notes: str | None, actor_id: str | None) -> Order:
    """
    Compensate and cancel. Stock is restored when it was committed; credit
    orders get total_amount credited back. Runs to completion or raises.
    """
    from .delivery_service import cancel_open_delivery

    current = order.status_enum
    if not is_cancellable(current):
        raise PreconditionFailedError("Order cannot be cancelled", details={"status": current.value})

    before = order.snapshot()

    if current in STOCK_COMMITTED_STATUSES:
        stock_service.release_items(list(order.items))
    if order.payment_method == PaymentMethod.CREDIT.value:
        credit_service.credit(order.retailer_id, order.total_amount_cents)

    info = CancellationInfo(
        reason=reason,
        notes=notes,
        cancelled_at=to_utc_z(utcnow()),
        cancelled_by=actor_id,
    )
    # reassign so the JSON column is flagged dirty
    order.extra_data = {**(order.extra_data or {}), "cancellation": info.to_dict()}
    order.status = OrderStatus.CANCELLED.value
    db.session.flush()

    cancel_open_delivery(order, reason=reason)

    audit_service.record(
        actor_id=actor_id,
        action="order_cancelled",
        resource_type="order",
        resource_id=order.id,
        old_values=before,
        new_values={"status": order.status, "cancellation": info.to_dict()},
    )
    return order


def _apply_status_locked(
    order: Order,
    target: OrderStatus,
    *,
    notes: str | None,
    actor_id: str | None,
    action: str = "order_status_updated",
) -> Order:
    current = order.status_enum
    assert_transition(current, target)

    if target is OrderStatus.CANCELLED:
        return _cancel_locked(order, reason=notes or "Cancelled by status update", notes=notes, actor_id=actor_id)

    order.status = target.value
    if notes:
        order.notes = notes
    db.session.flush()

    audit_service.record(
        actor_id=actor_id,
        action=action,
        resource_type="order",
        resource_id=order.id,
        old_values={"status": current.value},
        new_values={"status": target.value, "notes": notes},
    )

    if current is OrderStatus.PENDING and target is OrderStatus.CONFIRMED and order.delivery is None:
        _create_delivery_best_effort(order, actor_id)
    return order


def update_status(order_id: str, status, *, notes: str | None = None, actor_id: str | None = None) -> Order:
    target = parse_status(status)
    clean_notes = optional_str(notes, "notes", max_length=2000)

    def _op():
        begin_write_transaction()
        order = _load_order_for_update(order_id)
        return _apply_status_locked(order, target, notes=clean_notes, actor_id=actor_id)

    return run_with_retry(_op)


def cancel_order(
    order_id: str,
    reason: str,
    *,
    notes: str | None = None,
    actor_id: str | None = None,
    retailer_id: str | None = None,
) -> Order:
    """
    Cancel an order.

    retailer_id scopes the lookup to that retailer's orders; a retailer may
    only cancel while the order is still pending.
    """
    clean_reason = require_str(reason, "reason", max_length=500)
    clean_notes = optional_str(notes, "notes", max_length=2000)

    def _op():
        begin_write_transaction()
        order = _load_order_for_update(order_id, retailer_id=retailer_id)
        if retailer_id is not None and order.status != OrderStatus.PENDING.value:
            raise PreconditionFailedError(
                "Retailers can only cancel pending orders", details={"status": order.status}
            )
        return _cancel_locked(order, reason=clean_reason, notes=clean_notes, actor_id=actor_id)

    return run_with_retry(_op)


def bulk_update_status(order_ids, status, *, notes: str | None = None, actor_id: str | None = None) -> list[Order]:
    """
    All-or-nothing status change for a batch.

    Every transition is checked against the current status before any
    order is touched. One invalid order fails the whole batch and the
    error lists the offending ids in details["order_ids"].
    """
    if not isinstance(order_ids, (list, tuple)) or not order_ids:
        raise ValidationError("order_ids must be a non-empty list")
    if not all(isinstance(oid, str) and oid for oid in order_ids):
        raise ValidationError("order_ids must contain order id strings")

    ids = list(dict.fromkeys(order_ids))
    max_orders = current_app.config.get("BULK_STATUS_MAX_ORDERS", 50)
    if len(ids) > max_orders:
        raise ValidationError(f"At most {max_orders} orders can be updated at once")

    target = parse_status(status)
    clean_notes = optional_str(notes, "notes", max_length=2000)

    def _op():
        begin_write_transaction()
        found = lock_for_update(
            db.session.query(Order).filter(Order.id.in_(ids)).order_by(Order.id)
        ).all()
        by_id = {order.id: order for order in found}

        missing = [oid for oid in ids if oid not in by_id]
        if missing:
            raise NotFoundError("Some orders were not found", details={"order_ids": missing})

        invalid = [oid for oid in ids if not can_transition(by_id[oid].status_enum, target)]
        if invalid:
            raise PreconditionFailedError(
                f"Invalid status transitions for orders: {', '.join(invalid)}",
                details={"order_ids": invalid},
            )

        return [
            _apply_status_locked(
                by_id[oid],
                target,
                notes=clean_notes,
                actor_id=actor_id,
                action="order_bulk_status_updated",
            )
            for oid in ids
        ]

    return run_with_retry(_op)


def advance_order_to_delivered(order_id: str, *, actor_id: str | None = None) -> Order | None:
    """
    Walk an order forward until 'delivered' after its delivery completed.

    Runs inside the delivery update transaction. Cancelled or already
    delivered orders are left alone with a warning.
    """
    order = _load_order_for_update(order_id)
    path = forward_path(order.status_enum, OrderStatus.DELIVERED)
    if not path:
        current_app.logger.warning(
            "Delivery completed but order %s is %s; order status not advanced",
            order.order_number,
            order.status,
        )
        return None

    for step in path:
        _apply_status_locked(order, step, notes=None, actor_id=actor_id)
    return order


def get_order(order_id: str, *, retailer_id: str | None = None) -> Order:
    query = db.session.query(Order).filter(Order.id == order_id)
    if retailer_id is not None:
        query = query.filter(Order.retailer_id == retailer_id)
    order = query.first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def get_order_detail(order_id: str, *, retailer_id: str | None = None) -> dict:
    """Order with items, payments, delivery and retailer summary."""
    order = get_order(order_id, retailer_id=retailer_id)
    payments = (
        db.session.query(Payment)
        .filter(Payment.order_id == order.id)
        .order_by(Payment.created_at.asc())
        .all()
    )
    data = order.to_dict()
    data["payments"] = [p.to_dict() for p in payments]
    data["delivery"] = order.delivery.to_dict() if order.delivery is not None else None
    data["retailer"] = {
        "id": order.retailer.id,
        "business_name": order.retailer.business_name,
        "phone": order.retailer.phone,
    }
    cancellation = order.cancellation
    data["cancellation"] = cancellation.to_dict() if cancellation else None
    return data


def list_orders(
    *,
    status: str | None = None,
    retailer_id: str | None = None,
    payment_method: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    search: str | None = None,
    sort: str = "-created_at",
    limit: int = 20,
    offset: int = 0,
) -> dict:
    query = db.session.query(Order)

    if status:
        query = query.filter(Order.status == parse_status(status).value)
    if retailer_id:
        query = query.filter(Order.retailer_id == retailer_id)
    if payment_method:
        query = query.filter(
            Order.payment_method == coerce_choice(payment_method, "payment_method", PAYMENT_METHOD_VALUES)
        )

    try:
        start = parse_iso_datetime(date_from)
        end = parse_iso_datetime(date_to)
    except ValueError:
        raise ValidationError("date_from/date_to must be ISO-8601 datetimes")
    if start:
        query = query.filter(Order.created_at >= start)
    if end:
        query = query.filter(Order.created_at <= end)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Order.order_number.ilike(pattern), Order.delivery_address.ilike(pattern)))

    descending = sort.startswith("-")
    column = SORTABLE_FIELDS.get(sort.lstrip("-"))
    if column is None:
        raise ValidationError(f"sort must be one of: {', '.join(sorted(SORTABLE_FIELDS))} (prefix '-' for descending)")

    total = query.count()
    ordering = column.desc() if descending else column.asc()
    orders = query.order_by(ordering, Order.id.asc()).offset(offset).limit(limit).all()

    return {
        "items": [o.to_dict(include_items=False) for o in orders],
        "total": total,
        "limit": limit,
        "offset": offset,
    }
