# Overview: Stock reservation service; the only writer of Product.stock_quantity.

"""
Stock Reservation Service

INVARIANTS (authoritative):
- Product.stock_quantity is never negative at rest.
- A decrement is one guarded statement:
      UPDATE products SET stock_quantity = stock_quantity - :q
      WHERE id = :id AND stock_quantity >= :q
  Zero affected rows means the reservation failed; nothing is written.
  Two concurrent orders can never both pass an application-level check
  and oversell, because the check and the write are the same statement.
- Increments are unconditional (restoration after cancel/edit).
- Multi-product operations touch products in sorted id order so concurrent
  callers acquire row locks in the same sequence.

All functions except adjust_stock() run inside the caller's transaction and
never commit.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Iterable

from sqlalchemy import update

from ..errors import NotFoundError, PreconditionFailedError
from ..extensions import db
from ..models import Product
from ..validation import MAX_QUANTITY, ValidationError, coerce_int
from . import audit_service
from .concurrency import begin_write_transaction, run_with_retry


def _reload(product_id: str) -> Product | None:
    # populate_existing: guarded UPDATEs bypass the identity map
    return db.session.get(Product, product_id, populate_existing=True)


def get_stock(product_id: str) -> int:
    product = _reload(product_id)
    if product is None:
        raise NotFoundError(f"Product not found: {product_id}")
    return product.stock_quantity


def decrement_stock(product_id: str, quantity: int, *, require_active: bool = False) -> int:
    """
    Atomically take `quantity` units out of stock.

    Returns the new stock level.

    Raises:
        ValidationError: quantity is not positive
        NotFoundError: product does not exist
        PreconditionFailedError: not enough stock (or product inactive when
            require_active=True); stock is left untouched
    """
    if quantity <= 0:
        raise ValidationError("quantity must be positive")

    criteria = [Product.id == product_id, Product.stock_quantity >= quantity]
    if require_active:
        criteria.append(Product.is_active.is_(True))

    stmt = (
        update(Product)
        .where(*criteria)
        .values(stock_quantity=Product.stock_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    product = _reload(product_id)
    if result.rowcount == 1:
        return product.stock_quantity

    if product is None:
        raise NotFoundError(f"Product not found: {product_id}")
    if require_active and not product.is_active:
        raise PreconditionFailedError(f"Product is not active: {product.name}")
    raise PreconditionFailedError(
        f"Insufficient stock for product: {product.name}",
        details={
            "product_id": product.id,
            "requested_quantity": quantity,
            "stock_quantity": product.stock_quantity,
        },
    )


def increment_stock(product_id: str, quantity: int) -> int:
    """Unconditionally add `quantity` units back. Returns the new stock level."""
    if quantity <= 0:
        raise ValidationError("quantity must be positive")

    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(stock_quantity=Product.stock_quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise NotFoundError(f"Product not found: {product_id}")
    return _reload(product_id).stock_quantity


def aggregate_quantities(items: Iterable) -> "OrderedDict[str, int]":
    """Sum quantities per product_id, keyed in sorted product order."""
    totals: dict[str, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return OrderedDict(sorted(totals.items()))


def reserve_items(items: Iterable) -> dict[str, int]:
    """
    Decrement stock for every line of an order.

    Fails on the first product that cannot be covered. Decrements already
    applied in this call are undone by the surrounding transaction rollback.
    """
    return {
        product_id: decrement_stock(product_id, qty, require_active=True)
        for product_id, qty in aggregate_quantities(items).items()
    }


def release_items(items: Iterable) -> dict[str, int]:
    """Restore stock for every line of an order."""
    return {
        product_id: increment_stock(product_id, qty)
        for product_id, qty in aggregate_quantities(items).items()
    }


def adjust_stock(product_id: str, delta: int, *, reason: str, actor_id: str | None = None) -> Product:
    """
    Direct admin stock adjustment (receiving, shrinkage, count corrections).

    Positive delta increments; negative delta goes through the guarded
    decrement, so an adjustment can never drive stock below zero.
    """
    delta = coerce_int(delta, "delta", minimum=-MAX_QUANTITY, maximum=MAX_QUANTITY)
    if delta == 0:
        raise ValidationError("delta must be non-zero")
    if not reason or not reason.strip():
        raise ValidationError("reason is required")

    def _op():
        begin_write_transaction()
        before = get_stock(product_id)
        if delta > 0:
            after = increment_stock(product_id, delta)
        else:
            after = decrement_stock(product_id, -delta)

        audit_service.record(
            actor_id=actor_id,
            action="stock_adjusted",
            resource_type="product",
            resource_id=product_id,
            old_values={"stock_quantity": before},
            new_values={"stock_quantity": after, "delta": delta, "reason": reason.strip()},
        )
        return db.session.get(Product, product_id)

    return run_with_retry(_op)
