# Overview: Retailer cart, checkout into the order engine, and reorder from history.

"""
Cart & Checkout

- One cart line per (retailer, product). Adding a product that is already
  in the cart replaces its quantity.
- Cart lines never reserve stock; stock is only taken at checkout, through
  the order engine.
- Checkout prices lines at the product's current base price; line tax is
  base_price * qty * tax_rate_bps / 10000, rounded half up to the cent.
- Checkout creates the order and empties the cart in one transaction.
"""

from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError, PreconditionFailedError
from ..extensions import db
from ..models import CartItem, Order, PaymentMethod, Product
from ..validation import (
    OrderItemInput,
    ValidationError,
    coerce_choice,
    coerce_quantity,
    optional_str,
    parse_delivery_date,
    require_str,
)
from .concurrency import begin_write_transaction, run_with_retry


def line_tax_cents(line_subtotal_cents: int, tax_rate_bps: int) -> int:
    return (line_subtotal_cents * tax_rate_bps + 5000) // 10000


def _load_sellable_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found or inactive")
    return product


def _check_stock(product: Product, quantity: int) -> None:
    if product.stock_quantity < quantity:
        raise PreconditionFailedError(
            f"Not enough stock. Available: {product.stock_quantity}",
            details={"product_id": product.id, "stock_quantity": product.stock_quantity},
        )


def _cart_lines(retailer_id: str) -> list[CartItem]:
    return (
        db.session.query(CartItem)
        .filter(CartItem.retailer_id == retailer_id)
        .order_by(CartItem.added_at.asc(), CartItem.id.asc())
        .all()
    )


def _upsert_line(retailer_id: str, product_id: str, quantity: int) -> CartItem:
    line = (
        db.session.query(CartItem)
        .filter_by(retailer_id=retailer_id, product_id=product_id)
        .first()
    )
    if line is None:
        line = CartItem(retailer_id=retailer_id, product_id=product_id, quantity=quantity)
        db.session.add(line)
    else:
        line.quantity = quantity
    db.session.flush()
    return line


def add_to_cart(retailer_id: str, product_id: str, quantity) -> CartItem:
    qty = coerce_quantity(quantity, "quantity")

    def _op():
        product = _load_sellable_product(product_id)
        _check_stock(product, qty)
        return _upsert_line(retailer_id, product_id, qty)

    return run_with_retry(_op)


def update_quantity(retailer_id: str, product_id: str, quantity) -> CartItem | None:
    """Set a line's quantity; 0 removes the line and returns None."""
    qty = coerce_quantity(quantity, "quantity", minimum=0)
    if qty == 0:
        remove_from_cart(retailer_id, product_id)
        return None

    def _op():
        line = (
            db.session.query(CartItem)
            .filter_by(retailer_id=retailer_id, product_id=product_id)
            .first()
        )
        if line is None:
            raise NotFoundError("Cart item not found")
        _check_stock(_load_sellable_product(product_id), qty)
        line.quantity = qty
        db.session.flush()
        return line

    return run_with_retry(_op)


def remove_from_cart(retailer_id: str, product_id: str) -> None:
    def _op():
        deleted = (
            db.session.query(CartItem)
            .filter_by(retailer_id=retailer_id, product_id=product_id)
            .delete(synchronize_session=False)
        )
        if not deleted:
            raise NotFoundError("Cart item not found")

    run_with_retry(_op)


def clear_cart(retailer_id: str) -> int:
    def _op():
        return (
            db.session.query(CartItem)
            .filter_by(retailer_id=retailer_id)
            .delete(synchronize_session=False)
        )

    return run_with_retry(_op)


def _priced_lines(lines: list[CartItem]) -> list[dict]:
    priced = []
    for line in lines:
        product = line.product
        subtotal = product.base_price_cents * line.quantity
        tax = line_tax_cents(subtotal, product.tax_rate_bps)
        priced.append({
            "line": line,
            "product": product,
            "subtotal_cents": subtotal,
            "tax_amount_cents": tax,
            "total_cents": subtotal + tax,
        })
    return priced


def _summarise(priced: list[dict]) -> dict:
    subtotal = sum(p["subtotal_cents"] for p in priced)
    tax = sum(p["tax_amount_cents"] for p in priced)
    total = subtotal + tax
    minimum = current_app.config.get("MINIMUM_ORDER_CENTS", 0)
    return {
        "total_items": sum(p["line"].quantity for p in priced),
        "line_count": len(priced),
        "subtotal_cents": subtotal,
        "tax_amount_cents": tax,
        "total_amount_cents": total,
        "minimum_order_cents": minimum,
        "meets_minimum": total >= minimum,
        "amount_needed_cents": max(0, minimum - total),
    }


def get_cart(retailer_id: str) -> dict:
    priced = _priced_lines(_cart_lines(retailer_id))
    items = []
    for p in priced:
        data = p["line"].to_dict()
        data["line_subtotal_cents"] = p["subtotal_cents"]
        data["line_tax_cents"] = p["tax_amount_cents"]
        data["line_total_cents"] = p["total_cents"]
        data["in_stock"] = p["product"].is_active and p["product"].stock_quantity >= p["line"].quantity
        items.append(data)
    return {"items": items, "summary": _summarise(priced)}


def get_cart_summary(retailer_id: str) -> dict:
    return _summarise(_priced_lines(_cart_lines(retailer_id)))


def checkout(
    retailer_id: str,
    delivery_address: str,
    payment_method: str = PaymentMethod.CASH.value,
    *,
    notes: str | None = None,
    delivery_date: str | None = None,
    delivery_time_slot: str | None = None,
    actor_id: str | None = None,
) -> Order:
    """
    Turn the cart into an order.

    Raises:
        PreconditionFailedError: empty cart, minimum order value not met, or
            any order engine precondition (stock, credit, inactive entity)
    """
    from .order_service import PAYMENT_METHOD_VALUES, _create_order_locked

    address = require_str(delivery_address, "delivery_address")
    method = coerce_choice(payment_method, "payment_method", PAYMENT_METHOD_VALUES, default=PaymentMethod.CASH.value)
    clean_notes = optional_str(notes, "notes", max_length=2000)
    clean_date = parse_delivery_date(delivery_date)
    clean_slot = optional_str(delivery_time_slot, "delivery_time_slot", max_length=64)

    def _op():
        begin_write_transaction()
        lines = _cart_lines(retailer_id)
        if not lines:
            raise PreconditionFailedError("Cart is empty")

        priced = _priced_lines(lines)
        summary = _summarise(priced)
        if not summary["meets_minimum"]:
            raise PreconditionFailedError(
                "Minimum order value not met",
                details={
                    "cart_total_cents": summary["total_amount_cents"],
                    "minimum_order_cents": summary["minimum_order_cents"],
                    "amount_needed_cents": summary["amount_needed_cents"],
                },
            )

        items = [
            OrderItemInput(
                product_id=p["product"].id,
                quantity=p["line"].quantity,
                unit_price_cents=p["product"].base_price_cents,
                tax_amount_cents=p["tax_amount_cents"],
            )
            for p in priced
        ]
        order = _create_order_locked(
            retailer_id=retailer_id,
            items=items,
            delivery_address=address,
            payment_method=method,
            actor_id=actor_id,
            delivery_date=clean_date,
            delivery_time_slot=clean_slot,
            notes=clean_notes,
            metadata={"source": "cart"},
        )

        db.session.query(CartItem).filter_by(retailer_id=retailer_id).delete(synchronize_session=False)
        return order

    return run_with_retry(_op)


def reorder_from_order(retailer_id: str, order_id: str, *, exclude_out_of_stock: bool = True) -> dict:
    """
    Copy a past order's lines into the cart, capped at current stock.

    Inactive products are always skipped; out-of-stock products are skipped
    when exclude_out_of_stock is set.
    """
    if not isinstance(exclude_out_of_stock, bool):
        raise ValidationError("exclude_out_of_stock must be a boolean")

    def _op():
        order = db.session.query(Order).filter_by(id=order_id, retailer_id=retailer_id).first()
        if order is None:
            raise NotFoundError("Order not found")

        added, skipped = [], []
        for item in order.items:
            product = item.product
            if product is None or not product.is_active:
                skipped.append({
                    "product_id": item.product_id,
                    "product_name": product.name if product else "Unknown",
                    "reason": "Product is inactive",
                })
                continue

            if product.stock_quantity <= 0:
                if exclude_out_of_stock:
                    skipped.append({"product_id": product.id, "product_name": product.name, "reason": "Out of stock"})
                    continue
                # kept at the original quantity; checkout will reject it until restocked
                quantity = item.quantity
            else:
                quantity = min(item.quantity, product.stock_quantity)

            _upsert_line(retailer_id, product.id, quantity)
            added.append({
                "product_id": product.id,
                "product_name": product.name,
                "quantity": quantity,
                "original_quantity": item.quantity,
            })

        message = f"Reorder completed. {len(added)} items added to cart"
        if skipped:
            message += f", {len(skipped)} items skipped"
        return {"added_items": added, "skipped_items": skipped, "message": message + "."}

    return run_with_retry(_op)
