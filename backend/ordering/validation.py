from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from .errors import OrderingError


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# Keeps totals inside a 32-bit signed column on every backend
MAX_AMOUNT_CENTS = 999_999_999

# Largest quantity, initial stock or stock delta accepted in one request
MAX_QUANTITY = 1_000_000


class ValidationError(OrderingError, ValueError):
    """400-level input problem."""
    status_code = 400


@dataclass(frozen=True)
class OrderItemInput:
    """One validated order line as submitted by a caller."""
    product_id: str
    quantity: int
    unit_price_cents: int
    tax_amount_cents: int = 0
    discount_amount_cents: int = 0
    notes: str | None = None

    @property
    def line_subtotal_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    @property
    def total_price_cents(self) -> int:
        return self.line_subtotal_cents + self.tax_amount_cents - self.discount_amount_cents


def coerce_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion.

    Rejects bools, floats, decimals-as-strings and scientific notation so
    that "1e3" or 2.5 never silently become a quantity.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return result


def coerce_cents(value: Any, field: str, *, positive: bool = False, default: int | None = None) -> int:
    if value is None and default is not None:
        return default
    minimum = 1 if positive else 0
    return coerce_int(value, field, minimum=minimum, maximum=MAX_AMOUNT_CENTS)


def coerce_quantity(value: Any, field: str, *, minimum: int = 1) -> int:
    return coerce_int(value, field, minimum=minimum, maximum=MAX_QUANTITY)


def coerce_choice(value: Any, field: str, choices: Iterable[str], *, default: str | None = None) -> str:
    allowed = list(choices)
    if value is None and default is not None:
        return default
    if not isinstance(value, str) or value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(allowed)}")
    return value


def require_str(value: Any, field: str, *, max_length: int | None = None) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    cleaned = value.strip()
    if max_length is not None and len(cleaned) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return cleaned


def optional_str(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    cleaned = value.strip()
    if not cleaned:
        return None
    if max_length is not None and len(cleaned) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return cleaned


def parse_order_item(raw: Any, index: int = 0) -> OrderItemInput:
    if isinstance(raw, OrderItemInput):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{index}] must be an object")

    product_id = raw.get("product_id")
    if not isinstance(product_id, str) or not product_id.strip():
        raise ValidationError(f"items[{index}].product_id is required")

    item = OrderItemInput(
        product_id=product_id.strip(),
        quantity=coerce_quantity(raw.get("quantity"), f"items[{index}].quantity"),
        unit_price_cents=coerce_cents(raw.get("unit_price_cents"), f"items[{index}].unit_price_cents", positive=True),
        tax_amount_cents=coerce_cents(raw.get("tax_amount_cents"), f"items[{index}].tax_amount_cents", default=0),
        discount_amount_cents=coerce_cents(
            raw.get("discount_amount_cents"), f"items[{index}].discount_amount_cents", default=0
        ),
        notes=optional_str(raw.get("notes"), f"items[{index}].notes", max_length=500),
    )
    if item.line_subtotal_cents + item.tax_amount_cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"items[{index}] amount exceeds {MAX_AMOUNT_CENTS} cents")
    return item


def parse_order_items(raw_items: Any) -> list[OrderItemInput]:
    """Validate a non-empty list of order lines."""
    if not isinstance(raw_items, (list, tuple)) or not raw_items:
        raise ValidationError("items must be a non-empty list")
    items = [parse_order_item(raw, i) for i, raw in enumerate(raw_items)]
    if sum(i.line_subtotal_cents + i.tax_amount_cents for i in items) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"Order amount exceeds {MAX_AMOUNT_CENTS} cents")
    return items


def parse_pagination(args, *, default_limit: int, max_limit: int) -> tuple[int, int]:
    limit = coerce_int(args.get("limit", default_limit), "limit", minimum=1, maximum=max_limit)
    offset = coerce_int(args.get("offset", 0), "offset", minimum=0)
    return limit, offset


def parse_delivery_date(value: Any) -> str | None:
    """Accept a calendar date as YYYY-MM-DD; returns the normalized string."""
    cleaned = optional_str(value, "delivery_date")
    if cleaned is None:
        return None
    try:
        return date.fromisoformat(cleaned).isoformat()
    except ValueError:
        raise ValidationError("delivery_date must be a date in YYYY-MM-DD format")


def parse_metadata(value: Any) -> dict | None:
    """
    Caller-supplied order metadata: a JSON object.

    The "cancellation" key is written by the engine when an order is
    cancelled and cannot be set by callers.
    """
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationError("metadata must be an object")
    if "cancellation" in value:
        raise ValidationError("metadata.cancellation is reserved")
    return dict(value)
