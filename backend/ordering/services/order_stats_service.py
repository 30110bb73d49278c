# Overview: Read-side order aggregates; counts by status, revenue and week-over-week trend.

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Order, OrderStatus
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import ValidationError


def _scoped(query, retailer_id: str | None):
    if retailer_id:
        query = query.filter(Order.retailer_id == retailer_id)
    return query


def _count_between(start, end, retailer_id: str | None) -> int:
    query = db.session.query(func.count(Order.id)).filter(Order.created_at >= start)
    if end is not None:
        query = query.filter(Order.created_at < end)
    return _scoped(query, retailer_id).scalar() or 0


def get_order_stats(
    *,
    date_from: str | None = None,
    date_to: str | None = None,
    retailer_id: str | None = None,
) -> dict:
    """
    Aggregate orders created in [date_from, date_to] (both optional).

    Revenue is the sum of total_amount_cents over every matching order.
    Empty ranges produce zeros. The trend compares the last 7 days with the
    7 days before, as a percentage (0 when the earlier week had no orders).
    """
    try:
        start = parse_iso_datetime(date_from)
        end = parse_iso_datetime(date_to)
    except ValueError:
        raise ValidationError("date_from/date_to must be ISO-8601 datetimes")

    query = db.session.query(
        Order.status,
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_amount_cents), 0),
    )
    if start:
        query = query.filter(Order.created_at >= start)
    if end:
        query = query.filter(Order.created_at <= end)
    rows = _scoped(query, retailer_id).group_by(Order.status).all()

    breakdown = {status.value: 0 for status in OrderStatus}
    total_orders = 0
    total_revenue = 0
    for status, count, revenue in rows:
        breakdown[status] = breakdown.get(status, 0) + count
        total_orders += count
        total_revenue += int(revenue or 0)

    average = round(total_revenue / total_orders) if total_orders else 0

    now = utcnow()
    seven_days_ago = now - timedelta(days=7)
    fourteen_days_ago = now - timedelta(days=14)
    last_week = _count_between(seven_days_ago, None, retailer_id)
    previous_week = _count_between(fourteen_days_ago, seven_days_ago, retailer_id)
    trend = round((last_week - previous_week) / previous_week * 100, 2) if previous_week else 0.0

    return {
        "total_orders": total_orders,
        "total_revenue_cents": total_revenue,
        "average_order_value_cents": average,
        "status_breakdown": breakdown,
        "order_trend_percent": trend,
        "recent_orders_count": last_week,
    }
