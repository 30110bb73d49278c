# Overview: Pytest coverage for order statistics.

from datetime import timedelta

import pytest

from conftest import line
from ordering.models import Order
from ordering.services import order_service, order_stats_service
from ordering.time_utils import utcnow
from ordering.validation import ValidationError


def test_empty_range_is_all_zero(db_session):
    stats = order_stats_service.get_order_stats()

    assert stats["total_orders"] == 0
    assert stats["total_revenue_cents"] == 0
    assert stats["average_order_value_cents"] == 0
    assert stats["order_trend_percent"] == 0
    assert set(stats["status_breakdown"]) == {
        "pending", "confirmed", "processing", "shipped", "delivered", "cancelled",
    }
    assert all(count == 0 for count in stats["status_breakdown"].values())


def test_counts_revenue_and_breakdown(db_session, retailer, other_retailer, product_a):
    first = order_service.create_order(retailer.id, [line(product_a, 1)], "A")
    order_service.create_order(retailer.id, [line(product_a, 2)], "A")
    order_service.create_order(other_retailer.id, [line(product_a, 4)], "B")
    order_service.update_status(first.id, "confirmed")

    stats = order_stats_service.get_order_stats()
    assert stats["total_orders"] == 3
    assert stats["total_revenue_cents"] == 7000
    assert stats["average_order_value_cents"] == 2333
    assert stats["status_breakdown"]["pending"] == 2
    assert stats["status_breakdown"]["confirmed"] == 1
    assert stats["recent_orders_count"] == 3

    scoped = order_stats_service.get_order_stats(retailer_id=retailer.id)
    assert scoped["total_orders"] == 2
    assert scoped["total_revenue_cents"] == 3000


def test_date_range_and_trend(db_session, retailer, product_a):
    old = order_service.create_order(retailer.id, [line(product_a, 1)], "A")
    order_service.create_order(retailer.id, [line(product_a, 1)], "A")
    order_service.create_order(retailer.id, [line(product_a, 1)], "A")

    # Move one order into the previous week
    db_session.get(Order, old.id).created_at = utcnow() - timedelta(days=10)
    db_session.commit()

    stats = order_stats_service.get_order_stats()
    assert stats["recent_orders_count"] == 2
    assert stats["order_trend_percent"] == 100.0

    since = (utcnow() - timedelta(days=3)).isoformat() + "Z"
    recent = order_stats_service.get_order_stats(date_from=since)
    assert recent["total_orders"] == 2


def test_bad_dates_rejected(db_session):
    with pytest.raises(ValidationError):
        order_stats_service.get_order_stats(date_from="last tuesday")
