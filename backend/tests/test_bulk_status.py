# Overview: Pytest coverage for all-or-nothing bulk status updates.

import pytest

from conftest import line
from ordering.errors import NotFoundError, PreconditionFailedError
from ordering.models import AuditLogEntry, Delivery, Order
from ordering.services import order_service
from ordering.validation import ValidationError


def _orders(retailer, product, count):
    return [
        order_service.create_order(retailer.id, [line(product, 1)], "12 Market Street")
        for _ in range(count)
    ]


def test_bulk_confirm(db_session, retailer, product_a):
    orders = _orders(retailer, product_a, 3)

    updated = order_service.bulk_update_status([o.id for o in orders], "confirmed", actor_id="admin-1")

    assert [o.status for o in updated] == ["confirmed"] * 3
    assert db_session.query(Delivery).count() == 3
    assert db_session.query(AuditLogEntry).filter_by(action="order_bulk_status_updated").count() == 3


def test_one_invalid_transition_rejects_whole_batch(db_session, retailer, product_a):
    first, second, third = _orders(retailer, product_a, 3)
    order_service.update_status(second.id, "confirmed")
    order_service.update_status(second.id, "processing")

    with pytest.raises(PreconditionFailedError) as exc:
        order_service.bulk_update_status([first.id, second.id, third.id], "confirmed")

    assert exc.value.details["order_ids"] == [second.id]
    assert second.id in exc.value.message
    statuses = {o.id: o.status for o in db_session.query(Order).all()}
    assert statuses == {first.id: "pending", second.id: "processing", third.id: "pending"}


def test_missing_order_rejects_whole_batch(db_session, retailer, product_a):
    (order,) = _orders(retailer, product_a, 1)

    with pytest.raises(NotFoundError, match="Some orders were not found") as exc:
        order_service.bulk_update_status([order.id, "missing-id"], "confirmed")

    assert exc.value.details["order_ids"] == ["missing-id"]
    db_session.refresh(order)
    assert order.status == "pending"


def test_bulk_cancel_restores_stock(db_session, retailer, product_a):
    orders = _orders(retailer, product_a, 2)

    order_service.bulk_update_status([o.id for o in orders], "cancelled", notes="Route closed")

    db_session.refresh(product_a)
    assert product_a.stock_quantity == 10
    assert {o.status for o in db_session.query(Order).all()} == {"cancelled"}


def test_duplicate_ids_are_applied_once(db_session, retailer, product_a):
    (order,) = _orders(retailer, product_a, 1)

    updated = order_service.bulk_update_status([order.id, order.id], "confirmed")

    assert len(updated) == 1


@pytest.mark.parametrize("order_ids", [[], None, "abc", [1, 2]])
def test_bad_id_list(db_session, order_ids):
    with pytest.raises(ValidationError):
        order_service.bulk_update_status(order_ids, "confirmed")


def test_batch_size_limit(app, db_session):
    limit = app.config["BULK_STATUS_MAX_ORDERS"]
    ids = [f"order-{i}" for i in range(limit + 1)]
    with pytest.raises(ValidationError, match=f"At most {limit} orders"):
        order_service.bulk_update_status(ids, "confirmed")
