# Overview: Pytest coverage for delivery creation on confirm and delivery-driven order completion.

import re
from unittest import mock

import pytest

from conftest import line
from ordering.errors import InternalError, PreconditionFailedError
from ordering.models import AuditLogEntry, Delivery, DeliveryStatus, Order
from ordering.services import delivery_service, order_service
from ordering.validation import ValidationError


def _confirmed_order(retailer, product, payment_method="cash"):
    order = order_service.create_order(retailer.id, [line(product, 2)], "12 Market Street", payment_method)
    order_service.update_status(order.id, "confirmed", actor_id="admin-1")
    return order


def _delivery_for(session, order):
    return session.query(Delivery).filter_by(order_id=order.id).one()


class TestDeliveryCreation:

    def test_confirm_creates_cash_delivery(self, app, db_session, retailer, product_a):
        order = _confirmed_order(retailer, product_a, "cash")

        delivery = _delivery_for(db_session, order)
        assert delivery.status == "pending"
        assert delivery.cash_to_collect_cents == 2000
        assert delivery.pickup_address == app.config["WAREHOUSE_ADDRESS"]
        assert delivery.delivery_address == "12 Market Street"
        assert delivery.extra_data == {"auto_created": True, "order_number": order.order_number}
        assert re.fullmatch(r"DEL-\d{6}-[A-Z0-9]{4}", delivery.delivery_number)
        assert [t["status"] for t in delivery.tracking_updates] == ["pending"]

    def test_credit_order_collects_nothing(self, db_session, retailer, product_a):
        order = _confirmed_order(retailer, product_a, "credit")

        assert _delivery_for(db_session, order).cash_to_collect_cents == 0

    def test_delivery_creation_is_audited(self, db_session, retailer, product_a):
        order = _confirmed_order(retailer, product_a)

        entry = db_session.query(AuditLogEntry).filter_by(action="delivery_created").one()
        assert entry.new_values["order_id"] == order.id

    def test_delivery_failure_does_not_block_confirm(self, db_session, retailer, product_a):
        order = order_service.create_order(retailer.id, [line(product_a, 1)], "12 Market Street")

        with mock.patch.object(
            delivery_service, "create_delivery", side_effect=InternalError("delivery store down")
        ):
            order_service.update_status(order.id, "confirmed")

        db_session.refresh(order)
        assert order.status == "confirmed"
        assert db_session.query(Delivery).count() == 0
        assert db_session.query(AuditLogEntry).filter_by(action="order_status_updated").count() == 1


class TestDeliveryStatus:

    def test_table_covers_every_status(self):
        assert set(delivery_service.DELIVERY_TRANSITIONS) == set(DeliveryStatus)

    def test_terminal_statuses(self):
        terminal = {s for s, targets in delivery_service.DELIVERY_TRANSITIONS.items() if not targets}
        assert terminal == {DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED}

    def _advance(self, delivery_id, *statuses, **kwargs):
        result = None
        for status in statuses:
            result = delivery_service.update_delivery_status(delivery_id, status, actor_id="driver-1", **kwargs)
        return result

    def test_delivered_completes_the_order(self, db_session, retailer, product_a):
        order = _confirmed_order(retailer, product_a)
        delivery = _delivery_for(db_session, order)

        self._advance(delivery.id, "assigned", "picked_up", "in_transit")
        done = delivery_service.update_delivery_status(
            delivery.id, "delivered", cash_collected_cents=2000, actor_id="driver-1"
        )

        assert done.status == "delivered"
        assert done.cash_collected_cents == 2000
        assert done.actual_pickup_time is not None
        assert done.actual_delivery_time is not None
        reloaded = db_session.get(Order, order.id)
        assert reloaded.status == "delivered"

        steps = (
            db_session.query(AuditLogEntry)
            .filter_by(resource_id=order.id, action="order_status_updated")
            .order_by(AuditLogEntry.id)
            .all()
        )
        assert [s.new_values["status"] for s in steps] == ["confirmed", "processing", "shipped", "delivered"]

    def test_delivered_for_cancelled_order_leaves_it_cancelled(self, db_session, retailer, product_a):
        order = _confirmed_order(retailer, product_a)
        delivery = _delivery_for(db_session, order)
        self._advance(delivery.id, "assigned", "picked_up")

        # picked_up deliveries cannot be cancelled; the order still can
        order_service.update_status(order.id, "processing")
        order_service.cancel_order(order.id, "Retailer closed")
        self._advance(delivery.id, "in_transit", "delivered")

        assert db_session.get(Order, order.id).status == "cancelled"

    def test_invalid_delivery_transition(self, db_session, retailer, product_a):
        order = _confirmed_order(retailer, product_a)
        delivery = _delivery_for(db_session, order)

        with pytest.raises(PreconditionFailedError, match="Invalid status transition from pending to delivered"):
            delivery_service.update_delivery_status(delivery.id, "delivered")

    def test_failed_requires_reason(self, db_session, retailer, product_a):
        order = _confirmed_order(retailer, product_a)
        delivery = _delivery_for(db_session, order)
        self._advance(delivery.id, "assigned")

        with pytest.raises(ValidationError, match="failure_reason is required"):
            delivery_service.update_delivery_status(delivery.id, "failed")

        failed = delivery_service.update_delivery_status(delivery.id, "failed", failure_reason="Shop closed")
        assert failed.failure_reason == "Shop closed"

        reassigned = delivery_service.update_delivery_status(delivery.id, "assigned")
        assert reassigned.status == "assigned"

    def test_tracking_history_accumulates(self, db_session, retailer, product_a):
        order = _confirmed_order(retailer, product_a)
        delivery = _delivery_for(db_session, order)

        final = self._advance(delivery.id, "assigned", "picked_up", location={"lat": 1.0, "lng": 2.0})

        assert [t["status"] for t in final.tracking_updates] == ["pending", "assigned", "picked_up"]
        assert final.tracking_updates[-1]["location"] == {"lat": 1.0, "lng": 2.0}

    def test_unknown_delivery_status(self, db_session):
        with pytest.raises(ValidationError, match="Invalid delivery status"):
            delivery_service.update_delivery_status("any", "teleported")
