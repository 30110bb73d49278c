from __future__ import annotations

from enum import Enum

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ._base import new_id


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Delivery(db.Model):
    """
    Physical fulfilment record, one per order.

    Created automatically when an order is confirmed. Owned by the delivery
    subsystem; the order engine only creates it and reacts to 'delivered'.
    """
    __tablename__ = "deliveries"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, unique=True)
    delivery_number = db.Column(db.String(32), nullable=False, unique=True)

    status = db.Column(db.String(16), nullable=False, default=DeliveryStatus.PENDING.value, index=True)
    priority = db.Column(db.Integer, nullable=False, default=1)

    pickup_address = db.Column(db.Text, nullable=False)
    delivery_address = db.Column(db.Text, nullable=False)

    cash_to_collect_cents = db.Column(db.Integer, nullable=False, default=0)
    cash_collected_cents = db.Column(db.Integer, nullable=True)
    failure_reason = db.Column(db.Text, nullable=True)

    # [{"status", "timestamp", "notes"}, ...] appended on every transition
    tracking_updates = db.Column(db.JSON, nullable=False, default=list)
    extra_data = db.Column("metadata", db.JSON, nullable=False, default=dict)

    actual_pickup_time = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_delivery_time = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    order = db.relationship("Order", backref=db.backref("delivery", uselist=False, lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "delivery_number": self.delivery_number,
            "status": self.status,
            "priority": self.priority,
            "pickup_address": self.pickup_address,
            "delivery_address": self.delivery_address,
            "cash_to_collect_cents": self.cash_to_collect_cents,
            "cash_collected_cents": self.cash_collected_cents,
            "failure_reason": self.failure_reason,
            "tracking_updates": self.tracking_updates or [],
            "metadata": self.extra_data or {},
            "actual_pickup_time": to_utc_z(self.actual_pickup_time),
            "actual_delivery_time": to_utc_z(self.actual_delivery_time),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
