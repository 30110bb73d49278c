from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ._base import new_id


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CREDIT = "credit"


@dataclass(frozen=True)
class CancellationInfo:
    """Shape of Order.metadata["cancellation"]."""
    reason: str
    notes: str | None
    cancelled_at: str
    cancelled_by: str | None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "CancellationInfo | None":
        if not data:
            return None
        return cls(
            reason=data.get("reason", ""),
            notes=data.get("notes"),
            cancelled_at=data.get("cancelled_at", ""),
            cancelled_by=data.get("cancelled_by"),
        )


class Order(db.Model):
    """
    Purchase order placed by (or on behalf of) a retailer.

    TOTALS (all cents):
        subtotal = sum(quantity * unit_price)
        total    = subtotal + tax - discount

    LIFECYCLE: see services.order_lifecycle for the transition table.
    Created in 'pending'; 'delivered' and 'cancelled' are terminal.

    version_id gives optimistic locking on top of the row lock taken by
    the engine, so two concurrent transitions of the same order cannot
    both commit.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_retailer_created", "retailer_id", "created_at"),
        db.Index("ix_orders_status_created", "status", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    order_number = db.Column(db.String(32), nullable=False, unique=True)
    retailer_id = db.Column(db.String(36), db.ForeignKey("retailers.id"), nullable=False, index=True)
    created_by_user_id = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=OrderStatus.PENDING.value)
    payment_method = db.Column(db.String(16), nullable=False, default=PaymentMethod.CASH.value)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    delivery_address = db.Column(db.Text, nullable=False)
    delivery_date = db.Column(db.String(10), nullable=True)  # YYYY-MM-DD
    delivery_time_slot = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # "metadata" is reserved on declarative classes
    extra_data = db.Column("metadata", db.JSON, nullable=False, default=dict)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    retailer = db.relationship("Retailer", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy=True,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number} status={self.status}>"

    @property
    def status_enum(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def cancellation(self) -> CancellationInfo | None:
        return CancellationInfo.from_dict((self.extra_data or {}).get("cancellation"))

    def snapshot(self) -> dict:
        """Audit-friendly copy of the order header."""
        return {
            "status": self.status,
            "payment_method": self.payment_method,
            "subtotal_cents": self.subtotal_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "delivery_address": self.delivery_address,
            "notes": self.notes,
            "metadata": dict(self.extra_data or {}),
            "items": [
                {"product_id": i.product_id, "quantity": i.quantity, "unit_price_cents": i.unit_price_cents}
                for i in self.items
            ],
        }

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "retailer_id": self.retailer_id,
            "created_by_user_id": self.created_by_user_id,
            "status": self.status,
            "payment_method": self.payment_method,
            "subtotal_cents": self.subtotal_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "total_amount_cents": self.total_amount_cents,
            "delivery_address": self.delivery_address,
            "delivery_date": self.delivery_date,
            "delivery_time_slot": self.delivery_time_slot,
            "notes": self.notes,
            "metadata": self.extra_data or {},
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """One order line. total_price = quantity * unit_price + tax - discount."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    order = db.relationship("Order", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "tax_amount_cents": self.tax_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "total_price_cents": self.total_price_cents,
            "notes": self.notes,
        }
