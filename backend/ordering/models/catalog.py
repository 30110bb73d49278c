from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ._base import new_id


class Product(db.Model):
    """
    Product master data with a mutable on-hand counter.

    stock_quantity is shared mutable state: it is decremented by order
    creation and restored by cancellation/edits. All writes go through
    services.stock_service, which uses guarded single-statement updates.
    The CHECK constraint is the last line of defence against negatives.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_nonneg"),
        db.CheckConstraint("base_price_cents > 0", name="ck_products_price_positive"),
        db.Index("ix_products_active", "is_active"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=True)

    base_price_cents = db.Column(db.Integer, nullable=False)
    # Basis points (1500 = 15.00%), applied at cart checkout
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "unit": self.unit,
            "base_price_cents": self.base_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "stock_quantity": self.stock_quantity,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
