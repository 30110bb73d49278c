from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ._base import new_id


class CartItem(db.Model):
    """Retailer shopping cart line; one row per (retailer, product)."""
    __tablename__ = "cart_items"
    __table_args__ = (
        db.UniqueConstraint("retailer_id", "product_id", name="uq_cart_items_retailer_product"),
        db.CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    retailer_id = db.Column(db.String(36), db.ForeignKey("retailers.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    added_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "retailer_id": self.retailer_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "added_at": to_utc_z(self.added_at),
            "updated_at": to_utc_z(self.updated_at),
            "product": product.to_dict() if product is not None else None,
        }
