from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ._base import new_id


PAYMENT_TYPES = ("order_payment", "credit_payment")
PAYMENT_METHODS = ("cash", "credit")
PAYMENT_STATUSES = ("pending", "completed", "failed")


class Payment(db.Model):
    """
    Money received from (or, for admin debits, charged to) a retailer.

    APPEND-ONLY: rows are never edited after insert. Each completed
    payment moves the retailer balance exactly once, in the same
    transaction that inserts the row. amount_cents is signed only for
    admin balance adjustments (debit adjustments are negative).
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_retailer_created", "retailer_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=True, index=True)
    retailer_id = db.Column(db.String(36), db.ForeignKey("retailers.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_type = db.Column(db.String(32), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed")

    reference_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    extra_data = db.Column("metadata", db.JSON, nullable=False, default=dict)

    collected_by_user_id = db.Column(db.String(64), nullable=True)
    collected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "retailer_id": self.retailer_id,
            "amount_cents": self.amount_cents,
            "payment_type": self.payment_type,
            "payment_method": self.payment_method,
            "status": self.status,
            "reference_number": self.reference_number,
            "notes": self.notes,
            "metadata": self.extra_data or {},
            "collected_by_user_id": self.collected_by_user_id,
            "collected_at": to_utc_z(self.collected_at),
            "created_at": to_utc_z(self.created_at),
        }
