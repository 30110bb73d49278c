from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ._base import new_id


RETAILER_STATUSES = ("pending", "active", "suspended", "rejected")


class Retailer(db.Model):
    """
    Buyer-side business account with a credit line.

    BALANCE SIGN CONVENTION:
    current_balance_cents is signed; negative means the retailer owes money.
    credit_limit_cents bounds how negative the balance may go for credit
    orders: current_balance_cents >= -credit_limit_cents.

    Both counters are contended by concurrent orders. They are written only
    through services.credit_service, never assigned directly by callers.
    """
    __tablename__ = "retailers"
    __table_args__ = (
        db.CheckConstraint("credit_limit_cents >= 0", name="ck_retailers_credit_limit_nonneg"),
        db.Index("ix_retailers_status", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    business_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    current_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    # pending -> active (admin) | rejected; active <-> suspended
    status = db.Column(db.String(16), nullable=False, default="pending")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Retailer id={self.id} name={self.business_name!r} status={self.status}>"

    @property
    def available_credit_cents(self) -> int:
        return max(0, self.credit_limit_cents + self.current_balance_cents)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_name": self.business_name,
            "phone": self.phone,
            "email": self.email,
            "status": self.status,
            "credit_limit_cents": self.credit_limit_cents,
            "current_balance_cents": self.current_balance_cents,
            "available_credit_cents": self.available_credit_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
