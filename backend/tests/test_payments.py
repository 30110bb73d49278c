# Overview: Pytest coverage for payment recording and admin balance adjustments.

import pytest

from conftest import line, make_retailer
from ordering.errors import NotFoundError, PreconditionFailedError
from ordering.models import AuditLogEntry, Payment
from ordering.services import order_service, payment_service
from ordering.validation import ValidationError


@pytest.fixture
def owing_shop(db_session):
    return make_retailer(db_session, name="Owing Shop", credit_limit_cents=50_000, balance_cents=-20_000)


class TestRecordPayment:

    def test_payment_credits_balance_once(self, db_session, owing_shop):
        payment = payment_service.record_payment(
            owing_shop.id,
            15_000,
            payment_type="credit_payment",
            payment_method="cash",
            reference_number="RCPT-1",
            actor_id="driver-1",
        )

        assert payment.status == "completed"
        assert payment.collected_by_user_id == "driver-1"
        db_session.refresh(owing_shop)
        assert owing_shop.current_balance_cents == -5_000

        entry = db_session.query(AuditLogEntry).filter_by(action="payment_recorded").one()
        assert entry.new_values["new_balance_cents"] == -5_000

    def test_payment_against_order(self, db_session, owing_shop, product_a):
        order = order_service.create_order(owing_shop.id, [line(product_a, 2)], "1 Dock Road", "credit")

        payment_service.record_payment(
            owing_shop.id, 2_000, payment_type="order_payment", payment_method="cash", order_id=order.id
        )

        detail = order_service.get_order_detail(order.id)
        assert [p["amount_cents"] for p in detail["payments"]] == [2_000]
        db_session.refresh(owing_shop)
        assert owing_shop.current_balance_cents == -20_000

    def test_order_of_another_retailer_rejected(self, db_session, owing_shop, retailer, product_a):
        order = order_service.create_order(retailer.id, [line(product_a, 1)], "12 Market Street")

        with pytest.raises(PreconditionFailedError, match="Order does not belong to specified retailer"):
            payment_service.record_payment(
                owing_shop.id, 1_000, payment_type="order_payment", payment_method="cash", order_id=order.id
            )
        assert db_session.query(Payment).count() == 0

    def test_unknown_order(self, db_session, owing_shop):
        with pytest.raises(NotFoundError, match="Order not found"):
            payment_service.record_payment(
                owing_shop.id, 1_000, payment_type="order_payment", payment_method="cash", order_id="missing"
            )

    @pytest.mark.parametrize("amount", [0, -100, "12.50", None])
    def test_invalid_amount(self, db_session, owing_shop, amount):
        with pytest.raises(ValidationError):
            payment_service.record_payment(
                owing_shop.id, amount, payment_type="credit_payment", payment_method="cash"
            )

    def test_invalid_payment_type(self, db_session, owing_shop):
        with pytest.raises(ValidationError, match="payment_type"):
            payment_service.record_payment(owing_shop.id, 100, payment_type="refund", payment_method="cash")


class TestBalanceAdjustment:

    def test_debit_adjustment_bypasses_limit(self, db_session, owing_shop):
        result = payment_service.update_retailer_balance(
            owing_shop.id, "debit", 40_000, reason="Returned cheque", actor_id="admin-1"
        )

        assert result["previous_balance_cents"] == -20_000
        assert result["new_balance_cents"] == -60_000
        row = db_session.query(Payment).one()
        assert row.amount_cents == -40_000
        assert row.payment_type == "credit_payment"
        assert row.reference_number.startswith("ADJ-")
        assert row.notes == "DEBIT: Returned cheque"

    def test_credit_adjustment_with_notes(self, db_session, owing_shop):
        result = payment_service.update_retailer_balance(
            owing_shop.id, "credit", 5_000, reason="Goodwill", notes="Late delivery"
        )

        assert result["new_balance_cents"] == -15_000
        assert db_session.query(Payment).one().notes == "CREDIT: Goodwill - Late delivery"

    def test_credit_limit_change(self, db_session, owing_shop):
        result = payment_service.update_retailer_balance(
            owing_shop.id, "credit_limit_change", 0, reason="Account review"
        )

        assert result["previous_credit_limit_cents"] == 50_000
        assert result["new_credit_limit_cents"] == 0
        assert result["new_balance_cents"] == -20_000
        assert db_session.query(Payment).count() == 0
        entry = db_session.query(AuditLogEntry).filter_by(action="balance_adjustment").one()
        assert entry.new_values["adjustment_type"] == "credit_limit_change"

    def test_reason_required(self, db_session, owing_shop):
        with pytest.raises(ValidationError, match="reason is required"):
            payment_service.update_retailer_balance(owing_shop.id, "credit", 100, reason="")

    def test_unknown_adjustment_type(self, db_session, owing_shop):
        with pytest.raises(ValidationError, match="adjustment_type"):
            payment_service.update_retailer_balance(owing_shop.id, "refund", 100, reason="x")


class TestPaymentQueries:

    def test_list_and_financials(self, db_session, owing_shop, retailer):
        for amount in (1_000, 2_000):
            payment_service.record_payment(
                owing_shop.id, amount, payment_type="credit_payment", payment_method="cash"
            )
        payment_service.record_payment(retailer.id, 500, payment_type="credit_payment", payment_method="cash")

        page = payment_service.list_payments(retailer_id=owing_shop.id)
        assert page["total"] == 2

        financials = payment_service.get_retailer_financials(owing_shop.id)
        assert financials["retailer"]["current_balance_cents"] == -17_000
        assert financials["available_credit_cents"] == 33_000
        assert len(financials["recent_payments"]) == 2
