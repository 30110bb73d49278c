# Overview: Pytest coverage for the credit ledger (guarded balance updates and limits).

import pytest

from conftest import make_retailer
from ordering.errors import NotFoundError, PreconditionFailedError
from ordering.models import AuditLogEntry
from ordering.services import credit_service
from ordering.validation import ValidationError


class TestBalanceAdjustments:

    def test_debit_within_limit(self, db_session):
        shop = make_retailer(db_session, credit_limit_cents=10_000, balance_cents=-5_000)

        updated = credit_service.debit(shop.id, 4_000)

        assert updated.current_balance_cents == -9_000
        assert credit_service.available_credit(updated) == 1_000

    def test_debit_over_limit_leaves_balance(self, db_session):
        shop = make_retailer(db_session, credit_limit_cents=10_000, balance_cents=-5_000)

        with pytest.raises(PreconditionFailedError, match="Order exceeds available credit limit") as exc:
            credit_service.debit(shop.id, 6_000)

        assert exc.value.details["available_credit_cents"] == 5_000
        assert exc.value.details["requested_cents"] == 6_000
        db_session.refresh(shop)
        assert shop.current_balance_cents == -5_000

    def test_credit_ignores_limit(self, db_session):
        shop = make_retailer(db_session, credit_limit_cents=0, balance_cents=-2_500)

        assert credit_service.credit(shop.id, 4_000).current_balance_cents == 1_500

    def test_unchecked_adjustment_may_exceed_limit(self, db_session):
        shop = make_retailer(db_session, credit_limit_cents=1_000)

        updated = credit_service.adjust_balance(shop.id, -5_000, credit_limit_check=False)

        assert updated.current_balance_cents == -5_000
        assert updated.available_credit_cents == 0

    def test_missing_retailer(self, db_session):
        with pytest.raises(NotFoundError, match="Retailer not found"):
            credit_service.debit("nobody", 100)

    def test_negative_amounts_rejected(self, db_session, retailer):
        with pytest.raises(ValidationError):
            credit_service.debit(retailer.id, -1)
        with pytest.raises(ValidationError):
            credit_service.credit(retailer.id, -1)

    def test_pre_check_matches_guard(self, db_session):
        shop = make_retailer(db_session, credit_limit_cents=10_000, balance_cents=-5_000)

        credit_service.check_credit_available(shop, 5_000)
        with pytest.raises(PreconditionFailedError):
            credit_service.check_credit_available(shop, 5_001)


class TestCreditLimit:

    def test_set_credit_limit_is_audited(self, db_session, retailer):
        updated = credit_service.set_credit_limit(retailer.id, 250_000, actor_id="admin-1")

        assert updated.credit_limit_cents == 250_000
        entry = db_session.query(AuditLogEntry).filter_by(action="credit_limit_updated").one()
        assert entry.old_values == {"credit_limit_cents": 100_000}
        assert entry.new_values == {"credit_limit_cents": 250_000}

    @pytest.mark.parametrize("value", [-1, "abc", 1.5, None])
    def test_invalid_limit(self, db_session, retailer, value):
        with pytest.raises(ValidationError):
            credit_service.set_credit_limit(retailer.id, value)

    def test_unknown_retailer(self, db_session):
        with pytest.raises(NotFoundError):
            credit_service.set_credit_limit("missing", 100)
