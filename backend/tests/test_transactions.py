# Overview: Pytest coverage for transaction retry and storage error mapping.

"""
Transaction Tests

Covers:
1. run_with_retry commits on success and rolls back on any failure
2. OperationalError / StaleDataError are retried, then wrapped as InternalError
3. IntegrityError -> ConflictError, other SQLAlchemyError -> InternalError
4. Order number collisions surface as ConflictError with no stock taken
"""

from unittest import mock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from conftest import line, make_product
from ordering.errors import ConflictError, InternalError, PreconditionFailedError
from ordering.extensions import db
from ordering.models import Order, Product
from ordering.services import order_service
from ordering.services.concurrency import run_with_retry


def _failing(exc, calls):
    """Stage a product insert, then fail with exc; counts attempts in calls."""
    def _op():
        calls.append(1)
        db.session.add(Product(sku=f"TMP-{len(calls)}", name="Temp", base_price_cents=100, stock_quantity=1))
        db.session.flush()
        raise exc
    return _op


class TestRunWithRetry:

    def test_success_commits(self, db_session):
        def _op():
            product = Product(sku="OK-1", name="Committed", base_price_cents=100, stock_quantity=3)
            db.session.add(product)
            return product

        product = run_with_retry(_op)

        db.session.expire_all()
        assert db.session.get(Product, product.id).stock_quantity == 3

    def test_operational_error_retried_then_wrapped(self, db_session):
        calls = []
        exc = OperationalError("UPDATE products SET secret_column = 1", {}, Exception("database is locked"))

        with pytest.raises(InternalError) as info:
            run_with_retry(_failing(exc, calls), attempts=3, backoff_base=0)

        assert len(calls) == 3
        assert info.value.message == "The store is busy, please retry the request"
        assert "secret_column" not in str(info.value.to_dict())
        assert info.value.__cause__ is exc
        assert db_session.query(Product).count() == 0

    def test_operational_error_recovers_on_retry(self, db_session):
        calls = []

        def _op():
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))
            db.session.add(Product(sku="LATE-1", name="Second Try", base_price_cents=100, stock_quantity=1))
            return "done"

        assert run_with_retry(_op, attempts=2, backoff_base=0) == "done"
        assert len(calls) == 2
        assert db_session.query(Product).filter_by(sku="LATE-1").count() == 1

    def test_stale_data_is_retried(self, db_session):
        calls = []

        with pytest.raises(InternalError):
            run_with_retry(_failing(StaleDataError("version mismatch"), calls), attempts=2, backoff_base=0)

        assert len(calls) == 2

    def test_integrity_error_becomes_conflict(self, db_session):
        calls = []
        exc = IntegrityError("INSERT INTO orders", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(ConflictError) as info:
            run_with_retry(_failing(exc, calls), attempts=3, backoff_base=0)

        assert len(calls) == 1
        assert info.value.status_code == 409
        assert "UNIQUE" not in info.value.message
        assert db_session.query(Product).count() == 0

    def test_other_storage_error_becomes_internal(self, db_session):
        calls = []

        with pytest.raises(InternalError) as info:
            run_with_retry(_failing(SQLAlchemyError("driver exploded"), calls), attempts=3, backoff_base=0)

        assert len(calls) == 1
        assert info.value.message == "Internal storage error"
        assert info.value.status_code == 500
        assert db_session.query(Product).count() == 0

    def test_domain_error_propagates_unchanged(self, db_session):
        calls = []
        exc = PreconditionFailedError("Insufficient stock for product: Temp")

        with pytest.raises(PreconditionFailedError) as info:
            run_with_retry(_failing(exc, calls), attempts=3, backoff_base=0)

        assert info.value is exc
        assert len(calls) == 1
        assert db_session.query(Product).count() == 0


class TestOrderNumberCollision:

    def test_exhausted_candidates_raise_conflict(self, db_session, retailer, product_a):
        with mock.patch.object(order_service, "generate_order_number", return_value="ORD-000001-AAAA"):
            order_service.create_order(retailer.id, [line(product_a, 1)], "12 Market Street")

            with pytest.raises(ConflictError, match="Could not allocate a unique order number"):
                order_service.create_order(retailer.id, [line(product_a, 1)], "12 Market Street")

        db_session.refresh(product_a)
        assert product_a.stock_quantity == 9
        assert db_session.query(Order).count() == 1

    def test_duplicate_reaching_unique_index_is_conflict(self, db_session, retailer, product_a):
        spare = make_product(db_session, sku="SPARE-1", name="Spare", stock=4)
        with mock.patch.object(order_service, "_allocate_order_number", return_value="ORD-000002-BBBB"):
            order_service.create_order(retailer.id, [line(product_a, 1)], "12 Market Street", "credit")

            with pytest.raises(ConflictError):
                order_service.create_order(retailer.id, [line(spare, 2)], "12 Market Street", "credit")

        db_session.refresh(spare)
        db_session.refresh(retailer)
        assert spare.stock_quantity == 4
        assert retailer.current_balance_cents == -1000
        assert db_session.query(Order).count() == 1
