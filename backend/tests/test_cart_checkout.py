# Overview: Pytest coverage for the retailer cart, checkout and reorder.

import pytest

from conftest import line, make_product
from ordering.errors import NotFoundError, PreconditionFailedError
from ordering.models import CartItem, Order
from ordering.services import cart_service, order_service
from ordering.validation import ValidationError


@pytest.fixture
def taxed_product(db_session):
    """12.50 per unit at 15% tax, 20 in stock."""
    return make_product(db_session, sku="SOAP-6", name="Soap 6-pack", price_cents=1250, stock=20, tax_bps=1500)


class TestCart:

    def test_add_sets_quantity(self, db_session, retailer, product_a):
        cart_service.add_to_cart(retailer.id, product_a.id, 2)
        cart_service.add_to_cart(retailer.id, product_a.id, 5)

        lines = db_session.query(CartItem).filter_by(retailer_id=retailer.id).all()
        assert [(l.product_id, l.quantity) for l in lines] == [(product_a.id, 5)]

    def test_add_more_than_stock(self, db_session, retailer, product_b):
        with pytest.raises(PreconditionFailedError, match="Not enough stock. Available: 5"):
            cart_service.add_to_cart(retailer.id, product_b.id, 6)

    def test_add_inactive_product(self, db_session, retailer):
        retired = make_product(db_session, sku="OLD-3", is_active=False)
        with pytest.raises(NotFoundError, match="Product not found or inactive"):
            cart_service.add_to_cart(retailer.id, retired.id, 1)

    @pytest.mark.parametrize("quantity", [10**20, 1_000_001])
    def test_oversized_quantity_rejected(self, db_session, retailer, product_a, quantity):
        with pytest.raises(ValidationError, match="quantity must be <= 1000000"):
            cart_service.add_to_cart(retailer.id, product_a.id, quantity)
        assert db_session.query(CartItem).count() == 0

    def test_update_to_zero_removes(self, db_session, retailer, product_a):
        cart_service.add_to_cart(retailer.id, product_a.id, 2)

        assert cart_service.update_quantity(retailer.id, product_a.id, 0) is None
        assert db_session.query(CartItem).count() == 0

    def test_update_missing_line(self, db_session, retailer, product_a):
        with pytest.raises(NotFoundError, match="Cart item not found"):
            cart_service.update_quantity(retailer.id, product_a.id, 3)

    def test_clear_cart(self, db_session, retailer, product_a, product_b):
        cart_service.add_to_cart(retailer.id, product_a.id, 1)
        cart_service.add_to_cart(retailer.id, product_b.id, 1)

        assert cart_service.clear_cart(retailer.id) == 2
        assert cart_service.get_cart(retailer.id)["items"] == []

    def test_summary_rounds_tax_half_up(self, db_session, retailer, taxed_product):
        """3 x 12.50 = 37.50; 15% = 5.625 -> 5.63."""
        cart_service.add_to_cart(retailer.id, taxed_product.id, 3)

        summary = cart_service.get_cart_summary(retailer.id)
        assert summary["subtotal_cents"] == 3750
        assert summary["tax_amount_cents"] == 563
        assert summary["total_amount_cents"] == 4313
        assert summary["total_items"] == 3
        assert summary["meets_minimum"] is True

    def test_cart_is_per_retailer(self, db_session, retailer, other_retailer, product_a):
        cart_service.add_to_cart(retailer.id, product_a.id, 1)

        assert cart_service.get_cart(other_retailer.id)["summary"]["line_count"] == 0


class TestCheckout:

    def test_checkout_creates_order_and_empties_cart(self, db_session, retailer, product_a, taxed_product):
        cart_service.add_to_cart(retailer.id, product_a.id, 2)
        cart_service.add_to_cart(retailer.id, taxed_product.id, 3)

        order = cart_service.checkout(retailer.id, "12 Market Street", "cash", actor_id="retailer-user-1")

        assert order.subtotal_cents == 2000 + 3750
        assert order.tax_amount_cents == 563
        assert order.total_amount_cents == 6313
        assert order.extra_data == {"source": "cart"}
        assert db_session.query(CartItem).count() == 0
        db_session.refresh(product_a)
        db_session.refresh(taxed_product)
        assert product_a.stock_quantity == 8
        assert taxed_product.stock_quantity == 17

    def test_empty_cart(self, db_session, retailer):
        with pytest.raises(PreconditionFailedError, match="Cart is empty"):
            cart_service.checkout(retailer.id, "12 Market Street")

    def test_minimum_order_value(self, app, db_session, retailer, product_a):
        cart_service.add_to_cart(retailer.id, product_a.id, 1)
        app.config["MINIMUM_ORDER_CENTS"] = 5_000
        try:
            with pytest.raises(PreconditionFailedError, match="Minimum order value not met") as exc:
                cart_service.checkout(retailer.id, "12 Market Street")
        finally:
            app.config["MINIMUM_ORDER_CENTS"] = 0

        assert exc.value.details["amount_needed_cents"] == 4_000
        assert db_session.query(CartItem).count() == 1

    def test_failed_checkout_keeps_cart(self, db_session, retailer, product_b):
        cart_service.add_to_cart(retailer.id, product_b.id, 5)
        order_service.create_order(retailer.id, [line(product_b, 1)], "Elsewhere")

        with pytest.raises(PreconditionFailedError, match="Insufficient stock"):
            cart_service.checkout(retailer.id, "12 Market Street")

        assert db_session.query(CartItem).count() == 1
        assert db_session.query(Order).count() == 1

    def test_delivery_slot_is_validated(self, db_session, retailer, product_a):
        cart_service.add_to_cart(retailer.id, product_a.id, 1)

        with pytest.raises(ValidationError, match="delivery_date must be a date in YYYY-MM-DD format"):
            cart_service.checkout(retailer.id, "12 Market Street", delivery_date="next tuesday")

        order = cart_service.checkout(
            retailer.id, "12 Market Street", delivery_date="2026-11-02", delivery_time_slot="09:00-12:00"
        )
        assert order.delivery_date == "2026-11-02"
        assert order.delivery_time_slot == "09:00-12:00"


class TestReorder:

    def test_reorder_caps_at_stock_and_skips_inactive(self, db_session, retailer, product_a, product_b):
        order = order_service.create_order(
            retailer.id, [line(product_a, 4), line(product_b, 3)], "12 Market Street"
        )
        product_b.is_active = False
        product_a.stock_quantity = 2
        db_session.commit()

        result = cart_service.reorder_from_order(retailer.id, order.id)

        assert [(i["product_id"], i["quantity"]) for i in result["added_items"]] == [(product_a.id, 2)]
        assert [i["reason"] for i in result["skipped_items"]] == ["Product is inactive"]
        assert result["message"] == "Reorder completed. 1 items added to cart, 1 items skipped."

    def test_out_of_stock_handling(self, db_session, retailer, product_a):
        order = order_service.create_order(retailer.id, [line(product_a, 3)], "12 Market Street")
        product_a.stock_quantity = 0
        db_session.commit()

        skipped = cart_service.reorder_from_order(retailer.id, order.id)
        assert skipped["skipped_items"][0]["reason"] == "Out of stock"

        kept = cart_service.reorder_from_order(retailer.id, order.id, exclude_out_of_stock=False)
        assert kept["added_items"][0]["quantity"] == 3

    def test_reorder_foreign_order(self, db_session, retailer, other_retailer, product_a):
        order = order_service.create_order(other_retailer.id, [line(product_a, 1)], "B")
        with pytest.raises(NotFoundError, match="Order not found"):
            cart_service.reorder_from_order(retailer.id, order.id)

    def test_flag_must_be_boolean(self, db_session, retailer):
        with pytest.raises(ValidationError):
            cart_service.reorder_from_order(retailer.id, "x", exclude_out_of_stock="yes")
