# Overview: Pytest coverage for basket pricing, the volume discount threshold and stock reservation.

import pytest

from posledger.errors import InsufficientStock, NotFound, ValidationError
from posledger.models import Product
from posledger.services.pricing_service import (
    discounted_price_cents,
    normalize_items,
    reserve_order_items,
)


class TestDiscountArithmetic:
    def test_fifteen_percent_off(self):
        assert discounted_price_cents(15_000_000, 1500) == 12_750_000

    def test_zero_discount_is_list_price(self):
        assert discounted_price_cents(999, 0) == 999

    def test_discount_rounds_half_up_to_the_cent(self):
        # 5% of 10 cents is 0.5 cents -> 1 cent off
        assert discounted_price_cents(10, 500) == 9
        # 15% of 999 cents is 149.85 -> 150 off
        assert discounted_price_cents(999, 1500) == 849

    def test_full_discount(self):
        assert discounted_price_cents(1234, 10000) == 0


class TestNormalizeItems:
    def test_accepts_dicts_and_pairs(self):
        assert normalize_items([{"product_id": 1, "quantity": 2}, (3, 4)]) == [(1, 2), (3, 4)]

    def test_empty_order_rejected(self):
        with pytest.raises(ValidationError) as exc:
            normalize_items([])
        assert "at least 1 item" in exc.value.message

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2.0", True])
    def test_bad_quantity_rejected(self, quantity):
        with pytest.raises(ValidationError):
            normalize_items([{"product_id": 1, "quantity": quantity}])

    def test_missing_product_id_rejected(self):
        with pytest.raises(ValidationError):
            normalize_items([{"quantity": 1}])


class TestReserveOrderItems:
    def test_below_threshold_uses_list_prices(self, db_session, laptop, cable):
        result = reserve_order_items([(laptop.id, 1), (cable.id, 2)])

        assert result.discount_applied is False
        assert result.original_total_cents == 15_002_000
        assert result.final_total_cents == 15_002_000
        assert [i.final_price_cents for i in result.items] == [15_000_000, 1_000]

    def test_threshold_reached_applies_category_discount_per_line(self, db_session, laptop, cable):
        result = reserve_order_items([(laptop.id, 2), (cable.id, 3)])

        assert result.discount_applied is True
        assert result.original_total_cents == 30_003_000
        laptop_line, cable_line = result.items
        assert laptop_line.discount_bps == 1500
        assert laptop_line.final_price_cents == 12_750_000
        assert cable_line.discount_bps == 0
        assert cable_line.final_price_cents == 1_000
        assert result.final_total_cents == 25_503_000

    def test_threshold_boundary(self, db_session, electronics):
        just_under = Product(product_code="U-1", name="Under", category_id=electronics.id,
                             price_cents=29_999_999, stock_quantity=5)
        exactly = Product(product_code="E-1", name="Exact", category_id=electronics.id,
                          price_cents=30_000_000, stock_quantity=5)
        db_session.add_all([just_under, exactly])
        db_session.commit()

        under = reserve_order_items([(just_under.id, 1)])
        at = reserve_order_items([(exactly.id, 1)])

        assert under.discount_applied is False
        assert under.final_total_cents == 29_999_999
        assert at.discount_applied is True
        assert at.final_total_cents == 25_500_000

    def test_threshold_override(self, db_session, laptop):
        result = reserve_order_items([(laptop.id, 1)], threshold_cents=1)
        assert result.discount_applied is True
        assert result.threshold_cents == 1

    def test_reserves_stock(self, db_session, laptop):
        reserve_order_items([(laptop.id, 3)])
        db_session.expire_all()

        product = db_session.get(Product, laptop.id)
        assert product.reserved_stock == 3
        assert product.stock_quantity == 10
        assert product.available_stock == 7

    def test_insufficient_stock_carries_details(self, db_session, laptop):
        with pytest.raises(InsufficientStock) as exc:
            reserve_order_items([(laptop.id, 11)])

        assert exc.value.details["product_id"] == laptop.id
        assert exc.value.details["requested_quantity"] == 11
        assert exc.value.details["available"] == 10
        assert "Laptop" in exc.value.message

    def test_duplicate_lines_count_against_the_same_stock(self, db_session, laptop):
        with pytest.raises(InsufficientStock):
            reserve_order_items([(laptop.id, 6), (laptop.id, 5)])

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFound):
            reserve_order_items([(424242, 1)])

    def test_inactive_product(self, db_session, laptop):
        laptop.is_active = False
        db_session.commit()
        with pytest.raises(NotFound):
            reserve_order_items([(laptop.id, 1)])
