"""
Stock ledger tests.

Verifies:
- commit_stock refuses to take on-hand below zero
- release_stock has no upper bound (max_stock is advisory)
- adjust_stock add/subtract, its validation and its actor check
- quantities past the integer column range are rejected before any write
- set_stock_level for the product edit form
"""

import pytest

from stockroom.errors import ForbiddenError, InsufficientStockError, NotFoundError, ValidationError
from stockroom.models import Product
from stockroom.services import stock_service
from stockroom.validation import MAX_INT_VALUE

from conftest import make_product, reload


class TestCommitRelease:
    def test_commit_reduces_stock(self, db_session, product):
        stock_service.commit_stock(product.id, 4)
        db_session.commit()
        assert reload(Product, product.id).stock_quantity == 6

    def test_commit_exactly_all(self, db_session, product):
        stock_service.commit_stock(product.id, 10)
        db_session.commit()
        refreshed = reload(Product, product.id)
        assert refreshed.stock_quantity == 0
        assert refreshed.is_out_of_stock

    def test_commit_more_than_on_hand_fails(self, db_session, product):
        with pytest.raises(InsufficientStockError, match="Current: 10, requested: 11"):
            stock_service.commit_stock(product.id, 11)
        db_session.rollback()
        assert reload(Product, product.id).stock_quantity == 10

    def test_release_ignores_max_stock(self, db_session):
        p = make_product(db_session, stock=5, max_stock=5)
        stock_service.release_stock(p.id, 100)
        db_session.commit()
        assert reload(Product, p.id).stock_quantity == 105

    @pytest.mark.parametrize("qty", [0, -1, True, 1.5, "2"])
    def test_quantity_must_be_positive_int(self, db_session, product, qty):
        with pytest.raises(ValidationError):
            stock_service.commit_stock(product.id, qty)
        with pytest.raises(ValidationError):
            stock_service.release_stock(product.id, qty)

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.commit_stock(9999, 1)

    def test_quantity_past_integer_range_rejected(self, db_session, product):
        with pytest.raises(ValidationError, match="cannot exceed"):
            stock_service.release_stock(product.id, MAX_INT_VALUE + 1)
        with pytest.raises(ValidationError, match="cannot exceed"):
            stock_service.commit_stock(product.id, 10**20)

    def test_release_cannot_overflow_on_hand(self, db_session, product):
        with pytest.raises(ValidationError, match="Stock quantity cannot exceed"):
            stock_service.release_stock(product.id, MAX_INT_VALUE)
        db_session.rollback()
        assert reload(Product, product.id).stock_quantity == 10

    def test_touches_last_restocked(self, db_session, product):
        before = product.last_restocked
        stock_service.release_stock(product.id, 1)
        db_session.commit()
        assert reload(Product, product.id).last_restocked >= before


class TestAdjustStock:
    def test_add(self, db_session, product, manager):
        result = stock_service.adjust_stock(
            product_id=product.id, operation="add", quantity=5, actor_user_id=manager.id,
        )
        assert result.stock_quantity == 15
        assert reload(Product, product.id).updated_by_user_id == manager.id

    def test_subtract(self, db_session, product, manager):
        stock_service.adjust_stock(
            product_id=product.id, operation="subtract", quantity=3, actor_user_id=manager.id,
        )
        assert reload(Product, product.id).stock_quantity == 7

    def test_subtract_below_zero_fails_and_leaves_stock(self, db_session, product, manager):
        with pytest.raises(InsufficientStockError):
            stock_service.adjust_stock(
                product_id=product.id, operation="subtract", quantity=11, actor_user_id=manager.id,
            )
        assert reload(Product, product.id).stock_quantity == 10

    def test_bad_operation(self, db_session, product, manager):
        with pytest.raises(ValidationError, match='"add" or "subtract"'):
            stock_service.adjust_stock(
                product_id=product.id, operation="set", quantity=1, actor_user_id=manager.id,
            )

    def test_employee_cannot_adjust(self, db_session, product, employee):
        with pytest.raises(ForbiddenError):
            stock_service.adjust_stock(
                product_id=product.id, operation="add", quantity=5, actor_user_id=employee.id,
            )
        assert reload(Product, product.id).stock_quantity == 10

    def test_inactive_actor_rejected(self, db_session, product, manager):
        manager.is_active = False
        db_session.commit()
        with pytest.raises(ForbiddenError):
            stock_service.adjust_stock(
                product_id=product.id, operation="subtract", quantity=1, actor_user_id=manager.id,
            )
        assert reload(Product, product.id).stock_quantity == 10

    def test_oversized_add_rejected(self, db_session, product, manager):
        with pytest.raises(ValidationError, match="cannot exceed"):
            stock_service.adjust_stock(
                product_id=product.id, operation="add", quantity=10**20, actor_user_id=manager.id,
            )
        assert reload(Product, product.id).stock_quantity == 10


class TestSetStockLevel:
    def test_set_absolute(self, db_session, product):
        p = stock_service.load_product_for_update(product.id)
        stock_service.set_stock_level(p, 3)
        db_session.commit()
        assert reload(Product, product.id).stock_quantity == 3

    def test_same_level_is_noop(self, db_session, product):
        version = product.version_id
        p = stock_service.load_product_for_update(product.id)
        stock_service.set_stock_level(p, 10)
        db_session.commit()
        assert reload(Product, product.id).version_id == version

    def test_negative_rejected(self, db_session, product):
        p = stock_service.load_product_for_update(product.id)
        with pytest.raises(ValidationError):
            stock_service.set_stock_level(p, -1)

    def test_past_integer_range_rejected(self, db_session, product):
        p = stock_service.load_product_for_update(product.id)
        with pytest.raises(ValidationError):
            stock_service.set_stock_level(p, MAX_INT_VALUE + 1)

