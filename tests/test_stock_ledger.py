from decimal import Decimal

import pytest

from apps.api.errors import ConstraintViolation
from apps.api.services.stock_ledger import check_available


def test_enough_stock_passes():
    check_available(product_id="p1", quantity=Decimal("100"), on_hand=Decimal("100"))


def test_short_stock_is_rejected():
    with pytest.raises(ConstraintViolation) as exc:
        check_available(product_id="p1", quantity=Decimal("101"), on_hand=Decimal("100"))
    assert "Insufficient stock for product p1" in str(exc.value)


def test_short_batch_names_the_batch():
    with pytest.raises(ConstraintViolation) as exc:
        check_available(product_id="p1", batch_id="b1", quantity=Decimal("2"), on_hand=Decimal("1"))
    assert "batch b1" in str(exc.value)


def test_ceiling_checked_before_stock():
    with pytest.raises(ConstraintViolation) as exc:
        check_available(
            product_id="p1",
            quantity=Decimal("5"),
            on_hand=Decimal("1000"),
            max_quantity=Decimal("4"),
        )
    assert "allowed maximum" in str(exc.value)


def test_quantity_at_ceiling_is_allowed():
    check_available(
        product_id="p1",
        quantity=Decimal("4"),
        on_hand=Decimal("4"),
        max_quantity=Decimal("4"),
    )
