from decimal import Decimal

import pytest

from pos_engine.permissions import permissions_for_role
from pos_engine.services import stock_guard
from pos_engine.services.cart import ProductSnapshot
from pos_engine.services.stock_guard import StockDecision
from pos_engine.validation import StockConfirmationRequired, StockShortageError


def _product(stock="5", *, is_service=False, block=False):
    return ProductSnapshot(
        id=1, name="Coffee", code="1001",
        sale_price=Decimal("10"), wholesale_price=None, cost_price=Decimal("6"),
        stock_quantity=Decimal(stock), is_service=is_service,
        allow_open_price=False, block_sale_no_stock=block,
        commission_percent=Decimal("0"),
    )


def test_allow_within_stock():
    check = stock_guard.evaluate(_product("5"), Decimal("5"),
                                 permissions=permissions_for_role("cashier"), global_block=True)
    assert check.decision is StockDecision.ALLOW
    assert stock_guard.enforce(check) is False


def test_block_for_operator_without_override():
    check = stock_guard.evaluate(_product("5"), Decimal("6"),
                                 permissions=permissions_for_role("cashier"), global_block=True)
    assert check.decision is StockDecision.BLOCK
    with pytest.raises(StockShortageError) as exc:
        stock_guard.enforce(check, override_confirmed=True)
    assert exc.value.details["available"] == "5"


def test_confirm_for_privileged_operator():
    check = stock_guard.evaluate(_product("5"), Decimal("6"),
                                 permissions=permissions_for_role("manager"), global_block=True)
    assert check.decision is StockDecision.CONFIRM
    with pytest.raises(StockConfirmationRequired):
        stock_guard.enforce(check)
    assert stock_guard.enforce(check, override_confirmed=True) is True


def test_services_never_checked():
    check = stock_guard.evaluate(_product("0", is_service=True), Decimal("100"),
                                 permissions=permissions_for_role("cashier"), global_block=True)
    assert check.decision is StockDecision.ALLOW


def test_future_order_bypasses_stock():
    check = stock_guard.evaluate(_product("0"), Decimal("3"),
                                 permissions=permissions_for_role("cashier"),
                                 global_block=True, future_order=True)
    assert check.decision is StockDecision.ALLOW


def test_blocking_disabled_allows_shortage():
    check = stock_guard.evaluate(_product("0"), Decimal("3"),
                                 permissions=permissions_for_role("cashier"), global_block=False)
    assert check.decision is StockDecision.ALLOW


def test_per_product_block_applies_when_global_off():
    check = stock_guard.evaluate(_product("1", block=True), Decimal("2"),
                                 permissions=permissions_for_role("seller"), global_block=False)
    assert check.decision is StockDecision.BLOCK
