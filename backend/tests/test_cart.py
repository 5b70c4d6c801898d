from decimal import Decimal

import pytest

from pos_engine.permissions import permissions_for_role
from pos_engine.services.cart import Cart, ProductSnapshot
from pos_engine.validation import (
    OpenPriceRequired,
    PermissionDenied,
    StockConfirmationRequired,
    StockShortageError,
    ValidationError,
)


def _product(pid=1, *, price="10.00", stock="10", wholesale=None, open_price=False, service=False):
    return ProductSnapshot(
        id=pid, name=f"Product {pid}", code=str(1000 + pid),
        sale_price=Decimal(price),
        wholesale_price=Decimal(wholesale) if wholesale else None,
        cost_price=Decimal("4.00"),
        stock_quantity=Decimal(stock),
        is_service=service,
        allow_open_price=open_price,
        block_sale_no_stock=False,
        commission_percent=Decimal("0"),
    )


@pytest.fixture
def cart():
    return Cart(permissions=permissions_for_role("seller"))


def test_add_same_product_twice_merges(cart):
    product = _product()
    cart.add_item(product, 1)
    line = cart.add_item(product, 2)

    assert len(cart) == 1
    assert line.quantity == Decimal("3")
    assert line.total == Decimal("30.00")


def test_different_price_opens_new_line(manager_permissions):
    cart = Cart(permissions=manager_permissions)
    product = _product()
    cart.add_item(product, 1)
    cart.add_item(product, 1, explicit_price="9.00")

    assert len(cart) == 2
    assert cart.quantity_of(product.id) == Decimal("2")


def test_stock_guard_uses_resulting_quantity(cart):
    product = _product(stock="3")
    cart.add_item(product, 2)

    with pytest.raises(StockShortageError):
        cart.add_item(product, 2)
    assert cart.lines[0].quantity == Decimal("2")


def test_confirmation_required_then_override_flags_line(manager_permissions):
    cart = Cart(permissions=manager_permissions)
    product = _product(stock="1")

    with pytest.raises(StockConfirmationRequired):
        cart.add_item(product, 2)
    assert cart.is_empty

    line = cart.add_item(product, 2, override_confirmed=True)
    assert line.sold_without_stock is True


def test_open_price_requires_price(cart):
    product = _product(price="0", open_price=True)

    with pytest.raises(OpenPriceRequired):
        cart.add_item(product, 1)

    line = cart.add_item(product, 1, explicit_price="7.50")
    assert line.unit_price == Decimal("7.50")
    assert line.is_open_price is True


def test_explicit_price_requires_price_privilege(cart):
    with pytest.raises(PermissionDenied):
        cart.add_item(_product(), 1, explicit_price="1.00")
    assert cart.is_empty


def test_wholesale_price_used_when_available(cart):
    line = cart.add_item(_product(wholesale="8.00"), 1, use_wholesale=True)
    assert line.unit_price == Decimal("8.00")

    line = cart.add_item(_product(2), 1, use_wholesale=True)
    assert line.unit_price == Decimal("10.00")


def test_update_quantity_clamped_to_minimum(cart):
    cart.add_item(_product(), 2)
    line = cart.update_item(0, "quantity", "0")
    assert line.quantity == Decimal("0.001")


def test_update_quantity_increase_is_stock_checked(cart):
    cart.add_item(_product(stock="3"), 1)
    with pytest.raises(StockShortageError):
        cart.update_item(0, "quantity", "5")
    assert cart.lines[0].quantity == Decimal("1")


def test_update_discount_cannot_exceed_line_amount(cart):
    cart.add_item(_product(), 1)
    with pytest.raises(ValidationError):
        cart.update_item(0, "discount", "10.01")

    line = cart.update_item(0, "discount", "2.50")
    assert line.total == Decimal("7.50")


def test_shrinking_quantity_reclamps_line_discount(cart):
    cart.add_item(_product(), 2)
    cart.update_item(0, "discount", "15.00")
    line = cart.update_item(0, "quantity", "1")
    assert line.discount == Decimal("10.00")
    assert line.total == Decimal("0")


def test_update_price_requires_privilege(cart):
    cart.add_item(_product(), 1)
    with pytest.raises(PermissionDenied):
        cart.update_item(0, "unit_price", "5.00")


def test_update_unknown_line_or_field(cart):
    with pytest.raises(ValidationError):
        cart.update_item(0, "quantity", "1")
    cart.add_item(_product(), 1)
    with pytest.raises(ValidationError):
        cart.update_item(0, "name", "x")


def test_remove_is_idempotent(cart):
    line = cart.add_item(_product(), 1)
    assert cart.remove_item(line.id) is True
    assert cart.remove_item(line.id) is False
    assert cart.is_empty


def test_services_skip_stock_check(cart):
    line = cart.add_item(_product(stock="0", service=True), 5)
    assert line.sold_without_stock is False


def test_update_quantity_respects_upper_bound(cart):
    cart.add_item(_product(service=True), 1)
    with pytest.raises(ValidationError):
        cart.update_item(0, "quantity", "5000000")
    assert cart.lines[0].quantity == Decimal("1")


def test_quantity_finer_than_a_gram_is_rejected(cart):
    cart.add_item(_product(), 1)
    with pytest.raises(ValidationError):
        cart.update_item(0, "quantity", "0.0015")
    with pytest.raises(ValidationError):
        cart.add_item(_product(2), "0.0015")

    line = cart.update_item(0, "quantity", "0.125")
    assert line.quantity == Decimal("0.125")
    assert line.total == Decimal("1.25")


def test_prices_limited_to_four_decimal_places(manager_permissions):
    cart = Cart(permissions=manager_permissions)
    with pytest.raises(ValidationError):
        cart.add_item(_product(), 1, explicit_price="9.99999")
    cart.add_item(_product(), 1)
    with pytest.raises(ValidationError):
        cart.update_item(0, "unit_price", "1.00001")
    assert cart.lines[0].unit_price == Decimal("10.00")


def test_repriced_line_folds_into_matching_row(manager_permissions):
    cart = Cart(permissions=manager_permissions)
    product = _product()
    first = cart.add_item(product, 2, explicit_price="9.00")
    cart.add_item(product, 3)
    cart.update_item(1, "discount", "1.00")

    line = cart.update_item(1, "unit_price", "9.00")

    assert len(cart) == 1
    assert line is first
    assert line.quantity == Decimal("5")
    assert line.discount == Decimal("1.00")
    assert line.total == Decimal("44.00")

    # later adds at that price land on the single row
    cart.add_item(product, 1, explicit_price="9.00")
    assert len(cart) == 1
    assert cart.lines[0].quantity == Decimal("6")


def test_merge_refreshes_stock_snapshot(cart):
    cart.add_item(_product(stock="10"), 2)
    cart.add_item(_product(stock="3"), 1)

    assert cart.lines[0].product.stock_quantity == Decimal("3")
    with pytest.raises(StockShortageError):
        cart.update_item(0, "quantity", "5")
    assert cart.lines[0].quantity == Decimal("3")
