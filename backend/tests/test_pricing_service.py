from decimal import Decimal
from types import SimpleNamespace

import pytest

from pos_engine.permissions import permissions_for_role
from pos_engine.services.pricing_service import (
    DiscountState,
    DiscountType,
    compute_totals,
    parse_discount_type,
    validate_manual_discount,
)
from pos_engine.validation import PermissionDenied, ValidationError


def _line(total, cost="0"):
    return SimpleNamespace(total=Decimal(total), cost_total=Decimal(cost))


def test_subtotal_and_profit():
    totals = compute_totals(
        [_line("20.00", "12.00"), _line("5.50", "3.00")],
        DiscountState(),
        permissions_for_role("seller"),
    )
    assert totals.subtotal == Decimal("25.50")
    assert totals.discount == Decimal("0")
    assert totals.total == Decimal("25.50")
    assert totals.profit == Decimal("10.50")


def test_vip_and_manual_discount_stack():
    state = DiscountState(manual_value=Decimal("10"), manual_type=DiscountType.PERCENT,
                          vip_percent=Decimal("5"))
    totals = compute_totals([_line("200.00")], state, permissions_for_role("manager"))

    assert totals.vip_discount == Decimal("10")
    assert totals.manual_discount == Decimal("20")
    assert totals.total == Decimal("170")


def test_loyalty_points_value():
    state = DiscountState(loyalty_points=50)
    totals = compute_totals([_line("100.00")], state, permissions_for_role("seller"), Decimal("0.10"))
    assert totals.loyalty_discount == Decimal("5.00")
    assert totals.total == Decimal("95.00")


def test_discount_never_exceeds_subtotal():
    state = DiscountState(vip_percent=Decimal("50"), loyalty_points=1000)
    totals = compute_totals([_line("10.00", "8.00")], state, permissions_for_role("seller"), Decimal("1"))

    assert totals.discount == totals.subtotal
    assert totals.total == Decimal("0")
    assert totals.profit == Decimal("-8.00")


def test_manual_discount_reclamped_when_cart_shrinks():
    # 5.00 accepted against 100.00 (seller cap 10%), cart then shrinks to 20.00
    state = DiscountState(manual_value=Decimal("5.00"), manual_type=DiscountType.AMOUNT)
    totals = compute_totals([_line("20.00")], state, permissions_for_role("seller"))

    assert totals.manual_discount == Decimal("2.00")
    assert totals.manual_discount_clamped is True


def test_percent_request_above_cap_is_clamped():
    decision = validate_manual_discount("15", DiscountType.PERCENT, Decimal("100"),
                                        permissions_for_role("seller"))
    assert decision.clamped is True
    assert decision.accepted == Decimal("10")
    assert "10" in decision.message


def test_amount_request_above_cap_is_clamped():
    decision = validate_manual_discount("30", DiscountType.AMOUNT, Decimal("100"),
                                        permissions_for_role("seller"))
    assert decision.clamped is True
    assert decision.accepted == Decimal("10")


def test_request_within_cap_accepted():
    decision = validate_manual_discount("7.5", DiscountType.PERCENT, Decimal("100"),
                                        permissions_for_role("seller"))
    assert decision.clamped is False
    assert decision.accepted == Decimal("7.5")


def test_no_discount_privilege_denied():
    with pytest.raises(PermissionDenied):
        validate_manual_discount("1", DiscountType.PERCENT, Decimal("100"),
                                 permissions_for_role("cashier"))

    decision = validate_manual_discount("0", DiscountType.PERCENT, Decimal("100"),
                                        permissions_for_role("cashier"))
    assert decision.accepted == Decimal("0")


def test_negative_discount_rejected():
    with pytest.raises(ValidationError):
        validate_manual_discount("-1", DiscountType.PERCENT, Decimal("100"),
                                 permissions_for_role("owner"))


def test_unknown_discount_type():
    with pytest.raises(ValidationError):
        parse_discount_type("coupon")
