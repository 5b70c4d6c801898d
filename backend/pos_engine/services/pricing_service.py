# Overview: Pricing & discount engine; derives sale totals from the cart on every read.

"""
Pricing invariants (authoritative):

- subtotal = sum(line.total)
- vip      = subtotal * vip_percent / 100
- manual   = subtotal * value / 100 (percent) or value (amount), never more
             than max_discount_percent of the CURRENT subtotal
- loyalty  = points * point_value
- discount = min(vip + manual + loyalty, subtotal); total = subtotal - discount
- profit   = total - sum(quantity * cost_price), may be negative

Nothing is cached: compute_totals is a pure function of its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable

from ..money import money_str
from ..permissions import OperatorPermissions
from ..validation import HUNDRED, PermissionDenied, ValidationError, ZERO, to_decimal


class DiscountType(str, Enum):
    PERCENT = "percent"
    AMOUNT = "amount"


@dataclass
class DiscountState:
    manual_value: Decimal = ZERO
    manual_type: DiscountType = DiscountType.PERCENT
    vip_percent: Decimal = ZERO
    loyalty_points: int = 0

    def reset(self) -> None:
        self.manual_value = ZERO
        self.manual_type = DiscountType.PERCENT
        self.vip_percent = ZERO
        self.loyalty_points = 0


@dataclass(frozen=True)
class DiscountDecision:
    requested: Decimal
    accepted: Decimal
    discount_type: DiscountType
    clamped: bool
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "requested": str(self.requested),
            "accepted": str(self.accepted),
            "type": self.discount_type.value,
            "clamped": self.clamped,
            "message": self.message,
        }


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    vip_discount: Decimal
    manual_discount: Decimal
    loyalty_discount: Decimal
    discount: Decimal
    total: Decimal
    cost_total: Decimal
    profit: Decimal
    manual_discount_clamped: bool = False

    def to_dict(self) -> dict:
        return {
            "subtotal": money_str(self.subtotal),
            "vip_discount": money_str(self.vip_discount),
            "manual_discount": money_str(self.manual_discount),
            "loyalty_discount": money_str(self.loyalty_discount),
            "discount": money_str(self.discount),
            "total": money_str(self.total),
            "cost_total": money_str(self.cost_total),
            "profit": money_str(self.profit),
            "manual_discount_clamped": self.manual_discount_clamped,
        }


def parse_discount_type(value) -> DiscountType:
    try:
        return DiscountType(value)
    except ValueError:
        raise ValidationError(
            f"Invalid discount type: {value}",
            details={"allowed": [t.value for t in DiscountType]},
        )


def subtotal_of(lines: Iterable) -> Decimal:
    return sum((line.total for line in lines), ZERO)


def max_manual_amount(subtotal: Decimal, permissions: OperatorPermissions) -> Decimal:
    if not permissions.can_give_discount:
        return ZERO
    return subtotal * permissions.max_discount_percent / HUNDRED


def validate_manual_discount(
    value,
    discount_type: DiscountType,
    subtotal: Decimal,
    permissions: OperatorPermissions,
) -> DiscountDecision:
    """
    Validate an operator's manual discount request.

    - Without discount privilege any nonzero request raises PermissionDenied.
    - A request above max_discount_percent (amounts are converted to their
      percent-equivalent of subtotal) is clamped to the maximum and reported.
    """
    requested = to_decimal("discount", value)
    if requested < ZERO:
        raise ValidationError("Discount cannot be negative")

    if requested > ZERO and not permissions.can_give_discount:
        raise PermissionDenied("Operator is not allowed to give discounts")

    cap = permissions.max_discount_percent

    if discount_type is DiscountType.PERCENT:
        if requested > cap:
            return DiscountDecision(
                requested=requested,
                accepted=cap,
                discount_type=discount_type,
                clamped=True,
                message=f"Maximum discount allowed: {cap}%",
            )
    elif subtotal > ZERO:
        percent_equivalent = requested / subtotal * HUNDRED
        if percent_equivalent > cap:
            max_amount = subtotal * cap / HUNDRED
            return DiscountDecision(
                requested=requested,
                accepted=max_amount,
                discount_type=discount_type,
                clamped=True,
                message=f"Maximum discount allowed: {money_str(max_amount)} ({cap}%)",
            )

    return DiscountDecision(
        requested=requested,
        accepted=requested,
        discount_type=discount_type,
        clamped=False,
    )


def compute_totals(
    lines: Iterable,
    state: DiscountState,
    permissions: OperatorPermissions,
    point_value: Decimal = ZERO,
) -> Totals:
    lines = list(lines)
    subtotal = subtotal_of(lines)

    vip = subtotal * state.vip_percent / HUNDRED if state.vip_percent > ZERO else ZERO

    if state.manual_type is DiscountType.PERCENT:
        manual = subtotal * state.manual_value / HUNDRED
    else:
        manual = state.manual_value
    # the cart may have shrunk since the discount was accepted
    cap = max_manual_amount(subtotal, permissions)
    manual_clamped = manual > cap
    manual = min(manual, cap)

    loyalty = Decimal(state.loyalty_points) * point_value if state.loyalty_points > 0 else ZERO

    discount = min(vip + manual + loyalty, subtotal)
    total = max(ZERO, subtotal - discount)
    cost_total = sum((line.cost_total for line in lines), ZERO)

    return Totals(
        subtotal=subtotal,
        vip_discount=vip,
        manual_discount=manual,
        loyalty_discount=loyalty,
        discount=discount,
        total=total,
        cost_total=cost_total,
        profit=total - cost_total,
        manual_discount_clamped=manual_clamped,
    )
