# Overview: Decides whether a cart line may reach a given quantity given inventory and operator privilege.

"""
Stock Guard outcomes:

- ALLOW:   service products, future orders, blocking disabled, or the
           resulting quantity fits in stock.
- BLOCK:   blocking enabled, resulting quantity exceeds stock, operator
           cannot override. The cart must not change.
- CONFIRM: same shortage, operator can override. The cart must not change
           until the operator confirms; the line is then flagged
           sold_without_stock.

The quantity checked is the RESULTING quantity of the product in the cart,
never the delta alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from ..permissions import OperatorPermissions
from ..validation import StockConfirmationRequired, StockShortageError


class StockDecision(str, Enum):
    ALLOW = "allow"
    BLOCK = "block"
    CONFIRM = "confirm"


@dataclass(frozen=True)
class StockCheck:
    decision: StockDecision
    product_id: int
    product_name: str
    available: Decimal
    requested: Decimal

    def details(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "available": str(self.available),
            "requested": str(self.requested),
        }


def evaluate(
    product,
    resulting_quantity: Decimal,
    *,
    permissions: OperatorPermissions,
    global_block: bool,
    future_order: bool = False,
) -> StockCheck:
    available = Decimal(product.stock_quantity or 0)

    def _check(decision: StockDecision) -> StockCheck:
        return StockCheck(
            decision=decision,
            product_id=product.id,
            product_name=product.name,
            available=available,
            requested=resulting_quantity,
        )

    if future_order or product.is_service:
        return _check(StockDecision.ALLOW)

    blocking = bool(global_block or product.block_sale_no_stock)
    if not blocking or resulting_quantity <= available:
        return _check(StockDecision.ALLOW)

    if permissions.can_override_stock:
        return _check(StockDecision.CONFIRM)
    return _check(StockDecision.BLOCK)


def enforce(check: StockCheck, *, override_confirmed: bool = False) -> bool:
    """
    Apply a StockCheck.

    Returns True when the add proceeds as an override (sold without stock).
    Raises when the cart must not change.
    """
    if check.decision is StockDecision.ALLOW:
        return False

    if check.decision is StockDecision.BLOCK:
        raise StockShortageError(
            f"Insufficient stock for {check.product_name}: {check.available} available",
            details=check.details(),
        )

    if not override_confirmed:
        raise StockConfirmationRequired(
            f"{check.product_name} exceeds available stock ({check.available}); confirmation required",
            details=check.details(),
        )
    return True
