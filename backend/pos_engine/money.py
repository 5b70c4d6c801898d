# Overview: Display formatting for Decimal money and quantities.
#
# The engine keeps exact Decimals; values are rounded only when rendered.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")
GRAM = Decimal("0.001")


def round_money(value: Decimal) -> Decimal:
    """Nearest-cent rounding (half-up)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return str(round_money(value))


def quantity_str(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return str(Decimal(value).quantize(GRAM, rounding=ROUND_HALF_UP))
