# Overview: Error taxonomy for the POS engine and strict coercion of money/quantity input.

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any


# Maximum price: 9,999,999.99 (prevents overflow of Numeric(14, 4) columns)
MAX_MONEY = Decimal("9999999.99")
MAX_QUANTITY = Decimal("999999.999")

# Scale of the Numeric(14, 4) money and Numeric(14, 3) quantity columns
MONEY_PLACES = 4
QUANTITY_PLACES = 3

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class PosError(Exception):
    """Base class for POS engine errors; carries a user-facing message and details."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PosError):
    """400-level input problem. No state was mutated."""


class PermissionDenied(PosError):
    """The acting operator lacks the capability for this action."""

    status_code = 403


class NotFoundError(PosError):
    status_code = 404


class ProductNotFoundError(NotFoundError):
    """No catalog entry matched a scanned or typed code."""


class StockShortageError(PosError):
    """Hard stock block: the operator cannot override."""


class StockConfirmationRequired(PosError):
    """
    Shortage that a privileged operator may override.

    The cart was not mutated; repeating the call with
    ``override_confirmed=True`` performs the add.
    """

    status_code = 409


class OpenPriceRequired(PosError):
    """The product is sold at an open price and none was supplied."""

    status_code = 409


def _reject_non_numeric(field: str, value: Any) -> None:
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain number (scientific notation not allowed)")


def to_decimal(field: str, value: Any) -> Decimal:
    """
    Coerce an int/float/str/Decimal into a finite Decimal.

    Floats go through ``str`` so 0.1 stays 0.1 rather than its binary expansion.
    """
    _reject_non_numeric(field, value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def _check_places(field: str, value: Decimal, places: int) -> None:
    if value != value.quantize(Decimal(1).scaleb(-places)):
        raise ValidationError(f"{field} allows at most {places} decimal places")


def parse_money(field: str, value: Any, *, allow_zero: bool = True) -> Decimal:
    amount = to_decimal(field, value)
    if amount < ZERO:
        raise ValidationError(f"{field} must be >= 0")
    if not allow_zero and amount == ZERO:
        raise ValidationError(f"{field} must be > 0")
    if amount > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY}")
    _check_places(field, amount, MONEY_PLACES)
    return amount


def parse_quantity(field: str, value: Any) -> Decimal:
    qty = to_decimal(field, value)
    if qty <= ZERO:
        raise ValidationError(f"{field} must be > 0")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}")
    _check_places(field, qty, QUANTITY_PLACES)
    return qty


def parse_positive_int(field: str, value: Any, *, minimum: int = 1) -> int:
    """Strict integer coercion: rejects bools, floats and decimal strings."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "." in stripped or "e" in stripped.lower():
            raise ValidationError(f"{field} must be an integer")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")

    if result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return result
