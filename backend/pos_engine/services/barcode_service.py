# Overview: Decodes raw scanner/keyboard input into a catalog lookup key and quantity.

"""
Scale (weight-embedded) codes:

    2 P P P P P P W W W W W C
    |-- lookup key --|-weight-|check digit (ignored)

- 13 characters, all digits, first character '2'
- characters 1-7 (including the leading '2') are the product code
- characters 8-12 are the weight in grams; quantity = grams / 1000 (kg)

Any other input is a plain code: matched verbatim with quantity 1.
A 13-digit code not starting with '2' is a regular EAN-13.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

SCALE_CODE_LENGTH = 13
SCALE_CODE_PREFIX = "2"
SCALE_KEY_LENGTH = 7
SCALE_WEIGHT_END = 12
GRAMS_PER_KILOGRAM = Decimal(1000)


@dataclass(frozen=True)
class DecodedScan:
    lookup_key: str
    quantity: Decimal
    raw: str
    is_weighed: bool = False

    def candidates(self) -> list[str]:
        """Codes to try against product code/barcode, most specific first."""
        if self.raw == self.lookup_key:
            return [self.raw]
        return [self.raw, self.lookup_key]


def strip_framing(raw: str, prefix: str = "", suffix: str = "") -> str:
    """Trim whitespace and the scanner's configured prefix/suffix."""
    processed = (raw or "").strip()
    if prefix and processed.startswith(prefix):
        processed = processed[len(prefix):]
    if suffix and processed.endswith(suffix):
        processed = processed[: len(processed) - len(suffix)]
    return processed.strip()


def is_scale_code(code: str) -> bool:
    return (
        len(code) == SCALE_CODE_LENGTH
        and code.isdigit()
        and code.startswith(SCALE_CODE_PREFIX)
    )


def decode(raw: str, *, prefix: str = "", suffix: str = "") -> DecodedScan | None:
    """
    Decode one scan. Returns None when nothing usable remains.

    A scale code with a zero weight segment is not matched.
    """
    code = strip_framing(raw, prefix, suffix)
    if not code:
        return None

    if is_scale_code(code):
        grams = int(code[SCALE_KEY_LENGTH:SCALE_WEIGHT_END])
        if grams == 0:
            return None
        return DecodedScan(
            lookup_key=code[:SCALE_KEY_LENGTH],
            quantity=Decimal(grams) / GRAMS_PER_KILOGRAM,
            raw=code,
            is_weighed=True,
        )

    return DecodedScan(lookup_key=code, quantity=Decimal(1), raw=code)
