# Overview: Payment reconciliation for the checkout in progress (split tenders, change, readiness).

"""
Payment Reconciliation

DESIGN PRINCIPLES:
- One checkout can be paid with several instruments (split payments)
- Fees are informational: recorded per payment, never added to the amount owed
- remaining/change are derived on every read; nothing is cached
- A sale is finalizable only when fully paid, non-empty and a register
  session is open (future orders take a separate path)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..money import money_str
from ..validation import HUNDRED, ValidationError, ZERO, parse_money, parse_positive_int


class PaymentError(ValidationError):
    """Raised for payment operation errors."""


@dataclass(frozen=True)
class TenderedPayment:
    method_id: int
    method_name: str
    amount: Decimal
    installments: int
    fee_percent: Decimal

    @property
    def fee(self) -> Decimal:
        return self.amount * self.fee_percent / HUNDRED

    def to_dict(self) -> dict:
        return {
            "method_id": self.method_id,
            "method_name": self.method_name,
            "amount": money_str(self.amount),
            "installments": self.installments,
            "fee_percent": str(self.fee_percent),
            "fee": money_str(self.fee),
        }


class PaymentLedger:
    """Append-only (until removal) list of tenders for the current checkout."""

    def __init__(self):
        self._payments: list[TenderedPayment] = []

    def __len__(self) -> int:
        return len(self._payments)

    @property
    def payments(self) -> list[TenderedPayment]:
        return list(self._payments)

    def add_payment(self, method, amount, installments=1) -> TenderedPayment:
        """
        Record a tender.

        Args:
            method: PaymentMethod (or None when the operator picked nothing)
            amount: amount tendered, > 0
            installments: 1..method.max_installments
        """
        if method is None:
            raise PaymentError("Select a payment method")
        if not getattr(method, "is_active", True):
            raise PaymentError(f"Payment method {method.name} is inactive")

        value = parse_money("amount", amount)
        if value <= ZERO:
            raise PaymentError("Payment amount must be positive")

        count = parse_positive_int("installments", installments)
        max_installments = method.max_installments or 1
        if count > max_installments:
            raise PaymentError(
                f"{method.name} allows at most {max_installments} installment(s)",
                details={"max_installments": max_installments},
            )

        payment = TenderedPayment(
            method_id=method.id,
            method_name=method.name,
            amount=value,
            installments=count,
            fee_percent=Decimal(method.fee_percent or 0),
        )
        self._payments.append(payment)
        return payment

    def remove_payment(self, index: int) -> TenderedPayment:
        if not 0 <= index < len(self._payments):
            raise PaymentError("Payment not found", details={"index": index})
        return self._payments.pop(index)

    def clear(self) -> None:
        self._payments = []

    @property
    def total_paid(self) -> Decimal:
        return sum((p.amount for p in self._payments), ZERO)

    @property
    def total_fees(self) -> Decimal:
        return sum((p.fee for p in self._payments), ZERO)

    def remaining(self, total: Decimal) -> Decimal:
        return max(ZERO, total - self.total_paid)

    def change(self, total: Decimal) -> Decimal:
        return max(ZERO, self.total_paid - total)

    def summary(self, total: Decimal) -> dict:
        return {
            "payments": [p.to_dict() for p in self._payments],
            "total_paid": money_str(self.total_paid),
            "total_fees": money_str(self.total_fees),
            "remaining": money_str(self.remaining(total)),
            "change": money_str(self.change(total)),
        }


def finalize_blockers(
    *,
    total: Decimal,
    total_paid: Decimal,
    line_count: int,
    register_session_id: int | None,
) -> list[str]:
    """Reasons the sale cannot be finalized yet, in the order the operator should fix them."""
    problems = []
    if line_count == 0:
        problems.append("Cart is empty")
    if total_paid < total:
        problems.append("Insufficient payment")
    if register_session_id is None:
        problems.append("Cash register is not open")
    return problems


def is_ready_to_finalize(**kwargs) -> bool:
    return not finalize_blockers(**kwargs)
