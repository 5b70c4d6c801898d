# Overview: Capability struct computed once per POS session from the operator's role.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .roles import DEFAULT_ROLE_PERMISSIONS, STOCK_OVERRIDE_ROLES, VALID_ROLES


class UnknownRoleError(ValueError):
    pass


@dataclass(frozen=True)
class OperatorPermissions:
    can_give_discount: bool
    max_discount_percent: Decimal
    can_override_stock: bool
    can_change_price: bool

    def to_dict(self) -> dict:
        return {
            "can_give_discount": self.can_give_discount,
            "max_discount_percent": str(self.max_discount_percent),
            "can_override_stock": self.can_override_stock,
            "can_change_price": self.can_change_price,
        }


def permissions_for_role(role: str) -> OperatorPermissions:
    if role not in VALID_ROLES:
        raise UnknownRoleError(f"Unknown operator role: {role}")
    defaults = DEFAULT_ROLE_PERMISSIONS[role]
    return OperatorPermissions(
        can_give_discount=defaults["can_give_discount"],
        max_discount_percent=Decimal(defaults["max_discount_percent"]),
        can_override_stock=role in STOCK_OVERRIDE_ROLES,
        can_change_price=defaults["can_change_price"],
    )


def build_operator_permissions(operator) -> OperatorPermissions:
    """
    Resolve an operator's capabilities: role defaults, then per-operator overrides.

    Stock override is role-bound and cannot be granted per operator.
    """
    base = permissions_for_role(operator.role)

    can_give_discount = base.can_give_discount
    if operator.can_give_discount is not None:
        can_give_discount = bool(operator.can_give_discount)

    max_discount = base.max_discount_percent
    if operator.max_discount_percent is not None:
        max_discount = Decimal(operator.max_discount_percent)
    max_discount = min(max(max_discount, Decimal("0")), Decimal("100"))

    can_change_price = base.can_change_price
    if operator.can_change_price is not None:
        can_change_price = bool(operator.can_change_price)

    return OperatorPermissions(
        can_give_discount=can_give_discount,
        max_discount_percent=max_discount,
        can_override_stock=base.can_override_stock,
        can_change_price=can_change_price,
    )
