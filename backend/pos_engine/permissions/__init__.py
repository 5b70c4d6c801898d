# Overview: Operator permission package.
# Re-exports the role table and the per-session capability struct.

from .roles import (
    DEFAULT_ROLE_PERMISSIONS,
    STOCK_OVERRIDE_ROLES,
    VALID_ROLES,
)
from .operator import (
    OperatorPermissions,
    UnknownRoleError,
    build_operator_permissions,
    permissions_for_role,
)

__all__ = [
    "DEFAULT_ROLE_PERMISSIONS",
    "STOCK_OVERRIDE_ROLES",
    "VALID_ROLES",
    "OperatorPermissions",
    "UnknownRoleError",
    "build_operator_permissions",
    "permissions_for_role",
]
