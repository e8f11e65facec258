# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    CLIENT_PERMISSIONS,
    RESERVATION_PERMISSIONS,
    LOAN_PERMISSIONS,
    RECEPTION_PERMISSIONS,
    BILLING_PERMISSIONS,
    CASH_PERMISSIONS,
    USER_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    get_all_permission_codes,
    get_role_permissions,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "CLIENT_PERMISSIONS",
    "RESERVATION_PERMISSIONS",
    "LOAN_PERMISSIONS",
    "RECEPTION_PERMISSIONS",
    "BILLING_PERMISSIONS",
    "CASH_PERMISSIONS",
    "USER_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "get_role_permissions",
]
