# Overview: Lookups over the static permission tables.

from .definitions import PERMISSION_DEFINITIONS
from .roles import DEFAULT_ROLE_PERMISSIONS


def get_all_permission_codes() -> list[str]:
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_role_permissions(role: str) -> set[str]:
    """Permission codes granted to a role; unknown roles get nothing (fail closed)."""
    return set(DEFAULT_ROLE_PERMISSIONS.get(role, ()))
