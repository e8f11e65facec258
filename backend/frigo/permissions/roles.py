# Overview: Default permission sets for the four built-in roles.
# Roles are fixed (admin, manager, viewer, client); there is no per-tenant role editor.

from .definitions import PERMISSION_DEFINITIONS


DEFAULT_ROLE_PERMISSIONS = {
    # Admin gets ALL permissions
    "admin": [perm[0] for perm in PERMISSION_DEFINITIONS],
    "manager": [
        "VIEW_CLIENTS",
        "MANAGE_CLIENTS",
        "VIEW_RESERVATIONS",
        "CREATE_RESERVATION",
        "APPROVE_RESERVATIONS",
        "VIEW_LOANS",
        "MANAGE_LOANS",
        "VIEW_RECEPTIONS",
        "MANAGE_RECEPTIONS",
        "MANAGE_WAREHOUSE",
        "VIEW_INVOICES",
        "MANAGE_INVOICES",
        "VIEW_CASH",
        "RECORD_CASH_MOVEMENT",
        "REFUND_CAUTION",
        "CLOSE_CASH_DAY",
        "VIEW_USERS",
        "VIEW_AUDIT_LOG",
    ],
    "viewer": [
        "VIEW_CLIENTS",
        "VIEW_RESERVATIONS",
        "VIEW_LOANS",
        "VIEW_RECEPTIONS",
        "VIEW_INVOICES",
        "VIEW_CASH",
    ],
    # Client-portal accounts; routes narrow every query to the linked client
    "client": [
        "VIEW_RESERVATIONS",
        "CREATE_RESERVATION",
    ],
}
