# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- CLIENTS --

CLIENT_PERMISSIONS = [
    (
        "VIEW_CLIENTS",
        "View Clients",
        "View the client list and client statistics",
        PermissionCategory.CLIENTS,
    ),
    (
        "MANAGE_CLIENTS",
        "Manage Clients",
        "Create, edit and delete clients",
        PermissionCategory.CLIENTS,
    ),
]


# -- RESERVATIONS --

RESERVATION_PERMISSIONS = [
    (
        "VIEW_RESERVATIONS",
        "View Reservations",
        "View reservations and upcoming deposit payments",
        PermissionCategory.RESERVATIONS,
    ),
    (
        "CREATE_RESERVATION",
        "Create Reservation",
        "Request crate space (client accounts: for themselves only)",
        PermissionCategory.RESERVATIONS,
    ),
    (
        "APPROVE_RESERVATIONS",
        "Approve Reservations",
        "Approve, refuse and close reservations",
        PermissionCategory.RESERVATIONS,
    ),
]


# -- LOANS --

LOAN_PERMISSIONS = [
    (
        "VIEW_LOANS",
        "View Loans",
        "View empty-crate loans and pool availability",
        PermissionCategory.LOANS,
    ),
    (
        "MANAGE_LOANS",
        "Manage Loans",
        "Create, edit and return empty-crate loans",
        PermissionCategory.LOANS,
    ),
]


# -- RECEPTIONS --

RECEPTION_PERMISSIONS = [
    (
        "VIEW_RECEPTIONS",
        "View Receptions",
        "View receptions, pallet plans and room occupancy",
        PermissionCategory.RECEPTIONS,
    ),
    (
        "MANAGE_RECEPTIONS",
        "Manage Receptions",
        "Record and update receptions",
        PermissionCategory.RECEPTIONS,
    ),
    (
        "MANAGE_WAREHOUSE",
        "Manage Warehouse Data",
        "Maintain rooms, trucks, drivers and products",
        PermissionCategory.RECEPTIONS,
    ),
]


# -- BILLING --

BILLING_PERMISSIONS = [
    (
        "VIEW_INVOICES",
        "View Invoices",
        "View invoices",
        PermissionCategory.BILLING,
    ),
    (
        "MANAGE_INVOICES",
        "Manage Invoices",
        "Create, edit and delete invoices",
        PermissionCategory.BILLING,
    ),
]


# -- CASH --

CASH_PERMISSIONS = [
    (
        "VIEW_CASH",
        "View Cash Register",
        "View the cash journal, overview and closures",
        PermissionCategory.CASH,
    ),
    (
        "RECORD_CASH_MOVEMENT",
        "Record Cash Movement",
        "Record receipts, payments and cash-outs",
        PermissionCategory.CASH,
    ),
    (
        "REFUND_CAUTION",
        "Refund Caution",
        "Pay back client deposits",
        PermissionCategory.CASH,
    ),
    (
        "CLOSE_CASH_DAY",
        "Close Cash Day",
        "Count the drawer and close the cash day",
        PermissionCategory.CASH,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "View user list and roles",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, edit, deactivate and delete users",
        PermissionCategory.USERS,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "VIEW_AUDIT_LOG",
        "View Audit Log",
        "View activity and security logs",
        PermissionCategory.SYSTEM,
    ),
    (
        "MANAGE_SETTINGS",
        "Manage Settings",
        "Edit site, pricing and pool settings",
        PermissionCategory.SYSTEM,
    ),
    (
        "SYSTEM_ADMIN",
        "System Administration",
        "Full administrative access to the tenant",
        PermissionCategory.SYSTEM,
    ),
]


PERMISSION_DEFINITIONS = (
    CLIENT_PERMISSIONS
    + RESERVATION_PERMISSIONS
    + LOAN_PERMISSIONS
    + RECEPTION_PERMISSIONS
    + BILLING_PERMISSIONS
    + CASH_PERMISSIONS
    + USER_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
