# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    CLIENTS = "CLIENTS"
    RESERVATIONS = "RESERVATIONS"
    LOANS = "LOANS"
    RECEPTIONS = "RECEPTIONS"
    BILLING = "BILLING"
    CASH = "CASH"
    USERS = "USERS"
    SYSTEM = "SYSTEM"
