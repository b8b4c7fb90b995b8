# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    POS = "POS"
    SALES = "SALES"
    CATALOG = "CATALOG"
    INVENTORY = "INVENTORY"
    STAFF = "STAFF"
    AUDIT = "AUDIT"
