# Overview: Default role definitions and their permission grants.

from .definitions import PERMISSION_DEFINITIONS

# (code, display name, description)
DEFAULT_ROLES = [
    ("ROOT", "Root", "Full system access"),
    ("MANAGER", "Manager", "Shop management, catalog, stock and staff"),
    ("CASHIER", "Cashier", "Point-of-sale checkout"),
    ("IT_AGENT", "IT Agent", "IT services desk"),
    ("VIEWER", "Viewer", "Read-only access to sales, catalog and audit"),
]

DEFAULT_ROLE_PERMISSIONS = {
    # Root gets ALL permissions
    "ROOT": [perm[0] for perm in PERMISSION_DEFINITIONS],
    "MANAGER": [
        "POS_VIEW",
        "POS_CHECKOUT",
        "POS_VOID",
        "SALES_VIEW",
        "CATALOG_VIEW",
        "CATALOG_EDIT",
        "INVENTORY_ADJUST",
        "STAFF_MANAGE",
        "AUDIT_VIEW",
    ],
    "CASHIER": [
        "POS_VIEW",
        "POS_CHECKOUT",
        "SALES_VIEW",
        "CATALOG_VIEW",
    ],
    "IT_AGENT": [
        "CATALOG_VIEW",
    ],
    "VIEWER": [
        "SALES_VIEW",
        "CATALOG_VIEW",
        "AUDIT_VIEW",
    ],
}
