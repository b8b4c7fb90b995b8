# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- POS --

POS_PERMISSIONS = [
    (
        "POS_VIEW",
        "View POS",
        "Open the point-of-sale screen and browse sellable items",
        PermissionCategory.POS,
    ),
    (
        "POS_CHECKOUT",
        "Checkout",
        "Commit sales (cart, payments, stock decrement, receipt)",
        PermissionCategory.POS,
    ),
    (
        "POS_VOID",
        "Void Sale",
        "Void committed sales (reserved)",
        PermissionCategory.POS,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "SALES_VIEW",
        "View Sales",
        "View sales, sale details and receipts",
        PermissionCategory.SALES,
    ),
]


# -- CATALOG --

CATALOG_PERMISSIONS = [
    (
        "CATALOG_VIEW",
        "View Catalog",
        "View catalog items, prices, stock and movements",
        PermissionCategory.CATALOG,
    ),
    (
        "CATALOG_EDIT",
        "Edit Catalog",
        "Create, edit and deactivate catalog items",
        PermissionCategory.CATALOG,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "INVENTORY_ADJUST",
        "Adjust Stock",
        "Record manual stock adjustments (corrections, shrink, restock)",
        PermissionCategory.INVENTORY,
    ),
]


# -- STAFF --

STAFF_PERMISSIONS = [
    (
        "STAFF_MANAGE",
        "Manage Staff",
        "Create and edit staff accounts",
        PermissionCategory.STAFF,
    ),
    (
        "ROLES_MANAGE",
        "Manage Roles",
        "Edit role permission grants",
        PermissionCategory.STAFF,
    ),
]


# -- AUDIT --

AUDIT_PERMISSIONS = [
    (
        "AUDIT_VIEW",
        "View Audit Log",
        "View the audit trail and stock reconciliation",
        PermissionCategory.AUDIT,
    ),
]


# Combined list of all permissions (fixed, enumerated)
PERMISSION_DEFINITIONS = (
    POS_PERMISSIONS
    + SALES_PERMISSIONS
    + CATALOG_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + STAFF_PERMISSIONS
    + AUDIT_PERMISSIONS
)
