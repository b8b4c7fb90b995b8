# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    POS_PERMISSIONS,
    SALES_PERMISSIONS,
    CATALOG_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    STAFF_PERMISSIONS,
    AUDIT_PERMISSIONS,
)
from .roles import DEFAULT_ROLES, DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
    filter_known_codes,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "POS_PERMISSIONS",
    "SALES_PERMISSIONS",
    "CATALOG_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "STAFF_PERMISSIONS",
    "AUDIT_PERMISSIONS",
    "DEFAULT_ROLES",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
    "filter_known_codes",
]
