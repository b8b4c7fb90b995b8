from .catalog import CatalogItem
from .inventory import InventoryMovement
from .sales import Sale, SaleItem, SalePayment, Receipt
from .auth import StaffUser, Role, Permission, RolePermission, SessionToken
from .audit import AuditLogEntry

__all__ = [
    'CatalogItem',
    'InventoryMovement',
    'Sale', 'SaleItem', 'SalePayment', 'Receipt',
    'StaffUser', 'Role', 'Permission', 'RolePermission', 'SessionToken',
    'AuditLogEntry',
]
