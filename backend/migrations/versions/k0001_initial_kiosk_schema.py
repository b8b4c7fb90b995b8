"""initial kiosk schema

Revision ID: k0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the complete kiosk schema:
- staff_users, roles, permissions, role_permissions, session_tokens: PIN auth and capabilities
- catalog_items: sellable products and services
- inventory_movements: append-only stock ledger
- sales, sale_items, sale_payments, receipts: checkout documents
- audit_logs: append-only audit trail
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'k0001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # Access control
    # ============================================================================
    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_roles_code', 'roles', ['code'], unique=True)

    op.create_table(
        'permissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=False),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_permissions_code', 'permissions', ['code'], unique=True)
    op.create_index('ix_permissions_category', 'permissions', ['category'])

    op.create_table(
        'role_permissions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('role_id', sa.Integer(), nullable=False),
        sa.Column('permission_id', sa.Integer(), nullable=False),
        _timestamp('granted_at'),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ),
        sa.ForeignKeyConstraint(['permission_id'], ['permissions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('role_id', 'permission_id', name='uq_role_permissions'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_role_permissions_role_id', 'role_permissions', ['role_id'])
    op.create_index('ix_role_permissions_permission_id', 'role_permissions', ['permission_id'])

    op.create_table(
        'staff_users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('pin_hash', sa.String(length=255), nullable=False),
        sa.Column('role_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('is_root', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('ui_language', sa.String(length=8), nullable=False, server_default='fr'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_staff_users_role_id', 'staff_users', ['role_id'])
    op.create_index('ix_staff_users_active', 'staff_users', ['is_active'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('staff_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('permissions', sa.JSON(), nullable=False),
        _timestamp('created_at'),
        _timestamp('last_used_at'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['staff_id'], ['staff_users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_staff_id', 'session_tokens', ['staff_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_staff_active', 'session_tokens', ['staff_id', 'is_revoked'])

    # ============================================================================
    # catalog_items: products and services
    # ============================================================================
    op.create_table(
        'catalog_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('item_type', sa.String(length=16), nullable=False, server_default='PRODUCT'),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('cost_amount', sa.BigInteger(), nullable=True),
        sa.Column('track_stock', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('stock_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_catalog_items_sku'),
        sa.CheckConstraint("item_type IN ('PRODUCT', 'SERVICE')", name='ck_catalog_items_type'),
        sa.CheckConstraint('price_amount >= 0', name='ck_catalog_items_price_nonneg'),
        sa.CheckConstraint('cost_amount IS NULL OR cost_amount >= 0', name='ck_catalog_items_cost_nonneg'),
        sa.CheckConstraint('stock_qty >= 0', name='ck_catalog_items_stock_nonneg'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_catalog_items_category', 'catalog_items', ['category'])
    op.create_index('ix_catalog_items_category_name', 'catalog_items', ['category', 'name'])
    op.create_index('ix_catalog_items_active', 'catalog_items', ['is_active'])

    # ============================================================================
    # inventory_movements: append-only stock ledger
    # ============================================================================
    # SUM(delta) per item equals catalog_items.stock_qty
    op.create_table(
        'inventory_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('delta', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=128), nullable=False),
        sa.Column('ref_type', sa.String(length=16), nullable=False),
        sa.Column('ref_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['item_id'], ['catalog_items.id'], ),
        sa.ForeignKeyConstraint(['created_by'], ['staff_users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('delta <> 0', name='ck_inventory_movements_delta_nonzero'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_movements_item_id', 'inventory_movements', ['item_id'])
    op.create_index('ix_inventory_movements_item_created', 'inventory_movements', ['item_id', 'created_at'])
    op.create_index('ix_inventory_movements_ref', 'inventory_movements', ['ref_type', 'ref_id'])

    # ============================================================================
    # sales and their documents
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_no', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='DRAFT'),
        sa.Column('subtotal_amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('discount_amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('paid_amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('change_amount', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('language', sa.String(length=8), nullable=False, server_default='fr'),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['created_by'], ['staff_users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_no', name='uq_sales_sale_no'),
        sa.CheckConstraint("status IN ('DRAFT', 'PARTIAL', 'PAID', 'VOID')", name='ck_sales_status'),
        sa.CheckConstraint(
            'subtotal_amount >= 0 AND discount_amount >= 0 AND tax_amount >= 0 '
            'AND total_amount >= 0 AND paid_amount >= 0 AND change_amount >= 0',
            name='ck_sales_amounts_nonneg'
        ),
        sa.CheckConstraint(
            'total_amount = subtotal_amount - discount_amount + tax_amount',
            name='ck_sales_total'
        ),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_created_by', 'sales', ['created_by'])
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])
    op.create_index('ix_sales_status_created', 'sales', ['status', 'created_at'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('item_name_snapshot', sa.String(length=255), nullable=False),
        sa.Column('unit_price_amount', sa.BigInteger(), nullable=False),
        sa.Column('qty', sa.BigInteger(), nullable=False),
        sa.Column('line_total_amount', sa.BigInteger(), nullable=False),
        sa.Column('track_stock_snapshot', sa.Boolean(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['item_id'], ['catalog_items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('qty > 0', name='ck_sale_items_qty_positive'),
        sa.CheckConstraint('unit_price_amount >= 0', name='ck_sale_items_price_nonneg'),
        sa.CheckConstraint('line_total_amount = unit_price_amount * qty', name='ck_sale_items_line_total'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_item_id', 'sale_items', ['item_id'])

    op.create_table(
        'sale_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('provider', sa.String(length=64), nullable=True),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('received_by', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['received_by'], ['staff_users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_sale_payments_amount_positive'),
        sa.CheckConstraint("method IN ('CASH', 'MOBILE_MONEY', 'CARD')", name='ck_sale_payments_method'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_payments_sale_id', 'sale_payments', ['sale_id'])

    op.create_table(
        'receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('receipt_no', sa.String(length=32), nullable=False),
        sa.Column('payload_json', sa.Text(), nullable=False),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id', name='uq_receipts_sale_id'),
        sa.UniqueConstraint('receipt_no', name='uq_receipts_receipt_no'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # audit_logs: append-only audit trail
    # ============================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('actor_name', sa.String(length=255), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['actor_id'], ['staff_users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_logs_action_created', 'audit_logs', ['action', 'created_at'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('audit_logs')
    op.drop_table('receipts')
    op.drop_table('sale_payments')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('inventory_movements')
    op.drop_table('catalog_items')
    op.drop_table('session_tokens')
    op.drop_table('staff_users')
    op.drop_table('role_permissions')
    op.drop_table('permissions')
    op.drop_table('roles')
