# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/kiosk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: tables, permissions, roles, grants, root staff, default services.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Staff:
# - python -m flask staff list
# - python -m flask staff create --name "Awa" --pin aw-123456 --role CASHIER
#
# Permission inspection:
# - python -m flask perms list [--role CASHIER | --category POS]
#
# Inventory:
# - python -m flask inventory reconcile [--item-id 3]
#   Compare stock_qty with the movement ledger; exits 1 on any discrepancy.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import StaffUser, Role, RolePermission, Permission
from .permissions import DEFAULT_ROLES
from .services import auth_service, catalog_service, permission_service, stock_ledger_service


ROLE_CODES = [code for code, _name, _description in DEFAULT_ROLES]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the kiosk: schema, access control, root staff and default services.

    Safe to run repeatedly; existing rows are kept.

    SECURITY: Change the root PIN (ROOT_STAFF_PIN) in production!
    """
    click.echo("START Initializing kiosk...")

    db.create_all()
    click.echo("PASS Schema ready")

    counts = permission_service.bootstrap_access_control()
    click.echo(
        f"PASS Created {counts['permissions_created']} permissions, "
        f"{counts['roles_created']} roles, {counts['grants_created']} role grants"
    )

    try:
        staff, created = auth_service.ensure_root_staff(
            current_app.config["ROOT_STAFF_NAME"],
            current_app.config["ROOT_STAFF_PIN"],
        )
    except auth_service.AuthError as e:
        click.echo(f"FAIL Root staff not created: {e.code}: {e}")
    else:
        if created:
            click.echo(f"PASS Created root staff: {staff.full_name} (ID: {staff.id})")
        else:
            click.echo(f"WARN  Root staff already exists ({staff.full_name}), skipping...")

    services_created = catalog_service.ensure_default_services()
    click.echo(f"PASS Seeded {services_created} default services")

    click.echo("\n" + "="*60)
    click.echo("DONE Kiosk initialized")
    click.echo("="*60 + "\n")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('staff')
def staff_group():
    """Staff account commands."""


@staff_group.command('create')
@click.option('--name', 'full_name', prompt=True, help='Full name')
@click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='PIN (xx-123456)')
@click.option('--role', type=click.Choice(ROLE_CODES, case_sensitive=False), prompt=True, help='Role')
@click.option('--language', type=click.Choice(['fr', 'en']), default='fr', show_default=True)
@with_appcontext
def create_staff_cli(full_name, pin, role, language):
    """Create a staff account."""
    try:
        staff = auth_service.create_staff(full_name, pin, role, ui_language=language)
    except auth_service.AuthError as e:
        click.echo(f"FAIL {e.code}: {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created staff: {staff.full_name} (ID: {staff.id}) with role '{role.upper()}'")


@staff_group.command('list')
@with_appcontext
def list_staff():
    """List all staff with their roles."""
    staff_rows = db.session.query(StaffUser).order_by(StaffUser.id.asc()).all()

    if not staff_rows:
        click.echo("No staff found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Role':<12} {'Active':<8} {'Root':<6} {'Lang'}")
    click.echo("="*80)

    for staff in staff_rows:
        role_code = staff.role.code if staff.role else "none"
        active_str = "Yes" if staff.is_active else "No"
        root_str = "Yes" if staff.is_root else "No"
        click.echo(f"{staff.id:<5} {staff.full_name:<30} {role_code:<12} {active_str:<8} {root_str:<6} {staff.ui_language}")

    click.echo("="*80 + "\n")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', help='Filter by role code')
@click.option('--category', help='Filter by category')
@with_appcontext
def list_permissions_cli(role, category):
    """List all permissions, optionally filtered by role or category."""
    if role:
        role_obj = db.session.query(Role).filter_by(code=role.upper()).first()
        if not role_obj:
            click.echo(f"FAIL Role '{role}' not found")
            return

        perms = (
            db.session.query(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .filter(RolePermission.role_id == role_obj.id)
            .order_by(Permission.category, Permission.code)
            .all()
        )

        click.echo(f"\n{'='*80}")
        click.echo(f"Permissions for role: {role_obj.code}")
        click.echo(f"{'='*80}\n")

        click.echo(f"{'Code':<30} {'Name':<35} {'Category'}")
        click.echo("-"*80)
        for perm in perms:
            click.echo(f"{perm.code:<30} {perm.name:<35} {perm.category}")

        click.echo(f"\n Total: {len(perms)} permissions\n")

    elif category:
        perms = db.session.query(Permission).filter_by(category=category.upper()).order_by(Permission.code).all()

        click.echo(f"\n{'='*80}")
        click.echo(f"Permissions in category: {category.upper()}")
        click.echo(f"{'='*80}\n")

        click.echo(f"{'Code':<30} {'Name'}")
        click.echo("-"*80)
        for perm in perms:
            click.echo(f"{perm.code:<30} {perm.name}")

        click.echo(f"\n Total: {len(perms)} permissions\n")

    else:
        perms = db.session.query(Permission).order_by(Permission.category, Permission.code).all()

        click.echo(f"\n{'='*80}")
        click.echo("All Permissions")
        click.echo(f"{'='*80}\n")

        current_category = None
        for perm in perms:
            if perm.category != current_category:
                if current_category:
                    click.echo("")
                click.echo(f"CATEGORY {perm.category}")
                click.echo("-"*80)
                current_category = perm.category

            click.echo(f"  {perm.code:<28} {perm.name}")

        click.echo(f"\n Total: {len(perms)} permissions\n")


@click.group('inventory')
def inventory_group():
    """Stock ledger commands."""


@inventory_group.command('reconcile')
@click.option('--item-id', type=int, help='Check a single item')
@with_appcontext
def reconcile_cli(item_id):
    """Compare each item's stock_qty with the sum of its movements."""
    try:
        report = stock_ledger_service.reconcile(item_id=item_id)
    except stock_ledger_service.ItemNotFoundError:
        click.echo(f"FAIL Item {item_id} not found")
        raise SystemExit(1)

    if report["ok"]:
        click.echo(f"PASS {report['checked']} items checked, ledger matches stock")
        return

    click.echo(f"\n{'='*80}")
    click.echo(f"{'ID':<6} {'Name':<36} {'Stock':>8} {'Ledger':>8} {'Diff':>8}")
    click.echo("-"*80)
    for row in report["discrepancies"]:
        click.echo(
            f"{row['item_id']:<6} {row['name'][:36]:<36} "
            f"{row['stock_qty']:>8} {row['ledger_qty']:>8} {row['difference']:>8}"
        )
    click.echo(f"\nFAIL {len(report['discrepancies'])} of {report['checked']} items out of balance\n")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(staff_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(inventory_group)
