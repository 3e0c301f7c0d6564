# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/warung_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to warung_pos (PowerShell: $env:FLASK_APP="warung_pos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, default categories and an admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Sample dimsum menu, ingredients and recipes.
#
# Staff:
# - python -m flask users list
# - python -m flask users create --email kasir@warung.local --first-name Sari --role employee
#
# Receipt printer:
# - python -m flask printer status
# - python -m flask printer reprint 42
#
# Inventory:
# - python -m flask inventory verify
#   Report items whose stock differs from the sum of their movements.

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db, printer
from .models import InventoryItem, Product, User
from .services import inventory_service, products_service, user_service
from .services.printing_service import print_receipt, PrintError
from .validation import ConflictError, NotFoundError, ValidationError, USER_ROLES


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@warung.local', show_default=True, help='Email for the admin user')
@with_appcontext
def init_system(admin_email):
    """
    Initialize the POS: schema, default categories and an admin user.
    """
    click.echo("START Initializing Warung POS...")

    db.create_all()
    click.echo("PASS Tables ready")

    categories = products_service.init_default_categories()
    click.echo(f"PASS Categories: {', '.join(c.name for c in categories)}")

    existing = db.session.query(User).filter_by(email=admin_email).first()
    if existing:
        click.echo(f"WARN  User '{admin_email}' already exists, skipping...")
    else:
        user = user_service.create_user(admin_email, first_name="Admin", role="admin")
        click.echo(f"PASS Created admin user: {user.email} (ID: {user.id})")

    click.echo("DONE Warung POS initialized. Send X-User-Id with API requests.")


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


DEMO_INVENTORY = [
    # name, unit, opening stock, min stock, cost
    ("Chicken", "kg", "5", "1", "45000"),
    ("Shrimp", "kg", "3", "0.5", "90000"),
    ("Dumpling Skin", "pcs", "500", "100", "300"),
    ("Chili Sauce", "liter", "2", "0.5", "25000"),
]

DEMO_PRODUCTS = [
    # name, category, price, recipe [(ingredient, qty per unit)]
    ("Dimsum Ayam", "Satuan", "50000", [("Chicken", "0.1"), ("Dumpling Skin", "4")]),
    ("Dimsum Udang", "Satuan", "60000", [("Shrimp", "0.08"), ("Dumpling Skin", "4")]),
    ("Paket Hemat", "Paket", "95000", [("Chicken", "0.1"), ("Shrimp", "0.08"), ("Dumpling Skin", "8")]),
    ("Extra Sambal", "Topping", "5000", [("Chili Sauce", "0.02")]),
]


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Seed a sample dimsum menu with ingredients and recipes (skips existing names)."""
    categories = {c.name: c for c in products_service.init_default_categories()}

    ingredients = {i.name: i for i in db.session.query(InventoryItem).all()}
    for name, unit, stock, min_stock, cost in DEMO_INVENTORY:
        if name in ingredients:
            click.echo(f"WARN  Ingredient '{name}' exists, skipping...")
            continue
        ingredients[name] = inventory_service.create_item({
            "name": name,
            "unit": unit,
            "stock": Decimal(stock),
            "min_stock": Decimal(min_stock),
            "cost": Decimal(cost),
        })
        click.echo(f"PASS Ingredient: {name} ({stock} {unit})")

    existing_products = {p.name for p in db.session.query(Product).all()}
    for name, category_name, price, recipe in DEMO_PRODUCTS:
        if name in existing_products:
            click.echo(f"WARN  Product '{name}' exists, skipping...")
            continue
        products_service.create_product(
            {"name": name, "category_id": categories[category_name].id, "price": Decimal(price)},
            [(ingredients[ingredient].id, Decimal(qty)) for ingredient, qty in recipe],
        )
        click.echo(f"PASS Product: {name} @ {price}")

    click.echo("DONE Demo data seeded.")


@click.group('users')
def users_group():
    """Staff management commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--first-name', default=None, help='First name')
@click.option('--last-name', default=None, help='Last name')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='employee', show_default=True, help='Role')
@with_appcontext
def create_user_cli(email, first_name, last_name, role):
    """Create a staff member."""
    try:
        user = user_service.create_user(email, first_name=first_name, last_name=last_name, role=role)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {e}")
        return

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all staff members."""
    users = user_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<30} {'Role':<10} {'Active'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.display_name:<25} {user.email or '-':<30} {user.role:<10} {active_str}")

    click.echo("="*80 + "\n")


@click.group('printer')
def printer_group():
    """Receipt printer commands."""


@printer_group.command('status')
@with_appcontext
def printer_status():
    """Query the print server for device status."""
    status = printer.status()
    state = "PASS" if status.get("connected") else "FAIL"
    click.echo(f"{state} Printer {status.get('printer')}: {status.get('status', 'unknown')}")


@printer_group.command('reprint')
@click.argument('transaction_id', type=int)
@with_appcontext
def reprint(transaction_id):
    """Print a committed transaction's receipt again."""
    try:
        result = print_receipt(transaction_id)
    except NotFoundError as e:
        click.echo(f"FAIL {e}")
        return
    except PrintError as e:
        click.echo(f"FAIL Print failed: {e}")
        return

    click.echo(f"PASS {result.message} ({result.printer})")


@click.group('inventory')
def inventory_group():
    """Inventory ledger inspection."""


@inventory_group.command('verify')
@with_appcontext
def verify_inventory():
    """Check stock == sum(movements) for every item."""
    problems = inventory_service.find_inconsistent_items()
    if not problems:
        click.echo("PASS All inventory items match their movement history.")
        return

    for p in problems:
        click.echo(
            f"FAIL {p['name']} (ID: {p['inventory_id']}): stock {p['stock']} "
            f"!= movements {p['movement_balance']}"
        )
    raise click.ClickException(f"{len(problems)} inventory item(s) out of balance")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(printer_group)
    app.cli.add_command(inventory_group)
