# Overview: Flask CLI command groups for bootstrap, operators, and stock inspection.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the default administrator and a default category.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Operators:
# - python -m flask users list
# - python -m flask users create --name "Ana" --email ana@ferreteria.local --role SELLER
#
# Stock:
# - python -m flask stock show 12
#   On-hand quantity and the latest movements of a product.
# - python -m flask stock ingress 12 50 --reason "Compra proveedor" --unit-cost-cents 1250
# - python -m flask stock critical
#   Products at or below their minimum stock.

import click
from flask.cli import with_appcontext

from .errors import BusinessError
from .extensions import db
from .models import Category, User
from .permissions import Role
from .services import stock_service
from .services.catalog_service import get_product

DEFAULT_ADMIN_EMAIL = "admin@ferreteria.local"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and seed the minimum data needed to operate.

    Creates (if missing):
    - All tables
    - Administrator operator (admin@ferreteria.local)
    - Category "General"
    """
    click.echo("START Initializing ferreteria backend...")
    db.create_all()
    click.echo("PASS Tables ready")

    admin = db.session.query(User).filter_by(email=DEFAULT_ADMIN_EMAIL).first()
    if admin is None:
        admin = User(name="Administrador", email=DEFAULT_ADMIN_EMAIL, role=Role.ADMINISTRATOR)
        db.session.add(admin)
        db.session.commit()
        click.echo(f"PASS Created administrator (ID: {admin.id}, email: {admin.email})")
    else:
        click.echo(f"PASS Using existing administrator (ID: {admin.id})")

    category = db.session.query(Category).filter_by(name="General").first()
    if category is None:
        category = Category(name="General", description="Categoria por defecto")
        db.session.add(category)
        db.session.commit()
        click.echo(f"PASS Created category: {category.name} (ID: {category.id})")

    click.echo(f"\nDONE Send 'X-Operator-Id: {admin.id}' with API requests to act as the administrator.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate every table. Sales, stock and credit history are lost."""
    if not yes:
        click.confirm("WARN Every sale, movement and credit entry will be erased. Continue?", abort=True)

    db.drop_all()
    click.echo("DELETE  Tables dropped")
    db.create_all()
    click.echo("BUILD  Schema recreated")
    click.echo("PASS Empty database ready. Run 'python -m flask system init' to seed it.")


@click.group('users')
def users_group():
    """Operator management commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all operators with their role."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<24} {'Email':<32} {'Role':<14} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<24} {user.email:<32} {user.role.value:<14} {active_str}")
    click.echo("=" * 80 + "\n")


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--role', type=click.Choice([r.value for r in Role]), default=Role.SELLER.value, show_default=True)
@with_appcontext
def create_user_cli(name, email, role):
    """Create an operator."""
    if db.session.query(User).filter_by(email=email.strip().lower()).first():
        raise click.ClickException(f"User with email {email} already exists")
    user = User(name=name.strip(), email=email.strip().lower(), role=Role(role))
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user {user.name} (ID: {user.id}, role: {user.role.value})")


@click.group('stock')
def stock_group():
    """Stock inspection and manual ingress."""


@stock_group.command('show')
@click.argument('product_id', type=int)
@click.option('--limit', default=10, show_default=True, help='Movements to show')
@with_appcontext
def show_stock(product_id, limit):
    """Show on-hand quantity and the latest movements of a product."""
    product = get_product(product_id)
    if product is None:
        raise click.ClickException(f"Product {product_id} not found")

    click.echo(f"{product.sku} - {product.name}")
    click.echo(f"On hand: {stock_service.get_quantity(product_id)} {product.unit_of_measure} (min {product.min_stock})")

    page = stock_service.list_movements(product_id=product_id, page=1, page_size=limit)
    if not page.items:
        click.echo("No movements.")
        return
    for mv in page.items:
        click.echo(f"  {mv.occurred_at:%Y-%m-%d %H:%M}  {mv.movement_type:<8} {mv.quantity:>8}  {mv.reason or ''}")


@stock_group.command('ingress')
@click.argument('product_id', type=int)
@click.argument('quantity', type=int)
@click.option('--reason', default='Ingreso manual', show_default=True)
@click.option('--unit-cost-cents', type=int, default=None)
@with_appcontext
def ingress_cli(product_id, quantity, reason, unit_cost_cents):
    """Add stock to a product."""
    try:
        movement = stock_service.ingress(product_id, quantity, reason, unit_cost_cents=unit_cost_cents)
    except BusinessError as e:
        raise click.ClickException(f"{e.code}: {e.message}")
    click.echo(
        f"PASS Movement {movement.id}: +{movement.quantity}, "
        f"on hand now {stock_service.get_quantity(product_id)}"
    )


@stock_group.command('critical')
@with_appcontext
def critical_cli():
    """List active products at or below their minimum stock."""
    items = stock_service.critical_stock()
    if not items:
        click.echo("PASS No products below minimum stock.")
        return
    click.echo(f"WARN {len(items)} product(s) at or below minimum:")
    for item in items:
        click.echo(f"  {item.sku:<16} {item.name:<32} {item.quantity:>6} / min {item.min_stock}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
