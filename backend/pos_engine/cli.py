# Overview: Flask CLI command groups for bootstrap, demo data, registers and operators.

# backend/pos_engine/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to pos_engine (PowerShell: $env:FLASK_APP="pos_engine").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system settings --store-id 1
#   Show the effective POS settings snapshot for a store.
# - python -m flask system set-setting --store-id 1 --key pos.scanner_prefix --value "]C1"
#   Override one POS setting at store level.
#
# Demo data:
# - python -m flask demo seed
#   Create a demo store with operators, products, payment methods and an open register.
#
# Registers:
# - python -m flask registers create --store-id 1 --number REG-01 --name "Front Counter"
# - python -m flask registers list --store-id 1
# - python -m flask registers open --register-id 1 --operator-id 1 --opening-cash 100
# - python -m flask registers close --session-id 1
#
# Operators:
# - python -m flask operators create --store-id 1 --name "Ana" --role seller
# - python -m flask operators list --store-id 1

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .extensions import db
from .models import (
    Customer,
    LoyaltyProgram,
    Operator,
    PaymentMethod,
    Product,
    Register,
    RegisterSession,
    Store,
)
from .permissions import VALID_ROLES, build_operator_permissions
from .services import register_service, settings_service
from .validation import PosError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask demo seed' for sample data.")


@system_group.command('settings')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def show_settings(store_id):
    """Show the effective POS settings for a store."""
    try:
        settings = settings_service.load_pos_settings(store_id)
    except PosError as e:
        raise click.ClickException(e.message)

    for key, value in settings.to_dict().items():
        click.echo(f"{key:<22} {value}")


@system_group.command('set-setting')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--key', type=click.Choice(sorted(settings_service.SETTING_KEYS)), required=True)
@click.option('--value', required=True, help='New value (empty string clears prefix/suffix)')
@with_appcontext
def set_setting(store_id, key, value):
    try:
        settings_service.set_store_setting(store_id, key, value)
        settings_service.load_pos_settings(store_id)
    except PosError as e:
        db.session.rollback()
        raise click.ClickException(e.message)
    click.echo(f"PASS {key} = {value!r} for store {store_id}")


@click.group('demo')
def demo_group():
    """Demo data commands."""


@demo_group.command('seed')
@click.option('--store-name', default='Demo Store', help='Store name')
@with_appcontext
def seed_demo(store_name):
    """
    Create a demo store ready for selling.

    Creates:
    - Store with owner, manager, seller and cashier operators
    - A handful of products (one service, one weighed, one open-price)
    - Cash, debit and credit payment methods
    - A VIP customer and an active loyalty program
    - Register REG-01 with an open session
    """
    store = db.session.query(Store).filter_by(name=store_name).first()
    if store:
        click.echo(f"SKIP Store '{store_name}' already exists (ID: {store.id})")
        return

    store = Store(name=store_name, code="DEMO")
    db.session.add(store)
    db.session.flush()

    operators = {}
    for name, role in [("Owner", "owner"), ("Manager", "manager"), ("Seller", "seller"), ("Cashier", "cashier")]:
        operator = Operator(store_id=store.id, name=name, role=role)
        db.session.add(operator)
        operators[role] = operator

    db.session.add_all([
        Product(store_id=store.id, code="1001", barcode="7891000100103", name="Coffee 500g",
                sale_price=Decimal("18.90"), wholesale_price=Decimal("16.50"), cost_price=Decimal("11.00"),
                stock_quantity=Decimal("40")),
        Product(store_id=store.id, code="1002", barcode="7891000200209", name="Sugar 1kg",
                sale_price=Decimal("5.49"), cost_price=Decimal("3.10"), stock_quantity=Decimal("3"),
                block_sale_no_stock=True),
        Product(store_id=store.id, code="2000123", name="Cheese (kg)",
                sale_price=Decimal("59.90"), cost_price=Decimal("38.00"), stock_quantity=Decimal("12.500")),
        Product(store_id=store.id, code="9001", name="Gift wrapping",
                sale_price=Decimal("4.00"), is_service=True),
        Product(store_id=store.id, code="9002", name="Assorted item",
                sale_price=Decimal("0"), allow_open_price=True, stock_quantity=Decimal("100")),
        PaymentMethod(store_id=store.id, name="Cash"),
        PaymentMethod(store_id=store.id, name="Debit", fee_percent=Decimal("1.50")),
        PaymentMethod(store_id=store.id, name="Credit", fee_percent=Decimal("3.20"), max_installments=6),
        Customer(store_id=store.id, name="Maria VIP", is_vip=True,
                 vip_discount_percent=Decimal("5"), loyalty_points=200),
        LoyaltyProgram(store_id=store.id, name="Points", point_value=Decimal("0.05")),
    ])
    db.session.commit()

    register = register_service.create_register(store.id, "REG-01", "Front Counter")
    session = register_service.open_shift(register.id, operators["cashier"].id, Decimal("100"))

    click.echo(f"PASS Created store: {store.name} (ID: {store.id})")
    for role, operator in operators.items():
        click.echo(f"   {role:<8} -> operator {operator.id}")
    click.echo(f"PASS Register {register.register_number} open (session {session.id})")


@click.group('registers')
def registers_group():
    """Register and shift commands."""


@registers_group.command('create')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--number', required=True, help='Register number')
@click.option('--name', required=True, help='Register name')
@with_appcontext
def create_register_cli(store_id, number, name):
    try:
        register = register_service.create_register(store_id, number, name)
    except PosError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created register: {register.register_number} - {register.name} (ID: {register.id})")


@registers_group.command('list')
@click.option('--store-id', type=int, help='Filter by store ID')
@with_appcontext
def list_registers_cli(store_id):
    query = db.session.query(Register)
    if store_id:
        query = query.filter_by(store_id=store_id)
    registers = query.order_by(Register.register_number).all()

    if not registers:
        click.echo("No registers found.")
        return

    for register in registers:
        open_session = db.session.query(RegisterSession).filter_by(
            register_id=register.id, status="OPEN"
        ).first()
        status = f"OPEN (session {open_session.id})" if open_session else "closed"
        click.echo(f"{register.id:>4}  {register.register_number:<10} {register.name:<24} {status}")


@registers_group.command('open')
@click.option('--register-id', type=int, required=True)
@click.option('--operator-id', type=int, required=True)
@click.option('--opening-cash', default="0", help='Opening cash amount')
@with_appcontext
def open_register_cli(register_id, operator_id, opening_cash):
    try:
        session = register_service.open_shift(register_id, operator_id, opening_cash)
    except PosError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Opened register session {session.id}")


@registers_group.command('close')
@click.option('--session-id', type=int, required=True)
@with_appcontext
def close_register_cli(session_id):
    try:
        register_service.close_shift(session_id)
    except PosError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Closed register session {session_id}")


@click.group('operators')
def operators_group():
    """Operator commands."""


@operators_group.command('create')
@click.option('--store-id', type=int, required=True)
@click.option('--name', required=True)
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), required=True)
@click.option('--max-discount', type=Decimal, help='Override the role discount cap (percent)')
@with_appcontext
def create_operator_cli(store_id, name, role, max_discount):
    if not db.session.get(Store, store_id):
        raise click.ClickException(f"Store {store_id} not found")

    operator = Operator(store_id=store_id, name=name, role=role, max_discount_percent=max_discount)
    db.session.add(operator)
    db.session.commit()
    click.echo(f"PASS Created operator {operator.name} (ID: {operator.id}, role: {operator.role})")


@operators_group.command('list')
@click.option('--store-id', type=int, required=True)
@with_appcontext
def list_operators_cli(store_id):
    operators = db.session.query(Operator).filter_by(store_id=store_id).order_by(Operator.id).all()
    if not operators:
        click.echo("No operators found.")
        return

    for operator in operators:
        perms = build_operator_permissions(operator)
        status = "active" if operator.is_active else "inactive"
        click.echo(
            f"{operator.id:>4}  {operator.name:<20} {operator.role:<9} "
            f"max discount {perms.max_discount_percent}%  "
            f"stock override {'yes' if perms.can_override_stock else 'no'}  {status}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(demo_group)
    app.cli.add_command(registers_group)
    app.cli.add_command(operators_group)
