# Overview: Flask CLI command groups for bootstrap and ledger inspection.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to shopledger (PowerShell: $env:FLASK_APP="shopledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection:
# - python -m flask ledger verify [--user-id shop-1]
#   Report orders whose settlement history and cached paid amount disagree.
# - python -m flask ledger customer 3
#   Print a customer's debit, credit and lifetime sales.

import click
from flask.cli import with_appcontext
from sqlalchemy.orm import selectinload

from .extensions import db
from .models import Customer, Order
from .services.history_service import history_problems


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

    click.echo("PASS Database reset complete.")


@click.group('ledger')
def ledger_group():
    """Settlement ledger inspection commands."""


@ledger_group.command('verify')
@click.option('--user-id', default=None, help='Only check orders of this shop')
@with_appcontext
def verify_ledger(user_id):
    """
    Check every order's settlement history.

    Flags orders whose first history row is not Created, whose sequence has
    gaps, or whose settlement_amount_cents differs from the sum of Settled rows.
    Exits with status 1 when any problem is found.
    """
    query = db.session.query(Order).options(selectinload(Order.settlement_history))
    if user_id:
        query = query.filter(Order.user_id == user_id)

    checked = 0
    failed = 0
    for order in query.order_by(Order.id.asc()).all():
        checked += 1
        problems = history_problems(order)
        if problems:
            failed += 1
            click.echo(f"FAIL {order.user_id}/{order.order_id}: {'; '.join(problems)}")

    if failed:
        click.echo(f"\nFAIL {failed} of {checked} orders have inconsistent history.")
        raise SystemExit(1)
    click.echo(f"PASS {checked} orders checked, history consistent.")


@ledger_group.command('customer')
@click.argument('customer_id', type=int)
@with_appcontext
def show_customer(customer_id):
    """Print a customer's running balance."""
    customer = db.session.get(Customer, customer_id)
    if not customer:
        click.echo(f"FAIL Customer {customer_id} not found.")
        raise SystemExit(1)

    click.echo(f"{customer.name} ({customer.shop_name}) shop={customer.user_id}")
    click.echo(f"  debit:       {customer.debit_cents / 100:,.2f}")
    click.echo(f"  credit:      {customer.credit_cents / 100:,.2f}")
    click.echo(f"  net balance: {customer.net_balance_cents / 100:,.2f}")
    click.echo(f"  total sales: {customer.total_sales_cents / 100:,.2f}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
