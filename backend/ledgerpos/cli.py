# Overview: Flask CLI command groups for bootstrap, day sessions, reports and ledger audits.

# backend/ledgerpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the cash drawer account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Day sessions:
# - python -m flask days open --opening 50000 [--branch MAIN] [--date 2026-02-01]
#   Open the day's cash float.
# - python -m flask days close --actual 61250 [--branch MAIN] [--date 2026-02-01]
#   Close the day against a physical count and print the variance.
# - python -m flask days status [--branch MAIN] [--date 2026-02-01]
#   Show the day session and the expected drawer.
#
# Reports:
# - python -m flask reports aging --party vendors|customers [--as-of 2026-02-01]
# - python -m flask reports cash [--branch MAIN] [--date 2026-02-01]
#
# Ledger:
# - python -m flask ledger audit
#   Compare running party balances with their history (no changes).
# - python -m flask ledger rebuild --customer CUS-... | --vendor VEN-...
#   Overwrite one running balance with the value derived from history.
#
# Backups:
# - python -m flask backup export backup.json
#   Write categories, products, customers, vendors and accounts as JSON.
# - python -m flask backup import backup.json
#   Merge a backup into the store by id (existing records are updated).

import json

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Account
from .services import aging_service, backup_service, cash_session_service, ledger_service
from .services.cash_session_service import DaySessionError
from .services.document_store import PersistenceFailure
from .validation import ValidationError


def _cents(value: int) -> str:
    sign = "-" if value < 0 else ""
    value = abs(value)
    return f"{sign}{value // 100}.{value % 100:02d}"


def _branch(branch: str | None) -> str:
    return branch or current_app.config.get("DEFAULT_BRANCH_ID", "MAIN")


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the store: schema and the cash drawer account.

    Safe to run repeatedly.
    """
    click.echo("START Initializing LedgerPOS...")
    db.create_all()

    cash_id = current_app.config.get("CASH_ACCOUNT_ID", "cash")
    account = db.session.get(Account, cash_id)
    if account is None:
        db.session.add(Account(id=cash_id, name="Cash Drawer", balance_cents=0))
        db.session.commit()
        click.echo(f"PASS Created cash account: {cash_id}")
    else:
        click.echo(f"PASS Using existing cash account: {cash_id}")

    click.echo("DONE Initialization complete.")


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


# =============================================================================
# DAY SESSIONS
# =============================================================================

@click.group('days')
def days_group():
    """Daily cash float commands."""


@days_group.command('open')
@click.option('--opening', type=int, required=True, help='Opening float in cents')
@click.option('--branch', default=None, help='Branch id (default: DEFAULT_BRANCH_ID)')
@click.option('--date', 'business_date', default=None, help='Business date YYYY-MM-DD (default: today)')
@click.option('--notes', default=None)
@with_appcontext
def open_day_cli(opening, branch, business_date, notes):
    try:
        session = cash_session_service.open_day(_branch(branch), opening, business_date=business_date, notes=notes)
    except DaySessionError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Opened {session.branch_id} {session.business_date.isoformat()} with {_cents(session.opening_balance_cents)}")


@days_group.command('close')
@click.option('--actual', type=int, required=True, help='Counted cash in cents')
@click.option('--branch', default=None)
@click.option('--date', 'business_date', default=None)
@click.option('--notes', default=None)
@with_appcontext
def close_day_cli(actual, branch, business_date, notes):
    try:
        result = cash_session_service.close_day(_branch(branch), actual, business_date=business_date, notes=notes)
    except DaySessionError as e:
        raise click.ClickException(str(e))
    click.echo(f"Expected: {_cents(result['expected'])}")
    click.echo(f"Actual:   {_cents(result['actual'])}")
    click.echo(f"Variance: {_cents(result['variance'])}")


@days_group.command('status')
@click.option('--branch', default=None)
@click.option('--date', 'business_date', default=None)
@with_appcontext
def day_status_cli(branch, business_date):
    branch = _branch(branch)
    session = cash_session_service.get_day_session(branch, business_date)
    flow = cash_session_service.expected_cash(branch, business_date)
    if session is None:
        click.echo(f"{branch}: no day session")
    else:
        click.echo(f"{branch} {session.business_date.isoformat()}: {session.status}")
    click.echo(f"Opening:  {_cents(flow.opening)}")
    click.echo(f"Cash in:  {_cents(flow.cash_in)}")
    click.echo(f"Cash out: {_cents(flow.cash_out)}")
    click.echo(f"Expected: {_cents(flow.expected_cash)}")


# =============================================================================
# REPORTS
# =============================================================================

@click.group('reports')
def reports_group():
    """Aging and cash reports."""


@reports_group.command('aging')
@click.option('--party', type=click.Choice(['vendors', 'customers']), default='vendors')
@click.option('--as-of', 'as_of', default=None, help='YYYY-MM-DD (default: today)')
@with_appcontext
def aging_cli(party, as_of):
    if party == 'vendors':
        report = aging_service.vendor_aging_report(as_of)
    else:
        report = aging_service.customer_aging_report(as_of)

    click.echo(f"\nAging ({party}) as of {report['as_of']}")
    click.echo("=" * 90)
    click.echo(f"{'Name':<30} {'Balance':>11} {'0-30':>11} {'31-60':>11} {'61-90':>11} {'90+':>11}")
    click.echo("-" * 90)
    for row in report["parties"]:
        b = row["buckets"]
        click.echo(
            f"{row['name'][:30]:<30} {_cents(row['balance_cents']):>11} "
            f"{_cents(b['0-30']):>11} {_cents(b['31-60']):>11} {_cents(b['61-90']):>11} {_cents(b['90+']):>11}"
        )
    click.echo("-" * 90)
    summary = " ".join(f"{s['bucket']}={_cents(s['amount_cents'])}" for s in report["summary"])
    click.echo(f"Summary: {summary}\n")


@reports_group.command('cash')
@click.option('--branch', default=None)
@click.option('--date', 'business_date', default=None)
@with_appcontext
def cash_cli(branch, business_date):
    flow = cash_session_service.expected_cash(_branch(branch), business_date)
    totals = ledger_service.account_totals()
    click.echo(f"Opening:  {_cents(flow.opening)}")
    click.echo(f"Cash in:  {_cents(flow.cash_in)}")
    click.echo(f"Cash out: {_cents(flow.cash_out)}")
    click.echo(f"Expected: {_cents(flow.expected_cash)}")
    click.echo(f"Drawer account: {_cents(totals['cash_cents'])}  Other accounts: {_cents(totals['bank_cents'])}")


# =============================================================================
# LEDGER
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Running balance audits."""


@ledger_group.command('audit')
@with_appcontext
def ledger_audit_cli():
    """Report drift between running balances and history. Changes nothing."""
    result = ledger_service.audit_balances()
    for row in result["customers"]:
        if row["drift_cents"]:
            click.echo(f"DRIFT customer {row['customer_id']}: running {_cents(row['running_cents'])} history {_cents(row['history_cents'])}")
    for row in result["vendors"]:
        if row["drift_cents"]:
            click.echo(f"DRIFT vendor {row['vendor_id']}: running {_cents(row['running_cents'])} history {_cents(row['history_cents'])}")
    if result["drift_count"]:
        click.echo(f"WARN {result['drift_count']} balance(s) drifted")
    else:
        click.echo("PASS All balances match history")


@ledger_group.command('rebuild')
@click.option('--customer', 'customer_id', default=None)
@click.option('--vendor', 'vendor_id', default=None)
@with_appcontext
def ledger_rebuild_cli(customer_id, vendor_id):
    """Overwrite one running balance with the value derived from history."""
    if not customer_id and not vendor_id:
        raise click.UsageError("Pass --customer or --vendor")
    try:
        if customer_id:
            customer = ledger_service.rebuild_customer_balance(customer_id)
            click.echo(f"PASS {customer.id}: {_cents(customer.total_credit_cents)}")
        if vendor_id:
            vendor = ledger_service.rebuild_vendor_balance(vendor_id)
            click.echo(f"PASS {vendor.id}: {_cents(vendor.total_balance_cents)}")
    except ValueError as e:
        raise click.ClickException(str(e))


# =============================================================================
# BACKUPS
# =============================================================================

@click.group('backup')
def backup_group():
    """Directory export and import."""


@backup_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def backup_export_cli(path):
    data = backup_service.export_backup()
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2)
    counts = ", ".join(f"{key}={len(rows)}" for key, rows in data.items())
    click.echo(f"PASS Exported {counts} to {path}")


@backup_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def backup_import_cli(path):
    """Merge a backup file into the store. Existing records are updated by id."""
    with open(path, encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as e:
            raise click.ClickException(f"Not a JSON backup: {e}")
    try:
        written = backup_service.import_backup(data)
    except ValidationError as e:
        raise click.ClickException(str(e))
    except PersistenceFailure as e:
        raise click.ClickException(f"{e} (written before failure: {e.details.get('written', 0)})")
    for key, count in written.items():
        click.echo(f"  {key}: {count}")
    click.echo("DONE Import complete.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(days_group)
    app.cli.add_command(reports_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(backup_group)
