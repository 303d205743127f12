# Overview: Flask CLI command groups for exports (sales, tools, payments), assignment checks and health.

# console/surveydesk/cli.py
# Commands Legend (run from the console directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to surveydesk (PowerShell: $env:FLASK_APP="surveydesk").
# - Set BACKEND_API_URL and BACKEND_TOKEN, or pass --token.
# - Use: python -m flask <group> <command> [options]
#
# Sales:
# - python -m flask sales export --format pdf --out my_sales_records.pdf [--q "Lagos"] [--status pending]
#   Export the sales table as PDF or CSV.
#
# Payments:
# - python -m flask payments export --report owing --format csv [--status overdue] [--q "Ada"]
#   Export the payment history (--report payments) or customer balances (--report owing).
#
# Tools:
# - python -m flask tools export --format csv [--category Receiver] [--q "GNSS"]
#   Export the tools inventory table.
# - python -m flask tools serials 42 --equipment-type "Base & Rover Combo"
#   Show how a tool's serials split into receivers, datalogger and radio.
# - python -m flask tools assign "Hi-Target V200" --category Receiver --equipment-type "Base & Rover Combo"
#   Assign one unit from the group on the backend and print the reconciled set.
#   WARNING: the unit stays assigned on the backend; no sale is created.
#
# System:
# - python -m flask system health
#   Check the backend answers.

import sys

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import backend
from .models import CurrentItem, GroupedTool
from .services import customer_service, reporting_service, search_service
from .services.api_client import BackendError
from .services.assignment_service import AssignmentError, assign_equipment_set
from .services.reporting_service import EXPORT_FORMATS
from .services.serial_service import extract_tool_serials
from .time_utils import today_iso


def _client(token):
    return backend.create_client(token=token)


def _write_export(data: bytes, out: str | None, default_name: str):
    path = out or default_name
    with open(path, "wb") as fh:
        fh.write(data)
    click.echo(f"PASS Wrote {len(data)} bytes to {path}")


token_option = click.option('--token', default=None, help='Backend bearer token (defaults to BACKEND_TOKEN)')


@click.group('sales')
def sales_group():
    """Sales reporting commands."""


@sales_group.command('export')
@click.option('--format', 'fmt', type=click.Choice(EXPORT_FORMATS), default='pdf', show_default=True)
@click.option('--out', default=None, help='Output file path')
@click.option('--q', 'query', default=None, help='Filter by customer, state, invoice, equipment or serial')
@click.option('--status', default=None, help='Filter by payment status')
@token_option
@with_appcontext
def export_sales(fmt, out, query, status, token):
    """Export the sales table."""
    try:
        with _client(token) as client:
            sales = search_service.filter_sales(client.get_sales(), query, status)
    except BackendError as e:
        click.echo(f"FAIL Could not load sales: {e}", err=True)
        sys.exit(1)

    data = reporting_service.export_sales(sales, fmt, current_app.config["CURRENCY_SYMBOL"])
    _write_export(data, out, reporting_service.export_filename("my_sales_records", fmt))


@click.group('tools')
def tools_group():
    """Inventory commands."""


@tools_group.command('export')
@click.option('--format', 'fmt', type=click.Choice(EXPORT_FORMATS), default='pdf', show_default=True)
@click.option('--out', default=None, help='Output file path')
@click.option('--category', default=None)
@click.option('--q', 'query', default=None, help='Filter by name, code or description')
@token_option
@with_appcontext
def export_tools(fmt, out, category, query, token):
    """Export the tools inventory table."""
    try:
        with _client(token) as client:
            tools = search_service.filter_tools(client.get_tools(), category, query)
    except BackendError as e:
        click.echo(f"FAIL Could not load tools: {e}", err=True)
        sys.exit(1)

    data = reporting_service.export_tools(tools, fmt)
    _write_export(data, out, reporting_service.export_filename("tools-inventory", fmt))


@tools_group.command('serials')
@click.argument('tool_id')
@click.option('--equipment-type', default=None)
@token_option
@with_appcontext
def show_serials(tool_id, equipment_type, token):
    """Show the role breakdown of a tool's serials."""
    try:
        with _client(token) as client:
            tool = client.get_tool(tool_id)
    except BackendError as e:
        click.echo(f"FAIL Could not load tool {tool_id}: {e}", err=True)
        sys.exit(1)

    breakdown = extract_tool_serials(tool, equipment_type)
    click.echo(f"Tool: {tool.name} ({tool.id})")
    click.echo(f"  Receivers:      {', '.join(breakdown.serial_set) or '-'}")
    click.echo(f"  Datalogger:     {breakdown.datalogger_serial or '-'}")
    click.echo(f"  External Radio: {breakdown.external_radio_serial or '-'}")


@tools_group.command('assign')
@click.argument('tool_name')
@click.option('--category', default='Receiver', show_default=True)
@click.option('--equipment-type', default='', help='Set type for receivers')
@token_option
@with_appcontext
def assign_unit(tool_name, category, equipment_type, token):
    """Assign one unit from a group and print the reconciled set."""
    current_item = CurrentItem(
        selected_category=category,
        selected_equipment_type=equipment_type,
        selected_tool=GroupedTool(name=tool_name, category=category),
    )
    try:
        with _client(token) as client:
            result = assign_equipment_set(client, current_item)
    except AssignmentError as e:
        click.echo(f"FAIL [{e.kind}] {e}", err=True)
        sys.exit(1)

    click.echo(f"PASS Assigned {result.tool_name} (unit {result.assigned_tool_id}) on {today_iso()}")
    click.echo(f"  Set type:       {result.set_type or '-'}")
    click.echo(f"  Receivers:      {', '.join(result.serial_set) or '-'}")
    click.echo(f"  Datalogger:     {result.datalogger_serial or '-'}")
    click.echo(f"  External Radio: {result.external_radio_serial or '-'}")
    click.echo(f"  Sales invoice:  {result.invoice_number or '-'}")
    click.echo(f"  Import invoice: {result.import_invoice or '-'}")


@click.group('payments')
def payments_group():
    """Payment and installment reporting commands."""


@payments_group.command('export')
@click.option('--report', type=click.Choice(['payments', 'owing']), default='payments', show_default=True)
@click.option('--format', 'fmt', type=click.Choice(EXPORT_FORMATS), default='pdf', show_default=True)
@click.option('--out', default=None, help='Output file path')
@click.option('--q', 'query', default=None, help='Filter by customer (and reference for payments)')
@click.option('--status', default=None, help='Filter by payment or balance status')
@token_option
@with_appcontext
def export_payments(report, fmt, out, query, status, token):
    """Export the payment history or the customer balances table."""
    currency = current_app.config["CURRENCY_SYMBOL"]
    try:
        with _client(token) as client:
            if report == 'payments':
                rows = search_service.filter_payments(client.get_payments(), query, status)
            else:
                balances = customer_service.classify_balances(
                    client.get_customer_balances(), due_soon_days=current_app.config["DUE_SOON_DAYS"]
                )
                rows = search_service.filter_balances(balances, status, query)
    except BackendError as e:
        click.echo(f"FAIL Could not load {report}: {e}", err=True)
        sys.exit(1)

    if report == 'payments':
        data = reporting_service.export_payments(rows, fmt, currency)
        prefix = "payment-history"
    else:
        data = reporting_service.export_balances(rows, fmt, currency)
        prefix = "customer-payment-status"
    _write_export(data, out, reporting_service.export_filename(prefix, fmt))


@click.group('system')
def system_group():
    """Console health commands."""


@system_group.command('health')
@with_appcontext
def health():
    """Check the backend answers."""
    from .routes.system import check_backend_health

    result = check_backend_health()
    if result["status"] == "healthy":
        click.echo(f"PASS Backend reachable ({result['latency_ms']} ms, HTTP {result['details']['status_code']})")
    else:
        click.echo(f"FAIL {result['error']}", err=True)
        sys.exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(sales_group)
    app.cli.add_command(tools_group)
    app.cli.add_command(payments_group)
    app.cli.add_command(system_group)
