# Overview: Flask CLI command group for ledger provisioning, rebuilds, and maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask ledger <command> [options]
#
# - python -m flask ledger install
#   Create any missing ledger table (stock_events, stock_movements, ...).
# - python -m flask ledger rebuild [--product-id 12] [--days 90] [--batch-size 50]
#   Start a rebuild and step it until it finishes.
# - python -m flask ledger status [--job-id 3]
#   Show the latest (or given) rebuild job.
# - python -m flask ledger abort [--job-id 3]
#   Abort a running rebuild job.
# - python -m flask ledger replay [--product-id 12] [--since 2026-01-01T00:00:00Z]
#   Re-derive movements from the raw event log.
# - python -m flask ledger purge --yes
#   Delete the ledger, event log, stock state cache and rebuild jobs.

import click
from flask.cli import with_appcontext

from .models import SCOPE_ALL, SCOPE_PRODUCT
from .services import event_recorder, maintenance_service, rebuild_service
from .services.rebuild_service import RebuildError
from .time_utils import parse_iso_datetime


def _echo_job(job) -> None:
    if job is None:
        click.echo("No rebuild job has been started.")
        return
    click.echo(
        f"Job {job.id}: {job.status} scope={job.scope}"
        + (f" product_id={job.product_id}" if job.product_id else "")
        + f" processed={job.processed}/{job.total}"
        + f" movements={job.movements_written} failed={job.failed_orders}"
    )


@click.group('ledger')
def ledger_group():
    """Stock ledger provisioning, rebuild, and maintenance commands."""


@ledger_group.command('install')
@with_appcontext
def install_cli():
    """Create missing ledger tables (existing tables are left alone)."""
    created = maintenance_service.install_ledger_tables()
    if created:
        click.echo(f"PASS Created tables: {', '.join(created)}")
    else:
        click.echo("PASS Ledger tables already installed.")


@ledger_group.command('rebuild')
@click.option('--product-id', type=int, default=None, help='Rebuild a single product')
@click.option('--days', type=int, default=None, help='Only orders from the last N days')
@click.option('--batch-size', type=int, default=None, help='Orders per step')
@with_appcontext
def rebuild_cli(product_id, days, batch_size):
    """Start a rebuild and run it to completion."""
    scope = SCOPE_PRODUCT if product_id else SCOPE_ALL
    try:
        job = rebuild_service.run_to_completion(
            scope,
            product_id=product_id,
            days=days,
            batch_size=batch_size,
            on_step=_echo_job,
        )
    except RebuildError as e:
        raise click.ClickException(str(e))
    click.echo("DONE Rebuild finished.")
    _echo_job(job)


@ledger_group.command('status')
@click.option('--job-id', type=int, default=None)
@with_appcontext
def status_cli(job_id):
    try:
        _echo_job(rebuild_service.status(job_id))
    except RebuildError as e:
        raise click.ClickException(str(e))


@ledger_group.command('abort')
@click.option('--job-id', type=int, default=None)
@with_appcontext
def abort_cli(job_id):
    try:
        _echo_job(rebuild_service.abort(job_id))
    except RebuildError as e:
        raise click.ClickException(str(e))


@ledger_group.command('replay')
@click.option('--product-id', type=int, default=None)
@click.option('--since', default=None, help='ISO-8601 start of the window (UTC if no offset)')
@with_appcontext
def replay_cli(product_id, since):
    """Re-derive movements from the raw event log."""
    try:
        since_dt = parse_iso_datetime(since)
    except ValueError:
        raise click.BadParameter("must be an ISO-8601 datetime", param_hint="--since")
    counts = event_recorder.replay_event_log(product_id=product_id, since=since_dt)
    click.echo(
        f"PASS Replayed {counts['examined']} events: {counts['written']} movements written, "
        f"{counts['deleted']} deleted, {counts['skipped']} malformed, {counts['failed']} failed."
    )


@ledger_group.command('purge')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def purge_cli(yes):
    """
    DANGER: Delete the ledger, the raw event log, the stock state cache and
    all rebuild jobs.
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL LEDGER DATA. Are you sure?", abort=True)
    counts = maintenance_service.purge()
    click.echo(
        "PASS Purged "
        + ", ".join(f"{count} {name}" for name, count in counts.items())
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
