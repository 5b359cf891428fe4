# Overview: Flask CLI command groups for bootstrap, inspection, and replica operation.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP (PowerShell: $env:FLASK_APP="stockroom:create_app").
# - Use: python -m flask <group> <command> [options]
#
# Database bootstrap:
# - python -m flask db-tools init
#   Create all tables and the revision counter (idempotent).
# - python -m flask db-tools reset --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Changelog inspection:
# - python -m flask changes revision
#   Print the current (highest) revision.
# - python -m flask changes pull [--since 41]
#   Print the compacted pull a replica at that watermark would receive.
#
# Catalog:
# - python -m flask catalog import export.json
#   Full sync from {"productGroups": [...], "products": [...]}; removes
#   products and groups missing from the file.
#
# Replica:
# - python -m flask replica sync --server http://127.0.0.1:5000 [--database sqlite:///replica.db] [--interval 10] [--once]
#   Run a replica client against a server.

import json
import logging
import time

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import RevisionCounter
from .services import catalog_service, sync_service
from .services.changelog_service import current_revision
from .time_utils import utcnow


def _ensure_revision_counter() -> None:
    if db.session.get(RevisionCounter, 1) is None:
        db.session.add(RevisionCounter(id=1, last_revision=current_revision(), updated_at=utcnow()))
        db.session.commit()


@click.group('db-tools')
def db_tools_group():
    """Database bootstrap commands."""


@db_tools_group.command('init')
@with_appcontext
def init_db():
    """Create tables and the revision counter."""
    db.create_all()
    _ensure_revision_counter()
    click.echo(f"PASS Database ready (revision {current_revision()})")


@db_tools_group.command('reset')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the changelog. Every replica has
    to be reset afterwards.
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()
    _ensure_revision_counter()

    click.echo("PASS Database reset complete")


@click.group('changes')
def changes_group():
    """Changelog inspection commands."""


@changes_group.command('revision')
@with_appcontext
def show_revision():
    """Print the current revision."""
    click.echo(str(current_revision()))


@changes_group.command('pull')
@click.option('--since', type=click.IntRange(min=0), default=None, help='Replica watermark (omit for a full pull)')
@with_appcontext
def show_pull(since):
    """Print the compacted pull for a watermark as JSON."""
    result = sync_service.pull(since)
    click.echo(json.dumps(result.to_dict(), indent=2, sort_keys=True))


@click.group('catalog')
def catalog_group():
    """ready2order catalog commands."""


@catalog_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_catalog(path):
    """Run a full catalog sync from a JSON export."""
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)

    if not isinstance(data, dict):
        raise click.ClickException("export must be a JSON object")

    try:
        summary = catalog_service.sync_catalog(
            data.get("productGroups") or [],
            data.get("products") or [],
        )
    except (catalog_service.CatalogSyncError, ValueError) as exc:
        raise click.ClickException(str(exc))

    click.echo(
        f"PASS Synced {summary['numberOfProductGroups']} groups, {summary['numberOfProducts']} products "
        f"(removed {summary['deletedProductGroups']} groups, {summary['deletedProducts']} products)"
    )


@click.group('replica')
def replica_group():
    """Replica client commands."""


@replica_group.command('sync')
@click.option('--server', 'server_url', default=None, help='Server base URL')
@click.option('--database', 'database_url', default=None, help='Replica database URL')
@click.option('--interval', type=float, default=None, help='Seconds between pulls')
@click.option('--once', is_flag=True, help='Pull once and exit')
@with_appcontext
def replica_sync(server_url, database_url, interval, once):
    """Run a replica client."""
    from .client.config import ClientConfig
    from .client.replica import LocalReplica
    from .client.scheduler import SyncClient
    from .client.transport import HttpTransport

    logging.basicConfig(level=logging.INFO)

    defaults = ClientConfig.from_env()
    config = ClientConfig(
        server_url=server_url or defaults.server_url,
        database_url=database_url or defaults.database_url,
        interval_seconds=interval if interval is not None else current_app.config.get(
            "SYNC_INTERVAL_SECONDS", defaults.interval_seconds
        ),
        request_timeout=current_app.config.get("SYNC_REQUEST_TIMEOUT", defaults.request_timeout),
    )

    replica = LocalReplica(config.database_url)
    client = SyncClient(
        HttpTransport(config.server_url, timeout=config.request_timeout),
        replica,
        interval_seconds=config.interval_seconds,
    )
    client.add_listener(lambda state: click.echo(f"STATE {state.name}"))

    try:
        client.connect()
        if once:
            client.disconnect()
        else:
            while client.connected:
                time.sleep(1)
    except KeyboardInterrupt:
        click.echo("STOP Interrupted")
    finally:
        client.close()

    if client.last_error is not None:
        raise click.ClickException(f"sync failed: {client.last_error}")
    click.echo(f"PASS Replica at revision {replica.watermark} ({replica.count()} rows)")
    replica.close()


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(db_tools_group)
    app.cli.add_command(changes_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(replica_group)
