"""Maintenance commands for the classification service."""

import click

from ticket_classifier.core.db import SessionLocal, init_db
from ticket_classifier.core.errors import InternalError
from ticket_classifier.core.log_config import setup_logging
from ticket_classifier.services.nonces import NonceService


@click.group()
def cli():
    """Ticket classifier CLI tools."""
    setup_logging()


@cli.command(name="init-db")
def init_db_command():
    """Create any missing tables."""
    init_db()
    click.echo("✓ Database tables are up to date")


@cli.command()
def cleanup_nonces():
    """
    Delete expired nonces. Meant to run hourly from cron or a systemd timer;
    safe to re-run or to skip a cycle.

    Example:
        ticket-classifier cleanup-nonces
    """
    click.echo("Starting cleanup of expired nonces...")
    db = SessionLocal()
    try:
        deleted = NonceService(db).purge_expired()
    except InternalError as e:
        raise click.ClickException(str(e))
    finally:
        db.close()

    if deleted > 0:
        click.echo(f"✓ Cleaned up {deleted} expired nonces.")
    else:
        click.echo("No expired nonces found to clean up.")


if __name__ == "__main__":
    cli()
