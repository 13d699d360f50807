"""
Database initialization CLI command.

Creates the ledger tables and seeds the chart of accounts.
"""

import click

from charter_ledger.lib.db import db_exists, db_session, get_db_path, init_db, reset_db
from charter_ledger.services.journal_posting_service import initialize_chart_of_accounts


@click.command()
@click.option("--reset", is_flag=True, help="Reset database (WARNING: deletes all data)")
def init(reset: bool) -> None:
    """Initialize the charter-ledger database."""

    if db_exists() and not reset:
        click.echo(f"Database already exists at {get_db_path()}")
        click.echo("Use --reset to recreate (WARNING: this will delete all data)")
        return

    if reset:
        if not click.confirm("This will DELETE ALL DATA. Continue?"):
            click.echo("Aborted.")
            return
        reset_db()
        click.echo("Database reset successfully.")
    else:
        init_db()
        click.echo(f"Database initialized at {get_db_path()}")

    with db_session() as session:
        accounts = initialize_chart_of_accounts(session)
    click.echo(f"Chart of accounts ready ({len(accounts)} accounts)")
