"""Deferred charter revenue subcommands."""

from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from charter_ledger.lib.db import db_session
from charter_ledger.models import RecognitionStatus
from charter_ledger.services.event_store import get_default_context
from charter_ledger.services.revenue_recognition_service import (
    get_pending_recognition,
    process_automatic_recognition,
)

console = Console()


@click.group()
def revenue() -> None:
    """Charter deposits awaiting revenue recognition."""
    pass


@revenue.command(name="pending")
@click.option("--company", "company_id", help="Only this company's records")
def pending_cmd(company_id: str | None) -> None:
    """List deposits not yet recognized."""
    with db_session() as session:
        rows = get_pending_recognition(session, company_id=company_id)

        if not rows:
            console.print("[yellow]No deferred revenue pending[/yellow]")
            return

        table = Table(title="Deferred Charter Revenue")
        table.add_column("ID", style="cyan")
        table.add_column("Receipt")
        table.add_column("Client")
        table.add_column("Charter ends")
        table.add_column("Amount", justify="right")
        table.add_column("Status")

        for record in rows:
            needs_review = record.status == RecognitionStatus.NEEDS_REVIEW
            table.add_row(
                record.id,
                record.receipt_number,
                record.client_name or "",
                record.charter_date_to.isoformat() if record.charter_date_to else "-",
                f"{record.amount:,.2f} {record.currency}",
                f"[yellow]{record.status.value}[/yellow]" if needs_review else record.status.value,
            )

        console.print(table)


@revenue.command(name="recognize")
@click.option(
    "--as-of",
    "as_of",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Recognize charters ended on or before this date (defaults to today)",
)
@click.option("--actor", default="cli", help="Actor recorded on the journals")
def recognize_cmd(as_of: datetime | None, actor: str) -> None:
    """Recognize revenue for every finished charter."""
    with db_session() as session:
        run = process_automatic_recognition(
            session,
            as_of=as_of.date() if as_of else None,
            actor_id=actor,
            context=get_default_context(),
        )
        recognized = [record.receipt_number for record in run.recognized]

    console.print(f"[green]✓ Recognized {len(recognized)} deposit(s)[/green]")
    for receipt_number in recognized:
        console.print(f"  {receipt_number}")
    for recognition_id, error in run.errors.items():
        console.print(f"[red]✗ {recognition_id}: {error}[/red]")
    if run.errors:
        raise SystemExit(1)
