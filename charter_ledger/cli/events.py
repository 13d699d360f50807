"""Accounting event subcommands: inspect, retry and void."""

import click
from rich.console import Console
from rich.table import Table

from charter_ledger.lib.db import db_session
from charter_ledger.models import EventStatus, EventType
from charter_ledger.services.event_store import list_events, retry_event, void_source_document

console = Console()

STATUS_STYLES = {
    EventStatus.PENDING: "yellow",
    EventStatus.PROCESSED: "green",
    EventStatus.FAILED: "red",
    EventStatus.VOIDED: "dim",
}


@click.group()
def events() -> None:
    """Inspect and manage accounting events."""
    pass


@events.command(name="list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in EventStatus], case_sensitive=False),
    help="Filter by status",
)
@click.option(
    "--type",
    "event_type",
    type=click.Choice([t.value for t in EventType], case_sensitive=False),
    help="Filter by event type",
)
@click.option("--limit", default=50, show_default=True, help="Maximum events to show")
def list_cmd(status: str | None, event_type: str | None, limit: int) -> None:
    """List recent accounting events."""
    with db_session() as session:
        rows = list_events(
            session,
            status=EventStatus(status.upper()) if status else None,
            event_type=EventType(event_type.upper()) if event_type else None,
            limit=limit,
        )

        if not rows:
            console.print("[yellow]No events found[/yellow]")
            return

        table = Table(title="Accounting Events")
        table.add_column("Event ID", style="cyan")
        table.add_column("Type")
        table.add_column("Date")
        table.add_column("Document")
        table.add_column("Status")
        table.add_column("Retries", justify="right")
        table.add_column("Error", style="red")

        for event in rows:
            style = STATUS_STYLES[event.status]
            table.add_row(
                event.id,
                event.event_type.value,
                event.event_date.isoformat(),
                f"{event.source_document_type or '-'}:{event.source_document_id or '-'}",
                f"[{style}]{event.status.value}[/{style}]",
                str(event.retry_count),
                event.error_message or "",
            )

        console.print(table)


@events.command(name="retry")
@click.argument("event_id")
@click.option("--actor", default="cli", help="Actor recorded on the journals")
def retry_cmd(event_id: str, actor: str) -> None:
    """Retry posting a FAILED event."""
    with db_session() as session:
        result = retry_event(session, event_id, actor_id=actor)

    if result.success:
        console.print(
            f"[green]✓ Event {event_id} posted: {len(result.journal_entry_ids)} journal(s)[/green]"
        )
    else:
        console.print(f"[red]✗ Event {event_id} not posted [{result.error_code}]: {result.error}[/red]")
        raise SystemExit(1)


@events.command(name="void-document")
@click.argument("document_type")
@click.argument("document_id")
@click.option("--actor", default="cli", help="Actor recorded on the void")
@click.confirmation_option(prompt="Void all events and delete all journals for this document?")
def void_document_cmd(document_type: str, document_id: str, actor: str) -> None:
    """Void a source document's events and delete its journals."""
    with db_session() as session:
        voided = void_source_document(session, document_type, document_id, actor_id=actor)

    console.print(f"[green]✓ Voided {voided} event(s) for {document_type} {document_id}[/green]")
