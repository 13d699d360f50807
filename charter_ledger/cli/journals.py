"""Journal subcommands."""

from decimal import Decimal

import click
from rich.console import Console
from rich.table import Table

from charter_ledger.lib.db import db_session
from charter_ledger.models import JournalEntry
from charter_ledger.services.journal_posting_service import get_journals_for_document

console = Console()


def _render_entry(entry: JournalEntry) -> Table:
    table = Table(
        title=f"{entry.reference_number} - {entry.description}",
        caption=(
            f"Company {entry.company_id} | {entry.entry_date} | "
            f"{entry.currency} @ {entry.fx_rate.normalize()} ({entry.fx_source})"
        ),
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Account", style="cyan")
    table.add_column("Description")
    table.add_column(f"Debit {entry.currency}", justify="right", style="green")
    table.add_column(f"Credit {entry.currency}", justify="right", style="red")
    table.add_column("Debit THB", justify="right")
    table.add_column("Credit THB", justify="right")

    def fmt(amount: Decimal) -> str:
        return f"{amount:,.2f}" if amount else ""

    for line in entry.lines:
        table.add_row(
            str(line.line_number),
            line.account_code,
            line.description or "",
            fmt(line.debit),
            fmt(line.credit),
            fmt(line.base_debit),
            fmt(line.base_credit),
        )

    table.add_row(
        "",
        "",
        "[bold]Total[/bold]",
        f"[bold]{entry.total_debits:,.2f}[/bold]",
        f"[bold]{entry.total_credits:,.2f}[/bold]",
        "",
        "",
    )
    return table


@click.group()
def journals() -> None:
    """View posted journal entries."""
    pass


@journals.command(name="show")
@click.argument("document_type")
@click.argument("document_id")
def show_cmd(document_type: str, document_id: str) -> None:
    """Show the journals posted for a source document."""
    with db_session() as session:
        entries = get_journals_for_document(session, document_type, document_id)

        if not entries:
            console.print(f"[yellow]No journals for {document_type} {document_id}[/yellow]")
            return

        for entry in entries:
            console.print(_render_entry(entry))
