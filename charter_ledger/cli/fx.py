"""FX rate subcommands."""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation

import click
from rich.console import Console

from charter_ledger.lib.db import db_session
from charter_ledger.services.event_store import get_default_context

console = Console()


def _parse_date(value: datetime | None) -> date:
    return value.date() if value else date.today()


@click.group()
def fx() -> None:
    """Exchange rates to THB."""
    pass


@fx.command(name="rate")
@click.argument("currency")
@click.option(
    "--date",
    "on_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Rate date (YYYY-MM-DD, defaults to today)",
)
def rate_cmd(currency: str, on_date: datetime | None) -> None:
    """Look up the rate from CURRENCY to THB."""
    resolver = get_default_context().fx
    with db_session() as session:
        snapshot = resolver.get_snapshot(session, currency, _parse_date(on_date))

    console.print(
        f"1 {snapshot.from_currency} = [bold]{snapshot.rate}[/bold] {snapshot.to_currency} "
        f"on {snapshot.date} [dim]({snapshot.source})[/dim]"
    )


@fx.command(name="set-rate")
@click.argument("currency")
@click.argument("rate")
@click.option(
    "--date",
    "on_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Rate date (YYYY-MM-DD, defaults to today)",
)
def set_rate_cmd(currency: str, rate: str, on_date: datetime | None) -> None:
    """Store a manual rate from CURRENCY to THB."""
    try:
        value = Decimal(rate)
    except InvalidOperation as e:
        raise click.BadParameter(f"Invalid rate: {rate}") from e

    resolver = get_default_context().fx
    with db_session() as session:
        snapshot = resolver.set_manual_rate(session, currency, _parse_date(on_date), value)

    console.print(
        f"[green]✓ Manual rate stored: 1 {snapshot.from_currency} = {snapshot.rate} THB "
        f"on {snapshot.date}[/green]"
    )
