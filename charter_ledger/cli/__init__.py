"""CLI entry point for charter-ledger."""

import logging
import sys
import traceback

import click
from rich.console import Console

from charter_ledger.cli import events, fx, journals, revenue, wallet
from charter_ledger.cli import init as init_cmd
from charter_ledger.lib.errors import CharterLedgerError, format_error_message, get_error_color
from charter_ledger.lib.logging_config import setup_logging

console = Console()


@click.group()  # type: ignore[misc]
@click.option("--debug", is_flag=True, help="Enable debug mode")  # type: ignore[misc]
@click.pass_context  # type: ignore[misc]
def main(ctx: click.Context, debug: bool) -> None:
    """Charter Ledger - accounting events and double-entry journals."""
    ctx.ensure_object(dict)
    ctx.obj["DEBUG"] = debug
    setup_logging(logging.DEBUG if debug else logging.WARNING)


def handle_exception(
    exc_type: type[BaseException], exc_value: BaseException, exc_traceback: object
) -> None:
    """
    Global exception handler for CLI.

    Formats exceptions with Rich colors and provides user-friendly messages.
    """
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)  # type: ignore[arg-type]
        return

    color = get_error_color(exc_value) if isinstance(exc_value, Exception) else "red"
    message = (
        format_error_message(exc_value) if isinstance(exc_value, Exception) else str(exc_value)
    )

    console.print(f"\n[{color}]✗ Error: {message}[/{color}]\n")

    if not isinstance(exc_value, CharterLedgerError):
        console.print("[dim]Unexpected error occurred. Use --debug for full traceback.[/dim]")
    if "--debug" in sys.argv:
        traceback.print_exception(exc_value)

    sys.exit(1)


# Install global exception handler
sys.excepthook = handle_exception


@main.command()  # type: ignore[misc]
def version() -> None:
    """Show version information."""
    click.echo("charter-ledger version 0.1.0")


# Register subcommands
main.add_command(init_cmd.init)
main.add_command(events.events)
main.add_command(journals.journals)
main.add_command(wallet.wallet)
main.add_command(fx.fx)
main.add_command(revenue.revenue)


if __name__ == "__main__":
    main()
