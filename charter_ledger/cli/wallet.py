"""Petty cash wallet subcommands."""

import click
from rich.console import Console

from charter_ledger.lib.db import db_session
from charter_ledger.services.petty_cash_service import calculate_wallet_balance, get_wallet

console = Console()


@click.group()
def wallet() -> None:
    """Petty cash wallets."""
    pass


@wallet.command(name="balance")
@click.argument("wallet_id")
def balance_cmd(wallet_id: str) -> None:
    """Show a wallet's calculated balance."""
    with db_session() as session:
        petty_wallet = get_wallet(session, wallet_id)
        balance = calculate_wallet_balance(session, wallet_id)
        color = "green" if balance >= 0 else "red"
        console.print(
            f"{petty_wallet.name} ({petty_wallet.gl_account_code}): "
            f"[{color}]{balance:,.2f} {petty_wallet.currency}[/{color}]"
        )
