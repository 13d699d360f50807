"""Integration tests for CLI workflows."""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from rich.console import Console
from sqlalchemy import select

from charter_ledger.cli import events as events_cli
from charter_ledger.cli import fx as fx_cli
from charter_ledger.cli import journals as journals_cli
from charter_ledger.cli import main
from charter_ledger.cli import revenue as revenue_cli
from charter_ledger.lib.db import db_session
from charter_ledger.lib.errors import NotFoundError
from charter_ledger.models import (
    AccountingEvent,
    AccountType,
    ChartAccount,
    EventStatus,
    EventType,
    FxRate,
    RecognitionStatus,
    RevenueRecognition,
)
from charter_ledger.services.event_store import create_and_process_event
from charter_ledger.services.petty_cash_service import create_wallet
from charter_ledger.services.revenue_recognition_service import create_deferred_revenue_record


@pytest.fixture
def cli_runner():
    """Provide Click test runner."""
    return CliRunner()


@pytest.fixture
def wide_console(monkeypatch):
    """Keep rich tables from wrapping IDs and messages."""
    for module in (events_cli, journals_cli):
        monkeypatch.setattr(module, "console", Console(width=250))


def post_expense_paid(session, company_id, context, document_id="pay-1", bank_gl="1010"):
    return create_and_process_event(
        session,
        EventType.EXPENSE_PAID,
        date(2025, 1, 20),
        [company_id],
        {
            "expense_id": "e-1",
            "payment_id": document_id,
            "expense_number": "EXP-25010001",
            "vendor_name": "PTT Marina",
            "payment_date": "2025-01-20",
            "payment_amount": "1284",
            "bank_account_gl_code": bank_gl,
        },
        "expense_payment",
        document_id,
        context=context,
    )


@pytest.mark.integration
class TestBasicCommands:
    """Test suite for version and init."""

    def test_version(self, cli_runner):
        result = cli_runner.invoke(main, ["version"])

        assert result.exit_code == 0
        assert "charter-ledger version 0.1.0" in result.output

    def test_init_existing_database(self, cli_runner):
        result = cli_runner.invoke(main, ["init"])

        assert result.exit_code == 0
        assert "Database already exists" in result.output

    def test_init_reset(self, cli_runner):
        result = cli_runner.invoke(main, ["init", "--reset"], input="y\n")

        assert result.exit_code == 0
        assert "Database reset successfully." in result.output
        assert "Chart of accounts ready" in result.output

        with db_session() as check:
            account = check.execute(select(ChartAccount).where(ChartAccount.code == "2300")).scalar_one()
            assert account.name == "Charter Deposits Received"

    def test_init_reset_aborted(self, cli_runner):
        result = cli_runner.invoke(main, ["init", "--reset"], input="n\n")

        assert result.exit_code == 0
        assert "Aborted." in result.output


@pytest.mark.integration
class TestEventCommands:
    """Test suite for the events subcommands."""

    def test_list_empty(self, cli_runner):
        result = cli_runner.invoke(main, ["events", "list"])

        assert result.exit_code == 0
        assert "No events found" in result.output

    def test_list_filters_failed(self, cli_runner, wide_console, session, charter_company, context):
        post_expense_paid(session, charter_company.id, context)
        failed_id = post_expense_paid(session, charter_company.id, context, "pay-2", bank_gl="1999").event_id
        session.commit()

        result = cli_runner.invoke(main, ["events", "list", "--status", "failed"])

        assert result.exit_code == 0
        assert failed_id in result.output
        assert "expense_payment:pay-2" in result.output
        assert "expense_payment:pay-1" not in result.output
        assert "1999" in result.output

    def test_retry_failed_event(self, cli_runner, wide_console, session, charter_company, context):
        event_id = post_expense_paid(session, charter_company.id, context, bank_gl="1999").event_id
        session.add(ChartAccount(code="1999", name="Bank Account (new)", type=AccountType.ASSET))
        session.commit()

        result = cli_runner.invoke(main, ["events", "retry", event_id])

        assert result.exit_code == 0
        assert f"Event {event_id} posted: 1 journal(s)" in result.output

        with db_session() as check:
            assert check.get(AccountingEvent, event_id).status == EventStatus.PROCESSED

    def test_retry_processed_event_refused(self, cli_runner, wide_console, session, charter_company, context):
        event_id = post_expense_paid(session, charter_company.id, context).event_id
        session.commit()

        result = cli_runner.invoke(main, ["events", "retry", event_id])

        assert result.exit_code == 1
        assert "Only failed events can be retried" in result.output

    def test_void_document(self, cli_runner, session, charter_company, context):
        event_id = post_expense_paid(session, charter_company.id, context).event_id
        session.commit()

        result = cli_runner.invoke(main, ["events", "void-document", "expense_payment", "pay-1", "--yes"])

        assert result.exit_code == 0
        assert "Voided 1 event(s) for expense_payment pay-1" in result.output

        with db_session() as check:
            assert check.get(AccountingEvent, event_id).status == EventStatus.VOIDED

    def test_void_document_needs_confirmation(self, cli_runner):
        result = cli_runner.invoke(main, ["events", "void-document", "expense_payment", "pay-1"], input="n\n")

        assert result.exit_code != 0


@pytest.mark.integration
class TestJournalAndWalletCommands:
    """Test suite for journals show and wallet balance."""

    def test_show_no_journals(self, cli_runner):
        result = cli_runner.invoke(main, ["journals", "show", "receipt", "missing"])

        assert result.exit_code == 0
        assert "No journals for receipt missing" in result.output

    def test_show_journal(self, cli_runner, wide_console, session, charter_company, context):
        post_expense_paid(session, charter_company.id, context)
        session.commit()

        result = cli_runner.invoke(main, ["journals", "show", "expense_payment", "pay-1"])

        assert result.exit_code == 0
        assert "JE-2025-0001 - Expense payment - EXP-25010001 - PTT Marina" in result.output
        assert "2050" in result.output
        assert "1,284.00" in result.output
        assert "Total" in result.output

    def test_wallet_balance(self, cli_runner, session, charter_company):
        wallet_id = create_wallet(
            session, charter_company.id, "Captain Somchai", initial_balance=Decimal("5000")
        ).id
        session.commit()

        result = cli_runner.invoke(main, ["wallet", "balance", wallet_id])

        assert result.exit_code == 0
        assert "Captain Somchai (1000): 5,000.00 THB" in result.output

    def test_wallet_unknown(self, cli_runner):
        result = cli_runner.invoke(main, ["wallet", "balance", "missing"])

        assert result.exit_code == 1
        assert isinstance(result.exception, NotFoundError)


@pytest.mark.integration
class TestFxCommands:
    """Test suite for the fx subcommands."""

    def test_thb_rate(self, cli_runner, context):
        with patch.object(fx_cli, "get_default_context", return_value=context):
            result = cli_runner.invoke(main, ["fx", "rate", "THB", "--date", "2025-01-15"])

        assert result.exit_code == 0
        assert "1 THB = 1 THB on 2025-01-15 (manual)" in result.output

    def test_fetched_rate(self, cli_runner, context, rate_provider):
        with patch.object(fx_cli, "get_default_context", return_value=context):
            result = cli_runner.invoke(main, ["fx", "rate", "usd", "--date", "2025-01-15"])

        assert result.exit_code == 0
        assert "1 USD = 35.50 THB on 2025-01-15 (api)" in result.output
        assert rate_provider.calls == [("USD", date(2025, 1, 15))]

    def test_set_manual_rate(self, cli_runner, context):
        with patch.object(fx_cli, "get_default_context", return_value=context):
            result = cli_runner.invoke(main, ["fx", "set-rate", "USD", "36.25", "--date", "2025-01-15"])

        assert result.exit_code == 0
        assert "Manual rate stored: 1 USD = 36.25 THB on 2025-01-15" in result.output

        with db_session() as check:
            stored = check.get(FxRate, ("USD", "THB", date(2025, 1, 15)))
            assert stored.rate == Decimal("36.25")
            assert stored.source == "manual"

    def test_set_rate_invalid(self, cli_runner, context):
        with patch.object(fx_cli, "get_default_context", return_value=context):
            result = cli_runner.invoke(main, ["fx", "set-rate", "USD", "abc"])

        assert result.exit_code == 2
        assert "Invalid rate: abc" in result.output


@pytest.mark.integration
class TestRevenueCommands:
    """Test suite for the revenue subcommands."""

    def test_pending_empty(self, cli_runner):
        result = cli_runner.invoke(main, ["revenue", "pending"])

        assert result.exit_code == 0
        assert "No deferred revenue pending" in result.output

    def test_pending_and_recognize(self, cli_runner, session, charter_company, context, monkeypatch):
        monkeypatch.setattr(revenue_cli, "console", Console(width=250))
        create_deferred_revenue_record(
            session,
            company_id=charter_company.id,
            receipt_id="r-1",
            receipt_number="RE-2501-0001",
            amount=Decimal("10000"),
            client_name="Jensen Family",
            charter_date_to=date(2025, 2, 1),
            charter_type="day_charter",
        )
        session.commit()

        listed = cli_runner.invoke(main, ["revenue", "pending"])

        assert listed.exit_code == 0
        assert "RE-2501-0001" in listed.output
        assert "10,000.00 THB" in listed.output

        with patch.object(revenue_cli, "get_default_context", return_value=context):
            result = cli_runner.invoke(main, ["revenue", "recognize", "--as-of", "2025-02-01"])

        assert result.exit_code == 0
        assert "Recognized 1 deposit(s)" in result.output
        assert "RE-2501-0001" in result.output

        with db_session() as check:
            [record] = check.execute(select(RevenueRecognition)).scalars().all()
            assert record.status == RecognitionStatus.RECOGNIZED
