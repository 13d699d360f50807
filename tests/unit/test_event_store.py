"""Unit tests for the accounting event store."""

import dataclasses
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from freezegun import freeze_time
from sqlalchemy import func, select
from tenacity import wait_none

from charter_ledger.lib.errors import EventNotFoundError
from charter_ledger.models import (
    AccountingEvent,
    AccountType,
    ChartAccount,
    EventStatus,
    EventType,
    JournalEntry,
)
from charter_ledger.services import event_handlers, event_store
from charter_ledger.services.account_resolver import AccountResolver
from charter_ledger.services.event_store import (
    PostingContext,
    cancel_event,
    check_duplicate_event,
    create_and_process_event,
    get_event_journal_entries,
    list_events,
    process_event,
    retry_event,
    void_source_document,
)
from charter_ledger.services.fx_resolver import FxResolver
from charter_ledger.services.journal_posting_service import (
    ProposedJournal,
    get_journals_for_document,
)
from tests.fakes import FakeRateProvider

PAYMENT_DATE = date(2025, 1, 20)


def expense_paid(amount="1284", bank_gl="1010", currency="THB"):
    return {
        "expense_id": "e-1",
        "payment_id": "pay-1",
        "expense_number": "EXP-25010001",
        "vendor_name": "PTT Marina",
        "payment_date": PAYMENT_DATE.isoformat(),
        "payment_amount": amount,
        "bank_account_gl_code": bank_gl,
        "currency": currency,
    }


def post_expense_paid(session, company, context, document_id="pay-1", **kwargs):
    payload = expense_paid(**kwargs.pop("payload", {}))
    return create_and_process_event(
        session,
        EventType.EXPENSE_PAID,
        PAYMENT_DATE,
        [company.id],
        payload,
        "expense_payment",
        document_id,
        context=context,
        **kwargs,
    )


def journal_count(session):
    return session.execute(select(func.count()).select_from(JournalEntry)).scalar()


@pytest.mark.unit
class TestCreateAndProcess:
    """Test suite for create_and_process_event."""

    def test_success(self, session, charter_company, context):
        with freeze_time("2025-03-01 09:00:00"):
            result = post_expense_paid(session, charter_company, context)

        assert result.success
        assert result.event_recorded
        assert not result.recorded_but_not_posted
        assert result.journal_entry_ids == [result.journal_entry_id]

        event = session.get(AccountingEvent, result.event_id)
        assert event.status == EventStatus.PROCESSED
        assert event.journal_entry_id == result.journal_entry_id
        assert event.processed_at == datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
        assert event.payload["payment_amount"] == "1284"

        [entry] = get_event_journal_entries(session, event.id)
        assert entry.event_id == event.id
        assert entry.source_document_type == "expense_payment"
        assert entry.source_document_id == "pay-1"
        assert entry.total_debits == Decimal("1284.00")

    def test_duplicate_rejected(self, session, charter_company, context):
        first = post_expense_paid(session, charter_company, context)
        second = post_expense_paid(session, charter_company, context)

        assert not second.success
        assert not second.event_recorded
        assert second.error_code == "DUPLICATE_EVENT"
        assert second.event_id == first.event_id
        assert journal_count(session) == 1

    def test_unique_index_rejects_concurrent_insert(
        self, session, charter_company, context, monkeypatch
    ):
        """A writer that slipped past the duplicate check is stopped by the index."""
        first = post_expense_paid(session, charter_company, context)
        monkeypatch.setattr(event_store, "check_duplicate_event", lambda *args, **kwargs: None)

        second = post_expense_paid(session, charter_company, context)

        assert not second.success
        assert not second.event_recorded
        assert second.error_code == "DUPLICATE_EVENT"
        assert len(get_journals_for_document(session, "expense_payment", "pay-1")) == 1
        [event] = session.execute(select(AccountingEvent)).scalars().all()
        assert event.id == first.event_id
        assert event.status == EventStatus.PROCESSED

    def test_voided_rows_do_not_block_insert(self, session, charter_company, context):
        for _ in range(2):
            session.add(
                AccountingEvent(
                    event_type=EventType.EXPENSE_PAID,
                    event_date=PAYMENT_DATE,
                    affected_company_ids=[charter_company.id],
                    source_document_type="expense_payment",
                    source_document_id="pay-1",
                    payload=expense_paid(),
                    status=EventStatus.VOIDED,
                )
            )
        session.flush()

        result = post_expense_paid(session, charter_company, context)

        assert result.success
        statuses = sorted(
            event.status.value for event in session.execute(select(AccountingEvent)).scalars()
        )
        assert statuses == ["PROCESSED", "VOIDED", "VOIDED"]

    def test_same_document_other_event_type_allowed(self, session, charter_company, context):
        """Duplicates are keyed on event type as well as the document."""
        post_expense_paid(session, charter_company, context)
        result = create_and_process_event(
            session,
            EventType.OPENING_BALANCE,
            PAYMENT_DATE,
            [charter_company.id],
            {
                "fiscal_year": "2025",
                "balance_date": "2025-01-01",
                "balances": [
                    {"account_code": "1010", "debit_amount": "100"},
                    {"account_code": "3000", "credit_amount": "100"},
                ],
            },
            "expense_payment",
            "pay-1",
            context=context,
        )

        assert result.success

    def test_force_post_replaces(self, session, charter_company, context):
        first = post_expense_paid(session, charter_company, context)
        second = post_expense_paid(
            session, charter_company, context, force_post=True, payload={"amount": "1300"}
        )

        assert second.success
        assert second.event_id != first.event_id
        assert session.get(AccountingEvent, first.event_id).status == EventStatus.VOIDED

        [entry] = get_journals_for_document(session, "expense_payment", "pay-1")
        assert entry.id == second.journal_entry_id
        assert entry.total_debits == Decimal("1300.00")

    def test_invalid_payload_not_recorded(self, session, charter_company, context):
        result = create_and_process_event(
            session,
            EventType.EXPENSE_PAID,
            PAYMENT_DATE,
            [charter_company.id],
            {"expense_id": "e-1"},
            "expense_payment",
            "pay-1",
            context=context,
        )

        assert not result.success
        assert not result.event_recorded
        assert result.error_code == "INVALID_PAYLOAD"
        assert "payment_amount" in result.error
        assert session.execute(select(func.count()).select_from(AccountingEvent)).scalar() == 0

    @pytest.mark.parametrize("company_count", [0, 3])
    def test_affected_company_count(self, session, charter_company, context, company_count):
        result = create_and_process_event(
            session,
            EventType.EXPENSE_PAID,
            PAYMENT_DATE,
            [charter_company.id] * company_count,
            expense_paid(),
            context=context,
        )

        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"

    def test_tracking_event_posts_no_journal(self, session, charter_company, context):
        result = create_and_process_event(
            session,
            EventType.PETTYCASH_EXPENSE_CREATED,
            PAYMENT_DATE,
            [charter_company.id],
            {
                "expense_id": "pc-1",
                "expense_number": "PC-EXP-25010001",
                "wallet_id": "w-1",
                "expense_date": "2025-01-20",
                "amount": "250",
                "description": "Ice",
            },
            "petty_cash_expense",
            "pc-1",
            context=context,
        )

        assert result.success
        assert result.journal_entry_id is None
        assert result.journal_entry_ids == []
        assert session.get(AccountingEvent, result.event_id).status == EventStatus.PROCESSED
        assert journal_count(session) == 0

    def test_multi_journal_event(self, session, charter_company, bank_company, context):
        result = create_and_process_event(
            session,
            EventType.INTERCOMPANY_SETTLEMENT,
            date(2025, 2, 5),
            [bank_company.id, charter_company.id],
            {
                "from_company_id": bank_company.id,
                "to_company_id": charter_company.id,
                "settlement_date": "2025-02-05",
                "settlement_amount": "10000",
                "from_bank_gl_code": "1010",
                "to_bank_gl_code": "1010",
            },
            "settlement",
            "s-1",
            context=context,
        )

        assert result.success
        assert len(result.journal_entry_ids) == 2
        assert result.journal_entry_id == result.journal_entry_ids[0]
        companies = {entry.company_id for entry in get_event_journal_entries(session, result.event_id)}
        assert companies == {bank_company.id, charter_company.id}

    def test_foreign_currency_event(self, session, charter_company, context):
        result = post_expense_paid(
            session, charter_company, context, payload={"amount": "100", "bank_gl": "1012", "currency": "USD"}
        )

        entry = session.get(JournalEntry, result.journal_entry_id)
        assert entry.currency == "USD"
        assert entry.fx_rate == Decimal("35.50")
        assert entry.lines[0].base_debit == Decimal("3550.00")


@pytest.mark.unit
class TestFailedEvents:
    """Test suite for events recorded but not posted."""

    def test_posting_failure_keeps_event(self, session, charter_company, context):
        result = post_expense_paid(session, charter_company, context, payload={"bank_gl": "1999"})

        assert not result.success
        assert result.event_recorded
        assert result.recorded_but_not_posted
        assert result.error_code == "UNKNOWN_ACCOUNT"

        event = session.get(AccountingEvent, result.event_id)
        assert event.status == EventStatus.FAILED
        assert event.retry_count == 1
        assert "1999" in event.error_message
        assert journal_count(session) == 0

    def test_second_journal_failure_rolls_back_first(
        self, session, charter_company, bank_company, context
    ):
        """A multi-journal event posts all of its journals or none."""
        result = create_and_process_event(
            session,
            EventType.INTERCOMPANY_SETTLEMENT,
            date(2025, 2, 5),
            [bank_company.id, charter_company.id],
            {
                "from_company_id": bank_company.id,
                "to_company_id": charter_company.id,
                "settlement_date": "2025-02-05",
                "settlement_amount": "10000",
                "from_bank_gl_code": "1010",
                "to_bank_gl_code": "1999",
            },
            "settlement",
            "s-1",
            context=context,
        )

        assert result.recorded_but_not_posted
        assert journal_count(session) == 0

    def test_fx_unavailable(self, session, charter_company):
        context = PostingContext(
            fx=FxResolver(providers=[FakeRateProvider()], retry_wait=wait_none()),
            accounts=AccountResolver(retry_wait=wait_none()),
        )

        result = post_expense_paid(session, charter_company, context, payload={"currency": "EUR"})

        assert result.recorded_but_not_posted
        assert result.error_code == "FX_RATE_UNAVAILABLE"

    def test_journal_in_other_currency_than_event(
        self, session, charter_company, context, monkeypatch
    ):
        def build_in_euros(event, data, ctx):
            journal = ProposedJournal(charter_company.id, data.payment_date, "Misbuilt", "EUR")
            journal.debit("2050", data.payment_amount)
            journal.credit("1011", data.payment_amount)
            return [journal]

        handler = event_handlers.HANDLERS[EventType.EXPENSE_PAID]
        monkeypatch.setitem(
            event_handlers.HANDLERS,
            EventType.EXPENSE_PAID,
            dataclasses.replace(handler, build=build_in_euros),
        )

        result = post_expense_paid(session, charter_company, context)

        assert result.recorded_but_not_posted
        assert result.error_code == "CURRENCY_MISMATCH"
        assert journal_count(session) == 0

    def test_bank_account_currency_checked(
        self, session, charter_company, charter_bank_account, context
    ):
        """USD receipt paid into the THB account fails instead of posting to 1010."""
        result = create_and_process_event(
            session,
            EventType.RECEIPT_RECEIVED,
            PAYMENT_DATE,
            [charter_company.id],
            {
                "receipt_id": "r-1",
                "receipt_number": "RE-2501-0001",
                "client_name": "Jensen Family",
                "receipt_date": PAYMENT_DATE.isoformat(),
                "line_items": [{"description": "Day charter", "amount": "300"}],
                "payments": [{"amount": "300", "bank_account_id": charter_bank_account.id}],
                "total_subtotal": "300",
                "total_amount": "300",
                "company_id": charter_company.id,
                "currency": "USD",
            },
            "receipt",
            "r-1",
            context=context,
        )

        assert result.recorded_but_not_posted
        assert result.error_code == "CURRENCY_MISMATCH"
        assert "expected THB, got USD" in result.error
        assert journal_count(session) == 0

    def test_failed_event_blocks_duplicates(self, session, charter_company, context):
        """A failed event is still the active event for its document."""
        failed = post_expense_paid(session, charter_company, context, payload={"bank_gl": "1999"})
        again = post_expense_paid(session, charter_company, context)

        assert again.error_code == "DUPLICATE_EVENT"
        assert again.event_id == failed.event_id

    def test_retry_after_fix(self, session, charter_company, context):
        failed = post_expense_paid(session, charter_company, context, payload={"bank_gl": "1999"})
        session.add(ChartAccount(code="1999", name="Bank Account (new)", type=AccountType.ASSET))
        session.flush()

        result = retry_event(session, failed.event_id, context=context)

        assert result.success
        event = session.get(AccountingEvent, failed.event_id)
        assert event.status == EventStatus.PROCESSED
        assert event.error_message is None
        assert journal_count(session) == 1

    def test_retry_increments_on_failure(self, session, charter_company, context):
        failed = post_expense_paid(session, charter_company, context, payload={"bank_gl": "1999"})

        result = retry_event(session, failed.event_id, context=context)

        assert result.recorded_but_not_posted
        assert session.get(AccountingEvent, failed.event_id).retry_count == 2

    def test_retry_only_failed(self, session, charter_company, context):
        ok = post_expense_paid(session, charter_company, context)

        result = retry_event(session, ok.event_id, context=context)

        assert not result.success
        assert "Only failed events" in result.error

    def test_retry_limit(self, session, charter_company, context):
        failed = post_expense_paid(session, charter_company, context, payload={"bank_gl": "1999"})
        session.get(AccountingEvent, failed.event_id).retry_count = 5

        result = retry_event(session, failed.event_id, context=context)

        assert not result.success
        assert "giving up" in result.error

    def test_unknown_event(self, session, context):
        with pytest.raises(EventNotFoundError):
            retry_event(session, "missing", context=context)
        with pytest.raises(EventNotFoundError):
            process_event(session, "missing", context=context)


@pytest.mark.unit
class TestVoiding:
    """Test suite for voiding and cancelling."""

    def test_void_then_repost(self, session, charter_company, context):
        first = post_expense_paid(session, charter_company, context)

        assert void_source_document(session, "expense_payment", "pay-1", actor_id="accountant") == 1
        assert get_journals_for_document(session, "expense_payment", "pay-1") == []
        assert check_duplicate_event(session, EventType.EXPENSE_PAID, "expense_payment", "pay-1") is None

        voided = session.get(AccountingEvent, first.event_id)
        assert voided.status == EventStatus.VOIDED
        assert voided.voided_at is not None

        second = post_expense_paid(session, charter_company, context)
        assert second.success
        assert len(get_journals_for_document(session, "expense_payment", "pay-1")) == 1

    def test_void_unknown_document(self, session):
        assert void_source_document(session, "expense_payment", "missing") == 0

    def test_cancel_event(self, session, charter_company, context):
        result = post_expense_paid(session, charter_company, context)

        event = cancel_event(session, result.event_id)

        assert event.status == EventStatus.VOIDED
        assert journal_count(session) == 0

    def test_cancel_unknown(self, session):
        with pytest.raises(EventNotFoundError):
            cancel_event(session, "missing")

    def test_list_events_filters(self, session, charter_company, context):
        post_expense_paid(session, charter_company, context)
        post_expense_paid(session, charter_company, context, document_id="pay-2", payload={"bank_gl": "1999"})

        assert len(list_events(session)) == 2
        [failed] = list_events(session, status=EventStatus.FAILED)
        assert failed.source_document_id == "pay-2"
        assert list_events(session, event_type=EventType.RECEIPT_RECEIVED) == []
