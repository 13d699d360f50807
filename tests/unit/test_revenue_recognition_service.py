"""Unit tests for deferred revenue recognition."""

from datetime import date
from decimal import Decimal

import pytest
from freezegun import freeze_time

from charter_ledger.lib.errors import JournalPostingFailedError, NotFoundError, ValidationError
from charter_ledger.models import EventType, RecognitionStatus, RecognitionTrigger
from charter_ledger.services.event_store import list_events
from charter_ledger.services.journal_posting_service import (
    ProposedJournal,
    get_account_balance,
    get_journals_for_document,
    post_journal,
)
from charter_ledger.services.revenue_recognition_service import (
    create_deferred_revenue_record,
    get_pending_recognition,
    process_automatic_recognition,
    recognize_revenue,
    update_charter_dates,
)

RECEIPT_DATE = date(2025, 1, 15)
CHARTER_END = date(2025, 2, 1)


def deposit_journal(session, company, amount=Decimal("10000"), fx_resolver=None, document_id="r-1"):
    """The 2300 credit an advance charter receipt leaves behind."""
    journal = ProposedJournal(company.id, RECEIPT_DATE, f"Receipt {document_id}", "THB")
    journal.debit("1010", amount)
    journal.credit("2300", amount)
    post_journal(session, journal, "receipt", document_id, fx_resolver=fx_resolver)


def make_record(session, company, receipt_id="r-1", charter_date_to=CHARTER_END, **kwargs):
    return create_deferred_revenue_record(
        session,
        company_id=company.id,
        receipt_id=receipt_id,
        receipt_number=f"RE-{receipt_id}",
        amount=kwargs.pop("amount", Decimal("10000")),
        client_name="Jensen Family",
        charter_date_to=charter_date_to,
        **kwargs,
    )


@pytest.mark.unit
class TestDeferredRecords:
    """Test suite for creating and updating deferred revenue records."""

    def test_record_with_end_date_is_pending(self, session, charter_company, project):
        record = make_record(session, charter_company, project_id=project.id, charter_type="day_charter")

        assert record.status == RecognitionStatus.PENDING
        assert record.amount == Decimal("10000.00")
        assert record.currency == "THB"
        assert not record.is_recognized

    def test_record_without_end_date_needs_review(self, session, charter_company):
        record = make_record(session, charter_company, charter_date_to=None)

        assert record.status == RecognitionStatus.NEEDS_REVIEW

    def test_one_record_per_receipt(self, session, charter_company):
        first = make_record(session, charter_company)
        second = make_record(session, charter_company, amount=Decimal("500"))

        assert second.id == first.id
        assert second.amount == Decimal("10000.00")
        assert len(get_pending_recognition(session)) == 1

    def test_update_dates_moves_review_to_pending(self, session, charter_company):
        record = make_record(session, charter_company, charter_date_to=None)

        update_charter_dates(session, record.id, date(2025, 1, 30), CHARTER_END)

        assert record.status == RecognitionStatus.PENDING
        assert record.charter_date_to == CHARTER_END

    def test_update_dates_rejects_reversed_range(self, session, charter_company):
        record = make_record(session, charter_company, charter_date_to=None)

        with pytest.raises(ValidationError, match="charter_date_to"):
            update_charter_dates(session, record.id, CHARTER_END, date(2025, 1, 30))

    def test_pending_filters(self, session, charter_company, bank_company):
        make_record(session, charter_company, "r-1")
        make_record(session, charter_company, "r-2", charter_date_to=None)
        make_record(session, bank_company, "r-3")

        assert len(get_pending_recognition(session)) == 3
        assert len(get_pending_recognition(session, company_id=charter_company.id)) == 2
        assert len(get_pending_recognition(session, include_review=False)) == 2


@pytest.mark.unit
class TestRecognizeRevenue:
    """Test suite for recognize_revenue."""

    def test_moves_deposit_into_charter_type_revenue(
        self, session, charter_company, project, fx_resolver, context
    ):
        deposit_journal(session, charter_company, fx_resolver=fx_resolver)
        record = make_record(session, charter_company, project_id=project.id, charter_type="day_charter")

        recognize_revenue(session, record.id, actor_id="accountant", context=context)

        [entry] = get_journals_for_document(session, "revenue_recognition", record.id)
        assert entry.entry_date == CHARTER_END
        assert [(jl.account_code, jl.debit, jl.credit) for jl in entry.lines] == [
            ("2300", Decimal("10000.00"), Decimal("0")),
            ("4010", Decimal("0"), Decimal("10000.00")),
        ]
        assert entry.lines[1].project_id == project.id
        assert get_account_balance(session, charter_company.id, "2300", CHARTER_END) == Decimal("0")
        assert get_account_balance(session, charter_company.id, "4010", CHARTER_END) == Decimal("10000.00")

        assert record.status == RecognitionStatus.MANUAL_RECOGNIZED
        assert record.trigger == RecognitionTrigger.MANUAL
        assert record.recognized_by == "accountant"
        assert record.recognition_date == CHARTER_END
        assert record.journal_entry_id == entry.id

    @pytest.mark.parametrize(
        "charter_type,account",
        [("overnight_charter", "4020"), ("cabin_charter", "4030"), ("bareboat", "4490"), (None, "4490")],
    )
    def test_account_by_charter_type(self, session, charter_company, context, charter_type, account):
        record = make_record(session, charter_company, charter_type=charter_type)

        recognize_revenue(session, record.id, context=context)

        [entry] = get_journals_for_document(session, "revenue_recognition", record.id)
        assert entry.lines[1].account_code == account

    def test_explicit_account_wins(self, session, charter_company, context):
        record = make_record(
            session, charter_company, charter_type="day_charter", revenue_account_code="4020"
        )

        recognize_revenue(session, record.id, context=context)

        [entry] = get_journals_for_document(session, "revenue_recognition", record.id)
        assert entry.lines[1].account_code == "4020"

    def test_second_call_posts_nothing(self, session, charter_company, context):
        record = make_record(session, charter_company)
        recognize_revenue(session, record.id, context=context)

        again = recognize_revenue(session, record.id, date(2025, 3, 1), context=context)

        assert again.recognition_date == CHARTER_END
        assert len(get_journals_for_document(session, "revenue_recognition", record.id)) == 1
        assert len(list_events(session, event_type=EventType.REVENUE_RECOGNIZED)) == 1

    @freeze_time("2025-03-10")
    def test_no_end_date_recognizes_today(self, session, charter_company, context):
        record = make_record(session, charter_company, charter_date_to=None)

        recognize_revenue(session, record.id, trigger="immediate", context=context)

        assert record.recognition_date == date(2025, 3, 10)
        assert record.trigger == RecognitionTrigger.IMMEDIATE
        assert record.status == RecognitionStatus.MANUAL_RECOGNIZED

    def test_posting_failure_leaves_record_pending(self, session, charter_company, context):
        record = make_record(session, charter_company, revenue_account_code="4999")

        with pytest.raises(JournalPostingFailedError) as exc_info:
            recognize_revenue(session, record.id, context=context)

        assert exc_info.value.error_code == "UNKNOWN_ACCOUNT"
        assert record.status == RecognitionStatus.PENDING

    def test_unknown_record(self, session, context):
        with pytest.raises(NotFoundError):
            recognize_revenue(session, "missing", context=context)

    def test_recognized_record_dates_locked(self, session, charter_company, context):
        record = make_record(session, charter_company)
        recognize_revenue(session, record.id, context=context)

        with pytest.raises(ValidationError, match="already recognized"):
            update_charter_dates(session, record.id, None, date(2025, 3, 1))


@pytest.mark.unit
class TestAutomaticRecognition:
    """Test suite for process_automatic_recognition."""

    def test_recognizes_finished_charters_only(self, session, charter_company, context):
        done = make_record(session, charter_company, "r-1", charter_date_to=date(2025, 1, 31))
        today = make_record(session, charter_company, "r-2", charter_date_to=date(2025, 2, 1))
        later = make_record(session, charter_company, "r-3", charter_date_to=date(2025, 2, 2))
        review = make_record(session, charter_company, "r-4", charter_date_to=None)

        run = process_automatic_recognition(session, as_of=date(2025, 2, 1), context=context)

        assert [record.id for record in run.recognized] == [done.id, today.id]
        assert run.errors == {}
        assert done.status == RecognitionStatus.RECOGNIZED
        assert done.trigger == RecognitionTrigger.AUTOMATIC
        assert done.recognition_date == date(2025, 1, 31)
        assert later.status == RecognitionStatus.PENDING
        assert review.status == RecognitionStatus.NEEDS_REVIEW

    def test_failure_does_not_stop_run(self, session, charter_company, context):
        broken = make_record(session, charter_company, "r-1", revenue_account_code="4999")
        good = make_record(session, charter_company, "r-2")

        run = process_automatic_recognition(session, as_of=CHARTER_END, context=context)

        assert [record.id for record in run.recognized] == [good.id]
        assert list(run.errors) == [broken.id]
        assert "4999" in run.errors[broken.id]
        assert broken.status == RecognitionStatus.PENDING
        assert good.status == RecognitionStatus.RECOGNIZED
