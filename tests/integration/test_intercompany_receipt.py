"""Integration tests for receipt posting across companies."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from charter_ledger.lib.errors import (
    AccountResolutionError,
    CurrencyMismatchError,
    JournalPostingFailedError,
    ValidationError,
)
from charter_ledger.lib.event_models import ReceiptLineItem, ReceiptPayment
from charter_ledger.models import (
    AccountingEvent,
    BankAccount,
    ChargeStatus,
    EventType,
    JournalEntry,
    Project,
    RecognitionStatus,
)
from charter_ledger.services import intercompany_service
from charter_ledger.services.intercompany_service import (
    ReceiptInput,
    detect_intercompany,
    generate_charge_records,
    get_charge_records,
    post_receipt,
)
from charter_ledger.services.journal_posting_service import (
    get_account_balance,
    get_journals_for_document,
)
from charter_ledger.services.revenue_recognition_service import (
    get_recognition_for_receipt,
)


def make_receipt(company, bank_account_id=None, line_items=None, amount="10000", **kwargs):
    line_items = line_items or [ReceiptLineItem(description="Day charter Phi Phi", amount=Decimal(amount))]
    total = sum((item.amount for item in line_items), Decimal("0"))
    return ReceiptInput(
        receipt_id=kwargs.pop("receipt_id", "rcpt-1"),
        receipt_number=kwargs.pop("receipt_number", "RE-2501-0001"),
        client_name="Jensen Family",
        receipt_date=date(2025, 1, 15),
        company_id=company.id,
        line_items=line_items,
        payments=[
            ReceiptPayment(
                amount=total,
                bank_account_id=bank_account_id,
                payment_method="transfer" if bank_account_id else "cash",
            )
        ],
        total_subtotal=total,
        total_amount=total,
        **kwargs,
    )


def count(session, model):
    return session.execute(select(func.count()).select_from(model)).scalar()


@pytest.mark.integration
class TestIntercompanyReceipt:
    """Receipts banked by the sister company."""

    def test_posts_mirrored_journals(
        self, session, charter_company, bank_company, sister_bank_account, project, context
    ):
        receipt = make_receipt(charter_company, sister_bank_account.id, project_id=project.id)

        result = post_receipt(session, receipt, context=context)

        assert result.intercompany
        assert result.bank_company_id == bank_company.id
        assert len(result.journal_entry_ids) == 2

        entries = {entry.company_id: entry for entry in get_journals_for_document(session, "receipt", "rcpt-1")}
        bank_entry = entries[bank_company.id]
        charter_entry = entries[charter_company.id]

        assert [(jl.account_code, jl.debit, jl.credit) for jl in bank_entry.lines] == [
            ("1010", Decimal("10000.00"), Decimal("0")),
            ("2700", Decimal("0"), Decimal("10000.00")),
        ]
        assert [(jl.account_code, jl.debit, jl.credit) for jl in charter_entry.lines] == [
            ("1180", Decimal("10000.00"), Decimal("0")),
            ("4490", Decimal("0"), Decimal("10000.00")),
        ]
        assert "for Andaman Charters Co., Ltd." in bank_entry.description
        assert "via Phuket Yacht Management Co., Ltd." in charter_entry.description
        assert charter_entry.lines[1].project_id == project.id

        # Each company numbers its own journals
        assert bank_entry.reference_number == "JE-2025-0001"
        assert charter_entry.reference_number == "JE-2025-0001"

    def test_charge_record_created(
        self, session, charter_company, bank_company, sister_bank_account, project, context
    ):
        receipt = make_receipt(charter_company, sister_bank_account.id, project_id=project.id)

        result = post_receipt(session, receipt, context=context)

        assert [effect.ok for effect in result.side_effects] == [True]
        [record] = get_charge_records(session, receipt_id="rcpt-1")
        assert record.paying_company_id == bank_company.id
        assert record.owed_to_company_id == charter_company.id
        assert record.project_id == project.id
        assert record.amount == Decimal("10000.00")
        assert record.charter_date == date(2025, 1, 15)
        assert record.status == ChargeStatus.PENDING

    def test_charge_record_per_project(
        self, session, charter_company, sister_bank_account, project, context
    ):
        second = Project(company_id=charter_company.id, name="Ocean Pearl", code="OP")
        session.add(second)
        session.flush()

        receipt = make_receipt(
            charter_company,
            sister_bank_account.id,
            line_items=[
                ReceiptLineItem(description="Sea Breeze day", amount=Decimal("6000"), project_id=project.id),
                ReceiptLineItem(description="Ocean Pearl day", amount=Decimal("4000"), project_id=second.id),
                ReceiptLineItem(description="Sea Breeze drinks", amount=Decimal("500"), project_id=project.id),
            ],
            charter_date_from=date(2025, 2, 1),
        )

        post_receipt(session, receipt, context=context)

        amounts = {r.project_id: r.amount for r in get_charge_records(session, receipt_id="rcpt-1")}
        assert amounts == {project.id: Decimal("6500.00"), second.id: Decimal("4000.00")}
        assert {r.charter_date for r in get_charge_records(session)} == {date(2025, 2, 1)}

    def test_charge_records_carry_vat_inclusive_total(
        self, session, charter_company, sister_bank_account, project, context
    ):
        second = Project(company_id=charter_company.id, name="Ocean Pearl", code="OP")
        session.add(second)
        session.flush()
        receipt = ReceiptInput(
            receipt_id="rcpt-vat",
            receipt_number="RE-2501-0003",
            client_name="Jensen Family",
            receipt_date=date(2025, 1, 15),
            company_id=charter_company.id,
            line_items=[
                ReceiptLineItem(description="Sea Breeze day", amount=Decimal("6000"), project_id=project.id),
                ReceiptLineItem(description="Ocean Pearl day", amount=Decimal("4000"), project_id=second.id),
            ],
            payments=[ReceiptPayment(amount=Decimal("10700"), bank_account_id=sister_bank_account.id)],
            total_subtotal=Decimal("10000"),
            total_vat_amount=Decimal("700"),
            total_amount=Decimal("10700"),
        )

        post_receipt(session, receipt, context=context)

        records = get_charge_records(session, receipt_id="rcpt-vat")
        assert {r.project_id: r.amount for r in records} == {
            project.id: Decimal("6420.00"),
            second.id: Decimal("4280.00"),
        }
        # Charge records add up to the intercompany clearing balance
        assert sum(r.amount for r in records) == Decimal("10700.00")
        assert get_account_balance(session, charter_company.id, "1180") == Decimal("10700.00")

    def test_charge_records_not_duplicated(
        self, session, charter_company, bank_company, sister_bank_account, project, context
    ):
        receipt = make_receipt(charter_company, sister_bank_account.id, project_id=project.id)
        post_receipt(session, receipt, context=context)

        assert generate_charge_records(session, receipt, bank_company.id) == []
        assert len(get_charge_records(session)) == 1

    def test_side_effect_failure_keeps_journals(
        self, session, charter_company, sister_bank_account, monkeypatch, context
    ):
        def broken(*args, **kwargs):
            raise RuntimeError("charge table locked")

        monkeypatch.setattr(intercompany_service, "generate_charge_records", broken)

        result = post_receipt(session, make_receipt(charter_company, sister_bank_account.id), context=context)

        [effect] = result.side_effects
        assert not effect.ok
        assert effect.error == "charge table locked"
        assert len(get_journals_for_document(session, "receipt", "rcpt-1")) == 2
        assert get_charge_records(session) == []

    def test_posting_failure_raises(self, session, charter_company, bank_company, context):
        unknown_gl = BankAccount(company_id=bank_company.id, name="New account", gl_account_code="1999")
        session.add(unknown_gl)
        session.commit()

        with pytest.raises(JournalPostingFailedError) as exc_info:
            post_receipt(session, make_receipt(charter_company, unknown_gl.id), context=context)

        assert exc_info.value.error_code == "UNKNOWN_ACCOUNT"
        assert get_charge_records(session) == []

        # The caller's unit of work rolls back, event included
        session.rollback()
        assert count(session, AccountingEvent) == 0
        assert count(session, JournalEntry) == 0

    def test_foreign_currency_uses_one_rate(self, session, charter_company, bank_company, context):
        usd_account = BankAccount(
            company_id=bank_company.id, name="Bangkok Bank USD", gl_account_code="1012", currency="USD"
        )
        session.add(usd_account)
        session.commit()
        receipt = make_receipt(charter_company, usd_account.id, amount="1000", currency="USD")

        result = post_receipt(session, receipt, context=context)

        entries = [session.get(JournalEntry, entry_id) for entry_id in result.journal_entry_ids]
        assert {entry.fx_rate for entry in entries} == {Decimal("35.50")}
        assert all(entry.lines[0].base_debit == Decimal("35500.00") for entry in entries)
        assert entries[0].lines[0].account_code == "1012"

    def test_bank_account_in_other_currency_rejected(
        self, session, charter_company, sister_bank_account, context
    ):
        receipt = make_receipt(charter_company, sister_bank_account.id, amount="1000", currency="USD")

        with pytest.raises(CurrencyMismatchError) as exc_info:
            post_receipt(session, receipt, context=context)

        assert "expected THB, got USD" in exc_info.value.message
        assert count(session, AccountingEvent) == 0
        assert count(session, JournalEntry) == 0

    def test_deferred_revenue(self, session, charter_company, sister_bank_account, project, context):
        receipt = make_receipt(
            charter_company,
            sister_bank_account.id,
            project_id=project.id,
            uses_deferred_revenue=True,
            charter_type="day_charter",
            charter_date_to=date(2025, 2, 1),
        )

        post_receipt(session, receipt, context=context)

        assert get_account_balance(session, charter_company.id, "2300") == Decimal("10000.00")
        record = get_recognition_for_receipt(session, "rcpt-1")
        assert record.status == RecognitionStatus.PENDING
        assert record.amount == Decimal("10000.00")
        assert record.charter_date_to == date(2025, 2, 1)
        assert record.project_id == project.id


@pytest.mark.integration
class TestSplitPaymentReceipt:
    """Receipts whose payments land in more than one account."""

    def make_split_receipt(self, company, deposits, total="10000"):
        total = Decimal(total)
        return ReceiptInput(
            receipt_id="rcpt-split",
            receipt_number="RE-2501-0002",
            client_name="Jensen Family",
            receipt_date=date(2025, 1, 15),
            company_id=company.id,
            line_items=[ReceiptLineItem(description="Overnight charter", amount=total)],
            payments=[
                ReceiptPayment(amount=Decimal(amount), bank_account_id=account_id, payment_method="transfer")
                for account_id, amount in deposits
            ],
            total_subtotal=total,
            total_amount=total,
        )

    def test_payments_across_companies_rejected(
        self, session, charter_company, charter_bank_account, sister_bank_account, context
    ):
        receipt = self.make_split_receipt(
            charter_company, [(sister_bank_account.id, "6000"), (charter_bank_account.id, "4000")]
        )

        with pytest.raises(ValidationError) as exc_info:
            post_receipt(session, receipt, context=context)

        assert "2 companies" in exc_info.value.message
        assert get_journals_for_document(session, "receipt", "rcpt-split") == []
        assert get_charge_records(session) == []

    def test_each_sister_account_debited_its_own_deposit(
        self, session, charter_company, bank_company, sister_bank_account, context
    ):
        second_account = BankAccount(
            company_id=bank_company.id, name="SCB THB", gl_account_code="1010", currency="THB"
        )
        session.add(second_account)
        session.commit()
        receipt = self.make_split_receipt(
            charter_company, [(sister_bank_account.id, "6000"), (second_account.id, "4000")]
        )

        result = post_receipt(session, receipt, context=context)

        assert result.intercompany
        bank_entry = next(
            entry
            for entry in get_journals_for_document(session, "receipt", "rcpt-split")
            if entry.company_id == bank_company.id
        )
        assert [(jl.account_code, jl.debit, jl.credit) for jl in bank_entry.lines] == [
            ("1010", Decimal("6000.00"), Decimal("0")),
            ("1010", Decimal("4000.00"), Decimal("0")),
            ("2700", Decimal("0"), Decimal("10000.00")),
        ]

    def test_payments_must_cover_total(self, session, charter_company, sister_bank_account, context):
        receipt = self.make_split_receipt(
            charter_company, [(sister_bank_account.id, "6000")], total="10000"
        )

        with pytest.raises(ValidationError) as exc_info:
            post_receipt(session, receipt, context=context)

        assert "does not match receipt total" in exc_info.value.message
        assert count(session, AccountingEvent) == 0


@pytest.mark.integration
class TestOwnBankReceipt:
    """Receipts banked by the charter company itself."""

    def test_same_company_posts_single_journal(
        self, session, charter_company, charter_bank_account, context
    ):
        result = post_receipt(session, make_receipt(charter_company, charter_bank_account.id), context=context)

        assert not result.intercompany
        assert len(result.journal_entry_ids) == 1
        [event] = session.execute(select(AccountingEvent)).scalars().all()
        assert event.event_type == EventType.RECEIPT_RECEIVED
        assert get_charge_records(session) == []

    def test_cash_receipt(self, session, charter_company, context):
        result = post_receipt(session, make_receipt(charter_company), context=context)

        [entry] = get_journals_for_document(session, "receipt", "rcpt-1")
        assert entry.id == result.event.journal_entry_id
        assert entry.lines[0].account_code == "1020"

    def test_reposting_rejected(self, session, charter_company, charter_bank_account, context):
        post_receipt(session, make_receipt(charter_company, charter_bank_account.id), context=context)

        with pytest.raises(JournalPostingFailedError) as exc_info:
            post_receipt(session, make_receipt(charter_company, charter_bank_account.id), context=context)

        assert exc_info.value.error_code == "DUPLICATE_EVENT"


@pytest.mark.integration
class TestDetectIntercompany:
    """Test suite for detect_intercompany and charge record queries."""

    def test_detection(
        self, session, charter_company, charter_bank_account, sister_bank_account, context
    ):
        assert detect_intercompany(session, sister_bank_account.id, charter_company.id, context)
        assert not detect_intercompany(session, charter_bank_account.id, charter_company.id, context)
        assert not detect_intercompany(session, None, charter_company.id, context)

    def test_unknown_bank_account(self, session, charter_company, context):
        with pytest.raises(AccountResolutionError):
            detect_intercompany(session, "missing", charter_company.id, context)

    def test_charge_records_by_company(
        self, session, charter_company, bank_company, sister_bank_account, context
    ):
        post_receipt(session, make_receipt(charter_company, sister_bank_account.id), context=context)

        assert len(get_charge_records(session, company_id=bank_company.id)) == 1
        assert len(get_charge_records(session, company_id=charter_company.id)) == 1
        assert get_charge_records(session, company_id="other") == []
