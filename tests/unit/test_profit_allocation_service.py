"""Unit tests for partner profit allocation."""

from datetime import date
from decimal import Decimal

import pytest

from charter_ledger.lib.errors import JournalPostingFailedError, ValidationError
from charter_ledger.services.journal_posting_service import (
    get_account_balance,
    get_journals_for_document,
)
from charter_ledger.services.profit_allocation_service import (
    PartnerShare,
    allocate_partner_profit,
    allocation_document_id,
    split_profit,
)

Q1_START = date(2025, 1, 1)
Q1_END = date(2025, 3, 31)

SHARES = [
    PartnerShare("pt-1", "Anan", Decimal("60")),
    PartnerShare("pt-2", "Mia", Decimal("40")),
]


def allocate(session, company, project, context, total="90000", shares=SHARES):
    return allocate_partner_profit(
        session,
        company.id,
        project.id,
        project.name,
        Q1_START,
        Q1_END,
        Decimal(total),
        shares,
        context=context,
    )


@pytest.mark.unit
class TestSplitProfit:
    """Test suite for split_profit."""

    def test_split_by_ownership(self):
        allocations = split_profit(Decimal("90000"), SHARES)

        assert [(a.participant_name, a.allocated_amount) for a in allocations] == [
            ("Anan", Decimal("54000.00")),
            ("Mia", Decimal("36000.00")),
        ]

    def test_rounding_remainder_goes_to_last_partner(self):
        thirds = [PartnerShare(f"pt-{i}", f"Partner {i}", Decimal("33.3333")) for i in range(2)]
        thirds.append(PartnerShare("pt-2", "Partner 2", Decimal("33.3334")))

        allocations = split_profit(Decimal("100"), thirds)

        assert [a.allocated_amount for a in allocations] == [
            Decimal("33.33"),
            Decimal("33.33"),
            Decimal("33.34"),
        ]
        assert sum(a.allocated_amount for a in allocations) == Decimal("100")

    def test_percentages_must_total_100(self):
        with pytest.raises(ValidationError, match="add up to 90"):
            split_profit(Decimal("1000"), [PartnerShare("pt-1", "Anan", Decimal("90"))])

    def test_partners_required(self):
        with pytest.raises(ValidationError, match="At least one"):
            split_profit(Decimal("1000"), [])


@pytest.mark.unit
class TestAllocatePartnerProfit:
    """Test suite for allocate_partner_profit."""

    def test_moves_profit_to_partner_payables(self, session, charter_company, project, context):
        result = allocate(session, charter_company, project, context)

        assert result.success
        document_id = allocation_document_id(project.id, Q1_START, Q1_END)
        [entry] = get_journals_for_document(session, "profit_allocation", document_id)
        assert entry.entry_date == Q1_END
        assert [(jl.account_code, jl.debit, jl.credit) for jl in entry.lines] == [
            ("3200", Decimal("90000.00"), Decimal("0")),
            ("2750", Decimal("0"), Decimal("54000.00")),
            ("2750", Decimal("0"), Decimal("36000.00")),
        ]
        assert get_account_balance(session, charter_company.id, "2750", Q1_END) == Decimal("90000.00")

    def test_same_period_allocated_once(self, session, charter_company, project, context):
        allocate(session, charter_company, project, context)

        with pytest.raises(JournalPostingFailedError) as exc_info:
            allocate(session, charter_company, project, context, total="1000")

        assert exc_info.value.error_code == "DUPLICATE_EVENT"

    def test_document_id_per_project_and_period(self):
        first = allocation_document_id("p-1", Q1_START, Q1_END)

        assert first == allocation_document_id("p-1", Q1_START, Q1_END)
        assert first != allocation_document_id("p-2", Q1_START, Q1_END)
        assert first != allocation_document_id("p-1", Q1_START, date(2025, 6, 30))
        assert len(first) == 36

    def test_reversed_period_rejected(self, session, charter_company, project, context):
        with pytest.raises(ValidationError, match="period_to"):
            allocate_partner_profit(
                session,
                charter_company.id,
                project.id,
                project.name,
                Q1_END,
                Q1_START,
                Decimal("1000"),
                SHARES,
                context=context,
            )

    def test_profit_must_be_positive(self, session, charter_company, project, context):
        with pytest.raises(ValidationError):
            allocate(session, charter_company, project, context, total="0")
