"""Journal Entry models for double-entry bookkeeping.

A journal entry is owned by the event and source document that produced it.
Amounts are carried in the event currency and, converted with the FX
snapshot taken at posting time, in THB.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charter_ledger.lib.db import Base

if TYPE_CHECKING:
    from charter_ledger.models.accounting_event import AccountingEvent
    from charter_ledger.models.chart_of_accounts import ChartAccount


class JournalEntry(Base):  # type: ignore[misc,valid-type]
    """Journal entry header.

    A journal entry consists of:
    - Header (this model): company, date, source document, FX snapshot
    - Lines (JournalLine): debits and credits that must balance

    Attributes:
        id: Unique identifier (UUID)
        company_id: Company whose books this entry belongs to
        entry_number: Sequential number per company
        reference_number: Human reference (JE-YYYY-NNNN)
        entry_date: Accounting date
        source_document_type: Document type that produced the entry
        source_document_id: Document ID that produced the entry
        event_id: Originating accounting event
        description: Entry description
        currency: Event currency of the line amounts
        fx_rate: Rate from currency to THB snapshotted at posting
        fx_source: Where the rate came from (api, fallback, manual, bot)
        created_by: Actor that triggered the posting
    """

    __tablename__ = "journal_entries"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    company_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    entry_number: Mapped[int] = mapped_column(
        nullable=False,
    )

    reference_number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    entry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )

    source_document_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    source_document_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
    )

    event_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("accounting_events.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    fx_rate: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
        default=Decimal("1"),
    )

    fx_source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="manual",
    )

    created_by: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="system",
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        "JournalLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_number",
    )

    event: Mapped["AccountingEvent | None"] = relationship(
        "AccountingEvent",
        back_populates="journal_entries",
    )

    __table_args__ = (
        UniqueConstraint("company_id", "entry_number", name="uq_entry_number_per_company"),
        Index(
            "idx_journal_entries_source_document",
            "source_document_type",
            "source_document_id",
        ),
        Index(
            "idx_journal_entries_date",
            "company_id",
            "entry_date",
        ),
    )

    def __repr__(self) -> str:
        """String representation of JournalEntry."""
        return (
            f"<JournalEntry(ref={self.reference_number}, "
            f"date={self.entry_date}, "
            f"description={self.description!r})>"
        )

    @property
    def is_balanced(self) -> bool:
        """Check if debits equal credits (in the event currency)."""
        return self.total_debits == self.total_credits

    @property
    def total_debits(self) -> Decimal:
        """Total debits for this entry."""
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        """Total credits for this entry."""
        return sum((line.credit for line in self.lines), Decimal("0"))


class JournalLine(Base):  # type: ignore[misc,valid-type]
    """Journal entry line (debit or credit).

    Attributes:
        id: Unique identifier (UUID)
        journal_entry_id: Parent journal entry
        account_code: Chart of accounts code
        line_number: Line sequence within entry (1-based)
        description: Line description
        debit: Debit amount in entry currency (0 if credit)
        credit: Credit amount in entry currency (0 if debit)
        base_debit: Debit amount in THB
        base_credit: Credit amount in THB
        project_id: Charter project the line relates to
    """

    __tablename__ = "journal_lines"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    journal_entry_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    account_code: Mapped[str] = mapped_column(
        String(20),
        ForeignKey("chart_of_accounts.code", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    line_number: Mapped[int] = mapped_column(
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # Numeric(20, 8) so THB conversions keep full precision
    debit: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
        default=Decimal("0"),
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
        default=Decimal("0"),
    )

    base_debit: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
        default=Decimal("0"),
    )

    base_credit: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
        default=Decimal("0"),
    )

    project_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    journal_entry: Mapped["JournalEntry"] = relationship(
        "JournalEntry",
        back_populates="lines",
    )

    account: Mapped["ChartAccount"] = relationship(
        "ChartAccount",
        back_populates="journal_lines",
    )

    __table_args__ = (
        # Exactly one side carries an amount
        CheckConstraint(
            "(debit > 0 AND credit = 0) OR (credit > 0 AND debit = 0)",
            name="ck_debit_xor_credit",
        ),
        Index(
            "idx_journal_lines_account",
            "account_code",
            "journal_entry_id",
        ),
    )

    def __repr__(self) -> str:
        """String representation of JournalLine."""
        side = "DR" if self.is_debit else "CR"
        return f"<JournalLine(account={self.account_code}, {side} {self.amount})>"

    @property
    def amount(self) -> Decimal:
        """Line amount (always positive)."""
        return self.debit if self.debit > 0 else self.credit

    @property
    def is_debit(self) -> bool:
        """True if debit, False if credit."""
        return self.debit > 0
