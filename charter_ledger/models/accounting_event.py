"""Accounting event model.

Every business action is captured as an immutable event. The event is the
only way journals get created: handlers turn the event payload into
proposed journals which the posting service persists.
"""

import enum
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from sqlalchemy import JSON, Date, Enum, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charter_ledger.lib.db import Base

if TYPE_CHECKING:
    from charter_ledger.models.journal import JournalEntry


class EventType(str, enum.Enum):
    """Business events that produce (or track) journal entries."""

    RECEIPT_RECEIVED = "RECEIPT_RECEIVED"
    RECEIPT_RECEIVED_INTERCOMPANY = "RECEIPT_RECEIVED_INTERCOMPANY"
    EXPENSE_APPROVED = "EXPENSE_APPROVED"
    EXPENSE_PAID = "EXPENSE_PAID"
    EXPENSE_PAID_INTERCOMPANY = "EXPENSE_PAID_INTERCOMPANY"
    INVENTORY_PURCHASE_RECORDED = "INVENTORY_PURCHASE_RECORDED"
    INVENTORY_CONSUMED = "INVENTORY_CONSUMED"
    PETTYCASH_EXPENSE_CREATED = "PETTYCASH_EXPENSE_CREATED"  # Tracking only
    PETTYCASH_TOPUP_COMPLETED = "PETTYCASH_TOPUP_COMPLETED"
    PETTYCASH_REIMBURSEMENT_PAID = "PETTYCASH_REIMBURSEMENT_PAID"
    MANAGEMENT_FEE_RECOGNIZED = "MANAGEMENT_FEE_RECOGNIZED"
    INTERCOMPANY_SETTLEMENT = "INTERCOMPANY_SETTLEMENT"
    OPENING_BALANCE = "OPENING_BALANCE"
    REVENUE_RECOGNIZED = "REVENUE_RECOGNIZED"
    PARTNER_PROFIT_ALLOCATION = "PARTNER_PROFIT_ALLOCATION"


class EventStatus(str, enum.Enum):
    """Event processing status."""

    PENDING = "PENDING"  # Recorded, handler not yet run
    PROCESSED = "PROCESSED"  # Journals posted
    FAILED = "FAILED"  # Recorded, journal failed to post
    VOIDED = "VOIDED"  # Source document voided or event cancelled


class AccountingEvent(Base):  # type: ignore[misc,valid-type]
    """Immutable business event keyed by its source document.

    At most one non-voided event may exist per
    (event_type, source_document_type, source_document_id). The partial
    unique index below enforces this at the storage layer.

    Attributes:
        id: Unique identifier (UUID)
        event_type: EventType
        event_date: Business date of the event
        affected_company_ids: One or two company IDs
        source_document_type: e.g. "receipt", "expense", "inventory_purchase"
        source_document_id: ID of the source document
        payload: Validated payload (JSON)
        status: PENDING, PROCESSED, FAILED, or VOIDED
        error_message: Last processing error
        retry_count: Number of failed processing attempts
        journal_entry_id: Primary journal posted for this event
        created_by: Actor that created the event
    """

    __tablename__ = "accounting_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    event_type: Mapped[EventType] = mapped_column(
        Enum(EventType),
        nullable=False,
        index=True,
    )

    event_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )

    affected_company_ids: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
    )

    source_document_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    source_document_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
    )

    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
    )

    status: Mapped[EventStatus] = mapped_column(
        Enum(EventStatus),
        nullable=False,
        default=EventStatus.PENDING,
        index=True,
    )

    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    retry_count: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
    )

    # Not a foreign key: journals are deleted when the source document is voided
    journal_entry_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
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

    processed_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    voided_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    journal_entries: Mapped[list["JournalEntry"]] = relationship(
        "JournalEntry",
        back_populates="event",
        passive_deletes=True,
    )

    __table_args__ = (
        Index(
            "uq_active_event_per_document",
            "event_type",
            "source_document_type",
            "source_document_id",
            unique=True,
            sqlite_where=text("status != 'VOIDED'"),
            postgresql_where=text("status != 'VOIDED'"),
        ),
        Index(
            "idx_events_source_document",
            "source_document_type",
            "source_document_id",
        ),
    )

    def __repr__(self) -> str:
        """String representation of AccountingEvent."""
        return (
            f"<AccountingEvent(type={self.event_type.value}, "
            f"doc={self.source_document_type}:{self.source_document_id}, "
            f"status={self.status.value})>"
        )

    @property
    def is_active(self) -> bool:
        """Whether the event still counts for duplicate checks."""
        return self.status != EventStatus.VOIDED

    @property
    def primary_company_id(self) -> str:
        """First affected company (the only one for single-company events)."""
        return self.affected_company_ids[0]
