"""Deferred charter revenue awaiting recognition.

A charter paid in advance is banked against Charter Deposits Received (2300).
One record per receipt tracks when that deposit becomes revenue.
"""

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import Date, Enum, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from charter_ledger.lib.db import Base


class RecognitionStatus(str, enum.Enum):
    """Lifecycle of a deferred revenue record."""

    PENDING = "PENDING"  # Waiting for the charter to finish
    RECOGNIZED = "RECOGNIZED"
    NEEDS_REVIEW = "NEEDS_REVIEW"  # No charter end date known
    MANUAL_RECOGNIZED = "MANUAL_RECOGNIZED"


class RecognitionTrigger(str, enum.Enum):
    """What caused the revenue to be recognized."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"
    IMMEDIATE = "immediate"


class RevenueRecognition(Base):  # type: ignore[misc,valid-type]
    """Deposit held in 2300 until the charter completes.

    Attributes:
        id: Unique identifier (UUID)
        company_id: Company owning the charter
        project_id: Charter project
        receipt_id: Receipt the deposit came from (one record per receipt)
        receipt_number: Human receipt number
        client_name: Charter client
        charter_date_from: First day of the charter, if known
        charter_date_to: Last day of the charter; revenue is recognized then
        charter_type: e.g. day_charter, overnight_charter
        amount: Deferred amount in document currency
        currency: Document currency
        revenue_account_code: Explicit revenue account, else derived from charter_type
        status: PENDING, NEEDS_REVIEW or one of the recognized states
        recognition_date: Date revenue was recognized
        trigger: automatic, manual or immediate
        recognized_by: Actor that recognized it
        journal_entry_id: Recognition journal
    """

    __tablename__ = "revenue_recognition"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    company_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    project_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
    )

    receipt_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
    )

    receipt_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    client_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    charter_date_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    charter_date_to: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)

    charter_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    revenue_account_code: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    status: Mapped[RecognitionStatus] = mapped_column(
        Enum(RecognitionStatus),
        nullable=False,
        default=RecognitionStatus.PENDING,
    )

    recognition_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    trigger: Mapped[RecognitionTrigger | None] = mapped_column(
        Enum(RecognitionTrigger),
        nullable=True,
    )

    recognized_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    journal_entry_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (UniqueConstraint("receipt_id", name="uq_recognition_per_receipt"),)

    @property
    def is_recognized(self) -> bool:
        return self.status in (RecognitionStatus.RECOGNIZED, RecognitionStatus.MANUAL_RECOGNIZED)

    def __repr__(self) -> str:
        """String representation of RevenueRecognition."""
        return (
            f"<RevenueRecognition(receipt={self.receipt_number}, "
            f"amount={self.amount} {self.currency}, status={self.status.value})>"
        )
