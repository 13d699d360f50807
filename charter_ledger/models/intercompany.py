"""Intercompany charge tracking records.

Created when a charter payment lands in a bank account owned by a company
other than the charter owner. Purely informational: these rows are never
joined into journal or P&L queries.
"""

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import Date, Enum, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from charter_ledger.lib.db import Base


class ChargeStatus(str, enum.Enum):
    """Settlement status of an intercompany charge."""

    PENDING = "PENDING"
    SETTLED = "SETTLED"


class IntercompanyChargeRecord(Base):  # type: ignore[misc,valid-type]
    """Money one company owes another for a charter receipt.

    Attributes:
        id: Unique identifier (UUID)
        receipt_id: Receipt that triggered the charge
        receipt_number: Human receipt number
        paying_company_id: Company holding the cash (bank receiving company)
        owed_to_company_id: Company owning the charter project
        project_id: Charter project
        amount: Receipt amount attributable to the project
        currency: Receipt currency
        charter_date: Charter date (or receipt date when unknown)
        charter_type: e.g. day_charter, overnight_charter
        status: PENDING until an intercompany settlement clears it
    """

    __tablename__ = "intercompany_charge_records"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    receipt_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
    )

    receipt_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    paying_company_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    owed_to_company_id: Mapped[str] = mapped_column(
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

    amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    charter_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    charter_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    status: Mapped[ChargeStatus] = mapped_column(
        Enum(ChargeStatus),
        nullable=False,
        default=ChargeStatus.PENDING,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("receipt_id", "project_id", name="uq_charge_per_receipt_project"),
    )

    def __repr__(self) -> str:
        """String representation of IntercompanyChargeRecord."""
        return (
            f"<IntercompanyChargeRecord(receipt={self.receipt_number}, "
            f"amount={self.amount} {self.currency}, status={self.status.value})>"
        )
