"""
Exchange rate cache table (currency to THB).
"""

from datetime import date as date_type
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from charter_ledger.lib.db import Base


class FxRate(Base):  # type: ignore[misc,valid-type]
    """
    A rate from one currency to THB on a specific date.

    Uses composite primary key (from_currency, to_currency, date) so there is
    one rate per currency pair per day. ``source`` records where the rate came
    from: 'api' (primary provider), 'fallback' (secondary provider),
    'manual' (operator override) or 'bot' (Bank of Thailand import).
    """

    __tablename__ = "fx_rate_cache"

    from_currency: Mapped[str] = mapped_column(
        String(3),
        primary_key=True,
        nullable=False,
        comment="Source currency ISO 4217 code (e.g., EUR)",
    )

    to_currency: Mapped[str] = mapped_column(
        String(3),
        primary_key=True,
        nullable=False,
        default="THB",
        comment="Target currency, always THB",
    )

    date: Mapped[date_type] = mapped_column(
        Date,
        primary_key=True,
        nullable=False,
        comment="Date the rate applies to",
    )

    rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=8),
        nullable=False,
    )

    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    fetched_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("rate > 0", name="check_rate_positive"),
        CheckConstraint(
            "source IN ('bot', 'fallback', 'manual', 'api')", name="check_rate_source"
        ),
        Index("ix_fx_rate_cache_lookup", "from_currency", "date"),
    )

    def __repr__(self) -> str:
        """String representation showing the conversion rate."""
        return (
            f"FxRate({self.from_currency}/{self.to_currency} "
            f"= {self.rate} on {self.date} [{self.source}])"
        )
