"""Chart of Accounts model.

A static ``code -> {name, type}`` mapping shared by every company in the
group. Journal lines reference accounts by code and posting rejects codes
that are unknown or inactive.
"""

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Enum, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charter_ledger.lib.db import Base

if TYPE_CHECKING:
    from charter_ledger.models.journal import JournalLine


class AccountType(str, enum.Enum):
    """Standard accounting account types following the accounting equation.

    Assets = Liabilities + Equity + (Revenue - Expenses)
    """

    # Balance Sheet Accounts
    ASSET = "ASSET"  # Debits increase, Credits decrease
    LIABILITY = "LIABILITY"  # Credits increase, Debits decrease
    EQUITY = "EQUITY"  # Credits increase, Debits decrease

    # Income Statement Accounts
    REVENUE = "REVENUE"  # Credits increase, Debits decrease
    EXPENSE = "EXPENSE"  # Debits increase, Credits decrease


# (code, name, type) seeded by initialize_chart_of_accounts
DEFAULT_CHART: tuple[tuple[str, str, AccountType], ...] = (
    # Cash & equivalents
    ("1000", "Petty Cash THB", AccountType.ASSET),
    ("1001", "Petty Cash EUR", AccountType.ASSET),
    ("1002", "Petty Cash USD", AccountType.ASSET),
    ("1010", "Bank Account THB", AccountType.ASSET),
    ("1011", "Bank Account EUR", AccountType.ASSET),
    ("1012", "Bank Account USD", AccountType.ASSET),
    ("1013", "Bank Account SGD", AccountType.ASSET),
    ("1020", "Cash on hand THB", AccountType.ASSET),
    # Receivables
    ("1170", "VAT Receivable", AccountType.ASSET),
    ("1180", "Intercompany Receivable", AccountType.ASSET),
    # Inventory
    ("1200", "Inventory", AccountType.ASSET),
    # Liabilities
    ("2050", "Accounts Payable", AccountType.LIABILITY),
    ("2200", "VAT/GST Payable", AccountType.LIABILITY),
    ("2300", "Charter Deposits Received", AccountType.LIABILITY),
    ("2700", "Intercompany Payable", AccountType.LIABILITY),
    ("2750", "Partner Payables", AccountType.LIABILITY),
    # Equity
    ("3000", "Ordinary Share Capital", AccountType.EQUITY),
    ("3200", "Retained Earnings - Prior Years", AccountType.EQUITY),
    # Revenue
    ("4010", "Charter Revenue - Day Charters", AccountType.REVENUE),
    ("4020", "Charter Revenue - Overnight charter", AccountType.REVENUE),
    ("4030", "Charter Revenue - Cabin charter", AccountType.REVENUE),
    ("4490", "Other Operating Revenue", AccountType.REVENUE),
    ("4800", "Management Fee Income", AccountType.REVENUE),
    # Expenses
    ("5000", "Fuel", AccountType.EXPENSE),
    ("5200", "Guest Provisions - Food and Beverage", AccountType.EXPENSE),
    ("5500", "Boat Maintenance & Repairs - Regular", AccountType.EXPENSE),
    ("6120", "Office Supplies", AccountType.EXPENSE),
    ("6790", "Other Operating Expenses", AccountType.EXPENSE),
    ("6800", "Management Fee Expense", AccountType.EXPENSE),
)


class ChartAccount(Base):  # type: ignore[misc,valid-type]
    """Chart of Accounts entry.

    Attributes:
        id: Unique identifier (UUID)
        code: Four digit account code (e.g., "1010")
        name: Account name (e.g., "Bank Account THB")
        type: Account type (ASSET, LIABILITY, EQUITY, REVENUE, EXPENSE)
        description: Optional detailed description
        is_active: Whether account accepts postings
        is_system: Whether this account was seeded (cannot be deleted)
    """

    __tablename__ = "chart_of_accounts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    type: Mapped[AccountType] = mapped_column(
        Enum(AccountType),
        nullable=False,
        index=True,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        nullable=False,
        default=True,
    )

    is_system: Mapped[bool] = mapped_column(
        nullable=False,
        default=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        "JournalLine",
        back_populates="account",
    )

    __table_args__ = (Index("idx_active_accounts", "code", "is_active"),)

    def __repr__(self) -> str:
        """String representation of ChartAccount."""
        return f"<ChartAccount(code={self.code!r}, name={self.name!r}, type={self.type.value})>"

    @property
    def normal_balance(self) -> str:
        """Get the normal balance side for this account type.

        Returns:
            "DEBIT" or "CREDIT"
        """
        if self.type in (AccountType.ASSET, AccountType.EXPENSE):
            return "DEBIT"
        else:  # LIABILITY, EQUITY, REVENUE
            return "CREDIT"
