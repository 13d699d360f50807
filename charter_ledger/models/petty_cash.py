"""Petty cash wallet models.

A wallet's current balance is never stored. It is derived on read from the
initial balance, completed top-ups, paid reimbursements and expenses.
"""

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import Date, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charter_ledger.lib.db import Base


class TopupStatus(str, enum.Enum):
    """Top-up workflow status."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"


class PettyCashExpenseStatus(str, enum.Enum):
    """Petty cash expense status."""

    SUBMITTED = "SUBMITTED"
    LINKED = "LINKED"  # Booked into the main expense ledger
    VOIDED = "VOIDED"


class ReimbursementStatus(str, enum.Enum):
    """Reimbursement workflow status."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"
    REJECTED = "REJECTED"


class PettyCashWallet(Base):  # type: ignore[misc,valid-type]
    """A petty cash float held by a staff member.

    Attributes:
        id: Unique identifier (UUID)
        company_id: Company owning the cash
        name: Wallet name (e.g., "Captain Somchai")
        gl_account_code: GL cash account the wallet is carried in
        currency: Wallet currency
        initial_balance: Opening float (not the current balance)
    """

    __tablename__ = "petty_cash_wallets"

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

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    gl_account_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="1000",
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="THB",
    )

    initial_balance: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
        default=Decimal("0"),
    )

    is_active: Mapped[bool] = mapped_column(
        nullable=False,
        default=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    topups: Mapped[list["PettyCashTopup"]] = relationship(
        "PettyCashTopup",
        back_populates="wallet",
        cascade="all, delete-orphan",
    )

    expenses: Mapped[list["PettyCashExpense"]] = relationship(
        "PettyCashExpense",
        back_populates="wallet",
        cascade="all, delete-orphan",
    )

    reimbursements: Mapped[list["PettyCashReimbursement"]] = relationship(
        "PettyCashReimbursement",
        back_populates="wallet",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        """String representation of PettyCashWallet."""
        return f"<PettyCashWallet(name={self.name!r}, gl={self.gl_account_code})>"


class PettyCashTopup(Base):  # type: ignore[misc,valid-type]
    """Transfer from a company bank account into a wallet."""

    __tablename__ = "petty_cash_topups"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    wallet_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("petty_cash_wallets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    bank_account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bank_accounts.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
    )

    topup_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    status: Mapped[TopupStatus] = mapped_column(
        Enum(TopupStatus),
        nullable=False,
        default=TopupStatus.COMPLETED,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    wallet: Mapped["PettyCashWallet"] = relationship(
        "PettyCashWallet",
        back_populates="topups",
    )


class PettyCashExpense(Base):  # type: ignore[misc,valid-type]
    """Cash spent from a wallet.

    Creating one has no P&L effect. It only lowers the wallet balance until
    an accountant links it into the main expense ledger.
    """

    __tablename__ = "petty_cash_expenses"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    expense_number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
    )

    wallet_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("petty_cash_wallets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    company_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
    )

    project_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
    )

    expense_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    status: Mapped[PettyCashExpenseStatus] = mapped_column(
        Enum(PettyCashExpenseStatus),
        nullable=False,
        default=PettyCashExpenseStatus.SUBMITTED,
    )

    linked_expense_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("expenses.id", ondelete="SET NULL"),
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

    wallet: Mapped["PettyCashWallet"] = relationship(
        "PettyCashWallet",
        back_populates="expenses",
    )

    def __repr__(self) -> str:
        """String representation of PettyCashExpense."""
        return f"<PettyCashExpense(number={self.expense_number}, amount={self.amount})>"


class PettyCashReimbursement(Base):  # type: ignore[misc,valid-type]
    """Bank transfer refilling a wallet for expenses already spent."""

    __tablename__ = "petty_cash_reimbursements"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    reimbursement_number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
    )

    wallet_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("petty_cash_wallets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    bank_account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bank_accounts.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
    )

    payment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    payment_reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    status: Mapped[ReimbursementStatus] = mapped_column(
        Enum(ReimbursementStatus),
        nullable=False,
        default=ReimbursementStatus.PAID,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    wallet: Mapped["PettyCashWallet"] = relationship(
        "PettyCashWallet",
        back_populates="reimbursements",
    )
