"""Main expense ledger models."""

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import Date, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charter_ledger.lib.db import Base


class ExpenseStatus(str, enum.Enum):
    """Approval status."""

    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    VOIDED = "VOIDED"


class PaymentStatus(str, enum.Enum):
    """Payment status."""

    UNPAID = "UNPAID"
    PAID = "PAID"


class VatType(str, enum.Enum):
    """How VAT relates to the entered amount."""

    NO_VAT = "no_vat"
    INCLUDE = "include"  # Amount already contains VAT
    EXCLUDE = "exclude"  # VAT is added on top of the amount


class Expense(Base):  # type: ignore[misc,valid-type]
    """Expense record in the main ledger (the P&L side of spending).

    Attributes:
        id: Unique identifier (UUID)
        company_id: Company bearing the expense
        expense_number: Human reference (EXP-YYMMNNNN)
        vendor_name: Supplier
        expense_date: Date of expense
        vat_type: no_vat, include, or exclude
        subtotal: Pre-VAT amount
        vat_amount: Input VAT
        total_amount: Subtotal plus VAT
        petty_cash_expense_id: Petty cash expense this record was linked from
    """

    __tablename__ = "expenses"

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

    expense_number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
    )

    vendor_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    expense_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="THB",
    )

    vat_type: Mapped[VatType] = mapped_column(
        Enum(VatType),
        nullable=False,
        default=VatType.NO_VAT,
    )

    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
    )

    vat_amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
        default=Decimal("0"),
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
    )

    status: Mapped[ExpenseStatus] = mapped_column(
        Enum(ExpenseStatus),
        nullable=False,
        default=ExpenseStatus.DRAFT,
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus),
        nullable=False,
        default=PaymentStatus.UNPAID,
    )

    petty_cash_expense_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        unique=True,
    )

    notes: Mapped[str | None] = mapped_column(
        String(500),
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

    line_items: Mapped[list["ExpenseLineItem"]] = relationship(
        "ExpenseLineItem",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseLineItem.line_order",
    )

    def __repr__(self) -> str:
        """String representation of Expense."""
        return f"<Expense(number={self.expense_number}, total={self.total_amount})>"


class ExpenseLineItem(Base):  # type: ignore[misc,valid-type]
    """Expense line charged to one GL account and optionally one project."""

    __tablename__ = "expense_line_items"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    expense_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_order: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    account_code: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
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

    expense: Mapped["Expense"] = relationship(
        "Expense",
        back_populates="line_items",
    )
