"""Inventory purchase and consumption models."""

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import CheckConstraint, Date, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charter_ledger.lib.db import Base


class PaymentType(str, enum.Enum):
    """How an inventory purchase was paid."""

    BANK = "bank"
    CASH = "cash"
    PETTY_CASH = "petty_cash"


class InventoryPurchase(Base):  # type: ignore[misc,valid-type]
    """Goods bought into stock (fuel, provisions, spare parts).

    Attributes:
        id: Unique identifier (UUID)
        company_id: Purchasing company
        purchase_number: Human reference (INV-YYMMNNNN)
        purchase_date: Date of purchase
        vendor_name: Supplier
        payment_type: bank, cash, or petty_cash
        bank_account_id: Paying bank account (bank payments)
        wallet_id: Paying petty cash wallet (petty_cash payments)
        currency: Purchase currency
        subtotal: Pre-VAT total of line items
        vat_amount: Input VAT
        total_amount: Amount paid
    """

    __tablename__ = "inventory_purchases"

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

    purchase_number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
    )

    purchase_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    vendor_name: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )

    payment_type: Mapped[PaymentType] = mapped_column(
        Enum(PaymentType),
        nullable=False,
    )

    bank_account_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("bank_accounts.id", ondelete="RESTRICT"),
        nullable=True,
    )

    wallet_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("petty_cash_wallets.id", ondelete="RESTRICT"),
        nullable=True,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="THB",
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

    created_by: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="system",
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    line_items: Mapped[list["InventoryLineItem"]] = relationship(
        "InventoryLineItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="InventoryLineItem.line_order",
    )

    def __repr__(self) -> str:
        """String representation of InventoryPurchase."""
        return f"<InventoryPurchase(number={self.purchase_number}, total={self.total_amount})>"


class InventoryLineItem(Base):  # type: ignore[misc,valid-type]
    """A stocked item; ``quantity_consumed`` never exceeds ``quantity``."""

    __tablename__ = "inventory_line_items"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    purchase_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("inventory_purchases.id", ondelete="CASCADE"),
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

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
    )

    unit_cost: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
    )

    quantity_consumed: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
        default=Decimal("0"),
    )

    expense_account_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="6790",
    )

    purchase: Mapped["InventoryPurchase"] = relationship(
        "InventoryPurchase",
        back_populates="line_items",
    )

    consumptions: Mapped[list["InventoryConsumption"]] = relationship(
        "InventoryConsumption",
        back_populates="line_item",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_quantity_positive"),
        CheckConstraint(
            "quantity_consumed >= 0 AND quantity_consumed <= quantity",
            name="ck_inventory_consumed_within_quantity",
        ),
    )

    @property
    def remaining_quantity(self) -> Decimal:
        """Quantity still in stock."""
        return self.quantity - self.quantity_consumed


class InventoryConsumption(Base):  # type: ignore[misc,valid-type]
    """Stock taken out of inventory and charged to an expense account."""

    __tablename__ = "inventory_consumptions"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    line_item_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("inventory_line_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    project_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
    )

    consumed_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(20, 8),
        nullable=False,
    )

    expense_account_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
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

    line_item: Mapped["InventoryLineItem"] = relationship(
        "InventoryLineItem",
        back_populates="consumptions",
    )
