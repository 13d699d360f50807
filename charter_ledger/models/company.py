"""Directory models: legal entities, their bank accounts, and charter projects.

These tables belong to the surrounding back office. The posting core only
reads them (through ``charter_ledger.services.directories``).
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charter_ledger.lib.db import Base


class Company(Base):  # type: ignore[misc,valid-type]
    """A legal entity keeping its own books."""

    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    base_currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="THB",
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    bank_accounts: Mapped[list["BankAccount"]] = relationship(
        "BankAccount",
        back_populates="company",
        cascade="all, delete-orphan",
    )

    projects: Mapped[list["Project"]] = relationship(
        "Project",
        back_populates="company",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        """String representation of Company."""
        return f"<Company(name={self.name!r})>"


class BankAccount(Base):  # type: ignore[misc,valid-type]
    """Bank account owned by a company and mapped to a GL cash account.

    Attributes:
        id: Unique identifier (UUID)
        company_id: Owning company
        name: Display name (e.g., "Kasikorn THB current")
        account_number: Bank account number (redacted in logs)
        gl_account_code: Chart-of-accounts code carrying this account
        currency: Account currency
    """

    __tablename__ = "bank_accounts"

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
        String(200),
        nullable=False,
    )

    account_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    gl_account_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="THB",
    )

    is_active: Mapped[bool] = mapped_column(
        nullable=False,
        default=True,
    )

    company: Mapped["Company"] = relationship(
        "Company",
        back_populates="bank_accounts",
    )

    def __repr__(self) -> str:
        """String representation of BankAccount."""
        return f"<BankAccount(name={self.name!r}, gl={self.gl_account_code}, {self.currency})>"


class Project(Base):  # type: ignore[misc,valid-type]
    """A charter project (usually a boat) owned by one company."""

    __tablename__ = "projects"

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
        String(200),
        nullable=False,
    )

    code: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    company: Mapped["Company"] = relationship(
        "Company",
        back_populates="projects",
    )

    def __repr__(self) -> str:
        """String representation of Project."""
        return f"<Project(name={self.name!r})>"
