"""Read-only directories of companies, bank accounts and projects.

The posting core consumes these through small protocols so callers can
supply their own lookup (e.g. a cached HTTP client in the web app). The
default implementations read the local SQLAlchemy tables.
"""

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from charter_ledger.models import BankAccount, Company, Project


@dataclass(frozen=True)
class BankAccountInfo:
    """What posting needs to know about a bank account."""

    id: str
    gl_account_code: str
    company_id: str
    currency: str


@dataclass(frozen=True)
class CompanyInfo:
    """Company name for human-readable journal descriptions."""

    id: str
    name: str


@dataclass(frozen=True)
class ProjectInfo:
    """Project name and owning company."""

    id: str
    name: str
    company_id: str


class BankAccountDirectory(Protocol):
    """Bank account lookups."""

    def get_by_id(self, session: Session, bank_account_id: str) -> BankAccountInfo | None: ...

    def get_by_ids(
        self, session: Session, bank_account_ids: list[str]
    ) -> dict[str, BankAccountInfo]: ...


class CompanyDirectory(Protocol):
    """Company lookups."""

    def get_by_id(self, session: Session, company_id: str) -> CompanyInfo | None: ...


class ProjectDirectory(Protocol):
    """Project lookups."""

    def get_by_id(self, session: Session, project_id: str) -> ProjectInfo | None: ...


class SqlBankAccountDirectory:
    """Bank accounts from the ``bank_accounts`` table."""

    def get_by_id(self, session: Session, bank_account_id: str) -> BankAccountInfo | None:
        account = session.get(BankAccount, bank_account_id)
        if account is None:
            return None
        return BankAccountInfo(
            id=account.id,
            gl_account_code=account.gl_account_code,
            company_id=account.company_id,
            currency=account.currency,
        )

    def get_by_ids(
        self, session: Session, bank_account_ids: list[str]
    ) -> dict[str, BankAccountInfo]:
        if not bank_account_ids:
            return {}
        stmt = select(BankAccount).where(BankAccount.id.in_(bank_account_ids))
        return {
            account.id: BankAccountInfo(
                id=account.id,
                gl_account_code=account.gl_account_code,
                company_id=account.company_id,
                currency=account.currency,
            )
            for account in session.execute(stmt).scalars()
        }


class SqlCompanyDirectory:
    """Companies from the ``companies`` table."""

    def get_by_id(self, session: Session, company_id: str) -> CompanyInfo | None:
        company = session.get(Company, company_id)
        if company is None:
            return None
        return CompanyInfo(id=company.id, name=company.name)


class SqlProjectDirectory:
    """Projects from the ``projects`` table."""

    def get_by_id(self, session: Session, project_id: str) -> ProjectInfo | None:
        project = session.get(Project, project_id)
        if project is None:
            return None
        return ProjectInfo(id=project.id, name=project.name, company_id=project.company_id)
