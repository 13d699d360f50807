"""Account resolver: semantic roles to chart-of-accounts codes."""

import enum
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from charter_ledger.lib.config import LOOKUP_RETRY_ATTEMPTS, LOOKUP_RETRY_MAX_WAIT
from charter_ledger.lib.errors import AccountResolutionError, CurrencyMismatchError
from charter_ledger.models import ChartAccount, PettyCashWallet
from charter_ledger.services.directories import (
    BankAccountDirectory,
    BankAccountInfo,
    SqlBankAccountDirectory,
)

logger = logging.getLogger(__name__)


class AccountRole(str, enum.Enum):
    """Semantic roles handlers post to."""

    BANK_ACCOUNT = "BANK_ACCOUNT"  # ref: bank account id
    PETTY_CASH_WALLET = "PETTY_CASH_WALLET"  # ref: wallet id
    CASH = "CASH"
    CASH_ON_HAND = "CASH_ON_HAND"
    DEFAULT_BANK = "DEFAULT_BANK"
    INVENTORY_ASSET = "INVENTORY_ASSET"
    VAT_RECEIVABLE = "VAT_RECEIVABLE"
    VAT_PAYABLE = "VAT_PAYABLE"
    ACCOUNTS_PAYABLE = "ACCOUNTS_PAYABLE"
    DEFERRED_REVENUE = "DEFERRED_REVENUE"
    DEFAULT_REVENUE = "DEFAULT_REVENUE"
    DEFAULT_EXPENSE = "DEFAULT_EXPENSE"
    INTERCOMPANY_RECEIVABLE = "INTERCOMPANY_RECEIVABLE"
    INTERCOMPANY_PAYABLE = "INTERCOMPANY_PAYABLE"
    PARTNER_PAYABLES = "PARTNER_PAYABLES"
    MANAGEMENT_FEE_INCOME = "MANAGEMENT_FEE_INCOME"
    MANAGEMENT_FEE_EXPENSE = "MANAGEMENT_FEE_EXPENSE"
    RETAINED_EARNINGS = "RETAINED_EARNINGS"


# Fixed codes for roles that don't need a reference
DEFAULT_ACCOUNTS: dict[AccountRole, str] = {
    # Assets
    AccountRole.CASH: "1000",
    AccountRole.DEFAULT_BANK: "1010",
    AccountRole.CASH_ON_HAND: "1020",
    AccountRole.VAT_RECEIVABLE: "1170",
    AccountRole.INTERCOMPANY_RECEIVABLE: "1180",
    AccountRole.INVENTORY_ASSET: "1200",
    # Liabilities
    AccountRole.ACCOUNTS_PAYABLE: "2050",
    AccountRole.VAT_PAYABLE: "2200",
    AccountRole.DEFERRED_REVENUE: "2300",
    AccountRole.INTERCOMPANY_PAYABLE: "2700",
    AccountRole.PARTNER_PAYABLES: "2750",
    # Equity
    AccountRole.RETAINED_EARNINGS: "3200",
    # Revenue
    AccountRole.DEFAULT_REVENUE: "4490",
    AccountRole.MANAGEMENT_FEE_INCOME: "4800",
    # Expenses
    AccountRole.DEFAULT_EXPENSE: "6790",
    AccountRole.MANAGEMENT_FEE_EXPENSE: "6800",
}

# Revenue account per charter type; anything else falls back to DEFAULT_REVENUE
CHARTER_REVENUE_ACCOUNTS: dict[str, str] = {
    "day_charter": "4010",
    "overnight_charter": "4020",
    "cabin_charter": "4030",
}


def charter_revenue_account(charter_type: Optional[str]) -> str:
    """Revenue account a charter of ``charter_type`` is recognized into."""
    return CHARTER_REVENUE_ACCOUNTS.get(
        charter_type or "", DEFAULT_ACCOUNTS[AccountRole.DEFAULT_REVENUE]
    )


class AccountResolver:
    """Maps roles and directory references to GL codes.

    All lookups are read-only. Directory reads are retried on transient
    database errors (e.g. "database is locked").
    """

    def __init__(
        self,
        bank_accounts: Optional[BankAccountDirectory] = None,
        retry_attempts: int = LOOKUP_RETRY_ATTEMPTS,
        retry_wait: Optional[wait_base] = None,
    ):
        self.bank_accounts = bank_accounts or SqlBankAccountDirectory()
        self.retry_attempts = retry_attempts
        self.retry_wait = retry_wait or wait_exponential(
            multiplier=1, min=1, max=LOOKUP_RETRY_MAX_WAIT
        )

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )

    def resolve(
        self,
        session: Session,
        role: AccountRole,
        ref: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> str:
        """
        Resolve a role to a GL account code.

        Args:
            session: Database session
            role: Semantic role
            ref: Bank account ID or wallet ID for the referencing roles
            currency: Event currency a referenced bank account must hold

        Returns:
            Account code

        Raises:
            AccountResolutionError: Missing reference or unknown directory entry
            CurrencyMismatchError: Bank account held in another currency
        """
        if role == AccountRole.BANK_ACCOUNT:
            if not ref:
                raise AccountResolutionError(role.value, "bank account id required")
            return self.bank_account_gl_code(session, ref, currency)

        if role == AccountRole.PETTY_CASH_WALLET:
            if not ref:
                raise AccountResolutionError(role.value, "wallet id required")
            return self.wallet_gl_code(session, ref)

        return DEFAULT_ACCOUNTS[role]

    def bank_account(
        self, session: Session, bank_account_id: str, currency: Optional[str] = None
    ) -> BankAccountInfo:
        """
        Look up a bank account.

        Args:
            session: Database session
            bank_account_id: Bank account ID
            currency: When given, the account must be held in this currency

        Raises:
            AccountResolutionError: Bank account not found
            CurrencyMismatchError: Account currency differs from ``currency``
        """
        for attempt in self._retrying():
            with attempt:
                info = self.bank_accounts.get_by_id(session, bank_account_id)

        if info is None:
            raise AccountResolutionError(f"bank account {bank_account_id}", "not found")
        if currency is not None and info.currency.upper() != currency.upper():
            raise CurrencyMismatchError(
                info.currency.upper(), currency.upper(), f"bank account {bank_account_id}"
            )
        return info

    def bank_account_gl_code(
        self, session: Session, bank_account_id: str, currency: Optional[str] = None
    ) -> str:
        """GL code carrying a bank account (checked against ``currency`` when given)."""
        return self.bank_account(session, bank_account_id, currency).gl_account_code

    def bank_account_company(self, session: Session, bank_account_id: str) -> str:
        """Company owning a bank account."""
        return self.bank_account(session, bank_account_id).company_id

    def wallet_gl_code(self, session: Session, wallet_id: str) -> str:
        """
        GL code carrying a petty cash wallet.

        Raises:
            AccountResolutionError: Wallet not found
        """
        for attempt in self._retrying():
            with attempt:
                wallet = session.get(PettyCashWallet, wallet_id)

        if wallet is None:
            raise AccountResolutionError(f"petty cash wallet {wallet_id}", "not found")
        return wallet.gl_account_code

    def require_known(self, session: Session, code: str) -> ChartAccount:
        """
        Ensure an account code exists in the chart and accepts postings.

        Raises:
            AccountResolutionError: Unknown or inactive account
        """
        for attempt in self._retrying():
            with attempt:
                account = session.execute(
                    select(ChartAccount).where(ChartAccount.code == code)
                ).scalar_one_or_none()

        if account is None:
            raise AccountResolutionError(code, "not in chart of accounts")
        if not account.is_active:
            raise AccountResolutionError(code, "account is inactive")
        return account
