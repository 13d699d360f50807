"""Journal posting service for double-entry bookkeeping.

Validates proposed journals and persists them as JournalEntry + JournalLine
rows. Amounts stay in the event currency on the line and are converted to
THB with the FX snapshot taken at posting time.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from charter_ledger.lib.config import BALANCE_TOLERANCE, MIN_JOURNAL_LINES
from charter_ledger.lib.errors import (
    CurrencyMismatchError,
    NotFoundError,
    UnbalancedJournalError,
    ValidationError,
)
from charter_ledger.lib.validators import round_money, validate_currency
from charter_ledger.models import DEFAULT_CHART, ChartAccount, JournalEntry, JournalLine
from charter_ledger.services.account_resolver import AccountResolver
from charter_ledger.services.fx_resolver import FxResolver, FxSnapshot

logger = logging.getLogger(__name__)


@dataclass
class ProposedLine:
    """One debit or credit proposed by an event handler."""

    account_code: str
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: str = ""
    project_id: Optional[str] = None


@dataclass
class ProposedJournal:
    """Unpersisted journal for one company, in the event currency."""

    company_id: str
    entry_date: date
    description: str
    currency: str
    lines: list[ProposedLine] = field(default_factory=list)

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    def debit(
        self,
        account_code: str,
        amount: Decimal,
        description: str = "",
        project_id: Optional[str] = None,
    ) -> None:
        """Append a debit line (zero amounts are skipped)."""
        amount = round_money(amount)
        if amount != 0:
            self.lines.append(ProposedLine(account_code, amount, Decimal("0"), description, project_id))

    def credit(
        self,
        account_code: str,
        amount: Decimal,
        description: str = "",
        project_id: Optional[str] = None,
    ) -> None:
        """Append a credit line (zero amounts are skipped)."""
        amount = round_money(amount)
        if amount != 0:
            self.lines.append(ProposedLine(account_code, Decimal("0"), amount, description, project_id))


def initialize_chart_of_accounts(session: Session) -> dict[str, ChartAccount]:
    """Seed the default chart of accounts.

    Existing codes are left untouched, so this is safe to run repeatedly.

    Args:
        session: Database session

    Returns:
        Dictionary mapping account codes to ChartAccount instances
    """
    existing = {account.code: account for account in session.execute(select(ChartAccount)).scalars()}

    created = 0
    for code, name, account_type in DEFAULT_CHART:
        if code in existing:
            continue
        account = ChartAccount(code=code, name=name, type=account_type, is_system=True)
        session.add(account)
        existing[code] = account
        created += 1

    session.flush()
    if created:
        logger.info(f"Seeded {created} chart of accounts entries")
    return existing


def get_next_entry_number(session: Session, company_id: str) -> int:
    """Get next sequential entry number for a company.

    Args:
        session: Database session
        company_id: Company ID

    Returns:
        Next entry number
    """
    stmt = (
        select(JournalEntry.entry_number)
        .where(JournalEntry.company_id == company_id)
        .order_by(JournalEntry.entry_number.desc())
        .limit(1)
        .with_for_update()  # Lock row to prevent concurrent number conflicts
    )

    result = session.execute(stmt).scalar()
    return (result or 0) + 1


def validate_proposed_journal(
    session: Session,
    proposed: ProposedJournal,
    expected_currency: Optional[str] = None,
    account_resolver: Optional[AccountResolver] = None,
) -> None:
    """Check a proposed journal before anything is written.

    Args:
        session: Database session
        proposed: Journal to check
        expected_currency: Event currency the journal must be carried in
        account_resolver: Resolver used to check account codes

    Raises:
        ValidationError: Too few lines, or a line with no or two amounts
        UnbalancedJournalError: Debits and credits differ by more than 0.01
        AccountResolutionError: Unknown or inactive account code
        InvalidCurrencyError: Unsupported currency
        CurrencyMismatchError: Journal currency differs from the event currency
    """
    if len(proposed.lines) < MIN_JOURNAL_LINES:
        raise ValidationError(
            f"Journal must have at least {MIN_JOURNAL_LINES} lines, got {len(proposed.lines)}"
        )

    for number, line in enumerate(proposed.lines, start=1):
        if line.debit < 0 or line.credit < 0:
            raise ValidationError(f"Line {number} ({line.account_code}) has a negative amount")
        if (line.debit > 0) == (line.credit > 0):
            raise ValidationError(
                f"Line {number} ({line.account_code}) must have exactly one of debit or credit"
            )

    total_debits = proposed.total_debits
    total_credits = proposed.total_credits
    if abs(total_debits - total_credits) > BALANCE_TOLERANCE:
        raise UnbalancedJournalError(total_debits, total_credits, proposed.company_id)

    currency = validate_currency(proposed.currency)
    if expected_currency is not None and currency != expected_currency.upper():
        raise CurrencyMismatchError(expected_currency.upper(), currency)

    resolver = account_resolver or AccountResolver()
    for code in dict.fromkeys(line.account_code for line in proposed.lines):
        resolver.require_known(session, code)


def post_journal(
    session: Session,
    proposed: ProposedJournal,
    source_document_type: Optional[str],
    source_document_id: Optional[str],
    company_id: Optional[str] = None,
    *,
    event_id: Optional[str] = None,
    fx: Optional[FxSnapshot] = None,
    fx_resolver: Optional[FxResolver] = None,
    account_resolver: Optional[AccountResolver] = None,
    expected_currency: Optional[str] = None,
    actor_id: str = "system",
) -> JournalEntry:
    """Validate and persist a proposed journal.

    The entry and all of its lines are written inside one savepoint, so
    either the whole journal exists afterwards or none of it does.

    Args:
        session: Database session
        proposed: Journal built by an event handler
        source_document_type: Document type the journal belongs to
        source_document_id: Document ID the journal belongs to
        company_id: Company whose books receive the entry (defaults to proposed.company_id)
        event_id: Originating accounting event
        fx: FX snapshot to use (resolved from the entry date when omitted)
        fx_resolver: Resolver used when no snapshot is given
        account_resolver: Resolver used to check account codes
        expected_currency: Event currency the journal must be carried in
        actor_id: Who triggered the posting

    Returns:
        Created JournalEntry with lines
    """
    company_id = company_id or proposed.company_id
    if company_id != proposed.company_id:
        raise ValidationError(
            f"Journal proposed for company {proposed.company_id} cannot be posted to {company_id}"
        )

    validate_proposed_journal(
        session, proposed, expected_currency=expected_currency, account_resolver=account_resolver
    )
    currency = proposed.currency.upper()

    if fx is None:
        fx = (fx_resolver or FxResolver()).get_snapshot(session, currency, proposed.entry_date)
    elif fx.from_currency != currency:
        raise CurrencyMismatchError(currency, fx.from_currency)

    with session.begin_nested():
        entry_number = get_next_entry_number(session, company_id)
        entry = JournalEntry(
            company_id=company_id,
            entry_number=entry_number,
            reference_number=f"JE-{proposed.entry_date.year}-{entry_number:04d}",
            entry_date=proposed.entry_date,
            source_document_type=source_document_type,
            source_document_id=source_document_id,
            event_id=event_id,
            description=proposed.description,
            currency=currency,
            fx_rate=fx.rate,
            fx_source=fx.source,
            created_by=actor_id,
        )

        for line_number, line in enumerate(proposed.lines, start=1):
            entry.lines.append(
                JournalLine(
                    account_code=line.account_code,
                    line_number=line_number,
                    description=line.description,
                    debit=line.debit,
                    credit=line.credit,
                    base_debit=round_money(fx.to_base(line.debit)),
                    base_credit=round_money(fx.to_base(line.credit)),
                    project_id=line.project_id,
                )
            )

        session.add(entry)
        session.flush()

    logger.info(
        f"Posted {entry.reference_number} for company {company_id}: "
        f"{proposed.total_debits} {currency} ({len(entry.lines)} lines)"
    )
    return entry


def get_journals_for_document(
    session: Session, source_document_type: str, source_document_id: str
) -> list[JournalEntry]:
    """All journals keyed to a source document, oldest first."""
    stmt = (
        select(JournalEntry)
        .where(
            JournalEntry.source_document_type == source_document_type,
            JournalEntry.source_document_id == source_document_id,
        )
        .order_by(JournalEntry.created_at, JournalEntry.entry_number)
    )
    return list(session.execute(stmt).scalars().all())


def get_journal_by_reference(session: Session, company_id: str, reference_number: str) -> JournalEntry:
    """
    Look up a journal by its JE reference within a company.

    Raises:
        NotFoundError: No such journal
    """
    stmt = select(JournalEntry).where(
        JournalEntry.company_id == company_id,
        JournalEntry.reference_number == reference_number,
    )
    entry = session.execute(stmt).scalar_one_or_none()
    if entry is None:
        raise NotFoundError("journal entry", reference_number)
    return entry


def delete_by_source_document(
    session: Session, source_document_type: str, source_document_id: str
) -> int:
    """Delete every journal (and its lines) keyed to a source document.

    Must run before an edited document is re-posted so no stale journal
    survives next to the new one.

    Returns:
        Number of journal entries deleted
    """
    entries = get_journals_for_document(session, source_document_type, source_document_id)
    for entry in entries:
        session.delete(entry)
    session.flush()

    if entries:
        logger.info(
            f"Deleted {len(entries)} journal(s) for {source_document_type} {source_document_id}"
        )
    return len(entries)


def get_account_balance(
    session: Session,
    company_id: str,
    account_code: str,
    as_of_date: date | None = None,
) -> Decimal:
    """Calculate a company's account balance in THB as of a date.

    Args:
        session: Database session
        company_id: Company ID
        account_code: Chart of accounts code
        as_of_date: Date to calculate balance (defaults to today)

    Returns:
        Account balance (positive for normal balance side)
    """
    if as_of_date is None:
        as_of_date = date.today()

    account = session.execute(
        select(ChartAccount).where(ChartAccount.code == account_code)
    ).scalar_one_or_none()
    if account is None:
        raise NotFoundError("account", account_code)

    stmt = (
        select(
            func.coalesce(func.sum(JournalLine.base_debit), 0),
            func.coalesce(func.sum(JournalLine.base_credit), 0),
        )
        .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
        .where(
            JournalLine.account_code == account_code,
            JournalEntry.company_id == company_id,
            JournalEntry.entry_date <= as_of_date,
        )
    )
    total_debits, total_credits = session.execute(stmt).one()
    total_debits = round_money(total_debits)
    total_credits = round_money(total_credits)

    if account.normal_balance == "DEBIT":
        return total_debits - total_credits
    return total_credits - total_debits
