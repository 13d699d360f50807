"""Intercompany receipt posting and charter fee tracking.

A charter payment can land in a bank account owned by a different company
than the one owning the charter. The receipt is then posted as one
RECEIPT_RECEIVED_INTERCOMPANY event (two mirrored journals), and an
IntercompanyChargeRecord per project tracks what is owed. Charge records
are reconciliation data only and never feed P&L.

A receipt is banked by exactly one company. Payments split across the
accounts of two companies are refused rather than guessed at.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from charter_ledger.lib.config import BALANCE_TOLERANCE
from charter_ledger.lib.errors import JournalPostingFailedError, ValidationError
from charter_ledger.lib.event_models import (
    ReceiptLineItem,
    ReceiptPayment,
    ReceiptReceivedData,
    ReceiptReceivedIntercompanyData,
)
from charter_ledger.lib.validators import round_money
from charter_ledger.models import ChargeStatus, EventType, IntercompanyChargeRecord
from charter_ledger.services.event_store import (
    EventProcessResult,
    PostingContext,
    create_and_process_event,
    get_default_context,
)
from charter_ledger.services.revenue_recognition_service import create_deferred_revenue_record
from charter_ledger.services.side_effects import SideChannel, SideEffectResult

logger = logging.getLogger(__name__)

RECEIPT_DOCUMENT_TYPE = "receipt"


@dataclass
class ReceiptInput:
    """A receipt as entered, before deciding how it posts."""

    receipt_id: str
    receipt_number: str
    client_name: str
    receipt_date: date
    company_id: str  # Company owning the charter
    line_items: list[ReceiptLineItem]
    payments: list[ReceiptPayment]
    total_subtotal: Decimal
    total_amount: Decimal
    total_vat_amount: Decimal = Decimal("0")
    currency: str = "THB"
    project_id: Optional[str] = None
    charter_date_from: Optional[date] = None
    charter_date_to: Optional[date] = None
    charter_type: Optional[str] = None
    uses_deferred_revenue: bool = False

    @property
    def payments_total(self) -> Decimal:
        """Sum of all payments received against the receipt."""
        return sum((payment.amount for payment in self.payments), Decimal("0"))


@dataclass
class ReceiptPostingResult:
    """Outcome of posting a receipt."""

    event: EventProcessResult
    intercompany: bool = False
    bank_company_id: Optional[str] = None
    side_effects: list[SideEffectResult] = field(default_factory=list)

    @property
    def journal_entry_ids(self) -> list[str]:
        return self.event.journal_entry_ids


def detect_intercompany(
    session: Session,
    bank_account_id: Optional[str],
    charter_company_id: str,
    context: Optional[PostingContext] = None,
) -> bool:
    """
    Check whether a bank account belongs to a company other than the charter's.

    Args:
        session: Database session
        bank_account_id: Receiving bank account (None for cash receipts)
        charter_company_id: Company owning the charter

    Returns:
        True if the receipt must be posted intercompany

    Raises:
        AccountResolutionError: Unknown bank account
    """
    if not bank_account_id:
        return False
    context = context or get_default_context()
    return context.accounts.bank_account_company(session, bank_account_id) != charter_company_id


def post_receipt(
    session: Session,
    receipt: ReceiptInput,
    actor_id: str = "system",
    side_channel: Optional[SideChannel] = None,
    context: Optional[PostingContext] = None,
) -> ReceiptPostingResult:
    """
    Post a receipt, intercompany when the money landed in another company's bank.

    Payments are grouped by the company owning the receiving account (cash
    stays with the charter company). A receipt banked entirely by the charter
    company posts one RECEIPT_RECEIVED; one banked entirely by a single other
    company posts RECEIPT_RECEIVED_INTERCOMPANY, debiting each receiving
    account with what was actually paid into it. Receipts split between
    companies are rejected: each company's share has to be entered as its
    own receipt.

    With ``uses_deferred_revenue`` the charter company credits Charter
    Deposits Received and a RevenueRecognition record tracks the deposit
    until the charter ends.

    Runs inside the caller's unit of work. A posting failure raises so the
    caller's transaction (receipt record included) rolls back; charge record
    generation afterwards is best effort.

    Args:
        session: Database session
        receipt: Receipt to post
        actor_id: Who posted it
        side_channel: Channel for charge record generation (a fresh one if omitted)
        context: Resolvers and directories

    Returns:
        ReceiptPostingResult

    Raises:
        ValidationError: Payments don't add up to the total, or span several companies
        AccountResolutionError: Unknown receiving bank account
        CurrencyMismatchError: Receiving bank account held in another currency
        JournalPostingFailedError: The receipt journal could not be posted
    """
    context = context or get_default_context()
    side_channel = side_channel or SideChannel(session)

    paid = receipt.payments_total
    if abs(paid - receipt.total_amount) > BALANCE_TOLERANCE:
        raise ValidationError(
            f"Receipt {receipt.receipt_number}: payments total {paid} "
            f"does not match receipt total {receipt.total_amount}"
        )

    by_company = _group_payments_by_company(session, receipt, context)
    if set(by_company) <= {receipt.company_id}:
        result = create_and_process_event(
            session,
            EventType.RECEIPT_RECEIVED,
            receipt.receipt_date,
            [receipt.company_id],
            _receipt_payload(receipt),
            RECEIPT_DOCUMENT_TYPE,
            receipt.receipt_id,
            actor_id=actor_id,
            context=context,
        )
        _raise_if_failed(result, receipt)
        return ReceiptPostingResult(event=result)

    if len(by_company) > 1:
        raise ValidationError(
            f"Receipt {receipt.receipt_number} is paid into accounts of {len(by_company)} "
            f"companies; record each company's share as a separate receipt"
        )

    [(bank_company_id, deposits)] = by_company.items()
    bank_company = context.companies.get_by_id(session, bank_company_id)
    charter_company = context.companies.get_by_id(session, receipt.company_id)
    project_name = None
    if receipt.project_id:
        project = context.projects.get_by_id(session, receipt.project_id)
        project_name = project.name if project else None

    payload = ReceiptReceivedIntercompanyData(
        currency=receipt.currency,
        receipt_id=receipt.receipt_id,
        receipt_number=receipt.receipt_number,
        client_name=receipt.client_name,
        receipt_date=receipt.receipt_date,
        total_amount=receipt.total_amount,
        bank_company_id=bank_company_id,
        bank_company_name=bank_company.name if bank_company else bank_company_id,
        charter_company_id=receipt.company_id,
        charter_company_name=charter_company.name if charter_company else receipt.company_id,
        bank_account_id=deposits[0].bank_account_id,
        bank_account_gl_code=deposits[0].bank_account_gl_code,
        payments=deposits,
        uses_deferred_revenue=receipt.uses_deferred_revenue,
        project_id=receipt.project_id,
        project_name=project_name,
        charter_date_from=receipt.charter_date_from,
        charter_type=receipt.charter_type,
    )

    logger.info(
        f"Receipt {receipt.receipt_number} banked by {payload.bank_company_name} "
        f"for {payload.charter_company_name}, posting intercompany"
    )
    result = create_and_process_event(
        session,
        EventType.RECEIPT_RECEIVED_INTERCOMPANY,
        receipt.receipt_date,
        [bank_company_id, receipt.company_id],
        payload,
        RECEIPT_DOCUMENT_TYPE,
        receipt.receipt_id,
        actor_id=actor_id,
        context=context,
    )
    _raise_if_failed(result, receipt)

    if receipt.uses_deferred_revenue:
        create_deferred_revenue_record(
            session,
            company_id=receipt.company_id,
            receipt_id=receipt.receipt_id,
            receipt_number=receipt.receipt_number,
            amount=receipt.total_amount,
            currency=receipt.currency,
            project_id=receipt.project_id,
            client_name=receipt.client_name,
            charter_date_from=receipt.charter_date_from,
            charter_date_to=receipt.charter_date_to,
            charter_type=receipt.charter_type,
        )

    side_channel.run(
        "intercompany charge records",
        generate_charge_records,
        session,
        receipt,
        bank_company_id,
    )

    return ReceiptPostingResult(
        event=result,
        intercompany=True,
        bank_company_id=bank_company_id,
        side_effects=list(side_channel.results),
    )


def generate_charge_records(
    session: Session, receipt: ReceiptInput, paying_company_id: str
) -> list[IntercompanyChargeRecord]:
    """
    Create one charge record per project on an intercompany receipt.

    The company that banked the money owes it to the charter company. Each
    project is charged its share of the receipt lines, scaled to the
    VAT-inclusive total so the records add up to the intercompany clearing
    balance (2700/1180). A receipt whose lines carry no project is charged
    in full. Projects already recorded for the receipt are skipped.

    Returns:
        Newly created records
    """
    lines_total = sum((item.amount for item in receipt.line_items), Decimal("0"))
    amounts: dict[Optional[str], Decimal] = defaultdict(Decimal)
    for item in receipt.line_items:
        project_id = item.project_id or receipt.project_id
        if project_id:
            amounts[project_id] += item.amount

    if not amounts or not lines_total:
        amounts = {receipt.project_id: round_money(receipt.total_amount)}
    else:
        amounts = _scale_to_total(amounts, lines_total, round_money(receipt.total_amount))

    existing = {
        record.project_id
        for record in get_charge_records(session, receipt_id=receipt.receipt_id)
    }

    charter_date = receipt.charter_date_from or receipt.receipt_date
    created = []
    for project_id, amount in amounts.items():
        if project_id in existing:
            logger.debug(f"Charge record for {receipt.receipt_number}/{project_id} exists, skipping")
            continue

        record = IntercompanyChargeRecord(
            receipt_id=receipt.receipt_id,
            receipt_number=receipt.receipt_number,
            paying_company_id=paying_company_id,
            owed_to_company_id=receipt.company_id,
            project_id=project_id,
            amount=round_money(amount),
            currency=receipt.currency,
            charter_date=charter_date,
            charter_type=receipt.charter_type,
            status=ChargeStatus.PENDING,
        )
        session.add(record)
        created.append(record)

    session.flush()
    logger.info(f"Created {len(created)} charge record(s) for receipt {receipt.receipt_number}")
    return created


def get_charge_records(
    session: Session,
    receipt_id: Optional[str] = None,
    company_id: Optional[str] = None,
) -> list[IntercompanyChargeRecord]:
    """Charge records, filtered by receipt and/or either party company."""
    stmt = select(IntercompanyChargeRecord).order_by(IntercompanyChargeRecord.created_at)
    if receipt_id is not None:
        stmt = stmt.where(IntercompanyChargeRecord.receipt_id == receipt_id)
    if company_id is not None:
        stmt = stmt.where(
            (IntercompanyChargeRecord.paying_company_id == company_id)
            | (IntercompanyChargeRecord.owed_to_company_id == company_id)
        )
    return list(session.execute(stmt).scalars().all())


def _scale_to_total(
    amounts: dict[Optional[str], Decimal], lines_total: Decimal, total_amount: Decimal
) -> dict[Optional[str], Decimal]:
    scaled = {
        project_id: round_money(amount * total_amount / lines_total)
        for project_id, amount in amounts.items()
    }
    if sum(amounts.values()) == lines_total:
        # Every line has a project: rounding difference goes to the last one
        last = next(reversed(scaled))
        scaled[last] += total_amount - sum(scaled.values())
    return scaled


def _group_payments_by_company(
    session: Session, receipt: ReceiptInput, context: PostingContext
) -> dict[str, list[ReceiptPayment]]:
    """Payments keyed by the company now holding the money.

    Cash belongs to the charter company. Bank payments come back with the
    receiving account's GL code filled in.
    """
    grouped: dict[str, list[ReceiptPayment]] = defaultdict(list)
    for payment in receipt.payments:
        if not payment.bank_account_id:
            grouped[receipt.company_id].append(payment)
            continue

        account = context.accounts.bank_account(session, payment.bank_account_id, receipt.currency)
        grouped[account.company_id].append(
            payment.model_copy(update={"bank_account_gl_code": account.gl_account_code})
        )
    return dict(grouped)


def _receipt_payload(receipt: ReceiptInput) -> ReceiptReceivedData:
    return ReceiptReceivedData(
        currency=receipt.currency,
        receipt_id=receipt.receipt_id,
        receipt_number=receipt.receipt_number,
        client_name=receipt.client_name,
        receipt_date=receipt.receipt_date,
        charter_date_from=receipt.charter_date_from,
        charter_date_to=receipt.charter_date_to,
        charter_type=receipt.charter_type,
        line_items=receipt.line_items,
        payments=receipt.payments,
        total_subtotal=receipt.total_subtotal,
        total_vat_amount=receipt.total_vat_amount,
        total_amount=receipt.total_amount,
        company_id=receipt.company_id,
        project_id=receipt.project_id,
    )


def _raise_if_failed(result: EventProcessResult, receipt: ReceiptInput) -> None:
    if not result.success:
        raise JournalPostingFailedError(
            f"Receipt {receipt.receipt_number}",
            result.error or "unknown error",
            result.error_code,
        )
