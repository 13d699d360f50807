"""Petty cash wallets: expenses, top-ups, reimbursements and linked expenses.

A petty cash expense only moves the wallet's calculated balance. It reaches
P&L when an accountant links it into the main expense ledger
(``create_linked_expense``), which posts EXPENSE_APPROVED against the
wallet GL. Every operation here records the business document and its
event in the caller's unit of work and raises if the journal fails, so the
document and its journal are committed together or not at all.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from charter_ledger.lib.config import DEFAULT_VAT_RATE
from charter_ledger.lib.errors import JournalPostingFailedError, NotFoundError, ValidationError
from charter_ledger.lib.event_models import (
    ExpenseApprovedData,
    ExpenseLine,
    PettyCashExpenseCreatedData,
    PettyCashReimbursementPaidData,
    PettyCashTopupCompletedData,
)
from charter_ledger.lib.validators import (
    round_money,
    to_decimal,
    validate_account_code,
    validate_amount,
    validate_currency,
    validate_percentage,
)
from charter_ledger.models import (
    EventType,
    Expense,
    ExpenseLineItem,
    ExpenseStatus,
    PaymentStatus,
    PettyCashExpense,
    PettyCashExpenseStatus,
    PettyCashReimbursement,
    PettyCashTopup,
    PettyCashWallet,
    ReimbursementStatus,
    TopupStatus,
    VatType,
)
from charter_ledger.services.account_resolver import DEFAULT_ACCOUNTS, AccountRole
from charter_ledger.services.event_store import (
    EventProcessResult,
    PostingContext,
    create_and_process_event,
    get_default_context,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VatAmounts:
    """Subtotal/VAT split of an entered amount."""

    subtotal: Decimal
    vat_amount: Decimal
    total_amount: Decimal


def calculate_vat_amounts(
    amount: Decimal,
    vat_type: VatType | str,
    vat_rate: Decimal = DEFAULT_VAT_RATE,
) -> VatAmounts:
    """
    Split an amount into subtotal and VAT.

    - no_vat: the amount is the subtotal, VAT is zero
    - include: the amount already contains VAT (subtotal = amount / (1 + rate))
    - exclude: VAT is added on top (VAT = amount * rate)

    Examples:
        >>> calculate_vat_amounts(Decimal("1070"), "include").subtotal
        Decimal('1000.00')
        >>> calculate_vat_amounts(Decimal("1000"), "exclude").total_amount
        Decimal('1070.00')
    """
    amount = validate_amount(amount, allow_zero=True)
    vat_rate = validate_percentage(to_decimal(vat_rate))
    vat_type = VatType(vat_type)

    if vat_type == VatType.INCLUDE:
        subtotal = round_money(amount / (1 + vat_rate / 100))
        return VatAmounts(subtotal, round_money(amount - subtotal), round_money(amount))

    if vat_type == VatType.EXCLUDE:
        vat_amount = round_money(amount * vat_rate / 100)
        return VatAmounts(round_money(amount), vat_amount, round_money(amount) + vat_amount)

    return VatAmounts(round_money(amount), Decimal("0.00"), round_money(amount))


def create_wallet(
    session: Session,
    company_id: str,
    name: str,
    gl_account_code: str = DEFAULT_ACCOUNTS[AccountRole.CASH],
    currency: str = "THB",
    initial_balance: Decimal = Decimal("0"),
) -> PettyCashWallet:
    """Create a petty cash wallet carried on a GL cash account."""
    wallet = PettyCashWallet(
        company_id=company_id,
        name=name,
        gl_account_code=validate_account_code(gl_account_code),
        currency=validate_currency(currency),
        initial_balance=round_money(validate_amount(initial_balance, allow_zero=True)),
    )
    session.add(wallet)
    session.flush()
    logger.info(f"Created petty cash wallet {name} ({wallet.gl_account_code})")
    return wallet


def get_wallet(session: Session, wallet_id: str) -> PettyCashWallet:
    """
    Load a wallet.

    Raises:
        NotFoundError: No such wallet
    """
    wallet = session.get(PettyCashWallet, wallet_id)
    if wallet is None:
        raise NotFoundError("petty cash wallet", wallet_id)
    return wallet


def calculate_wallet_balance(session: Session, wallet_id: str) -> Decimal:
    """
    Wallet balance computed on read.

    initial balance + completed top-ups + paid reimbursements
    - expenses that are not voided
    """
    wallet = get_wallet(session, wallet_id)

    topups = session.execute(
        select(func.coalesce(func.sum(PettyCashTopup.amount), 0)).where(
            PettyCashTopup.wallet_id == wallet_id,
            PettyCashTopup.status == TopupStatus.COMPLETED,
        )
    ).scalar()
    reimbursements = session.execute(
        select(func.coalesce(func.sum(PettyCashReimbursement.amount), 0)).where(
            PettyCashReimbursement.wallet_id == wallet_id,
            PettyCashReimbursement.status == ReimbursementStatus.PAID,
        )
    ).scalar()
    expenses = session.execute(
        select(func.coalesce(func.sum(PettyCashExpense.amount), 0)).where(
            PettyCashExpense.wallet_id == wallet_id,
            PettyCashExpense.status != PettyCashExpenseStatus.VOIDED,
        )
    ).scalar()

    return round_money(
        wallet.initial_balance
        + round_money(topups)
        + round_money(reimbursements)
        - round_money(expenses)
    )


def record_expense(
    session: Session,
    wallet_id: str,
    amount: Decimal,
    expense_date: date,
    description: str,
    project_id: Optional[str] = None,
    actor_id: str = "system",
    context: Optional[PostingContext] = None,
) -> PettyCashExpense:
    """
    Record money spent from a wallet. Tracking only: no P&L journal.

    Raises:
        ValidationError: Amount not positive
        JournalPostingFailedError: Tracking event could not be recorded
    """
    wallet = get_wallet(session, wallet_id)
    amount = round_money(validate_amount(amount))

    expense = PettyCashExpense(
        expense_number=_next_document_number(
            session, PettyCashExpense.expense_number, f"PC-EXP-{expense_date:%y%m}"
        ),
        wallet_id=wallet.id,
        company_id=wallet.company_id,
        project_id=project_id,
        expense_date=expense_date,
        amount=amount,
        description=description,
        status=PettyCashExpenseStatus.SUBMITTED,
        created_by=actor_id,
    )
    session.add(expense)
    session.flush()

    payload = PettyCashExpenseCreatedData(
        currency=wallet.currency,
        expense_id=expense.id,
        expense_number=expense.expense_number,
        wallet_id=wallet.id,
        expense_date=expense_date,
        amount=amount,
        description=description,
        project_id=project_id,
    )
    result = create_and_process_event(
        session,
        EventType.PETTYCASH_EXPENSE_CREATED,
        expense_date,
        [wallet.company_id],
        payload,
        "petty_cash_expense",
        expense.id,
        actor_id=actor_id,
        context=context,
    )
    _raise_if_failed(result, f"Petty cash expense {expense.expense_number}")

    logger.info(f"Petty cash expense {expense.expense_number}: {amount} {wallet.currency}")
    return expense


def complete_topup(
    session: Session,
    wallet_id: str,
    bank_account_id: str,
    amount: Decimal,
    topup_date: date,
    actor_id: str = "system",
    context: Optional[PostingContext] = None,
) -> PettyCashTopup:
    """
    Record a completed top-up from a bank account into a wallet.

    Raises:
        AccountResolutionError: Unknown bank account
        CurrencyMismatchError: Bank account not held in the wallet currency
        JournalPostingFailedError: Journal could not be posted
    """
    context = context or get_default_context()
    wallet = get_wallet(session, wallet_id)
    amount = round_money(validate_amount(amount))
    bank_gl_code = context.accounts.bank_account_gl_code(session, bank_account_id, wallet.currency)

    topup = PettyCashTopup(
        wallet_id=wallet.id,
        bank_account_id=bank_account_id,
        amount=amount,
        topup_date=topup_date,
        status=TopupStatus.COMPLETED,
    )
    session.add(topup)
    session.flush()

    payload = PettyCashTopupCompletedData(
        currency=wallet.currency,
        topup_id=topup.id,
        wallet_id=wallet.id,
        wallet_name=wallet.name,
        wallet_gl_code=wallet.gl_account_code,
        bank_account_gl_code=bank_gl_code,
        topup_date=topup_date,
        amount=amount,
    )
    result = create_and_process_event(
        session,
        EventType.PETTYCASH_TOPUP_COMPLETED,
        topup_date,
        [wallet.company_id],
        payload,
        "petty_cash_topup",
        topup.id,
        actor_id=actor_id,
        context=context,
    )
    _raise_if_failed(result, f"Top-up of {wallet.name}")
    return topup


def pay_reimbursement(
    session: Session,
    wallet_id: str,
    bank_account_id: str,
    amount: Decimal,
    payment_date: date,
    payment_reference: Optional[str] = None,
    actor_id: str = "system",
    context: Optional[PostingContext] = None,
) -> PettyCashReimbursement:
    """
    Record a reimbursement paid from a bank account back into a wallet.

    Raises:
        AccountResolutionError: Unknown bank account
        CurrencyMismatchError: Bank account not held in the wallet currency
        JournalPostingFailedError: Journal could not be posted
    """
    context = context or get_default_context()
    wallet = get_wallet(session, wallet_id)
    amount = round_money(validate_amount(amount))
    bank_gl_code = context.accounts.bank_account_gl_code(session, bank_account_id, wallet.currency)

    reimbursement = PettyCashReimbursement(
        reimbursement_number=_next_document_number(
            session,
            PettyCashReimbursement.reimbursement_number,
            f"PC-RMB-{payment_date:%y%m}",
        ),
        wallet_id=wallet.id,
        bank_account_id=bank_account_id,
        amount=amount,
        payment_date=payment_date,
        payment_reference=payment_reference,
        status=ReimbursementStatus.PAID,
    )
    session.add(reimbursement)
    session.flush()

    payload = PettyCashReimbursementPaidData(
        currency=wallet.currency,
        reimbursement_id=reimbursement.id,
        reimbursement_number=reimbursement.reimbursement_number,
        wallet_id=wallet.id,
        wallet_name=wallet.name,
        wallet_gl_code=wallet.gl_account_code,
        bank_account_gl_code=bank_gl_code,
        payment_date=payment_date,
        amount=amount,
    )
    result = create_and_process_event(
        session,
        EventType.PETTYCASH_REIMBURSEMENT_PAID,
        payment_date,
        [wallet.company_id],
        payload,
        "petty_cash_reimbursement",
        reimbursement.id,
        actor_id=actor_id,
        context=context,
    )
    _raise_if_failed(result, f"Reimbursement {reimbursement.reimbursement_number}")
    return reimbursement


def create_linked_expense(
    session: Session,
    petty_cash_expense_id: str,
    vendor_name: str,
    account_code: Optional[str] = None,
    vat_type: VatType | str = VatType.NO_VAT,
    vat_rate: Decimal = DEFAULT_VAT_RATE,
    actor_id: str = "system",
    context: Optional[PostingContext] = None,
) -> Expense:
    """
    Book a petty cash expense into the main expense ledger.

    Derives subtotal and VAT from ``vat_type``, creates an approved and paid
    Expense, and posts EXPENSE_APPROVED crediting the wallet GL.

    Args:
        session: Database session
        petty_cash_expense_id: Submitted petty cash expense to link
        vendor_name: Vendor on the expense
        account_code: Expense account (default 6790)
        vat_type: no_vat, include or exclude
        vat_rate: VAT percentage
        actor_id: Accountant linking the expense

    Returns:
        Created Expense

    Raises:
        NotFoundError: No such petty cash expense
        ValidationError: Expense already linked or voided
        JournalPostingFailedError: Journal could not be posted
    """
    pc_expense = session.get(PettyCashExpense, petty_cash_expense_id)
    if pc_expense is None:
        raise NotFoundError("petty cash expense", petty_cash_expense_id)
    if pc_expense.status != PettyCashExpenseStatus.SUBMITTED:
        raise ValidationError(
            f"Petty cash expense {pc_expense.expense_number} is {pc_expense.status.value}, "
            "only submitted expenses can be linked"
        )

    wallet = get_wallet(session, pc_expense.wallet_id)
    vat_type = VatType(vat_type)
    amounts = calculate_vat_amounts(pc_expense.amount, vat_type, vat_rate)
    account_code = validate_account_code(account_code or DEFAULT_ACCOUNTS[AccountRole.DEFAULT_EXPENSE])

    expense = Expense(
        company_id=pc_expense.company_id,
        expense_number=_next_document_number(
            session, Expense.expense_number, f"EXP-{pc_expense.expense_date:%y%m}"
        ),
        vendor_name=vendor_name,
        expense_date=pc_expense.expense_date,
        currency=wallet.currency,
        vat_type=vat_type,
        subtotal=amounts.subtotal,
        vat_amount=amounts.vat_amount,
        total_amount=amounts.total_amount,
        status=ExpenseStatus.APPROVED,
        payment_status=PaymentStatus.PAID,
        petty_cash_expense_id=pc_expense.id,
        created_by=actor_id,
    )
    expense.line_items.append(
        ExpenseLineItem(
            line_order=1,
            description=pc_expense.description,
            account_code=account_code,
            project_id=pc_expense.project_id,
            amount=amounts.subtotal,
        )
    )
    session.add(expense)
    session.flush()

    pc_expense.status = PettyCashExpenseStatus.LINKED
    pc_expense.linked_expense_id = expense.id
    session.flush()

    payload = ExpenseApprovedData(
        currency=wallet.currency,
        expense_id=expense.id,
        expense_number=expense.expense_number,
        vendor_name=vendor_name,
        expense_date=expense.expense_date,
        line_items=[
            ExpenseLine(
                description=pc_expense.description,
                amount=amounts.subtotal,
                account_code=account_code,
                project_id=pc_expense.project_id,
            )
        ],
        total_subtotal=amounts.subtotal,
        total_vat_amount=amounts.vat_amount,
        total_amount=amounts.total_amount,
        payment_account_code=wallet.gl_account_code,
        petty_cash_expense_id=pc_expense.id,
    )
    result = create_and_process_event(
        session,
        EventType.EXPENSE_APPROVED,
        expense.expense_date,
        [expense.company_id],
        payload,
        "expense",
        expense.id,
        actor_id=actor_id,
        context=context,
    )
    _raise_if_failed(result, f"Expense {expense.expense_number}")

    logger.info(
        f"Linked {pc_expense.expense_number} as {expense.expense_number} "
        f"({amounts.total_amount} {wallet.currency}, VAT {vat_type.value})"
    )
    return expense


def _next_document_number(session: Session, column: InstrumentedAttribute[str], prefix: str) -> str:
    """Next number in a PREFIX + 4-digit sequence (e.g. PC-EXP-25010007)."""
    last = session.execute(select(func.max(column)).where(column.like(f"{prefix}%"))).scalar()
    sequence = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{sequence:04d}"


def _raise_if_failed(result: EventProcessResult, operation: str) -> None:
    if not result.success:
        raise JournalPostingFailedError(operation, result.error or "unknown error", result.error_code)
