"""Event handlers: one per EventType, payload -> proposed journals.

Handlers only compute. The only storage they touch is read-only account
and directory lookups through the HandlerContext; the event store hands the
result to the journal posting service.

Debit/credit shapes (amounts in the event currency):

- RECEIPT_RECEIVED: DR bank per payment, CR revenue per line + VAT payable
- RECEIPT_RECEIVED_INTERCOMPANY: bank company DR bank per deposit / CR IC payable,
  charter company DR IC receivable / CR revenue (or deferred revenue)
- EXPENSE_APPROVED: DR expense per line + VAT receivable, CR AP or payment account
- EXPENSE_PAID: DR AP, CR bank
- EXPENSE_PAID_INTERCOMPANY: payer DR IC receivable / CR bank,
  owner DR AP / CR IC payable
- INVENTORY_PURCHASE_RECORDED: DR inventory + VAT receivable, CR bank/cash/petty cash
- INVENTORY_CONSUMED: DR expense per consumption, CR inventory
- PETTYCASH_EXPENSE_CREATED: tracking only, no journal
- PETTYCASH_TOPUP_COMPLETED / PETTYCASH_REIMBURSEMENT_PAID: DR wallet, CR bank
- MANAGEMENT_FEE_RECOGNIZED: project company DR fee expense / CR IC payable,
  management company DR IC receivable / CR fee income
- INTERCOMPANY_SETTLEMENT: from company DR IC payable / CR bank,
  to company DR bank / CR IC receivable
- OPENING_BALANCE: lines as listed
- REVENUE_RECOGNIZED: DR deferred revenue, CR charter revenue
- PARTNER_PROFIT_ALLOCATION: DR retained earnings, CR partner payables per partner
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy.orm import Session

from charter_ledger.lib.event_models import (
    PAYLOAD_MODELS,
    EventPayload,
    ExpenseApprovedData,
    ExpensePaidData,
    ExpensePaidIntercompanyData,
    IntercompanySettlementData,
    InventoryConsumedData,
    InventoryPurchaseRecordedData,
    ManagementFeeData,
    OpeningBalanceData,
    PartnerProfitAllocationData,
    PettyCashExpenseCreatedData,
    PettyCashReimbursementPaidData,
    PettyCashTopupCompletedData,
    ReceiptReceivedData,
    ReceiptReceivedIntercompanyData,
    RevenueRecognizedData,
)
from charter_ledger.models import AccountingEvent, EventType
from charter_ledger.services.account_resolver import AccountResolver, AccountRole
from charter_ledger.services.directories import (
    CompanyDirectory,
    ProjectDirectory,
    SqlCompanyDirectory,
    SqlProjectDirectory,
)
from charter_ledger.services.journal_posting_service import ProposedJournal


@dataclass
class HandlerContext:
    """Read-only collaborators available to handlers."""

    session: Session
    accounts: AccountResolver = field(default_factory=AccountResolver)
    companies: CompanyDirectory = field(default_factory=SqlCompanyDirectory)
    projects: ProjectDirectory = field(default_factory=SqlProjectDirectory)

    def account(
        self, role: AccountRole, ref: Optional[str] = None, currency: Optional[str] = None
    ) -> str:
        return self.accounts.resolve(self.session, role, ref, currency)

    def company_name(self, company_id: str, fallback: str = "") -> str:
        if fallback:
            return fallback
        info = self.companies.get_by_id(self.session, company_id)
        return info.name if info else company_id

    def project_name(self, project_id: Optional[str], fallback: Optional[str] = None) -> Optional[str]:
        if fallback or not project_id:
            return fallback
        info = self.projects.get_by_id(self.session, project_id)
        return info.name if info else None


BuildFn = Callable[[AccountingEvent, EventPayload, HandlerContext], list[ProposedJournal]]


@dataclass(frozen=True)
class EventHandler:
    """Registry entry binding an event type to its schema and builder."""

    event_type: EventType
    payload_model: type[EventPayload]
    build: BuildFn
    posts_journal: bool = True


# Receipts


def build_receipt_received(
    event: AccountingEvent, data: ReceiptReceivedData, ctx: HandlerContext
) -> list[ProposedJournal]:
    """Single-company receipt: bank per payment against revenue and output VAT."""
    journal = ProposedJournal(
        company_id=data.company_id or event.primary_company_id,
        entry_date=data.receipt_date,
        description=f"Receipt - {data.receipt_number} - {data.client_name}",
        currency=data.currency,
    )

    for payment in data.payments:
        if payment.bank_account_gl_code:
            cash_account = payment.bank_account_gl_code
        elif payment.bank_account_id:
            cash_account = ctx.account(
                AccountRole.BANK_ACCOUNT, payment.bank_account_id, currency=data.currency
            )
        elif payment.payment_method == "cash":
            cash_account = ctx.account(AccountRole.CASH_ON_HAND)
        else:
            cash_account = ctx.account(AccountRole.CASH)
        journal.debit(cash_account, payment.amount, f"Received from {data.client_name}")

    for item in data.line_items:
        journal.credit(
            item.account_code or ctx.account(AccountRole.DEFAULT_REVENUE),
            item.amount,
            item.description,
            project_id=item.project_id or data.project_id,
        )

    journal.credit(ctx.account(AccountRole.VAT_PAYABLE), data.total_vat_amount, "Output VAT")
    return [journal]


def build_receipt_received_intercompany(
    event: AccountingEvent, data: ReceiptReceivedIntercompanyData, ctx: HandlerContext
) -> list[ProposedJournal]:
    """Receipt banked by one company for a charter owned by another.

    Produces two journals mirrored on the intercompany clearing accounts.
    """
    bank_company = ctx.company_name(data.bank_company_id, data.bank_company_name)
    charter_company = ctx.company_name(data.charter_company_id, data.charter_company_name)
    project_suffix = f" ({data.project_name})" if data.project_name else ""

    bank_journal = ProposedJournal(
        company_id=data.bank_company_id,
        entry_date=data.receipt_date,
        description=(
            f"Intercompany receipt - {data.receipt_number} - {data.client_name} "
            f"for {charter_company}"
        ),
        currency=data.currency,
    )
    deposits = [
        (payment.bank_account_gl_code or data.bank_account_gl_code, payment.amount)
        for payment in data.payments
    ] or [(data.bank_account_gl_code, data.total_amount)]
    for bank_gl_code, amount in deposits:
        bank_journal.debit(
            bank_gl_code,
            amount,
            f"Payment from {data.client_name} for {charter_company}",
        )
    bank_journal.credit(
        ctx.account(AccountRole.INTERCOMPANY_PAYABLE),
        data.total_amount,
        f"Intercompany payable to {charter_company} - {data.receipt_number}",
    )

    revenue_role = (
        AccountRole.DEFERRED_REVENUE if data.uses_deferred_revenue else AccountRole.DEFAULT_REVENUE
    )
    charter_journal = ProposedJournal(
        company_id=data.charter_company_id,
        entry_date=data.receipt_date,
        description=(
            f"Charter receipt via {bank_company} - {data.receipt_number} - "
            f"{data.client_name}{project_suffix}"
        ),
        currency=data.currency,
    )
    charter_journal.debit(
        ctx.account(AccountRole.INTERCOMPANY_RECEIVABLE),
        data.total_amount,
        f"Intercompany receivable from {bank_company} - {data.receipt_number}",
    )
    charter_journal.credit(
        ctx.account(revenue_role),
        data.total_amount,
        f"Charter revenue - {data.client_name}{project_suffix}",
        project_id=data.project_id,
    )

    return [bank_journal, charter_journal]


# Expenses


def build_expense_approved(
    event: AccountingEvent, data: ExpenseApprovedData, ctx: HandlerContext
) -> list[ProposedJournal]:
    """Expense lines and input VAT against AP (or the wallet GL for petty cash)."""
    journal = ProposedJournal(
        company_id=event.primary_company_id,
        entry_date=data.expense_date,
        description=f"Expense - {data.expense_number} - {data.vendor_name}",
        currency=data.currency,
    )

    for item in data.line_items:
        journal.debit(
            item.account_code or ctx.account(AccountRole.DEFAULT_EXPENSE),
            item.amount,
            item.description,
            project_id=item.project_id,
        )
    journal.debit(ctx.account(AccountRole.VAT_RECEIVABLE), data.total_vat_amount, "Input VAT")

    if data.payment_account_code:
        description = (
            f"Paid from petty cash - {data.vendor_name}"
            if data.petty_cash_expense_id
            else f"Paid to {data.vendor_name}"
        )
        journal.credit(data.payment_account_code, data.total_amount, description)
    else:
        journal.credit(
            ctx.account(AccountRole.ACCOUNTS_PAYABLE),
            data.total_amount,
            f"Payable to {data.vendor_name}",
        )

    return [journal]


def build_expense_paid(
    event: AccountingEvent, data: ExpensePaidData, ctx: HandlerContext
) -> list[ProposedJournal]:
    """Settle AP from a bank account."""
    journal = ProposedJournal(
        company_id=event.primary_company_id,
        entry_date=data.payment_date,
        description=f"Expense payment - {data.expense_number} - {data.vendor_name}",
        currency=data.currency,
    )
    journal.debit(
        ctx.account(AccountRole.ACCOUNTS_PAYABLE),
        data.payment_amount,
        f"Payment to {data.vendor_name}",
    )
    journal.credit(data.bank_account_gl_code, data.payment_amount, f"Payment - {data.expense_number}")
    return [journal]


def build_expense_paid_intercompany(
    event: AccountingEvent, data: ExpensePaidIntercompanyData, ctx: HandlerContext
) -> list[ProposedJournal]:
    """One company pays an expense owned by another."""
    payer = ctx.company_name(data.paying_company_id, data.paying_company_name)
    owner = ctx.company_name(data.receiving_company_id, data.receiving_company_name)
    project_suffix = f" ({data.project_name})" if data.project_name else ""

    payer_journal = ProposedJournal(
        company_id=data.paying_company_id,
        entry_date=data.payment_date,
        description=(
            f"Expense paid for {owner}: {data.expense_number} - {data.vendor_name}{project_suffix}"
        ),
        currency=data.currency,
    )
    payer_journal.debit(
        ctx.account(AccountRole.INTERCOMPANY_RECEIVABLE),
        data.payment_amount,
        f"Intercompany receivable from {owner}",
    )
    payer_journal.credit(
        data.bank_account_gl_code, data.payment_amount, f"Payment to {data.vendor_name}"
    )

    owner_journal = ProposedJournal(
        company_id=data.receiving_company_id,
        entry_date=data.payment_date,
        description=(
            f"Expense paid by {payer}: {data.expense_number} - {data.vendor_name}{project_suffix}"
        ),
        currency=data.currency,
    )
    owner_journal.debit(
        ctx.account(AccountRole.ACCOUNTS_PAYABLE),
        data.payment_amount,
        f"Payment to {data.vendor_name}",
    )
    owner_journal.credit(
        ctx.account(AccountRole.INTERCOMPANY_PAYABLE),
        data.payment_amount,
        f"Intercompany payable to {payer}",
    )

    return [payer_journal, owner_journal]


# Inventory


def build_inventory_purchase(
    event: AccountingEvent, data: InventoryPurchaseRecordedData, ctx: HandlerContext
) -> list[ProposedJournal]:
    """Stock bought into inventory, paid by bank, cash on hand, or petty cash."""
    vendor = f" - {data.vendor_name}" if data.vendor_name else ""
    journal = ProposedJournal(
        company_id=event.primary_company_id,
        entry_date=data.purchase_date,
        description=f"Inventory purchase - {data.purchase_number}{vendor}",
        currency=data.currency,
    )
    journal.debit(ctx.account(AccountRole.INVENTORY_ASSET), data.total_subtotal, "Inventory purchase")
    journal.debit(ctx.account(AccountRole.VAT_RECEIVABLE), data.total_vat_amount, "Input VAT")

    if data.payment_type == "bank":
        payment_account = data.bank_account_gl_code or ctx.account(AccountRole.DEFAULT_BANK)
        description = "Bank payment"
    elif data.payment_type == "cash":
        payment_account = ctx.account(AccountRole.CASH_ON_HAND)
        description = "Cash payment"
    else:
        payment_account = data.petty_cash_gl_code or ctx.account(AccountRole.CASH)
        description = f"Petty cash - {data.petty_cash_wallet_name or 'wallet'}"

    journal.credit(payment_account, data.total_net_payable, description)
    return [journal]


def build_inventory_consumed(
    event: AccountingEvent, data: InventoryConsumedData, ctx: HandlerContext
) -> list[ProposedJournal]:
    """Consumed stock moves from inventory to the expense account per use."""
    journal = ProposedJournal(
        company_id=event.primary_company_id,
        entry_date=data.consumed_date,
        description=f"Inventory consumption - {data.purchase_number}",
        currency=data.currency,
    )

    for item in data.consumptions:
        project = ctx.project_name(item.project_id, item.project_name)
        description = f"{item.description} ({project})" if project else item.description
        journal.debit(
            item.expense_account_code, item.amount, description, project_id=item.project_id
        )

    journal.credit(
        ctx.account(AccountRole.INVENTORY_ASSET),
        data.total_amount,
        f"Inventory used - {data.purchase_number}",
    )
    return [journal]


# Petty cash


def build_pettycash_expense_created(
    event: AccountingEvent, data: PettyCashExpenseCreatedData, ctx: HandlerContext
) -> list[ProposedJournal]:
    # Tracked against the wallet balance only; the P&L journal comes with
    # the linked expense
    return []


def build_pettycash_topup(
    event: AccountingEvent, data: PettyCashTopupCompletedData, ctx: HandlerContext
) -> list[ProposedJournal]:
    wallet = data.wallet_name or data.wallet_id
    journal = ProposedJournal(
        company_id=event.primary_company_id,
        entry_date=data.topup_date,
        description=f"Petty cash top-up - {wallet}",
        currency=data.currency,
    )
    journal.debit(data.wallet_gl_code, data.amount, f"Top-up {wallet}")
    journal.credit(data.bank_account_gl_code, data.amount, f"Transfer to petty cash {wallet}")
    return [journal]


def build_pettycash_reimbursement(
    event: AccountingEvent, data: PettyCashReimbursementPaidData, ctx: HandlerContext
) -> list[ProposedJournal]:
    wallet = data.wallet_name or data.wallet_id
    journal = ProposedJournal(
        company_id=event.primary_company_id,
        entry_date=data.payment_date,
        description=f"Petty cash reimbursement - {data.reimbursement_number} - {wallet}",
        currency=data.currency,
    )
    journal.debit(data.wallet_gl_code, data.amount, f"Reimbursement {data.reimbursement_number}")
    journal.credit(data.bank_account_gl_code, data.amount, f"Reimbursement to {wallet}")
    return [journal]


# Intercompany


def build_management_fee(
    event: AccountingEvent, data: ManagementFeeData, ctx: HandlerContext
) -> list[ProposedJournal]:
    """Management fee charged by the management company to a project's owner."""
    period = f"{data.period_from.isoformat()} to {data.period_to.isoformat()}"
    manager = ctx.company_name(data.management_company_id)
    owner = ctx.company_name(data.project_company_id)

    project_journal = ProposedJournal(
        company_id=data.project_company_id,
        entry_date=data.period_to,
        description=f"Management fee - {data.project_name} ({period})",
        currency=data.currency,
    )
    project_journal.debit(
        ctx.account(AccountRole.MANAGEMENT_FEE_EXPENSE),
        data.fee_amount,
        f"Management fee {data.fee_percentage}% of {data.gross_income}",
        project_id=data.project_id,
    )
    project_journal.credit(
        ctx.account(AccountRole.INTERCOMPANY_PAYABLE),
        data.fee_amount,
        f"Intercompany payable to {manager}",
    )

    management_journal = ProposedJournal(
        company_id=data.management_company_id,
        entry_date=data.period_to,
        description=f"Management fee income - {data.project_name} ({period})",
        currency=data.currency,
    )
    management_journal.debit(
        ctx.account(AccountRole.INTERCOMPANY_RECEIVABLE),
        data.fee_amount,
        f"Intercompany receivable from {owner}",
    )
    management_journal.credit(
        ctx.account(AccountRole.MANAGEMENT_FEE_INCOME),
        data.fee_amount,
        f"Management fee - {data.project_name}",
        project_id=data.project_id,
    )

    return [project_journal, management_journal]


def build_intercompany_settlement(
    event: AccountingEvent, data: IntercompanySettlementData, ctx: HandlerContext
) -> list[ProposedJournal]:
    """Cash transfer clearing an intercompany balance."""
    reference = f" - {data.reference}" if data.reference else ""
    payer = ctx.company_name(data.from_company_id)
    payee = ctx.company_name(data.to_company_id)

    from_journal = ProposedJournal(
        company_id=data.from_company_id,
        entry_date=data.settlement_date,
        description=f"Intercompany settlement to {payee}{reference}",
        currency=data.currency,
    )
    from_journal.debit(
        ctx.account(AccountRole.INTERCOMPANY_PAYABLE),
        data.settlement_amount,
        f"Settle payable to {payee}",
    )
    from_journal.credit(data.from_bank_gl_code, data.settlement_amount, f"Transfer to {payee}")

    to_journal = ProposedJournal(
        company_id=data.to_company_id,
        entry_date=data.settlement_date,
        description=f"Intercompany settlement from {payer}{reference}",
        currency=data.currency,
    )
    to_journal.debit(data.to_bank_gl_code, data.settlement_amount, f"Transfer from {payer}")
    to_journal.credit(
        ctx.account(AccountRole.INTERCOMPANY_RECEIVABLE),
        data.settlement_amount,
        f"Settle receivable from {payer}",
    )

    return [from_journal, to_journal]


def build_opening_balance(
    event: AccountingEvent, data: OpeningBalanceData, ctx: HandlerContext
) -> list[ProposedJournal]:
    journal = ProposedJournal(
        company_id=event.primary_company_id,
        entry_date=data.balance_date,
        description=f"Opening balances {data.fiscal_year}",
        currency=data.currency,
    )
    for balance in data.balances:
        description = balance.account_name or "Opening balance"
        journal.debit(balance.account_code, balance.debit_amount, description)
        journal.credit(balance.account_code, balance.credit_amount, description)
    return [journal]


# Revenue recognition and profit allocation


def build_revenue_recognized(
    event: AccountingEvent, data: RevenueRecognizedData, ctx: HandlerContext
) -> list[ProposedJournal]:
    """Release a charter deposit from deferred revenue."""
    client = f" - {data.client_name}" if data.client_name else ""
    journal = ProposedJournal(
        company_id=data.company_id or event.primary_company_id,
        entry_date=data.recognition_date,
        description=f"Revenue recognition - {data.receipt_number}{client}",
        currency=data.currency,
    )
    journal.debit(
        ctx.account(AccountRole.DEFERRED_REVENUE),
        data.amount,
        f"Charter deposit released - {data.receipt_number}",
    )
    journal.credit(
        data.revenue_account_code,
        data.amount,
        f"Charter revenue{client}",
        project_id=data.project_id,
    )
    return [journal]


def build_partner_profit_allocation(
    event: AccountingEvent, data: PartnerProfitAllocationData, ctx: HandlerContext
) -> list[ProposedJournal]:
    """Project profit moved from retained earnings to each partner's payable."""
    period = f"{data.period_from.isoformat()} to {data.period_to.isoformat()}"
    journal = ProposedJournal(
        company_id=event.primary_company_id,
        entry_date=data.period_to,
        description=f"Profit allocation - {data.project_name} ({period})",
        currency=data.currency,
    )
    journal.debit(
        ctx.account(AccountRole.RETAINED_EARNINGS),
        data.total_profit,
        f"Profit distribution - {data.project_name}",
        project_id=data.project_id,
    )
    for allocation in data.allocations:
        journal.credit(
            ctx.account(AccountRole.PARTNER_PAYABLES),
            allocation.allocated_amount,
            f"{allocation.participant_name} ({allocation.ownership_percentage}%)",
            project_id=data.project_id,
        )
    return [journal]


_BUILDERS: dict[EventType, BuildFn] = {
    EventType.RECEIPT_RECEIVED: build_receipt_received,
    EventType.RECEIPT_RECEIVED_INTERCOMPANY: build_receipt_received_intercompany,
    EventType.EXPENSE_APPROVED: build_expense_approved,
    EventType.EXPENSE_PAID: build_expense_paid,
    EventType.EXPENSE_PAID_INTERCOMPANY: build_expense_paid_intercompany,
    EventType.INVENTORY_PURCHASE_RECORDED: build_inventory_purchase,
    EventType.INVENTORY_CONSUMED: build_inventory_consumed,
    EventType.PETTYCASH_EXPENSE_CREATED: build_pettycash_expense_created,
    EventType.PETTYCASH_TOPUP_COMPLETED: build_pettycash_topup,
    EventType.PETTYCASH_REIMBURSEMENT_PAID: build_pettycash_reimbursement,
    EventType.MANAGEMENT_FEE_RECOGNIZED: build_management_fee,
    EventType.INTERCOMPANY_SETTLEMENT: build_intercompany_settlement,
    EventType.OPENING_BALANCE: build_opening_balance,
    EventType.REVENUE_RECOGNIZED: build_revenue_recognized,
    EventType.PARTNER_PROFIT_ALLOCATION: build_partner_profit_allocation,
}

HANDLERS: dict[EventType, EventHandler] = {
    event_type: EventHandler(
        event_type=event_type,
        payload_model=PAYLOAD_MODELS[event_type],
        build=build,
        posts_journal=event_type != EventType.PETTYCASH_EXPENSE_CREATED,
    )
    for event_type, build in _BUILDERS.items()
}


def get_handler(event_type: EventType) -> EventHandler:
    """Registered handler for an event type."""
    return HANDLERS[EventType(event_type)]
