"""Pydantic models for accounting event payloads.

Each EventType maps to exactly one payload model (``PAYLOAD_MODELS``).
Payloads are validated once, when the event is recorded; handlers receive
the parsed model and never re-check field presence.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from charter_ledger.lib.config import BALANCE_TOLERANCE
from charter_ledger.lib.errors import InvalidCurrencyError, PayloadValidationError
from charter_ledger.lib.errors import ValidationError as LedgerValidationError
from charter_ledger.lib.validators import validate_account_code, validate_currency
from charter_ledger.models.accounting_event import EventType


class EventPayload(BaseModel):
    """Base class for all event payloads."""

    currency: str = "THB"

    model_config = {"str_strip_whitespace": True, "extra": "ignore"}

    @field_validator("currency")
    @classmethod
    def validate_currency_code(cls, v: str) -> str:
        """Normalize and check the currency against the supported set."""
        try:
            return validate_currency(v)
        except InvalidCurrencyError as e:
            raise ValueError(e.message) from e


def _check_account_code(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    try:
        return validate_account_code(v)
    except LedgerValidationError as e:
        raise ValueError(e.message) from e


# Receipts


class ReceiptLineItem(BaseModel):
    """Revenue line on a receipt."""

    description: str
    amount: Decimal = Field(ge=0)
    account_code: Optional[str] = None
    project_id: Optional[str] = None

    @field_validator("account_code")
    @classmethod
    def validate_code(cls, v: Optional[str]) -> Optional[str]:
        """Blank means 'use the default account'."""
        return _check_account_code(v)


class ReceiptPayment(BaseModel):
    """Money received against a receipt."""

    amount: Decimal = Field(gt=0)
    bank_account_id: Optional[str] = None
    bank_account_gl_code: Optional[str] = None
    payment_method: Optional[str] = None


class ReceiptReceivedData(EventPayload):
    """RECEIPT_RECEIVED: customer payment into the charter company's own account."""

    receipt_id: str = Field(min_length=1)
    receipt_number: str = Field(min_length=1)
    client_name: str
    receipt_date: date
    charter_date_from: Optional[date] = None
    charter_date_to: Optional[date] = None
    charter_type: Optional[str] = None
    line_items: list[ReceiptLineItem] = Field(min_length=1)
    payments: list[ReceiptPayment] = Field(min_length=1)
    total_subtotal: Decimal = Field(ge=0)
    total_vat_amount: Decimal = Field(default=Decimal("0"), ge=0)
    total_amount: Decimal = Field(gt=0)
    company_id: Optional[str] = None
    project_id: Optional[str] = None


class ReceiptReceivedIntercompanyData(EventPayload):
    """RECEIPT_RECEIVED_INTERCOMPANY: payment landed in another company's bank account."""

    receipt_id: str = Field(min_length=1)
    receipt_number: str = Field(min_length=1)
    client_name: str
    receipt_date: date
    total_amount: Decimal = Field(gt=0)
    bank_company_id: str = Field(min_length=1)
    bank_company_name: str
    charter_company_id: str = Field(min_length=1)
    charter_company_name: str
    bank_account_id: Optional[str] = None
    bank_account_gl_code: str = Field(min_length=1)
    uses_deferred_revenue: bool = False
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    charter_date_from: Optional[date] = None
    charter_type: Optional[str] = None
    # Banked payments; empty means one deposit of total_amount into bank_account_gl_code
    payments: list[ReceiptPayment] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_different_companies(self) -> "ReceiptReceivedIntercompanyData":
        """Bank and charter company must differ."""
        if self.bank_company_id == self.charter_company_id:
            raise ValueError(
                "bank_company_id and charter_company_id must be different "
                "for intercompany transactions"
            )
        return self

    @model_validator(mode="after")
    def check_payments_cover_total(self) -> "ReceiptReceivedIntercompanyData":
        """Listed payments must add up to the receipt total."""
        if not self.payments:
            return self
        paid = sum((payment.amount for payment in self.payments), Decimal("0"))
        if abs(paid - self.total_amount) > BALANCE_TOLERANCE:
            raise ValueError(f"payments total {paid} does not match total_amount {self.total_amount}")
        return self


# Expenses


class ExpenseLine(BaseModel):
    """Expense line charged to one account."""

    description: str
    amount: Decimal = Field(gt=0)
    account_code: Optional[str] = None
    project_id: Optional[str] = None

    @field_validator("account_code")
    @classmethod
    def validate_code(cls, v: Optional[str]) -> Optional[str]:
        """Blank means 'use the default account'."""
        return _check_account_code(v)


class ExpenseApprovedData(EventPayload):
    """EXPENSE_APPROVED: accrual when an expense is approved.

    ``payment_account_code`` credits a specific account instead of accounts
    payable (linked petty cash expenses credit the wallet GL).
    """

    expense_id: str = Field(min_length=1)
    expense_number: str = Field(min_length=1)
    vendor_name: str
    expense_date: date
    line_items: list[ExpenseLine] = Field(min_length=1)
    total_subtotal: Decimal = Field(ge=0)
    total_vat_amount: Decimal = Field(default=Decimal("0"), ge=0)
    total_amount: Decimal = Field(gt=0)
    payment_account_code: Optional[str] = None
    petty_cash_expense_id: Optional[str] = None


class ExpensePaidData(EventPayload):
    """EXPENSE_PAID: bank payment clearing accounts payable."""

    expense_id: str = Field(min_length=1)
    payment_id: str = Field(min_length=1)
    expense_number: str
    vendor_name: str
    payment_date: date
    payment_amount: Decimal = Field(gt=0)
    bank_account_id: Optional[str] = None
    bank_account_gl_code: str = Field(min_length=1)


class ExpensePaidIntercompanyData(EventPayload):
    """EXPENSE_PAID_INTERCOMPANY: one company pays a vendor on behalf of another."""

    expense_id: str = Field(min_length=1)
    expense_number: str
    vendor_name: str
    payment_date: date
    payment_amount: Decimal = Field(gt=0)
    paying_company_id: str = Field(min_length=1)
    paying_company_name: str
    receiving_company_id: str = Field(min_length=1)
    receiving_company_name: str
    bank_account_gl_code: str = Field(min_length=1)
    project_name: Optional[str] = None

    @model_validator(mode="after")
    def check_different_companies(self) -> "ExpensePaidIntercompanyData":
        """Paying and receiving company must differ."""
        if self.paying_company_id == self.receiving_company_id:
            raise ValueError(
                "paying_company_id and receiving_company_id must be different "
                "for intercompany transactions"
            )
        return self


# Inventory


class InventoryPurchaseRecordedData(EventPayload):
    """INVENTORY_PURCHASE_RECORDED: goods bought into stock."""

    purchase_id: str = Field(min_length=1)
    purchase_number: str = Field(min_length=1)
    purchase_date: date
    vendor_name: Optional[str] = None
    total_subtotal: Decimal = Field(gt=0)
    total_vat_amount: Decimal = Field(default=Decimal("0"), ge=0)
    total_net_payable: Decimal = Field(gt=0)
    payment_type: Literal["bank", "cash", "petty_cash"]
    bank_account_gl_code: Optional[str] = None
    petty_cash_gl_code: Optional[str] = None
    petty_cash_wallet_name: Optional[str] = None

    @model_validator(mode="after")
    def check_payment_account(self) -> "InventoryPurchaseRecordedData":
        """Bank and petty cash payments need their GL code."""
        if self.payment_type == "bank" and not self.bank_account_gl_code:
            raise ValueError("bank_account_gl_code is required for bank payment")
        if self.payment_type == "petty_cash" and not self.petty_cash_gl_code:
            raise ValueError("petty_cash_gl_code is required for petty cash payment")
        return self


class ConsumptionItem(BaseModel):
    """One consumed stock line."""

    line_item_id: Optional[str] = None
    description: str
    expense_account_code: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    project_id: Optional[str] = None
    project_name: Optional[str] = None


class InventoryConsumedData(EventPayload):
    """INVENTORY_CONSUMED: stock charged to expense accounts."""

    purchase_id: str = Field(min_length=1)
    purchase_number: str
    consumed_date: date
    consumptions: list[ConsumptionItem] = Field(min_length=1)
    total_amount: Decimal = Field(gt=0)


# Petty cash


class PettyCashExpenseCreatedData(EventPayload):
    """PETTYCASH_EXPENSE_CREATED: tracking only, no journal."""

    expense_id: str = Field(min_length=1)
    expense_number: str
    wallet_id: str = Field(min_length=1)
    expense_date: date
    amount: Decimal = Field(gt=0)
    description: str
    project_id: Optional[str] = None


class PettyCashTopupCompletedData(EventPayload):
    """PETTYCASH_TOPUP_COMPLETED: bank transfer into a wallet."""

    topup_id: str = Field(min_length=1)
    wallet_id: str = Field(min_length=1)
    wallet_name: Optional[str] = None
    wallet_gl_code: str = Field(min_length=1)
    bank_account_gl_code: str = Field(min_length=1)
    topup_date: date
    amount: Decimal = Field(gt=0)


class PettyCashReimbursementPaidData(EventPayload):
    """PETTYCASH_REIMBURSEMENT_PAID: bank refills a wallet for spent cash."""

    reimbursement_id: str = Field(min_length=1)
    reimbursement_number: str
    wallet_id: str = Field(min_length=1)
    wallet_name: Optional[str] = None
    wallet_gl_code: str = Field(min_length=1)
    bank_account_gl_code: str = Field(min_length=1)
    payment_date: date
    amount: Decimal = Field(gt=0)


# Intercompany


class ManagementFeeData(EventPayload):
    """MANAGEMENT_FEE_RECOGNIZED: management company charges a project company."""

    period_from: date
    period_to: date
    project_id: str = Field(min_length=1)
    project_name: str
    project_company_id: str = Field(min_length=1)
    management_company_id: str = Field(min_length=1)
    fee_percentage: Decimal = Field(ge=0, le=100)
    gross_income: Decimal = Field(ge=0)
    fee_amount: Decimal = Field(gt=0)

    @model_validator(mode="after")
    def check_companies_and_period(self) -> "ManagementFeeData":
        """Two distinct companies and a forward period."""
        if self.project_company_id == self.management_company_id:
            raise ValueError("project_company_id and management_company_id must be different")
        if self.period_to < self.period_from:
            raise ValueError("period_to must not be before period_from")
        return self


class IntercompanySettlementData(EventPayload):
    """INTERCOMPANY_SETTLEMENT: cash transfer clearing intercompany balances."""

    from_company_id: str = Field(min_length=1)
    to_company_id: str = Field(min_length=1)
    settlement_date: date
    settlement_amount: Decimal = Field(gt=0)
    from_bank_account_id: Optional[str] = None
    to_bank_account_id: Optional[str] = None
    from_bank_gl_code: str = Field(min_length=1)
    to_bank_gl_code: str = Field(min_length=1)
    reference: str = ""

    @model_validator(mode="after")
    def check_different_companies(self) -> "IntercompanySettlementData":
        """Settlement moves money between two companies."""
        if self.from_company_id == self.to_company_id:
            raise ValueError("from_company_id and to_company_id must be different")
        return self


# Opening balances


class OpeningBalanceLine(BaseModel):
    """Opening balance for one account."""

    account_code: str
    account_name: str = ""
    debit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    credit_amount: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("account_code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        """Account codes are four digits."""
        code = _check_account_code(v)
        if code is None:
            raise ValueError("account_code is required")
        return code


class OpeningBalanceData(EventPayload):
    """OPENING_BALANCE: balances carried into a new fiscal year."""

    fiscal_year: str = Field(pattern=r"^\d{4}$")
    balance_date: date
    balances: list[OpeningBalanceLine] = Field(min_length=1)


# Revenue recognition and profit allocation


class RevenueRecognizedData(EventPayload):
    """REVENUE_RECOGNIZED: charter deposit released to revenue."""

    recognition_id: str = Field(min_length=1)
    receipt_id: str = Field(min_length=1)
    receipt_number: str
    client_name: Optional[str] = None
    recognition_date: date
    amount: Decimal = Field(gt=0)
    revenue_account_code: str = Field(min_length=1)
    company_id: Optional[str] = None
    project_id: Optional[str] = None
    charter_type: Optional[str] = None
    trigger: Literal["automatic", "manual", "immediate"] = "manual"

    @field_validator("revenue_account_code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        """Revenue account codes are four digits."""
        code = _check_account_code(v)
        if code is None:
            raise ValueError("revenue_account_code is required")
        return code


class PartnerAllocation(BaseModel):
    """One participant's share of a project's profit."""

    participant_id: str = Field(min_length=1)
    participant_name: str
    ownership_percentage: Decimal = Field(ge=0, le=100)
    allocated_amount: Decimal = Field(ge=0)


class PartnerProfitAllocationData(EventPayload):
    """PARTNER_PROFIT_ALLOCATION: project profit moved to partner payables."""

    period_from: date
    period_to: date
    project_id: str = Field(min_length=1)
    project_name: str
    allocations: list[PartnerAllocation] = Field(min_length=1)
    total_profit: Decimal = Field(gt=0)

    @model_validator(mode="after")
    def check_allocations(self) -> "PartnerProfitAllocationData":
        """Allocations add up to the profit over a forward period."""
        if self.period_to < self.period_from:
            raise ValueError("period_to must not be before period_from")
        allocated = sum((a.allocated_amount for a in self.allocations), Decimal("0"))
        if abs(allocated - self.total_profit) > BALANCE_TOLERANCE:
            raise ValueError(
                f"allocations total {allocated} does not match total_profit {self.total_profit}"
            )
        return self


PAYLOAD_MODELS: dict[EventType, type[EventPayload]] = {
    EventType.RECEIPT_RECEIVED: ReceiptReceivedData,
    EventType.RECEIPT_RECEIVED_INTERCOMPANY: ReceiptReceivedIntercompanyData,
    EventType.EXPENSE_APPROVED: ExpenseApprovedData,
    EventType.EXPENSE_PAID: ExpensePaidData,
    EventType.EXPENSE_PAID_INTERCOMPANY: ExpensePaidIntercompanyData,
    EventType.INVENTORY_PURCHASE_RECORDED: InventoryPurchaseRecordedData,
    EventType.INVENTORY_CONSUMED: InventoryConsumedData,
    EventType.PETTYCASH_EXPENSE_CREATED: PettyCashExpenseCreatedData,
    EventType.PETTYCASH_TOPUP_COMPLETED: PettyCashTopupCompletedData,
    EventType.PETTYCASH_REIMBURSEMENT_PAID: PettyCashReimbursementPaidData,
    EventType.MANAGEMENT_FEE_RECOGNIZED: ManagementFeeData,
    EventType.INTERCOMPANY_SETTLEMENT: IntercompanySettlementData,
    EventType.OPENING_BALANCE: OpeningBalanceData,
    EventType.REVENUE_RECOGNIZED: RevenueRecognizedData,
    EventType.PARTNER_PROFIT_ALLOCATION: PartnerProfitAllocationData,
}


def _format_validation_errors(error: ValidationError) -> str:
    """Render pydantic errors as 'field.path: message' pairs."""
    parts = []
    for err in error.errors():
        location = ".".join(str(loc) for loc in err["loc"]) or "payload"
        parts.append(f"{location}: {err['msg']}")
    return "; ".join(parts)


def parse_payload(event_type: EventType, data: dict[str, Any] | EventPayload) -> EventPayload:
    """
    Validate a raw payload against the schema of its event type.

    Args:
        event_type: Event type selecting the schema
        data: Raw payload dict (or an already-built payload model)

    Returns:
        Parsed payload model

    Raises:
        PayloadValidationError: If the payload does not match, with field names
    """
    model = PAYLOAD_MODELS[event_type]

    if isinstance(data, EventPayload):
        if not isinstance(data, model):
            raise PayloadValidationError(
                event_type.value, f"expected {model.__name__}, got {type(data).__name__}"
            )
        return data

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise PayloadValidationError(event_type.value, _format_validation_errors(e)) from e
