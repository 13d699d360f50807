"""
SQLAlchemy models for the charter-ledger application.

All models inherit from the Base declarative class defined in charter_ledger.lib.db.
"""

from charter_ledger.models.accounting_event import AccountingEvent, EventStatus, EventType
from charter_ledger.models.chart_of_accounts import DEFAULT_CHART, AccountType, ChartAccount
from charter_ledger.models.company import BankAccount, Company, Project
from charter_ledger.models.exchange_rate import FxRate
from charter_ledger.models.expense import (
    Expense,
    ExpenseLineItem,
    ExpenseStatus,
    PaymentStatus,
    VatType,
)
from charter_ledger.models.intercompany import ChargeStatus, IntercompanyChargeRecord
from charter_ledger.models.inventory import (
    InventoryConsumption,
    InventoryLineItem,
    InventoryPurchase,
    PaymentType,
)
from charter_ledger.models.journal import JournalEntry, JournalLine
from charter_ledger.models.petty_cash import (
    PettyCashExpense,
    PettyCashExpenseStatus,
    PettyCashReimbursement,
    PettyCashTopup,
    PettyCashWallet,
    ReimbursementStatus,
    TopupStatus,
)
from charter_ledger.models.revenue_recognition import (
    RecognitionStatus,
    RecognitionTrigger,
    RevenueRecognition,
)

__all__ = [
    # Directories
    "Company",
    "BankAccount",
    "Project",
    # Events and ledger
    "AccountingEvent",
    "ChartAccount",
    "JournalEntry",
    "JournalLine",
    "FxRate",
    "IntercompanyChargeRecord",
    "RevenueRecognition",
    # Business documents
    "Expense",
    "ExpenseLineItem",
    "InventoryPurchase",
    "InventoryLineItem",
    "InventoryConsumption",
    "PettyCashWallet",
    "PettyCashTopup",
    "PettyCashExpense",
    "PettyCashReimbursement",
    # Enums
    "EventType",
    "EventStatus",
    "AccountType",
    "ChargeStatus",
    "RecognitionStatus",
    "RecognitionTrigger",
    "ExpenseStatus",
    "PaymentStatus",
    "VatType",
    "PaymentType",
    "PettyCashExpenseStatus",
    "ReimbursementStatus",
    "TopupStatus",
    # Seed data
    "DEFAULT_CHART",
]
