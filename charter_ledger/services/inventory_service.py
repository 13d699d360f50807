"""Inventory purchases and consumption.

Stock is bought into the inventory asset account (1200) and expensed as it
is consumed against projects. Consumption never exceeds what is left on a
line item.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from charter_ledger.lib.errors import (
    InsufficientQuantityError,
    JournalPostingFailedError,
    NotFoundError,
    ValidationError,
)
from charter_ledger.lib.event_models import (
    ConsumptionItem,
    InventoryConsumedData,
    InventoryPurchaseRecordedData,
)
from charter_ledger.lib.validators import (
    round_money,
    validate_account_code,
    validate_amount,
    validate_currency,
    validate_quantity,
)
from charter_ledger.models import (
    EventType,
    InventoryConsumption,
    InventoryLineItem,
    InventoryPurchase,
    PaymentType,
    PettyCashWallet,
)
from charter_ledger.services.account_resolver import DEFAULT_ACCOUNTS, AccountRole
from charter_ledger.services.event_store import (
    EventProcessResult,
    PostingContext,
    create_and_process_event,
    get_default_context,
)

logger = logging.getLogger(__name__)


@dataclass
class PurchaseLine:
    """Item on an inventory purchase."""

    description: str
    quantity: Decimal
    unit_cost: Decimal
    expense_account_code: str = DEFAULT_ACCOUNTS[AccountRole.DEFAULT_EXPENSE]


@dataclass
class ConsumptionRequest:
    """Quantity to take from a purchased line item."""

    line_item_id: str
    quantity: Decimal
    project_id: Optional[str] = None
    expense_account_code: Optional[str] = None  # Defaults to the line item's account


def record_purchase(
    session: Session,
    company_id: str,
    purchase_date: date,
    lines: list[PurchaseLine],
    payment_type: PaymentType | str,
    bank_account_id: Optional[str] = None,
    wallet_id: Optional[str] = None,
    vendor_name: Optional[str] = None,
    vat_amount: Decimal = Decimal("0"),
    currency: str = "THB",
    purchase_number: Optional[str] = None,
    actor_id: str = "system",
    context: Optional[PostingContext] = None,
) -> InventoryPurchase:
    """
    Record an inventory purchase and post it to inventory.

    Args:
        session: Database session
        company_id: Buying company
        purchase_date: Purchase date
        lines: Purchased items
        payment_type: bank, cash or petty_cash
        bank_account_id: Paying bank account (bank payments)
        wallet_id: Paying wallet (petty cash payments)
        vendor_name: Vendor
        vat_amount: Input VAT on the purchase
        currency: Purchase currency
        purchase_number: Document number (generated if omitted)
        actor_id: Who recorded it

    Returns:
        Created InventoryPurchase with line items

    Raises:
        ValidationError: No lines, bad quantities/costs, or missing payment source
        CurrencyMismatchError: Paying bank account held in another currency
        JournalPostingFailedError: Journal could not be posted
    """
    context = context or get_default_context()
    payment_type = PaymentType(payment_type)
    currency = validate_currency(currency)
    vat_amount = round_money(validate_amount(vat_amount, allow_zero=True, field_name="VAT amount"))

    if not lines:
        raise ValidationError("Inventory purchase needs at least one line item")

    bank_gl_code = None
    petty_cash_gl_code = None
    wallet_name = None
    if payment_type == PaymentType.BANK:
        if not bank_account_id:
            raise ValidationError("bank_account_id is required for bank payments")
        bank_gl_code = context.accounts.bank_account_gl_code(session, bank_account_id, currency)
    elif payment_type == PaymentType.PETTY_CASH:
        if not wallet_id:
            raise ValidationError("wallet_id is required for petty cash payments")
        petty_cash_gl_code = context.accounts.resolve(
            session, AccountRole.PETTY_CASH_WALLET, wallet_id
        )
        wallet = session.get(PettyCashWallet, wallet_id)
        wallet_name = wallet.name if wallet else None

    purchase = InventoryPurchase(
        company_id=company_id,
        purchase_number=purchase_number or _next_purchase_number(session, purchase_date),
        purchase_date=purchase_date,
        vendor_name=vendor_name,
        payment_type=payment_type,
        bank_account_id=bank_account_id if payment_type == PaymentType.BANK else None,
        wallet_id=wallet_id if payment_type == PaymentType.PETTY_CASH else None,
        currency=currency,
        vat_amount=vat_amount,
        created_by=actor_id,
    )

    subtotal = Decimal("0")
    for order, line in enumerate(lines, start=1):
        quantity = validate_quantity(line.quantity)
        unit_cost = validate_amount(line.unit_cost, field_name="Unit cost")
        purchase.line_items.append(
            InventoryLineItem(
                line_order=order,
                description=line.description,
                quantity=quantity,
                unit_cost=unit_cost,
                quantity_consumed=Decimal("0"),
                expense_account_code=validate_account_code(line.expense_account_code),
            )
        )
        subtotal += quantity * unit_cost

    purchase.subtotal = round_money(subtotal)
    purchase.total_amount = purchase.subtotal + vat_amount
    session.add(purchase)
    session.flush()

    payload = InventoryPurchaseRecordedData(
        currency=currency,
        purchase_id=purchase.id,
        purchase_number=purchase.purchase_number,
        purchase_date=purchase_date,
        vendor_name=vendor_name,
        total_subtotal=purchase.subtotal,
        total_vat_amount=vat_amount,
        total_net_payable=purchase.total_amount,
        payment_type=payment_type.value,
        bank_account_gl_code=bank_gl_code,
        petty_cash_gl_code=petty_cash_gl_code,
        petty_cash_wallet_name=wallet_name,
    )
    result = create_and_process_event(
        session,
        EventType.INVENTORY_PURCHASE_RECORDED,
        purchase_date,
        [company_id],
        payload,
        "inventory_purchase",
        purchase.id,
        actor_id=actor_id,
        context=context,
    )
    _raise_if_failed(result, f"Inventory purchase {purchase.purchase_number}")

    logger.info(
        f"Recorded inventory purchase {purchase.purchase_number}: "
        f"{purchase.total_amount} {currency} via {payment_type.value}"
    )
    return purchase


def consume_inventory(
    session: Session,
    purchase_id: str,
    consumptions: list[ConsumptionRequest],
    consumed_date: date,
    actor_id: str = "system",
    context: Optional[PostingContext] = None,
) -> list[InventoryConsumption]:
    """
    Take stock out of a purchase and expense it.

    All requested quantities are checked before anything is written.

    Args:
        session: Database session
        purchase_id: Purchase the stock belongs to
        consumptions: Quantities per line item
        consumed_date: Date of use
        actor_id: Who recorded it

    Returns:
        Created InventoryConsumption records

    Raises:
        NotFoundError: Unknown purchase or line item
        InsufficientQuantityError: More requested than remains (nothing is posted)
        JournalPostingFailedError: Journal could not be posted
    """
    purchase = session.get(InventoryPurchase, purchase_id)
    if purchase is None:
        raise NotFoundError("inventory purchase", purchase_id)
    if not consumptions:
        raise ValidationError("Nothing to consume")

    items = {item.id: item for item in purchase.line_items}

    requested: dict[str, Decimal] = defaultdict(Decimal)
    for request in consumptions:
        if request.line_item_id not in items:
            raise NotFoundError("inventory line item", request.line_item_id)
        requested[request.line_item_id] += validate_quantity(request.quantity)

    for line_item_id, quantity in requested.items():
        item = items[line_item_id]
        if quantity > item.remaining_quantity:
            raise InsufficientQuantityError(item.description, item.remaining_quantity, quantity)

    records = []
    event_items = []
    for request in consumptions:
        item = items[request.line_item_id]
        quantity = validate_quantity(request.quantity)
        amount = round_money(quantity * item.unit_cost)
        account_code = validate_account_code(
            request.expense_account_code or item.expense_account_code
        )

        item.quantity_consumed = item.quantity_consumed + quantity
        record = InventoryConsumption(
            line_item_id=item.id,
            project_id=request.project_id,
            consumed_date=consumed_date,
            quantity=quantity,
            amount=amount,
            expense_account_code=account_code,
            created_by=actor_id,
        )
        session.add(record)
        records.append(record)
        event_items.append(
            ConsumptionItem(
                line_item_id=item.id,
                description=item.description,
                expense_account_code=account_code,
                amount=amount,
                project_id=request.project_id,
            )
        )

    session.flush()

    total = sum((item.amount for item in event_items), Decimal("0"))
    payload = InventoryConsumedData(
        currency=purchase.currency,
        purchase_id=purchase.id,
        purchase_number=purchase.purchase_number,
        consumed_date=consumed_date,
        consumptions=event_items,
        total_amount=total,
    )
    result = create_and_process_event(
        session,
        EventType.INVENTORY_CONSUMED,
        consumed_date,
        [purchase.company_id],
        payload,
        "inventory_consumption",
        records[0].id,
        actor_id=actor_id,
        context=context,
    )
    _raise_if_failed(result, f"Consumption from {purchase.purchase_number}")

    logger.info(
        f"Consumed {len(records)} item(s) from {purchase.purchase_number}: {total} {purchase.currency}"
    )
    return records


def _next_purchase_number(session: Session, purchase_date: date) -> str:
    prefix = f"INV-{purchase_date:%y%m}"
    last = session.execute(
        select(func.max(InventoryPurchase.purchase_number)).where(
            InventoryPurchase.purchase_number.like(f"{prefix}%")
        )
    ).scalar()
    sequence = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{sequence:04d}"


def _raise_if_failed(result: EventProcessResult, operation: str) -> None:
    if not result.success:
        raise JournalPostingFailedError(operation, result.error or "unknown error", result.error_code)
