"""Partner profit allocation.

A project's profit for a period is distributed to its partners by
ownership share: retained earnings are debited and each partner's share
credited to Partner Payables (2750) until paid out.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import NAMESPACE_URL, uuid5

from sqlalchemy.orm import Session

from charter_ledger.lib.config import BALANCE_TOLERANCE
from charter_ledger.lib.errors import JournalPostingFailedError, ValidationError
from charter_ledger.lib.event_models import PartnerAllocation, PartnerProfitAllocationData
from charter_ledger.lib.validators import round_money, validate_amount, validate_percentage
from charter_ledger.models import EventType
from charter_ledger.services.event_store import (
    EventProcessResult,
    PostingContext,
    create_and_process_event,
    get_default_context,
)

logger = logging.getLogger(__name__)

ALLOCATION_DOCUMENT_TYPE = "profit_allocation"


@dataclass(frozen=True)
class PartnerShare:
    """A partner and the share of the project they own."""

    participant_id: str
    participant_name: str
    ownership_percentage: Decimal


def split_profit(total_profit: Decimal, shares: list[PartnerShare]) -> list[PartnerAllocation]:
    """
    Split a profit by ownership percentage.

    Each amount is rounded to cents; the rounding remainder goes to the
    last partner so the allocations sum to the profit exactly.

    Raises:
        ValidationError: No partners, or percentages not adding up to 100
    """
    if not shares:
        raise ValidationError("At least one partner share is required")

    total_pct = sum((validate_percentage(s.ownership_percentage) for s in shares), Decimal("0"))
    if abs(total_pct - Decimal("100")) > BALANCE_TOLERANCE:
        raise ValidationError(f"Ownership percentages add up to {total_pct}, expected 100")

    allocations = [
        PartnerAllocation(
            participant_id=share.participant_id,
            participant_name=share.participant_name,
            ownership_percentage=share.ownership_percentage,
            allocated_amount=round_money(total_profit * share.ownership_percentage / Decimal("100")),
        )
        for share in shares
    ]
    remainder = total_profit - sum((a.allocated_amount for a in allocations), Decimal("0"))
    if remainder:
        last = allocations[-1]
        allocations[-1] = last.model_copy(
            update={"allocated_amount": last.allocated_amount + remainder}
        )
    return allocations


def allocation_document_id(project_id: str, period_from: date, period_to: date) -> str:
    """Stable source document id for one project's allocation over one period."""
    key = f"profit-allocation:{project_id}:{period_from.isoformat()}:{period_to.isoformat()}"
    return str(uuid5(NAMESPACE_URL, key))


def allocate_partner_profit(
    session: Session,
    company_id: str,
    project_id: str,
    project_name: str,
    period_from: date,
    period_to: date,
    total_profit: Decimal,
    shares: list[PartnerShare],
    currency: str = "THB",
    actor_id: str = "system",
    context: Optional[PostingContext] = None,
) -> EventProcessResult:
    """
    Post PARTNER_PROFIT_ALLOCATION for a project's profit over a period.

    One allocation per project and period: a second call for the same
    period is refused by the event store.

    Args:
        session: Database session
        company_id: Company owning the project
        project_id: Project whose profit is allocated
        project_name: Project name for journal descriptions
        period_from: First day of the period
        period_to: Last day of the period (journal date)
        total_profit: Profit to distribute
        shares: Partners and their ownership percentages
        currency: Profit currency
        actor_id: Who posted it
        context: Resolvers and directories

    Returns:
        EventProcessResult of the posting

    Raises:
        ValidationError: Bad amount, period or shares
        JournalPostingFailedError: Journal could not be posted
    """
    context = context or get_default_context()
    total_profit = round_money(validate_amount(total_profit))
    if period_to < period_from:
        raise ValidationError("period_to must not be before period_from")

    payload = PartnerProfitAllocationData(
        currency=currency,
        period_from=period_from,
        period_to=period_to,
        project_id=project_id,
        project_name=project_name,
        allocations=split_profit(total_profit, shares),
        total_profit=total_profit,
    )
    result = create_and_process_event(
        session,
        EventType.PARTNER_PROFIT_ALLOCATION,
        period_to,
        [company_id],
        payload,
        ALLOCATION_DOCUMENT_TYPE,
        allocation_document_id(project_id, period_from, period_to),
        actor_id=actor_id,
        context=context,
    )
    if not result.success:
        raise JournalPostingFailedError(
            f"Profit allocation for {project_name}",
            result.error or "unknown error",
            result.error_code,
        )

    logger.info(
        f"Allocated {total_profit} {payload.currency} profit of {project_name} "
        f"to {len(shares)} partner(s)"
    )
    return result
