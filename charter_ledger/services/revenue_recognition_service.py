"""Deferred charter revenue and its recognition.

Charters paid before they sail are credited to Charter Deposits Received
(2300). Each such receipt gets one RevenueRecognition record; when the
charter ends (or an accountant says so) REVENUE_RECOGNIZED moves the
deposit into the charter-type revenue account. A record without a charter
end date waits in NEEDS_REVIEW until dates are supplied.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from charter_ledger.lib.errors import JournalPostingFailedError, NotFoundError, ValidationError
from charter_ledger.lib.event_models import RevenueRecognizedData
from charter_ledger.lib.validators import round_money, validate_account_code, validate_currency
from charter_ledger.models import (
    EventType,
    RecognitionStatus,
    RecognitionTrigger,
    RevenueRecognition,
)
from charter_ledger.services.account_resolver import charter_revenue_account
from charter_ledger.services.event_store import (
    PostingContext,
    create_and_process_event,
    get_default_context,
)
from charter_ledger.services.side_effects import SideChannel

logger = logging.getLogger(__name__)

RECOGNITION_DOCUMENT_TYPE = "revenue_recognition"


@dataclass
class RecognitionRunResult:
    """Outcome of an automatic recognition run."""

    recognized: list[RevenueRecognition] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)  # recognition id -> error


def create_deferred_revenue_record(
    session: Session,
    company_id: str,
    receipt_id: str,
    receipt_number: str,
    amount: Decimal,
    currency: str = "THB",
    project_id: Optional[str] = None,
    client_name: Optional[str] = None,
    charter_date_from: Optional[date] = None,
    charter_date_to: Optional[date] = None,
    charter_type: Optional[str] = None,
    revenue_account_code: Optional[str] = None,
) -> RevenueRecognition:
    """
    Track a charter deposit until its revenue is recognized.

    One record per receipt: an existing record is returned unchanged.

    Returns:
        RevenueRecognition (PENDING, or NEEDS_REVIEW without an end date)
    """
    existing = get_recognition_for_receipt(session, receipt_id)
    if existing is not None:
        logger.debug(f"Deferred revenue record for receipt {receipt_number} exists, skipping")
        return existing

    record = RevenueRecognition(
        company_id=company_id,
        project_id=project_id,
        receipt_id=receipt_id,
        receipt_number=receipt_number,
        client_name=client_name,
        charter_date_from=charter_date_from,
        charter_date_to=charter_date_to,
        charter_type=charter_type,
        amount=round_money(amount),
        currency=validate_currency(currency),
        revenue_account_code=(
            validate_account_code(revenue_account_code) if revenue_account_code else None
        ),
        status=(
            RecognitionStatus.PENDING if charter_date_to else RecognitionStatus.NEEDS_REVIEW
        ),
    )
    session.add(record)
    session.flush()
    logger.info(
        f"Deferred {record.amount} {record.currency} for receipt {receipt_number} "
        f"({record.status.value})"
    )
    return record


def get_recognition(session: Session, recognition_id: str) -> RevenueRecognition:
    """
    Raises:
        NotFoundError: No such record
    """
    record = session.get(RevenueRecognition, recognition_id)
    if record is None:
        raise NotFoundError("revenue recognition", recognition_id)
    return record


def get_recognition_for_receipt(session: Session, receipt_id: str) -> Optional[RevenueRecognition]:
    return session.execute(
        select(RevenueRecognition).where(RevenueRecognition.receipt_id == receipt_id)
    ).scalar_one_or_none()


def get_pending_recognition(
    session: Session,
    company_id: Optional[str] = None,
    include_review: bool = True,
) -> list[RevenueRecognition]:
    """Records not yet recognized, earliest charter end first."""
    statuses = [RecognitionStatus.PENDING]
    if include_review:
        statuses.append(RecognitionStatus.NEEDS_REVIEW)

    stmt = (
        select(RevenueRecognition)
        .where(RevenueRecognition.status.in_(statuses))
        .order_by(RevenueRecognition.charter_date_to, RevenueRecognition.created_at)
    )
    if company_id is not None:
        stmt = stmt.where(RevenueRecognition.company_id == company_id)
    return list(session.execute(stmt).scalars().all())


def recognize_revenue(
    session: Session,
    recognition_id: str,
    recognition_date: Optional[date] = None,
    trigger: RecognitionTrigger | str = RecognitionTrigger.MANUAL,
    actor_id: str = "system",
    context: Optional[PostingContext] = None,
) -> RevenueRecognition:
    """
    Move a charter deposit from 2300 into revenue.

    Recognizing an already recognized record is a no-op. The revenue
    account is the record's own, else the one for its charter type.

    Args:
        session: Database session
        recognition_id: Record to recognize
        recognition_date: Journal date (default: charter end date, else today)
        trigger: automatic, manual or immediate
        actor_id: Who recognized it
        context: Resolvers and directories

    Returns:
        The updated record

    Raises:
        NotFoundError: No such record
        JournalPostingFailedError: Journal could not be posted
    """
    context = context or get_default_context()
    trigger = RecognitionTrigger(trigger)
    record = get_recognition(session, recognition_id)

    if record.is_recognized:
        logger.info(f"Revenue for receipt {record.receipt_number} already recognized")
        return record

    recognition_date = recognition_date or record.charter_date_to or date.today()
    payload = RevenueRecognizedData(
        currency=record.currency,
        recognition_id=record.id,
        receipt_id=record.receipt_id,
        receipt_number=record.receipt_number,
        client_name=record.client_name,
        recognition_date=recognition_date,
        amount=record.amount,
        revenue_account_code=(
            record.revenue_account_code or charter_revenue_account(record.charter_type)
        ),
        company_id=record.company_id,
        project_id=record.project_id,
        charter_type=record.charter_type,
        trigger=trigger.value,
    )
    result = create_and_process_event(
        session,
        EventType.REVENUE_RECOGNIZED,
        recognition_date,
        [record.company_id],
        payload,
        RECOGNITION_DOCUMENT_TYPE,
        record.id,
        actor_id=actor_id,
        context=context,
    )
    if not result.success:
        raise JournalPostingFailedError(
            f"Revenue recognition for {record.receipt_number}",
            result.error or "unknown error",
            result.error_code,
        )

    record.status = (
        RecognitionStatus.RECOGNIZED
        if trigger == RecognitionTrigger.AUTOMATIC
        else RecognitionStatus.MANUAL_RECOGNIZED
    )
    record.recognition_date = recognition_date
    record.trigger = trigger
    record.recognized_by = actor_id
    record.journal_entry_id = result.journal_entry_id
    session.flush()

    logger.info(
        f"Recognized {record.amount} {record.currency} for receipt {record.receipt_number} "
        f"on {recognition_date} ({trigger.value})"
    )
    return record


def process_automatic_recognition(
    session: Session,
    as_of: Optional[date] = None,
    actor_id: str = "system",
    context: Optional[PostingContext] = None,
) -> RecognitionRunResult:
    """
    Recognize every pending record whose charter ended on or before ``as_of``.

    Each record runs in its own savepoint; a failure is reported in the
    result and does not stop the run.
    """
    as_of = as_of or date.today()
    channel = SideChannel(session)
    run = RecognitionRunResult()

    due = session.execute(
        select(RevenueRecognition)
        .where(RevenueRecognition.status == RecognitionStatus.PENDING)
        .where(RevenueRecognition.charter_date_to <= as_of)
        .order_by(RevenueRecognition.charter_date_to)
    ).scalars().all()

    for record in due:
        outcome = channel.run(
            f"recognize {record.receipt_number}",
            recognize_revenue,
            session,
            record.id,
            record.charter_date_to,
            RecognitionTrigger.AUTOMATIC,
            actor_id,
            context,
        )
        if outcome.ok:
            run.recognized.append(outcome.value)
        else:
            run.errors[record.id] = outcome.error or "unknown error"

    logger.info(
        f"Automatic recognition as of {as_of}: {len(run.recognized)} recognized, "
        f"{len(run.errors)} failed"
    )
    return run


def update_charter_dates(
    session: Session,
    recognition_id: str,
    charter_date_from: Optional[date],
    charter_date_to: date,
) -> RevenueRecognition:
    """
    Set charter dates on an unrecognized record; NEEDS_REVIEW becomes PENDING.

    Raises:
        NotFoundError: No such record
        ValidationError: Already recognized, or the dates are reversed
    """
    record = get_recognition(session, recognition_id)
    if record.is_recognized:
        raise ValidationError(f"Revenue for receipt {record.receipt_number} is already recognized")
    if charter_date_from and charter_date_to < charter_date_from:
        raise ValidationError("charter_date_to must not be before charter_date_from")

    record.charter_date_from = charter_date_from
    record.charter_date_to = charter_date_to
    if record.status == RecognitionStatus.NEEDS_REVIEW:
        record.status = RecognitionStatus.PENDING
    session.flush()
    return record
