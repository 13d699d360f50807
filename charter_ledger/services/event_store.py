"""Event store: record accounting events and post their journals.

``create_and_process_event`` is the single entry point business flows use.
It rejects duplicates per (event_type, source_document_type,
source_document_id), records the event, runs the handler and posts the
resulting journals. A handler or posting failure leaves the event row in
place with status FAILED so it can be inspected and retried.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from charter_ledger.lib.config import MAX_EVENT_RETRIES
from charter_ledger.lib.errors import (
    CharterLedgerError,
    DuplicateEventError,
    EventNotFoundError,
    StorageError,
    ValidationError,
)
from charter_ledger.lib.event_models import EventPayload, parse_payload
from charter_ledger.models import AccountingEvent, EventStatus, EventType, JournalEntry
from charter_ledger.services.account_resolver import AccountResolver
from charter_ledger.services.directories import (
    CompanyDirectory,
    ProjectDirectory,
    SqlCompanyDirectory,
    SqlProjectDirectory,
)
from charter_ledger.services.event_handlers import HandlerContext, get_handler
from charter_ledger.services.fx_resolver import FxResolver
from charter_ledger.services.journal_posting_service import (
    delete_by_source_document,
    post_journal,
)

logger = logging.getLogger(__name__)


@dataclass
class PostingContext:
    """Long-lived collaborators shared by every event processed."""

    fx: FxResolver = field(default_factory=FxResolver)
    accounts: AccountResolver = field(default_factory=AccountResolver)
    companies: CompanyDirectory = field(default_factory=SqlCompanyDirectory)
    projects: ProjectDirectory = field(default_factory=SqlProjectDirectory)


_default_context: Optional[PostingContext] = None


def get_default_context() -> PostingContext:
    """Process-wide context, built on first use (owns the FX rate cache)."""
    global _default_context

    if _default_context is None:
        _default_context = PostingContext()
    return _default_context


@dataclass
class EventProcessResult:
    """Outcome of recording and posting one event.

    ``event_recorded and not success`` means the event exists but its
    journal failed to post; callers must report that differently from a
    failure where nothing was recorded.
    """

    success: bool
    event_id: Optional[str] = None
    journal_entry_id: Optional[str] = None
    journal_entry_ids: list[str] = field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None
    event_recorded: bool = False

    @property
    def recorded_but_not_posted(self) -> bool:
        return self.event_recorded and not self.success

    @classmethod
    def failure(
        cls, error: CharterLedgerError, event_id: Optional[str] = None, recorded: bool = False
    ) -> "EventProcessResult":
        return cls(
            success=False,
            event_id=event_id,
            error=error.message,
            error_code=error.code,
            event_recorded=recorded,
        )


def check_duplicate_event(
    session: Session,
    event_type: EventType,
    source_document_type: Optional[str],
    source_document_id: Optional[str],
) -> Optional[AccountingEvent]:
    """Return the active event for a source document, if any."""
    if not source_document_type or not source_document_id:
        return None

    stmt = select(AccountingEvent).where(
        AccountingEvent.event_type == EventType(event_type),
        AccountingEvent.source_document_type == source_document_type,
        AccountingEvent.source_document_id == source_document_id,
        AccountingEvent.status != EventStatus.VOIDED,
    )
    return session.execute(stmt).scalars().first()


def create_and_process_event(
    session: Session,
    event_type: EventType | str,
    event_date: date,
    affected_company_ids: list[str],
    payload: dict[str, Any] | EventPayload,
    source_document_type: Optional[str] = None,
    source_document_id: Optional[str] = None,
    actor_id: str = "system",
    force_post: bool = False,
    context: Optional[PostingContext] = None,
) -> EventProcessResult:
    """
    Record an accounting event and post its journals.

    Args:
        session: Database session (caller owns commit/rollback)
        event_type: Type of business event
        event_date: Business date of the event
        affected_company_ids: One or two company IDs
        payload: Event payload (dict or payload model)
        source_document_type: Type of the originating document
        source_document_id: ID of the originating document
        actor_id: Who triggered the event
        force_post: Void an existing event for the same document and re-post (backfills)
        context: Resolvers and directories (process default if omitted)

    Returns:
        EventProcessResult. Never raises for expected failures.
    """
    event_type = EventType(event_type)

    if not affected_company_ids or len(affected_company_ids) > 2:
        error = ValidationError(
            f"affected_company_ids must list one or two companies, got {len(affected_company_ids or [])}"
        )
        return EventProcessResult.failure(error)

    try:
        parsed = parse_payload(event_type, payload)
    except CharterLedgerError as e:
        logger.warning(f"Rejected {event_type.value} for {source_document_id}: {e.message}")
        return EventProcessResult.failure(e)

    existing = check_duplicate_event(session, event_type, source_document_type, source_document_id)
    if existing is not None:
        if not force_post:
            error = DuplicateEventError(
                event_type.value, source_document_type, source_document_id, existing.id
            )
            logger.info(error.message)
            return EventProcessResult.failure(error, event_id=existing.id)

        logger.warning(
            f"Force posting {event_type.value} for {source_document_type} {source_document_id}: "
            f"voiding event {existing.id}"
        )
        _void_event(session, existing, delete_journals=True)

    event = AccountingEvent(
        event_type=event_type,
        event_date=event_date,
        affected_company_ids=list(affected_company_ids),
        source_document_type=source_document_type,
        source_document_id=source_document_id,
        payload=parsed.model_dump(mode="json"),
        status=EventStatus.PENDING,
        created_by=actor_id,
    )

    try:
        with session.begin_nested():
            session.add(event)
            session.flush()
    except IntegrityError:
        # Lost the race against a concurrent insert for the same document
        error = DuplicateEventError(event_type.value, source_document_type, source_document_id)
        logger.info(error.message)
        return EventProcessResult.failure(error)
    except SQLAlchemyError as e:
        logger.error(f"Failed to record {event_type.value} event: {e}")
        return EventProcessResult.failure(StorageError(f"Failed to record event: {e}"))

    logger.debug(f"Recorded event {event.id} ({event_type.value})")
    return _run_handler(session, event, parsed, context or get_default_context(), actor_id)


def process_event(
    session: Session,
    event_id: str,
    context: Optional[PostingContext] = None,
    actor_id: str = "system",
) -> EventProcessResult:
    """
    Run the handler for a recorded PENDING or FAILED event.

    Raises:
        EventNotFoundError: No such event
    """
    event = session.get(AccountingEvent, event_id)
    if event is None:
        raise EventNotFoundError(event_id)

    if event.status not in (EventStatus.PENDING, EventStatus.FAILED):
        error = ValidationError(f"Event {event_id} is {event.status.value}, cannot process")
        return EventProcessResult.failure(error, event_id=event_id, recorded=True)

    try:
        parsed = parse_payload(event.event_type, event.payload)
    except CharterLedgerError as e:
        _mark_failed(session, event, e)
        return EventProcessResult.failure(e, event_id=event_id, recorded=True)

    return _run_handler(session, event, parsed, context or get_default_context(), actor_id)


def retry_event(
    session: Session,
    event_id: str,
    context: Optional[PostingContext] = None,
    actor_id: str = "system",
) -> EventProcessResult:
    """
    Re-run a FAILED event.

    Raises:
        EventNotFoundError: No such event
    """
    event = session.get(AccountingEvent, event_id)
    if event is None:
        raise EventNotFoundError(event_id)

    if event.status != EventStatus.FAILED:
        error = ValidationError(f"Only failed events can be retried (event is {event.status.value})")
        return EventProcessResult.failure(error, event_id=event_id, recorded=True)

    if event.retry_count >= MAX_EVENT_RETRIES:
        error = ValidationError(
            f"Event {event_id} has failed {event.retry_count} times, giving up"
        )
        return EventProcessResult.failure(error, event_id=event_id, recorded=True)

    logger.info(f"Retrying event {event_id} (attempt {event.retry_count + 1})")
    return process_event(session, event_id, context=context, actor_id=actor_id)


def cancel_event(session: Session, event_id: str, actor_id: str = "system") -> AccountingEvent:
    """
    Void a single event and delete the journals it posted.

    The source document is not touched.

    Raises:
        EventNotFoundError: No such event
    """
    event = session.get(AccountingEvent, event_id)
    if event is None:
        raise EventNotFoundError(event_id)

    if event.status != EventStatus.VOIDED:
        _void_event(session, event, delete_journals=True)
        logger.info(f"Event {event_id} cancelled by {actor_id}")
    return event


def void_source_document(
    session: Session,
    source_document_type: str,
    source_document_id: str,
    actor_id: str = "system",
) -> int:
    """
    Void every active event for a document and delete all its journals.

    After this the document can be posted again from scratch.

    Returns:
        Number of events voided
    """
    stmt = select(AccountingEvent).where(
        AccountingEvent.source_document_type == source_document_type,
        AccountingEvent.source_document_id == source_document_id,
        AccountingEvent.status != EventStatus.VOIDED,
    )
    events = list(session.execute(stmt).scalars().all())

    for event in events:
        _void_event(session, event, delete_journals=False)
    deleted = delete_by_source_document(session, source_document_type, source_document_id)

    logger.info(
        f"Voided {source_document_type} {source_document_id} by {actor_id}: "
        f"{len(events)} event(s), {deleted} journal(s)"
    )
    return len(events)


def get_event_journal_entries(session: Session, event_id: str) -> list[JournalEntry]:
    """Journals posted for an event, in posting order."""
    stmt = (
        select(JournalEntry)
        .where(JournalEntry.event_id == event_id)
        .order_by(JournalEntry.created_at, JournalEntry.entry_number)
    )
    return list(session.execute(stmt).scalars().all())


def list_events(
    session: Session,
    status: Optional[EventStatus] = None,
    event_type: Optional[EventType] = None,
    limit: int = 50,
) -> list[AccountingEvent]:
    """Most recent events, optionally filtered."""
    stmt = select(AccountingEvent).order_by(AccountingEvent.created_at.desc()).limit(limit)
    if status is not None:
        stmt = stmt.where(AccountingEvent.status == status)
    if event_type is not None:
        stmt = stmt.where(AccountingEvent.event_type == event_type)
    return list(session.execute(stmt).scalars().all())


def _run_handler(
    session: Session,
    event: AccountingEvent,
    payload: EventPayload,
    context: PostingContext,
    actor_id: str,
) -> EventProcessResult:
    handler = get_handler(event.event_type)
    handler_ctx = HandlerContext(
        session=session,
        accounts=context.accounts,
        companies=context.companies,
        projects=context.projects,
    )

    try:
        with session.begin_nested():
            entries = [
                post_journal(
                    session,
                    proposed,
                    event.source_document_type,
                    event.source_document_id,
                    proposed.company_id,
                    event_id=event.id,
                    fx_resolver=context.fx,
                    account_resolver=context.accounts,
                    expected_currency=payload.currency,
                    actor_id=actor_id,
                )
                for proposed in handler.build(event, payload, handler_ctx)
            ]
            if handler.posts_journal and not entries:
                raise ValidationError(f"{event.event_type.value} handler produced no journal")
    except CharterLedgerError as e:
        _mark_failed(session, event, e)
        return EventProcessResult.failure(e, event_id=event.id, recorded=True)
    except SQLAlchemyError as e:
        error = StorageError(f"Failed to write journal: {e}")
        _mark_failed(session, event, error)
        return EventProcessResult.failure(error, event_id=event.id, recorded=True)

    event.status = EventStatus.PROCESSED
    event.journal_entry_id = entries[0].id if entries else None
    event.processed_at = datetime.now(timezone.utc)
    event.error_message = None
    session.flush()

    entry_ids = [entry.id for entry in entries]
    logger.info(
        f"Processed {event.event_type.value} event {event.id}: {len(entry_ids)} journal(s)"
    )
    return EventProcessResult(
        success=True,
        event_id=event.id,
        journal_entry_id=event.journal_entry_id,
        journal_entry_ids=entry_ids,
        event_recorded=True,
    )


def _mark_failed(session: Session, event: AccountingEvent, error: CharterLedgerError) -> None:
    event.status = EventStatus.FAILED
    event.error_message = error.message
    event.retry_count = (event.retry_count or 0) + 1
    event.journal_entry_id = None
    session.flush()
    logger.error(
        f"{event.event_type.value} event {event.id} recorded but not posted "
        f"[{error.code}]: {error.message}"
    )


def _void_event(session: Session, event: AccountingEvent, delete_journals: bool) -> None:
    if delete_journals:
        for entry in get_event_journal_entries(session, event.id):
            session.delete(entry)
    event.status = EventStatus.VOIDED
    event.voided_at = datetime.now(timezone.utc)
    event.journal_entry_id = None
    session.flush()
