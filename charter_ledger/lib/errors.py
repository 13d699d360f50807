"""Custom exception classes for charter-ledger."""

from decimal import Decimal


class CharterLedgerError(Exception):
    """Base exception for all charter-ledger errors."""

    code = "LEDGER_ERROR"

    def __init__(self, message: str):
        """Initialize with error message."""
        self.message = message
        super().__init__(message)


class EventError(CharterLedgerError):
    """Accounting event errors."""

    code = "EVENT_ERROR"


class DuplicateEventError(EventError):
    """An active event already exists for this source document."""

    code = "DUPLICATE_EVENT"

    def __init__(
        self,
        event_type: str,
        source_document_type: str | None,
        source_document_id: str | None,
        existing_event_id: str | None = None,
    ):
        """
        Initialize with the duplicated event key.

        Args:
            event_type: Event type that was re-submitted
            source_document_type: Source document type
            source_document_id: Source document ID
            existing_event_id: ID of the event already recorded (if known)
        """
        self.event_type = event_type
        self.source_document_type = source_document_type
        self.source_document_id = source_document_id
        self.existing_event_id = existing_event_id
        message = (
            f"Already recorded: {event_type} for "
            f"{source_document_type} {source_document_id}"
        )
        super().__init__(message)


class EventNotFoundError(EventError):
    """Accounting event not found."""

    code = "EVENT_NOT_FOUND"

    def __init__(self, event_id: str):
        """Initialize with event ID."""
        self.event_id = event_id
        super().__init__(f"Accounting event not found: {event_id}")


class PayloadValidationError(EventError):
    """Event payload does not match the schema of its event type."""

    code = "INVALID_PAYLOAD"

    def __init__(self, event_type: str, details: str):
        """
        Initialize with validation details.

        Args:
            event_type: Event type whose payload failed validation
            details: Field-level description of what is wrong
        """
        self.event_type = event_type
        self.details = details
        super().__init__(f"Invalid {event_type} payload: {details}")


class PostingError(CharterLedgerError):
    """Journal posting errors."""

    code = "POSTING_ERROR"


class UnbalancedJournalError(PostingError):
    """Proposed journal debits and credits do not balance."""

    code = "UNBALANCED_JOURNAL"

    def __init__(self, total_debit: Decimal, total_credit: Decimal, company_id: str = ""):
        """
        Initialize with the offending totals.

        Args:
            total_debit: Sum of debit lines
            total_credit: Sum of credit lines
            company_id: Company the journal was proposed for
        """
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.company_id = company_id
        message = f"Unbalanced journal: Debit={total_debit:.2f}, Credit={total_credit:.2f}"
        if company_id:
            message += f" (company {company_id})"
        super().__init__(message)


class AccountResolutionError(PostingError):
    """GL account code is unknown or cannot be resolved."""

    code = "UNKNOWN_ACCOUNT"

    def __init__(self, reference: str, details: str = ""):
        """
        Initialize with the unresolved reference.

        Args:
            reference: Account code or semantic role that failed to resolve
            details: Additional error details
        """
        self.reference = reference
        message = f"Cannot resolve GL account: {reference}"
        if details:
            message += f" ({details})"
        super().__init__(message)


class CurrencyMismatchError(PostingError):
    """Journal or bank account currency does not match the event currency."""

    code = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, actual: str, reference: str = ""):
        """
        Initialize with both currencies.

        Args:
            expected: Currency required (event or bank account currency)
            actual: Currency found
            reference: What carries the wrong currency (e.g. "bank account Kasikorn USD")
        """
        where = f" for {reference}" if reference else ""
        super().__init__(f"Currency mismatch{where}: expected {expected}, got {actual}")


class JournalPostingFailedError(PostingError):
    """A business operation could not post its journal; the whole unit is rolled back."""

    code = "JOURNAL_NOT_POSTED"

    def __init__(self, operation: str, reason: str, error_code: str | None = None):
        """
        Initialize with the failed operation.

        Args:
            operation: Human readable operation (e.g. "inventory consumption")
            reason: Error returned by the event store
            error_code: Machine code of the underlying error
        """
        self.operation = operation
        self.reason = reason
        self.error_code = error_code
        super().__init__(f"{operation} failed to post its journal: {reason}")


class DataError(CharterLedgerError):
    """Data validation or processing errors."""

    code = "DATA_ERROR"


class ValidationError(DataError):
    """Input validation errors."""

    code = "VALIDATION_ERROR"


class InvalidCurrencyError(DataError):
    """Invalid or unsupported currency code."""

    code = "INVALID_CURRENCY"

    def __init__(self, currency: str, custom_message: str = ""):
        """
        Initialize with invalid currency.

        Args:
            currency: The invalid currency code
            custom_message: Optional custom error message
        """
        if custom_message:
            message = f"Invalid currency code: '{currency}'. {custom_message}"
        else:
            message = (
                f"Invalid currency code: '{currency}'. "
                f"Supported: THB, EUR, USD, GBP, SGD, AED."
            )
        super().__init__(message)


class InsufficientQuantityError(ValidationError):
    """Attempt to consume more inventory than remains."""

    code = "INSUFFICIENT_QUANTITY"

    def __init__(self, description: str, available: Decimal, requested: Decimal):
        """
        Initialize with quantity details.

        Args:
            description: Inventory line description
            available: Remaining quantity
            requested: Requested quantity to consume
        """
        self.available = available
        self.requested = requested
        message = (
            f"Cannot consume {requested} of '{description}'. Only {available} remaining."
        )
        super().__init__(message)


class FxRateUnavailableError(DataError):
    """No FX rate could be found from any source."""

    code = "FX_RATE_UNAVAILABLE"

    def __init__(self, currency: str, rate_date: str, details: str = ""):
        """
        Initialize with the missing rate key.

        Args:
            currency: Source currency
            rate_date: Requested date (ISO format)
            details: Additional error details
        """
        message = f"No {currency}/THB exchange rate available for {rate_date}"
        if details:
            message += f": {details}"
        super().__init__(message)


class DatabaseError(CharterLedgerError):
    """Database operation errors."""

    code = "DATABASE_ERROR"


class StorageError(DatabaseError):
    """Transient storage failure; safe to retry (duplicate check makes it idempotent)."""

    code = "STORAGE_ERROR"


class NotFoundError(DatabaseError):
    """Referenced record not found."""

    code = "NOT_FOUND"

    def __init__(self, kind: str, record_id: str):
        """
        Initialize with the missing record.

        Args:
            kind: Record kind (e.g. "bank account")
            record_id: The ID that wasn't found
        """
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.capitalize()} not found: {record_id}")


class APIError(CharterLedgerError):
    """External API errors."""

    code = "API_ERROR"


class APIRateLimitError(APIError):
    """API rate limit exceeded."""

    code = "API_RATE_LIMIT"


# Error message helpers


def format_error_message(error: Exception) -> str:
    """
    Format exception into user-friendly error message.

    Args:
        error: The exception to format

    Returns:
        Formatted error message
    """
    if isinstance(error, CharterLedgerError):
        return error.message

    error_type = type(error).__name__
    return f"{error_type}: {str(error)}"


def get_error_code(error: Exception) -> str:
    """Machine-readable code for an exception."""
    if isinstance(error, CharterLedgerError):
        return error.code
    return "UNEXPECTED_ERROR"


def get_error_color(error: Exception) -> str:
    """
    Get Rich color for error type.

    Args:
        error: The exception

    Returns:
        Rich color name
    """
    if isinstance(error, DuplicateEventError):
        return "yellow"
    elif isinstance(error, (ValidationError, DataError, PostingError)):
        return "red"
    elif isinstance(error, DatabaseError):
        return "magenta"
    else:
        return "red"
