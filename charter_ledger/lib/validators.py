"""
Input validation utilities.

Provides validation and normalization for currency codes, money amounts,
quantities, dates and account codes.
"""

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from charter_ledger.lib.config import MONEY_QUANTUM, SUPPORTED_CURRENCIES
from charter_ledger.lib.errors import InvalidCurrencyError, ValidationError

ACCOUNT_CODE_PATTERN = re.compile(r"^\d{4}$")


def to_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    """
    Convert a number to Decimal without float artefacts.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1").

    Raises:
        ValidationError: If value is not numeric
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid amount: {value!r}") from e


def round_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """
    Round a money amount half-up to two decimals.

    Examples:
        >>> round_money("10.005")
        Decimal('10.01')
        >>> round_money(Decimal("467.2897"))
        Decimal('467.29')
    """
    return to_decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def validate_amount(
    amount: Union[Decimal, int, float, str],
    allow_zero: bool = False,
    field_name: str = "Amount",
) -> Decimal:
    """
    Validate a money amount is positive (or zero when allowed).

    Args:
        amount: Amount to validate
        allow_zero: Whether zero is acceptable
        field_name: Name used in the error message

    Returns:
        Validated amount as Decimal

    Raises:
        ValidationError: If amount is negative, or zero when not allowed

    Examples:
        >>> validate_amount("1500.50")
        Decimal('1500.50')
        >>> validate_amount(0)
        Traceback (most recent call last):
        ...
        ValidationError: Amount 0 must be positive
    """
    value = to_decimal(amount)

    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{field_name} {value} must be positive")

    return value


def validate_quantity(quantity: Union[Decimal, int, float, str]) -> Decimal:
    """
    Validate an inventory quantity is positive.

    Raises:
        ValidationError: If quantity is zero or negative
    """
    return validate_amount(quantity, field_name="Quantity")


def validate_currency(currency: str, valid_currencies: Optional[tuple[str, ...]] = None) -> str:
    """
    Validate ISO 4217 currency code.

    Args:
        currency: Currency code to validate
        valid_currencies: Optional supported set. Defaults to SUPPORTED_CURRENCIES.

    Returns:
        Normalized currency code (uppercase, trimmed)

    Raises:
        InvalidCurrencyError: If currency code is invalid or unsupported

    Examples:
        >>> validate_currency("usd")
        'USD'
        >>> validate_currency("XXX")
        Traceback (most recent call last):
        ...
        InvalidCurrencyError: Invalid currency code: 'XXX'. Currency not supported...
    """
    if valid_currencies is None:
        valid_currencies = SUPPORTED_CURRENCIES

    currency = currency.upper().strip()

    if not re.match(r"^[A-Z]{3}$", currency):
        raise InvalidCurrencyError(currency, "Currency code must be exactly 3 letters")

    if currency not in valid_currencies:
        raise InvalidCurrencyError(
            currency,
            f"Currency not supported. Valid currencies: {', '.join(sorted(valid_currencies))}",
        )

    return currency


def validate_date(date_value: Union[date, datetime, str]) -> date:
    """
    Parse and validate a document date.

    Args:
        date_value: Date object, datetime object, or ISO string (YYYY-MM-DD)

    Returns:
        Validated date

    Raises:
        ValidationError: If the string is not an ISO date

    Examples:
        >>> validate_date("2024-01-15")
        datetime.date(2024, 1, 15)
    """
    if isinstance(date_value, datetime):
        return date_value.date()
    if isinstance(date_value, date):
        return date_value

    try:
        return datetime.strptime(date_value.strip(), "%Y-%m-%d").date()
    except ValueError as e:
        raise ValidationError(f"Invalid date format: {date_value}. Expected YYYY-MM-DD") from e


def validate_account_code(code: str) -> str:
    """
    Validate a chart-of-accounts code (four digits).

    Raises:
        ValidationError: If code is not four digits
    """
    code = code.strip()
    if not ACCOUNT_CODE_PATTERN.match(code):
        raise ValidationError(f"Invalid account code: {code!r}. Account codes are 4 digits")
    return code


def validate_percentage(
    percentage: Decimal, min_value: Decimal = Decimal("0"), max_value: Decimal = Decimal("100")
) -> Decimal:
    """
    Validate percentage is within reasonable range.

    Raises:
        ValidationError: If percentage is out of range
    """
    if percentage < min_value or percentage > max_value:
        raise ValidationError(f"Percentage must be between {min_value} and {max_value}")

    return percentage
