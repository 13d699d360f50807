"""Unit tests for input validators."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from charter_ledger.lib.errors import InvalidCurrencyError, ValidationError
from charter_ledger.lib.validators import (
    round_money,
    to_decimal,
    validate_account_code,
    validate_amount,
    validate_currency,
    validate_date,
    validate_percentage,
    validate_quantity,
)


@pytest.mark.unit
class TestMoney:
    """Test suite for to_decimal and round_money."""

    def test_float_goes_through_str(self):
        """Floats don't carry binary artefacts into Decimal."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_non_numeric_rejected(self):
        """Garbage input raises ValidationError."""
        with pytest.raises(ValidationError, match="Invalid amount"):
            to_decimal("twelve")

    def test_round_half_up(self):
        """Half cents round away from zero."""
        assert round_money("10.005") == Decimal("10.01")
        assert round_money("10.004") == Decimal("10.00")
        assert round_money(Decimal("467.2897")) == Decimal("467.29")

    def test_round_keeps_two_places(self):
        """Whole numbers come back with two decimals."""
        assert str(round_money(1000)) == "1000.00"


@pytest.mark.unit
class TestValidateAmount:
    """Test suite for validate_amount and validate_quantity."""

    def test_positive_amount(self):
        """Positive amounts pass through as Decimal."""
        assert validate_amount("1500.50") == Decimal("1500.50")

    def test_zero_rejected_by_default(self):
        """Zero is not a valid amount unless allowed."""
        with pytest.raises(ValidationError, match="must be positive"):
            validate_amount(0)

    def test_zero_allowed(self):
        """allow_zero accepts zero."""
        assert validate_amount(0, allow_zero=True) == Decimal("0")

    def test_negative_rejected(self):
        """Negative amounts are rejected even when zero is allowed."""
        with pytest.raises(ValidationError):
            validate_amount(-1, allow_zero=True)

    def test_field_name_in_message(self):
        """Error names the field."""
        with pytest.raises(ValidationError, match="Unit cost"):
            validate_amount(-5, field_name="Unit cost")

    def test_quantity(self):
        """Quantities must be positive."""
        assert validate_quantity("2.5") == Decimal("2.5")
        with pytest.raises(ValidationError, match="Quantity"):
            validate_quantity(0)


@pytest.mark.unit
class TestValidateCurrency:
    """Test suite for validate_currency."""

    def test_normalized_uppercase(self):
        """Codes are upper-cased and trimmed."""
        assert validate_currency(" usd ") == "USD"
        assert validate_currency("thb") == "THB"

    def test_wrong_length(self):
        """Codes must be three letters."""
        with pytest.raises(InvalidCurrencyError, match="exactly 3 letters"):
            validate_currency("US")

    def test_unsupported(self):
        """Well-formed but unsupported codes are rejected."""
        with pytest.raises(InvalidCurrencyError, match="not supported"):
            validate_currency("JPY")

    def test_custom_set(self):
        """A custom supported set can be passed."""
        assert validate_currency("JPY", valid_currencies=("JPY",)) == "JPY"


@pytest.mark.unit
class TestValidateDate:
    """Test suite for validate_date."""

    def test_date_passthrough(self):
        assert validate_date(date(2025, 1, 15)) == date(2025, 1, 15)

    def test_datetime_truncated(self):
        assert validate_date(datetime(2025, 1, 15, 13, 30)) == date(2025, 1, 15)

    def test_iso_string(self):
        assert validate_date("2025-01-15") == date(2025, 1, 15)

    def test_invalid_string(self):
        with pytest.raises(ValidationError, match="Expected YYYY-MM-DD"):
            validate_date("15/01/2025")


@pytest.mark.unit
class TestValidateAccountCode:
    """Test suite for validate_account_code and validate_percentage."""

    def test_four_digits(self):
        assert validate_account_code(" 4010 ") == "4010"

    def test_rejects_other_formats(self):
        with pytest.raises(ValidationError, match="4 digits"):
            validate_account_code("401")
        with pytest.raises(ValidationError):
            validate_account_code("40A0")

    def test_percentage_range(self):
        assert validate_percentage(Decimal("7")) == Decimal("7")
        with pytest.raises(ValidationError, match="between 0 and 100"):
            validate_percentage(Decimal("101"))
