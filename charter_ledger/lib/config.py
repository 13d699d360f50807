"""Application configuration constants."""

import os
from decimal import Decimal

# Currency
BASE_CURRENCY = "THB"  # All journals are also carried in THB
SUPPORTED_CURRENCIES = ("THB", "EUR", "USD", "GBP", "SGD", "AED")

# Posting
BALANCE_TOLERANCE = Decimal("0.01")  # Max |debits - credits| per journal
MONEY_QUANTUM = Decimal("0.01")  # Document amounts are rounded to satang/cents
MIN_JOURNAL_LINES = 2

# VAT (Thailand standard rate)
DEFAULT_VAT_RATE = Decimal("7")

# FX lookups
FX_CACHE_TTL = 6 * 60 * 60  # seconds; historical rates rarely change
FX_PREVIOUS_DAY_LOOKBACK = 4  # days to walk back over weekends/holidays
FX_API_KEY = os.getenv("CHARTER_LEDGER_FX_API_KEY", "")
FX_PRIMARY_URL = "https://api.exchangerate.host"
FX_FALLBACK_URL = "https://api.frankfurter.app"

# Transient dependency retries (FX providers, directory lookups)
LOOKUP_RETRY_ATTEMPTS = 3
LOOKUP_RETRY_MAX_WAIT = 4  # seconds

# HTTP client
DEFAULT_HTTP_TIMEOUT = 10  # seconds

# Event processing
MAX_EVENT_RETRIES = 5  # retry_event refuses after this many failures
