"""FX snapshot resolver: currency/date to THB rate with caching and fallbacks."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Protocol

import aiohttp
from pydantic import BaseModel, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from charter_ledger.lib.api_client import APIClient
from charter_ledger.lib.cache import RateCache
from charter_ledger.lib.config import (
    BASE_CURRENCY,
    FX_API_KEY,
    FX_FALLBACK_URL,
    FX_PREVIOUS_DAY_LOOKBACK,
    FX_PRIMARY_URL,
    LOOKUP_RETRY_ATTEMPTS,
    LOOKUP_RETRY_MAX_WAIT,
)
from charter_ledger.lib.errors import APIError, APIRateLimitError, FxRateUnavailableError
from charter_ledger.lib.validators import validate_amount, validate_currency
from charter_ledger.models.exchange_rate import FxRate

logger = logging.getLogger(__name__)

# Errors worth another attempt against the same provider
TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    aiohttp.ClientConnectionError,
    APIRateLimitError,
)


@dataclass(frozen=True)
class FxSnapshot:
    """Rate from ``from_currency`` to THB as used for one posting.

    Immutable: the rate and source are copied onto the journal entry.
    """

    from_currency: str
    rate: Decimal
    date: date
    source: str
    to_currency: str = BASE_CURRENCY

    def to_base(self, amount: Decimal) -> Decimal:
        """Convert an amount in ``from_currency`` to THB (unrounded)."""
        return amount * self.rate


class ProviderRatesResponse(BaseModel):
    """Shape shared by exchangerate.host and frankfurter.app responses."""

    success: bool = True
    rates: dict[str, Decimal] = {}

    @field_validator("rates")
    @classmethod
    def validate_rates_positive(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        """Ensure exchange rates are positive."""
        for currency, rate in v.items():
            if rate <= 0:
                raise ValueError(f"Exchange rate for {currency} must be positive, got {rate}")
        return v


class RateProvider(Protocol):
    """Source of historical rates to THB."""

    source: str

    async def fetch_rate(self, currency: str, on_date: date) -> Optional[Decimal]: ...


class ExchangeRateHostProvider:
    """Primary provider: https://api.exchangerate.host/2024-01-15?base=USD&symbols=THB"""

    source = "api"

    def __init__(self, base_url: str = FX_PRIMARY_URL, api_key: str = FX_API_KEY):
        self.base_url = base_url
        self.api_key = api_key

    async def fetch_rate(self, currency: str, on_date: date) -> Optional[Decimal]:
        params = {"base": currency, "symbols": BASE_CURRENCY}
        if self.api_key:
            params["access_key"] = self.api_key

        async with APIClient(self.base_url) as client:
            data = await client.get(f"/{on_date.isoformat()}", params=params)

        response = ProviderRatesResponse.model_validate(data)
        if not response.success:
            return None
        return response.rates.get(BASE_CURRENCY)


class FrankfurterProvider:
    """Fallback provider: https://api.frankfurter.app/2024-01-15?from=USD&to=THB"""

    source = "fallback"

    def __init__(self, base_url: str = FX_FALLBACK_URL):
        self.base_url = base_url

    async def fetch_rate(self, currency: str, on_date: date) -> Optional[Decimal]:
        async with APIClient(self.base_url) as client:
            data = await client.get(
                f"/{on_date.isoformat()}", params={"from": currency, "to": BASE_CURRENCY}
            )

        return ProviderRatesResponse.model_validate(data).rates.get(BASE_CURRENCY)


def previous_business_day(day: date) -> date:
    """Previous weekday (Monday goes back to Friday)."""
    day -= timedelta(days=1)
    while day.weekday() >= 5:
        day -= timedelta(days=1)
    return day


class FxResolver:
    """Resolves FX snapshots to THB.

    Strategy:
    1. THB is always 1.0 (source 'manual'), never cached or fetched
    2. In-memory RateCache (TTL per currency/date key)
    3. ``fx_rate_cache`` table
    4. Providers in order for the date (future dates use today)
    5. Providers for previous business days (weekends/holidays)
    6. FxRateUnavailableError (no hardcoded fallback rate)

    Build one resolver at process start and pass it to the event store.
    """

    def __init__(
        self,
        cache: Optional[RateCache] = None,
        providers: Optional[list[RateProvider]] = None,
        retry_attempts: int = LOOKUP_RETRY_ATTEMPTS,
        retry_wait: Optional[wait_base] = None,
    ):
        """
        Initialize resolver.

        Args:
            cache: Rate cache owned by this resolver (a fresh one if omitted)
            providers: Rate providers in priority order
            retry_attempts: Attempts per provider call on transient errors
            retry_wait: Tenacity wait strategy between attempts
        """
        self.cache = cache if cache is not None else RateCache()
        self.providers: list[RateProvider] = (
            providers
            if providers is not None
            else [ExchangeRateHostProvider(), FrankfurterProvider()]
        )
        self.retry_attempts = retry_attempts
        self.retry_wait = retry_wait or wait_exponential(
            multiplier=1, min=1, max=LOOKUP_RETRY_MAX_WAIT
        )

    def get_snapshot(self, session: Session, currency: str, on_date: date) -> FxSnapshot:
        """
        Resolve the rate from ``currency`` to THB on ``on_date``.

        A future date with no manual rate resolves to today's rate, which is
        cached and stored under today; nothing is persisted for the future date.

        This drives the async providers with ``asyncio.run`` and so cannot be
        called from inside a running event loop (it raises RuntimeError);
        async callers should run it in a worker thread.

        Args:
            session: Database session (for the persistent rate table)
            currency: Source currency code
            on_date: Business date of the event

        Returns:
            FxSnapshot

        Raises:
            InvalidCurrencyError: Unsupported currency code
            FxRateUnavailableError: No source produced a rate
        """
        currency = validate_currency(currency)

        if currency == BASE_CURRENCY:
            return FxSnapshot(from_currency=currency, rate=Decimal("1"), date=on_date, source="manual")

        cached = self.cache.get(currency, on_date)
        if cached is not None:
            logger.debug(f"Using in-memory cached rate {currency}/THB on {on_date}: {cached.rate}")
            return FxSnapshot(currency, cached.rate, on_date, cached.source)

        stored = self._get_stored_rate(session, currency, on_date)
        if stored is not None:
            self.cache.set(currency, on_date, stored.rate, stored.source)
            logger.debug(f"Using stored rate {currency}/THB on {on_date}: {stored.rate}")
            return FxSnapshot(currency, Decimal(stored.rate), on_date, stored.source)

        today = date.today()
        if on_date > today:
            logger.warning(f"Rate requested for future date {on_date}, using today's rate")
            return self.get_snapshot(session, currency, today)

        rate, source = self._fetch(currency, on_date)
        self._store_rate(session, currency, on_date, rate, source)
        self.cache.set(currency, on_date, rate, source)
        return FxSnapshot(currency, rate, on_date, source)

    def set_manual_rate(
        self, session: Session, currency: str, on_date: date, rate: Decimal
    ) -> FxSnapshot:
        """
        Store an operator-entered rate. Overrides any cached or fetched rate.

        Raises:
            InvalidCurrencyError: Unsupported currency code
            ValidationError: Rate not positive
        """
        currency = validate_currency(currency)
        rate = validate_amount(rate, field_name="Exchange rate")

        if currency == BASE_CURRENCY:
            return FxSnapshot(currency, Decimal("1"), on_date, "manual")

        self._store_rate(session, currency, on_date, rate, "manual")
        self.cache.set(currency, on_date, rate, "manual")
        logger.info(f"Manual rate set {currency}/THB on {on_date}: {rate}")
        return FxSnapshot(currency, rate, on_date, "manual")

    def _get_stored_rate(self, session: Session, currency: str, on_date: date) -> Optional[FxRate]:
        stmt = select(FxRate).where(
            FxRate.from_currency == currency,
            FxRate.to_currency == BASE_CURRENCY,
            FxRate.date == on_date,
        )
        return session.execute(stmt).scalar_one_or_none()

    def _store_rate(
        self, session: Session, currency: str, on_date: date, rate: Decimal, source: str
    ) -> None:
        session.merge(
            FxRate(
                from_currency=currency,
                to_currency=BASE_CURRENCY,
                date=on_date,
                rate=rate,
                source=source,
                fetched_at=datetime.now(timezone.utc),
            )
        )
        session.flush()

    def _fetch(self, currency: str, on_date: date) -> tuple[Decimal, str]:
        """Run the provider chain. Sync entry point for the async providers.

        Not usable from a running event loop: ``asyncio.run`` raises there.
        """
        return asyncio.run(self._fetch_async(currency, on_date))

    async def _fetch_async(self, currency: str, on_date: date) -> tuple[Decimal, str]:
        result = await self._try_providers(currency, on_date)
        if result is not None:
            return result

        day = on_date
        for _ in range(FX_PREVIOUS_DAY_LOOKBACK):
            day = previous_business_day(day)
            logger.info(f"Rate not available for {currency} on {on_date}, trying {day}")
            result = await self._try_providers(currency, day)
            if result is not None:
                return result

        logger.error(f"Failed to fetch {currency}/THB for {on_date} from all sources")
        raise FxRateUnavailableError(currency, on_date.isoformat(), "all providers failed")

    async def _try_providers(self, currency: str, on_date: date) -> Optional[tuple[Decimal, str]]:
        for provider in self.providers:
            try:
                rate = await self._fetch_with_retry(provider, currency, on_date)
            except TRANSIENT_ERRORS as e:
                logger.warning(f"{provider.source} provider unavailable for {currency}: {e}")
                continue
            except (APIError, ValueError) as e:
                logger.warning(f"{provider.source} provider failed for {currency} on {on_date}: {e}")
                continue

            if rate is not None:
                logger.info(f"Fetched {currency}/THB on {on_date} from {provider.source}: {rate}")
                return rate, provider.source

        return None

    async def _fetch_with_retry(
        self, provider: RateProvider, currency: str, on_date: date
    ) -> Optional[Decimal]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True,
        ):
            with attempt:
                return await provider.fetch_rate(currency, on_date)
        return None  # pragma: no cover
