"""Unit tests for the FX rate cache."""

from datetime import date
from decimal import Decimal

import pytest

from charter_ledger.lib.cache import RateCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return RateCache(ttl_seconds=60, clock=clock)


@pytest.mark.unit
class TestRateCache:
    """Test suite for RateCache."""

    def test_miss(self, cache):
        """Unknown keys return None."""
        assert cache.get("USD", date(2025, 1, 15)) is None

    def test_hit_within_ttl(self, cache, clock):
        """Entries are returned until the TTL passes."""
        cache.set("USD", date(2025, 1, 15), Decimal("35.50"), "api")
        clock.now += 59

        entry = cache.get("USD", date(2025, 1, 15))
        assert entry.rate == Decimal("35.50")
        assert entry.source == "api"

    def test_expired(self, cache, clock):
        """Entries older than the TTL are dropped."""
        cache.set("USD", date(2025, 1, 15), Decimal("35.50"), "api")
        clock.now += 61

        assert cache.get("USD", date(2025, 1, 15)) is None
        assert len(cache) == 0

    def test_manual_rates_never_expire(self, cache, clock):
        """Operator-entered rates outlive the TTL."""
        cache.set("EUR", date(2025, 1, 15), Decimal("38.00"), "manual")
        clock.now += 10_000

        assert cache.get("EUR", date(2025, 1, 15)).rate == Decimal("38.00")

    def test_keys_include_date(self, cache):
        """The same currency on another date is a different key."""
        cache.set("USD", date(2025, 1, 15), Decimal("35.50"), "api")
        assert cache.get("USD", date(2025, 1, 16)) is None

    def test_invalidate_and_clear(self, cache):
        cache.set("USD", date(2025, 1, 15), Decimal("35.50"), "api")
        cache.set("EUR", date(2025, 1, 15), Decimal("38.00"), "api")

        cache.invalidate("USD", date(2025, 1, 15))
        assert cache.get("USD", date(2025, 1, 15)) is None
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0

    def test_persistence_round_trip(self, tmp_path, clock):
        """Rates written to the JSON file are loaded by a new cache."""
        path = tmp_path / "fx_cache.json"
        RateCache(persist_path=path, clock=clock).set(
            "SGD", date(2025, 1, 15), Decimal("25.10"), "fallback"
        )

        reloaded = RateCache(persist_path=path, clock=clock)
        entry = reloaded.get("SGD", date(2025, 1, 15))
        assert entry.rate == Decimal("25.10")
        assert entry.source == "fallback"

    def test_unreadable_file_ignored(self, tmp_path, clock):
        """A corrupt cache file starts an empty cache."""
        path = tmp_path / "fx_cache.json"
        path.write_text("{not json")

        assert len(RateCache(persist_path=path, clock=clock)) == 0
