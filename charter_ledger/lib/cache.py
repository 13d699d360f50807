"""TTL cache for FX rates keyed by (currency, date)."""

import json
import logging
import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Callable, Optional

from charter_ledger.lib.config import FX_CACHE_TTL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedRate:
    """A cached rate and the source it came from."""

    rate: Decimal
    source: str
    stored_at: float


class RateCache:
    """Explicit in-memory rate cache owned by the FX resolver.

    Features:
    - TTL per (currency, date) key
    - Manual rates never expire (they are user overrides)
    - Optional JSON file persistence so rates survive restarts

    The resolver constructs one of these at process start and keeps a
    reference; nothing else reads or writes it.
    """

    def __init__(
        self,
        ttl_seconds: int = FX_CACHE_TTL,
        persist_path: Optional[Path] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate cache.

        Args:
            ttl_seconds: Time-to-live for non-manual entries
            persist_path: Optional JSON file to load from and save to
            clock: Time source (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self.persist_path = persist_path
        self._clock = clock
        self._entries: dict[tuple[str, date], CachedRate] = {}

        if persist_path is not None:
            self._load()

    def get(self, currency: str, rate_date: date) -> Optional[CachedRate]:
        """
        Retrieve cached rate if still valid.

        Args:
            currency: Source currency code
            rate_date: Rate date

        Returns:
            CachedRate or None on miss/expiry
        """
        key = (currency, rate_date)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.source != "manual" and self._clock() - entry.stored_at > self.ttl_seconds:
            del self._entries[key]
            return None

        return entry

    def set(self, currency: str, rate_date: date, rate: Decimal, source: str) -> None:
        """
        Store a rate.

        Args:
            currency: Source currency code
            rate_date: Rate date
            rate: Rate to THB
            source: Rate source tag
        """
        self._entries[(currency, rate_date)] = CachedRate(
            rate=rate, source=source, stored_at=self._clock()
        )
        if self.persist_path is not None:
            self._save()

    def invalidate(self, currency: str, rate_date: date) -> None:
        """Drop a single key."""
        self._entries.pop((currency, rate_date), None)

    def clear(self) -> None:
        """Clear all cached rates."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _load(self) -> None:
        """Load persisted rates. Loaded entries start a fresh TTL."""
        assert self.persist_path is not None
        if not self.persist_path.exists():
            return

        try:
            with open(self.persist_path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Ignoring unreadable FX cache file {self.persist_path}: {e}")
            return

        now = self._clock()
        for key, record in data.items():
            currency, iso_date = key.split("-", 1)
            self._entries[(currency, date.fromisoformat(iso_date))] = CachedRate(
                rate=Decimal(record["rate"]), source=record["source"], stored_at=now
            )

    def _save(self) -> None:
        """Persist current entries to JSON."""
        assert self.persist_path is not None
        data = {
            f"{currency}-{rate_date.isoformat()}": {"rate": str(entry.rate), "source": entry.source}
            for (currency, rate_date), entry in self._entries.items()
        }
        try:
            self.persist_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.persist_path, "w") as f:
                json.dump(data, f, indent=2)
        except IOError as e:
            # Cache persistence is not critical
            logger.warning(f"Failed to write FX cache: {e}")
