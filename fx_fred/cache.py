"""Query result caches for gap-filled rate series.

Entries are keyed by ``currency:start:end`` (``null`` for open bounds) and are
only ever evicted wholesale after an import changes the store.
"""

from __future__ import annotations

import json
import threading
from datetime import date
from typing import TYPE_CHECKING, Protocol, Sequence

from cachetools import Cache, LRUCache, TTLCache

from fx_fred.models import RateRecord
from fx_fred.utils.date_range import format_optional
from fx_fred.utils.logger import get_logger

if TYPE_CHECKING:  # pragma: no cover - import only for static analyzers
    from redis import Redis

LOGGER = get_logger(__name__)


def rate_cache_key(currency: str, start: date | None, end: date | None) -> str:
    return f"{currency}:{format_optional(start)}:{format_optional(end)}"


class RateCache(Protocol):
    def get(self, key: str) -> list[RateRecord] | None: ...  # pragma: no cover - protocol definition

    def put(self, key: str, records: Sequence[RateRecord]) -> None: ...  # pragma: no cover - protocol definition

    def evict_all(self) -> None: ...  # pragma: no cover - protocol definition


class InMemoryRateCache:
    """Process-local cache backed by :mod:`cachetools`."""

    def __init__(self, *, ttl_seconds: int = 86400, max_entries: int = 1024) -> None:
        self._cache: Cache = (
            TTLCache(maxsize=max_entries, ttl=ttl_seconds)
            if ttl_seconds > 0
            else LRUCache(maxsize=max_entries)
        )
        self._lock = threading.Lock()

    def get(self, key: str) -> list[RateRecord] | None:
        with self._lock:
            records = self._cache.get(key)
        # Copies keep callers from mutating the cached list.
        return list(records) if records is not None else None

    def put(self, key: str, records: Sequence[RateRecord]) -> None:
        with self._lock:
            self._cache[key] = tuple(records)

    def evict_all(self) -> None:
        with self._lock:
            size = len(self._cache)
            self._cache.clear()
        LOGGER.info("Evicted %d cached exchange rate queries", size)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


class RedisRateCache:
    """Cache shared across instances, stored as JSON under ``{namespace}::{key}``."""

    def __init__(
        self,
        client: "Redis",
        *,
        namespace: str = "fx-fred:exchangeRates",
        ttl_seconds: int = 86400,
    ) -> None:
        self.client = client
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisRateCache":
        import redis

        return cls(redis.Redis.from_url(url), **kwargs)

    def _key(self, key: str) -> str:
        return f"{self.namespace}::{key}"

    def get(self, key: str) -> list[RateRecord] | None:
        raw = self.client.get(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return [RateRecord.from_dict(item) for item in json.loads(raw)]

    def put(self, key: str, records: Sequence[RateRecord]) -> None:
        payload = json.dumps([record.as_dict() for record in records])
        if self.ttl_seconds > 0:
            self.client.set(self._key(key), payload, ex=self.ttl_seconds)
        else:
            self.client.set(self._key(key), payload)

    def evict_all(self) -> None:
        deleted = 0
        batch: list = []
        for redis_key in self.client.scan_iter(match=f"{self.namespace}::*", count=500):
            batch.append(redis_key)
            if len(batch) >= 500:
                deleted += self.client.delete(*batch)
                batch.clear()
        if batch:
            deleted += self.client.delete(*batch)
        LOGGER.info("Evicted %d cached exchange rate queries from %s", deleted, self.namespace)


__all__ = ["InMemoryRateCache", "RateCache", "RedisRateCache", "rate_cache_key"]
