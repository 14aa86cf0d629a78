"""Public interface for the fx_fred package."""

from __future__ import annotations

from datetime import date
from importlib import metadata as importlib_metadata
from typing import TYPE_CHECKING, Any

from fx_fred.cache import InMemoryRateCache, RateCache, RedisRateCache
from fx_fred.config import (
    CacheBackend,
    DatabaseBackend,
    DatabaseConnectionInfo,
    LockBackend,
    Settings,
)
from fx_fred.db.database import Database
from fx_fred.errors import BatchImportError, FxFredError
from fx_fred.ingestion.fred_client import FredClient
from fx_fred.ingestion.provider import ExchangeRateProvider, FredExchangeRateProvider
from fx_fred.metrics import ImportMetrics
from fx_fred.models import CurrencySeries, ImportResult, RateRecord
from fx_fred.scheduling.coordinator import AttemptReport, ImportCoordinator
from fx_fred.scheduling.lock import DatabaseLockProvider, LockProvider, RedisLockProvider
from fx_fred.scheduling.tasks import TaskScheduler, ThreadingTaskScheduler
from fx_fred.seeds.default_series import seed_default_series
from fx_fred.services.currency import CurrencyService
from fx_fred.services.importer import ExchangeRateImportService
from fx_fred.services.rates import ExchangeRateService
from fx_fred.utils.date_range import parse_date
from fx_fred.utils.logger import get_logger

if TYPE_CHECKING:  # pragma: no cover - import only for static analyzers
    from prometheus_client import CollectorRegistry
    from redis import Redis

__all__ = [
    "__version__",
    "CurrencySeries",
    "DatabaseBackend",
    "DatabaseConnectionInfo",
    "FxFred",
    "FxFredError",
    "ImportResult",
    "RateRecord",
    "Settings",
]

try:
    __version__ = importlib_metadata.version("fx-fred")
except importlib_metadata.PackageNotFoundError:  # pragma: no cover - fallback for local runs
    __version__ = "0.1.0"

LOGGER = get_logger(__name__)


class FxFred:
    """Package facade wiring storage, provider, cache, lock and scheduler.

    With no arguments the facade reads ``FXFRED_*`` environment variables and
    falls back to the package-local SQLite file and an in-process cache. Any
    collaborator can be injected instead, which is how the tests drive it.
    """

    __version__ = __version__

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        db_url: str | None = None,
        provider: ExchangeRateProvider | None = None,
        cache: RateCache | None = None,
        lock_provider: LockProvider | None = None,
        task_scheduler: TaskScheduler | None = None,
        redis_client: "Redis | None" = None,
        registry: "CollectorRegistry | None" = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        if db_url is not None:
            self.settings.database = DatabaseConnectionInfo.from_url(db_url)
        self._redis = redis_client
        self.database = Database(self.settings.database)
        self.database.ensure_schema()

        self.provider = provider or FredExchangeRateProvider(FredClient(self.settings.fred))
        self.cache = cache if cache is not None else self._build_cache()
        self.lock_provider = lock_provider or self._build_lock_provider()

        self.rates = ExchangeRateService(self.database, self.cache)
        self.importer = ExchangeRateImportService(self.database, self.provider)
        self.currencies = CurrencyService(self.database, self.provider)
        self.coordinator = ImportCoordinator(
            self.importer,
            self.lock_provider,
            task_scheduler or ThreadingTaskScheduler(),
            cache=self.cache,
            metrics=ImportMetrics.for_registry(registry),
            retry=self.settings.retry,
            lock=self.settings.lock,
            schedule=self.settings.schedule,
        )

    def _redis_client(self) -> "Redis":
        if self._redis is None:
            url = self.settings.cache.redis_url or self.settings.redis_url
            if not url:
                raise ValueError("A Redis URL is required for the redis cache or lock backend")
            import redis

            self._redis = redis.Redis.from_url(url)
        return self._redis

    def _build_cache(self) -> RateCache:
        cache_settings = self.settings.cache
        if cache_settings.backend is CacheBackend.REDIS:
            return RedisRateCache(
                self._redis_client(),
                namespace=cache_settings.namespace,
                ttl_seconds=cache_settings.ttl_seconds,
            )
        return InMemoryRateCache(
            ttl_seconds=cache_settings.ttl_seconds, max_entries=cache_settings.max_entries
        )

    def _build_lock_provider(self) -> LockProvider:
        if self.settings.lock.backend is LockBackend.REDIS:
            return RedisLockProvider(self._redis_client())
        return DatabaseLockProvider(self.database)

    # Queries ------------------------------------------------------------

    def get_rates(
        self,
        currency: str,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
    ) -> list[RateRecord]:
        """Gap-filled daily rates of ``currency`` per 1 USD."""

        return self.rates.get_rates(currency, parse_date(start_date), parse_date(end_date))

    def rates_as_dicts(
        self,
        currency: str,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
    ) -> list[dict[str, Any]]:
        return [record.as_dict() for record in self.get_rates(currency, start_date, end_date)]

    # Imports ------------------------------------------------------------

    def import_series(self, series_id: int) -> ImportResult:
        """Import one series now; provider errors propagate to the caller."""

        result = self.importer.import_series_by_id(series_id)
        if result.changed:
            self.evict_cache()
        return result

    def import_all_enabled(self) -> list[ImportResult]:
        try:
            results = self.importer.import_all_enabled()
        except BatchImportError as exc:
            self._evict_after_partial_batch(exc)
            raise
        self.evict_cache()
        return results

    def import_missing(self) -> list[ImportResult]:
        try:
            results = self.importer.import_missing()
        except BatchImportError as exc:
            self._evict_after_partial_batch(exc)
            raise
        if results:
            self.evict_cache()
        return results

    def _evict_after_partial_batch(self, exc: BatchImportError) -> None:
        # Series that succeeded committed their rows before the batch failed.
        if any(result.changed for result in exc.results):
            self.evict_cache()

    def run_import_now(self) -> AttemptReport:
        """Manual trigger of the scheduled job: locked, metered and retried."""

        return self.coordinator.run_now()

    def startup(self) -> list[ImportResult]:
        """Backfill series that have never been imported, when configured to."""

        if not self.settings.schedule.import_on_startup:
            LOGGER.info("Startup import disabled")
            return []
        return self.import_missing()

    def start_scheduler(self) -> None:
        self.coordinator.start()

    def stop_scheduler(self) -> None:
        self.coordinator.stop()

    # Series administration ---------------------------------------------

    def create_series(
        self,
        currency_code: str,
        provider_series_id: str,
        *,
        enabled: bool = True,
        import_rates: bool = True,
    ) -> CurrencySeries:
        series = self.currencies.create(currency_code, provider_series_id, enabled=enabled)
        if enabled and import_rates:
            self.import_series(series.id)
        return series

    def set_series_enabled(
        self, series_id: int, enabled: bool, *, import_rates: bool = True
    ) -> CurrencySeries:
        series = self.currencies.set_enabled(series_id, enabled)
        if enabled and import_rates:
            self.import_series(series.id)
        return series

    def get_series(self, series_id: int) -> CurrencySeries:
        return self.currencies.get(series_id)

    def list_series(self, *, enabled_only: bool = False) -> list[CurrencySeries]:
        return self.currencies.list(enabled_only=enabled_only)

    def seed_default_series(self, *, enabled: bool = False) -> int:
        return seed_default_series(self.database, enabled=enabled)

    # Housekeeping -------------------------------------------------------

    def evict_cache(self) -> None:
        if self.cache is not None:
            self.cache.evict_all()

    def close(self) -> None:
        self.coordinator.close()
        self.database.close()

    def __enter__(self) -> "FxFred":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
