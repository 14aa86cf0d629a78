"""Prometheus instruments for scheduled imports."""

from __future__ import annotations

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"
NO_ERROR = "none"


class ImportMetrics:
    """Instruments for one registry.

    Pass a fresh :class:`CollectorRegistry` in tests so counters start at zero.
    """

    _INSTANCES: "dict[int, ImportMetrics]" = {}

    @classmethod
    def for_registry(cls, registry: CollectorRegistry | None = None) -> "ImportMetrics":
        """Return the instruments bound to ``registry``, registering them once."""

        target = registry if registry is not None else REGISTRY
        instance = cls._INSTANCES.get(id(target))
        if instance is None or instance.registry is not target:
            instance = cls(target)
            cls._INSTANCES[id(target)] = instance
        return instance

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else REGISTRY
        self.duration = Histogram(
            "exchange_rate_import_duration_seconds",
            "Duration of exchange rate import attempts",
            ["status", "attempt", "error"],
            registry=self.registry,
        )
        self.executions = Counter(
            "exchange_rate_import_executions",
            "Exchange rate import attempts by outcome",
            ["status", "attempt", "error"],
            registry=self.registry,
        )
        self.retry_scheduled = Counter(
            "exchange_rate_import_retry_scheduled",
            "Retries scheduled after a failed import attempt",
            ["attempt"],
            registry=self.registry,
        )
        self.exhausted = Counter(
            "exchange_rate_import_exhausted",
            "Scheduled import runs that failed on every attempt",
            registry=self.registry,
        )
        self.lock_skipped = Counter(
            "exchange_rate_import_lock_skipped",
            "Import cycles skipped because another instance held the lock",
            registry=self.registry,
        )

    def record_attempt(
        self, *, success: bool, attempt: int, duration_seconds: float, error: str | None = None
    ) -> None:
        labels = {
            "status": STATUS_SUCCESS if success else STATUS_FAILURE,
            "attempt": str(attempt),
            "error": NO_ERROR if success else (error or "unknown"),
        }
        self.duration.labels(**labels).observe(duration_seconds)
        self.executions.labels(**labels).inc()

    def record_retry_scheduled(self, next_attempt: int) -> None:
        self.retry_scheduled.labels(attempt=str(next_attempt)).inc()

    def record_exhausted(self) -> None:
        self.exhausted.inc()

    def record_lock_skipped(self) -> None:
        self.lock_skipped.inc()


__all__ = ["ImportMetrics", "NO_ERROR", "STATUS_FAILURE", "STATUS_SUCCESS"]
