"""Scheduled import coordinator.

Each run moves through ``Running(attempt)`` until it either completes, is
retried with exponential backoff, or is exhausted after
``RetrySettings.max_attempts`` failures. The transition is computed by the
pure :func:`decide` from the current :class:`RunState` and the attempt's
:class:`AttemptOutcome`; the coordinator only executes the decision.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from functools import partial
from datetime import timedelta
from typing import Callable, Union

from fx_fred.cache import RateCache
from fx_fred.config import LockSettings, RetrySettings, ScheduleSettings
from fx_fred.errors import BatchImportError, error_kind
from fx_fred.metrics import ImportMetrics
from fx_fred.models import ImportResult
from fx_fred.scheduling.lock import LockHandle, LockProvider
from fx_fred.scheduling.tasks import TaskScheduler
from fx_fred.services.importer import ExchangeRateImportService
from fx_fred.utils.date_range import seconds_until
from fx_fred.utils.logger import get_logger

LOGGER = get_logger(__name__)

TRIGGER_SCHEDULED = "scheduled"
TRIGGER_MANUAL = "manual"


@dataclass(slots=True, frozen=True)
class RunState:
    run_id: str
    trigger: str
    attempt: int = 1

    @classmethod
    def start(cls, trigger: str) -> "RunState":
        return cls(run_id=uuid.uuid4().hex[:12], trigger=trigger, attempt=1)

    def next_attempt(self) -> "RunState":
        return replace(self, attempt=self.attempt + 1)


@dataclass(slots=True, frozen=True)
class AttemptOutcome:
    success: bool
    error_kind: str | None = None


@dataclass(slots=True, frozen=True)
class Complete:
    state: RunState


@dataclass(slots=True, frozen=True)
class Retry:
    next_state: RunState
    delay_seconds: float


@dataclass(slots=True, frozen=True)
class Exhausted:
    state: RunState


Decision = Union[Complete, Retry, Exhausted]


def decide(state: RunState, outcome: AttemptOutcome, retry: RetrySettings) -> Decision:
    """Next step after an attempt; delay is ``initial * multiplier^(attempt-1)``, capped."""

    if outcome.success:
        return Complete(state)
    if state.attempt < retry.max_attempts:
        return Retry(state.next_attempt(), retry.delay_for(state.attempt))
    return Exhausted(state)


@dataclass(slots=True)
class AttemptReport:
    """What happened during one attempt, returned by :meth:`ImportCoordinator.run_now`."""

    state: RunState
    lock_acquired: bool
    success: bool = False
    results: list[ImportResult] = field(default_factory=list)
    error: BaseException | None = None
    error_kind: str | None = None
    duration_seconds: float = 0.0
    decision: Decision | None = None

    @property
    def skipped(self) -> bool:
        return not self.lock_acquired and self.error is None


class ImportCoordinator:
    """Runs ``import_all_enabled`` under a distributed lock with bounded retries.

    Nothing raised during an attempt escapes :meth:`run_scheduled` or
    :meth:`run_now`; failures are metered, logged and turned into a retry or
    an exhaustion event.
    """

    def __init__(
        self,
        importer: ExchangeRateImportService,
        lock_provider: LockProvider,
        task_scheduler: TaskScheduler,
        *,
        cache: RateCache | None = None,
        metrics: ImportMetrics | None = None,
        retry: RetrySettings | None = None,
        lock: LockSettings | None = None,
        schedule: ScheduleSettings | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.importer = importer
        self.lock_provider = lock_provider
        self.task_scheduler = task_scheduler
        self.cache = cache
        self.metrics = metrics or ImportMetrics.for_registry()
        self.retry = retry or RetrySettings()
        self.lock = lock or LockSettings()
        self.schedule = schedule or ScheduleSettings()
        self._timer = timer
        self._running = False
        self._generation = 0
        self._state_lock = threading.Lock()

    # Triggers -----------------------------------------------------------

    def run_scheduled(self) -> None:
        self._attempt(RunState.start(TRIGGER_SCHEDULED))

    def run_now(self) -> AttemptReport:
        """Manual trigger; behaves like the scheduled one and reports the first attempt."""

        return self._attempt(RunState.start(TRIGGER_MANUAL))

    def start(self) -> None:
        """Arm the recurring daily trigger; a stopped coordinator can be started again."""

        with self._state_lock:
            if self._running:
                return
            self._running = True
            self._generation += 1
            generation = self._generation
        try:
            self._arm_daily_trigger(generation)
        except Exception:
            with self._state_lock:
                self._running = False
            raise

    def stop(self) -> None:
        """Cancel the daily trigger and any pending retries."""

        with self._state_lock:
            self._running = False
        self.task_scheduler.cancel_all()
        LOGGER.info("Import coordinator stopped")

    def close(self) -> None:
        self.stop()
        self.task_scheduler.shutdown()

    @property
    def running(self) -> bool:
        return self._running

    def _arm_daily_trigger(self, generation: int) -> None:
        delay = seconds_until(self.schedule.time_of_day)
        LOGGER.info(
            "Next scheduled exchange rate import at %s UTC (in %.0fs)",
            self.schedule.daily_at,
            delay,
        )
        self.task_scheduler.schedule(partial(self._daily_tick, generation), delay)

    def _daily_tick(self, generation: int) -> None:
        try:
            self.run_scheduled()
        finally:
            # A tick left over from before a stop/start must not arm a second trigger.
            if self._running and generation == self._generation:
                self._arm_daily_trigger(generation)

    # Attempt ------------------------------------------------------------

    def _attempt(self, state: RunState) -> AttemptReport:
        LOGGER.info(
            "Exchange rate import run %s (%s) attempt %d/%d",
            state.run_id,
            state.trigger,
            state.attempt,
            self.retry.max_attempts,
        )
        started = self._timer()
        try:
            handle = self.lock_provider.try_acquire(
                self.lock.name,
                timedelta(seconds=self.lock.max_hold_seconds),
                timedelta(seconds=self.lock.min_hold_seconds),
            )
        except Exception as exc:
            LOGGER.exception("Could not acquire lock %s", self.lock.name)
            report = AttemptReport(state, lock_acquired=False, error=exc, error_kind=error_kind(exc))
            return self._finish(report, started)

        if handle is None:
            LOGGER.info("Import run %s skipped: lock %s held elsewhere", state.run_id, self.lock.name)
            self.metrics.record_lock_skipped()
            return AttemptReport(state, lock_acquired=False)

        report = AttemptReport(state, lock_acquired=True)
        try:
            report.results = self.importer.import_all_enabled()
            report.success = True
        except Exception as exc:
            report.error = exc
            report.error_kind = error_kind(exc)
            if isinstance(exc, BatchImportError):
                report.results = exc.results
        finally:
            self._release(handle)
        self._evict_cache(report)
        return self._finish(report, started)

    def _release(self, handle: LockHandle) -> None:
        try:
            self.lock_provider.release(handle)
        except Exception:
            LOGGER.exception("Failed to release lock %s", handle.name)

    def _evict_cache(self, report: AttemptReport) -> None:
        if self.cache is None:
            return
        # A partially failed batch still committed rows for the series that succeeded.
        if report.success or any(result.changed for result in report.results):
            try:
                self.cache.evict_all()
            except Exception:
                LOGGER.exception("Failed to evict exchange rate cache")

    def _finish(self, report: AttemptReport, started: float) -> AttemptReport:
        state = report.state
        report.duration_seconds = self._timer() - started
        self.metrics.record_attempt(
            success=report.success,
            attempt=state.attempt,
            duration_seconds=report.duration_seconds,
            error=report.error_kind,
        )
        if report.success:
            LOGGER.info(
                "Import run %s succeeded on attempt %d in %.2fs (%d series)",
                state.run_id,
                state.attempt,
                report.duration_seconds,
                len(report.results),
            )
        decision = decide(
            state, AttemptOutcome(report.success, report.error_kind), self.retry
        )
        report.decision = decision
        if isinstance(decision, Retry):
            LOGGER.warning(
                "Import run %s attempt %d failed (%s: %s); retrying in %.0fs as attempt %d",
                state.run_id,
                state.attempt,
                report.error_kind,
                report.error,
                decision.delay_seconds,
                decision.next_state.attempt,
            )
            self._schedule_retry(decision)
        elif isinstance(decision, Exhausted):
            LOGGER.error(
                "Import run %s failed after %d attempts (%s: %s); giving up until the next cycle",
                state.run_id,
                state.attempt,
                report.error_kind,
                report.error,
            )
            self.metrics.record_exhausted()
        return report

    def _schedule_retry(self, decision: Retry) -> None:
        next_state = decision.next_state
        try:
            self.task_scheduler.schedule(lambda: self._attempt(next_state), decision.delay_seconds)
        except RuntimeError:
            LOGGER.warning("Retry for run %s not scheduled: scheduler stopped", next_state.run_id)
            return
        self.metrics.record_retry_scheduled(next_state.attempt)


__all__ = [
    "AttemptOutcome",
    "AttemptReport",
    "Complete",
    "Decision",
    "Exhausted",
    "ImportCoordinator",
    "Retry",
    "RunState",
    "decide",
]
