"""Delayed task facility used for retries and the daily trigger."""

from __future__ import annotations

import threading
from typing import Callable, Protocol

from fx_fred.utils.logger import get_logger

LOGGER = get_logger(__name__)


class TaskHandle(Protocol):
    def cancel(self) -> None: ...  # pragma: no cover - protocol definition


class TaskScheduler(Protocol):
    def schedule(self, fn: Callable[[], None], delay_seconds: float) -> TaskHandle: ...  # pragma: no cover - protocol definition

    def cancel_all(self) -> None: ...  # pragma: no cover - protocol definition

    def shutdown(self) -> None: ...  # pragma: no cover - protocol definition


class ThreadingTaskScheduler:
    """Runs each task on a daemon :class:`threading.Timer`; ``schedule`` never blocks."""

    def __init__(self) -> None:
        self._timers: set[threading.Timer] = set()
        self._lock = threading.Lock()
        self._closed = False

    def schedule(self, fn: Callable[[], None], delay_seconds: float) -> threading.Timer:
        timer: threading.Timer

        def _run() -> None:
            with self._lock:
                self._timers.discard(timer)
            fn()

        timer = threading.Timer(max(delay_seconds, 0.0), _run)
        timer.daemon = True
        with self._lock:
            if self._closed:
                raise RuntimeError("Task scheduler has been shut down")
            self._timers.add(timer)
        timer.start()
        LOGGER.debug("Scheduled %s in %.1fs", getattr(fn, "__name__", fn), delay_seconds)
        return timer

    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    def cancel_all(self) -> None:
        """Cancel every task that has not started yet; later tasks are still accepted."""

        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    def shutdown(self) -> None:
        """Cancel pending tasks and refuse new ones for good."""

        with self._lock:
            self._closed = True
        self.cancel_all()


__all__ = ["TaskHandle", "TaskScheduler", "ThreadingTaskScheduler"]
