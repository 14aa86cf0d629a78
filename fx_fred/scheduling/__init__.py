"""Scheduling: distributed locks, delayed tasks and the import coordinator."""

from __future__ import annotations

from fx_fred.scheduling.coordinator import ImportCoordinator, RunState, decide
from fx_fred.scheduling.lock import DatabaseLockProvider, LockHandle, RedisLockProvider
from fx_fred.scheduling.tasks import ThreadingTaskScheduler

__all__ = [
    "DatabaseLockProvider",
    "ImportCoordinator",
    "LockHandle",
    "RedisLockProvider",
    "RunState",
    "ThreadingTaskScheduler",
    "decide",
]
