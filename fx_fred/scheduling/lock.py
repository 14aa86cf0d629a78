"""Distributed locks serialising scheduled imports across instances.

A lock expires on its own after ``max_hold`` so a crashed holder cannot block
the fleet, and stays held for at least ``min_hold`` after it was taken so a
fast run on one instance is not immediately repeated by another.
"""

from __future__ import annotations

import socket
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Protocol

from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError

from fx_fred.db.database import Database
from fx_fred.db.schema import SchedulerLockRow, utcnow
from fx_fred.utils.logger import get_logger

if TYPE_CHECKING:  # pragma: no cover - import only for static analyzers
    from redis import Redis

LOGGER = get_logger(__name__)

Clock = Callable[[], datetime]


@dataclass(slots=True, frozen=True)
class LockHandle:
    name: str
    token: str
    locked_at: datetime
    max_hold: timedelta
    min_hold: timedelta


class LockProvider(Protocol):
    def try_acquire(
        self, name: str, max_hold: timedelta, min_hold: timedelta
    ) -> LockHandle | None: ...  # pragma: no cover - protocol definition

    def release(self, handle: LockHandle) -> None: ...  # pragma: no cover - protocol definition


def _new_token() -> str:
    return f"{socket.gethostname()}/{uuid.uuid4().hex}"


class DatabaseLockProvider:
    """Lease row in ``scheduler_lock``; works on any database the store runs on."""

    def __init__(self, database: Database, *, clock: Clock = utcnow) -> None:
        self.database = database
        self.clock = clock
        self._table = SchedulerLockRow.__table__

    def try_acquire(
        self, name: str, max_hold: timedelta, min_hold: timedelta
    ) -> LockHandle | None:
        now = self.clock()
        token = _new_token()
        values = {"lock_until": now + max_hold, "locked_at": now, "locked_by": token}
        try:
            with self.database.engine.begin() as connection:
                connection.execute(insert(self._table).values(name=name, **values))
        except IntegrityError:
            with self.database.engine.begin() as connection:
                taken = connection.execute(
                    update(self._table)
                    .where(self._table.c.name == name, self._table.c.lock_until <= now)
                    .values(**values)
                ).rowcount
            if taken != 1:
                LOGGER.info("Lock %s is held by another instance", name)
                return None
        LOGGER.info("Acquired lock %s until %s", name, values["lock_until"].isoformat())
        return LockHandle(name, token, now, max_hold, min_hold)

    def release(self, handle: LockHandle) -> None:
        lock_until = max(self.clock(), handle.locked_at + handle.min_hold)
        with self.database.engine.begin() as connection:
            connection.execute(
                update(self._table)
                .where(self._table.c.name == handle.name, self._table.c.locked_by == handle.token)
                .values(lock_until=lock_until)
            )
        LOGGER.info("Released lock %s (held until %s)", handle.name, lock_until.isoformat())


class RedisLockProvider:
    """``SET NX PX`` lock keyed ``lock:{name}`` holding a per-acquisition token."""

    def __init__(self, client: "Redis", *, clock: Clock = utcnow) -> None:
        self.client = client
        self.clock = clock

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisLockProvider":
        import redis

        return cls(redis.Redis.from_url(url), **kwargs)

    @staticmethod
    def _lock_key(name: str) -> str:
        return f"lock:{name}"

    def try_acquire(
        self, name: str, max_hold: timedelta, min_hold: timedelta
    ) -> LockHandle | None:
        now = self.clock()
        token = _new_token()
        locked = self.client.set(
            self._lock_key(name), token, nx=True, px=int(max_hold.total_seconds() * 1000)
        )
        if not locked:
            LOGGER.info("Lock %s is held by another instance", name)
            return None
        LOGGER.info("Acquired lock %s", name)
        return LockHandle(name, token, now, max_hold, min_hold)

    def release(self, handle: LockHandle) -> None:
        key = self._lock_key(handle.name)
        current = self.client.get(key)
        if current is None:
            return
        if isinstance(current, bytes):
            current = current.decode("utf-8")
        if current != handle.token:
            LOGGER.warning("Lock %s expired and was taken by another instance", handle.name)
            return
        remaining = handle.locked_at + handle.min_hold - self.clock()
        remaining_ms = int(remaining.total_seconds() * 1000)
        if remaining_ms > 0:
            self.client.pexpire(key, remaining_ms)
        else:
            self.client.delete(key)
        LOGGER.info("Released lock %s", handle.name)


__all__ = ["DatabaseLockProvider", "LockHandle", "LockProvider", "RedisLockProvider"]
