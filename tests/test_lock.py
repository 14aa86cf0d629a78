"""Distributed lock tests."""

from datetime import datetime, timedelta

import fakeredis

from fx_fred.scheduling.lock import DatabaseLockProvider, RedisLockProvider

MAX_HOLD = timedelta(minutes=15)
MIN_HOLD = timedelta(minutes=1)


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def test_database_lock_is_exclusive_until_released(database) -> None:
    clock = FakeClock(datetime(2024, 1, 1, 23, 0))
    provider = DatabaseLockProvider(database, clock=clock)

    handle = provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD)
    assert handle is not None
    assert provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD) is None
    assert provider.try_acquire("otherJob", MAX_HOLD, MIN_HOLD) is not None

    # Released after 10s: still held until the one minute floor has passed.
    clock.advance(seconds=10)
    provider.release(handle)
    assert provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD) is None

    clock.advance(seconds=50)
    assert provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD) is not None


def test_database_lock_expires_after_max_hold(database) -> None:
    clock = FakeClock(datetime(2024, 1, 1, 23, 0))
    provider = DatabaseLockProvider(database, clock=clock)

    stale = provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD)
    clock.advance(minutes=15)
    fresh = provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD)
    assert fresh is not None

    # The crashed holder's late release must not shorten the new lease.
    provider.release(stale)
    clock.advance(minutes=2)
    assert provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD) is None


def test_database_lock_released_after_min_hold_is_free(database) -> None:
    clock = FakeClock(datetime(2024, 1, 1, 23, 0))
    provider = DatabaseLockProvider(database, clock=clock)

    handle = provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD)
    clock.advance(minutes=5)
    provider.release(handle)

    assert provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD) is not None


def test_redis_lock_is_exclusive_and_keeps_min_hold() -> None:
    client = fakeredis.FakeRedis()
    clock = FakeClock(datetime(2024, 1, 1, 23, 0))
    provider = RedisLockProvider(client, clock=clock)

    handle = provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD)
    assert handle is not None
    assert 0 < client.pttl("lock:exchangeRateImport") <= 15 * 60 * 1000
    assert provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD) is None

    clock.advance(seconds=20)
    provider.release(handle)
    assert client.exists("lock:exchangeRateImport")
    assert 0 < client.pttl("lock:exchangeRateImport") <= 40 * 1000


def test_redis_release_after_min_hold_deletes_key() -> None:
    client = fakeredis.FakeRedis()
    clock = FakeClock(datetime(2024, 1, 1, 23, 0))
    provider = RedisLockProvider(client, clock=clock)

    handle = provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD)
    clock.advance(minutes=3)
    provider.release(handle)

    assert not client.exists("lock:exchangeRateImport")
    assert provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD) is not None


def test_redis_release_ignores_foreign_token() -> None:
    client = fakeredis.FakeRedis()
    provider = RedisLockProvider(client)

    handle = provider.try_acquire("exchangeRateImport", MAX_HOLD, MIN_HOLD)
    client.set("lock:exchangeRateImport", "someone-else")
    provider.release(handle)

    assert client.get("lock:exchangeRateImport") == b"someone-else"
