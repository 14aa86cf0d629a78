"""Runtime configuration for fx_fred.

Every section is a small dataclass with sensible defaults so the package works
against the bundled SQLite file with nothing but a FRED API key. Values can be
overridden in code or read from ``FXFRED_*`` environment variables through
:meth:`Settings.from_env`.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from datetime import time
from enum import Enum
from typing import Mapping
from urllib.parse import parse_qsl, quote, urlencode, urlparse, urlunparse

from fx_fred.db import DEFAULT_SQLITE_DB_PATH
from fx_fred.utils.date_range import parse_time_of_day

DEFAULT_FRED_BASE_URL = "https://api.stlouisfed.org/fred"
DEFAULT_LOCK_NAME = "exchangeRateImport"
DEFAULT_CACHE_NAMESPACE = "fx-fred:exchangeRates"


class DatabaseBackend(str, Enum):
    """Relational engines the observation store can run on."""

    SQLITE = "sqlite"
    MYSQL = "mysql"
    POSTGRES = "postgres"

    @classmethod
    def resolve_backend_and_scheme(cls, scheme: str) -> tuple["DatabaseBackend", str]:
        """Return backend enum + canonical scheme used in connection URLs."""

        if not scheme:
            raise ValueError("DB_URL must include a scheme (e.g. sqlite:// or postgres://)")
        scheme_lower = scheme.lower()
        base_scheme, _, driver = scheme_lower.partition("+")
        if base_scheme in {"postgresql", "postgres"}:
            # Keep driver hints such as ``postgresql+psycopg``.
            return cls.POSTGRES, f"postgresql+{driver}" if driver else "postgresql"
        if base_scheme == "sqlite":
            return cls.SQLITE, "sqlite"
        if base_scheme == "mysql":
            return cls.MYSQL, scheme_lower if driver else "mysql"
        raise ValueError(
            "Unsupported database backend. Supported values are SQLite, MySQL and Postgres."
        )

    @classmethod
    def from_scheme(cls, scheme: str) -> "DatabaseBackend":
        backend, _ = cls.resolve_backend_and_scheme(scheme)
        return backend


@dataclass(slots=True)
class DatabaseConnectionInfo:
    """Represents how fx_fred should talk to the observation store."""

    backend: DatabaseBackend
    url: str
    name: str | None = None
    username: str | None = None
    password: str | None = None
    host: str | None = None
    port: int | None = None

    @classmethod
    def from_url(cls, url: str) -> "DatabaseConnectionInfo":
        """Create a connection object by parsing a database URL/DSN."""

        scheme, separator, remainder = url.partition("://")
        if not separator or not scheme:
            raise ValueError("DB_URL must include a scheme (e.g. sqlite:// or postgres://)")
        backend, canonical_scheme = DatabaseBackend.resolve_backend_and_scheme(scheme)
        if backend is DatabaseBackend.SQLITE:
            # Left untouched: urlunparse would collapse the "////abs/path" form.
            path = remainder.split("?", 1)[0]
            resolved_name = path[1:] if path.startswith("/") else path
            return cls(backend=backend, url=url, name=resolved_name or None)

        cleaned_url, query_db_name = cls._normalise_database_name_parameter(url)
        parsed = urlparse(cleaned_url)
        if parsed.scheme != canonical_scheme:
            parsed = parsed._replace(scheme=canonical_scheme)
            cleaned_url = urlunparse(parsed)
        resolved_name = parsed.path[1:] if parsed.path and parsed.path != "/" else None
        return cls(
            backend=backend,
            url=cleaned_url,
            name=resolved_name or query_db_name,
            username=parsed.username,
            password=parsed.password,
            host=parsed.hostname,
            port=parsed.port,
        )

    @classmethod
    def default_sqlite(cls) -> "DatabaseConnectionInfo":
        """Connection info for the package-local SQLite file."""

        return cls(
            backend=DatabaseBackend.SQLITE,
            url=f"sqlite:///{quote(DEFAULT_SQLITE_DB_PATH.as_posix(), safe='/:')}",
            name=str(DEFAULT_SQLITE_DB_PATH),
        )

    @staticmethod
    def _normalise_database_name_parameter(url: str) -> tuple[str, str | None]:
        """Support a ``DATABASE_NAME`` query parameter in place of a URL path."""

        patched_url = re.sub(r"(?i)(?<![?&])DATABASE_NAME=", "&DATABASE_NAME=", url)
        parsed = urlparse(patched_url)
        remaining_pairs: list[tuple[str, str]] = []
        database_name: str | None = None
        for key, value in parse_qsl(parsed.query, keep_blank_values=True):
            if key.lower() == "database_name":
                database_name = value or database_name
                continue
            remaining_pairs.append((key, value))
        new_path = parsed.path
        if (not new_path or new_path == "/") and database_name:
            new_path = f"/{database_name}"
        cleaned = parsed._replace(query=urlencode(remaining_pairs, doseq=True), path=new_path)
        return urlunparse(cleaned), database_name

    @property
    def is_sqlite(self) -> bool:
        return self.backend is DatabaseBackend.SQLITE

    @property
    def safe_url(self) -> str:
        """The URL with any password masked, suitable for logs."""

        if not self.password:
            return self.url
        return self.url.replace(f":{self.password}@", ":***@", 1)


def _require_range(name: str, value: float, low: float, high: float | None = None) -> None:
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f">= {low}"
        raise ValueError(f"{name} must be {bound}, got {value}")


@dataclass(slots=True)
class FredSettings:
    """Connection settings for the FRED API."""

    api_key: str | None = None
    base_url: str = DEFAULT_FRED_BASE_URL
    timeout_seconds: int = 30

    def __post_init__(self) -> None:
        _require_range("fred.timeout_seconds", self.timeout_seconds, 1, 120)
        self.base_url = self.base_url.rstrip("/")


@dataclass(slots=True)
class RetrySettings:
    """Bounded exponential backoff used by the import coordinator."""

    max_attempts: int = 3
    initial_delay_seconds: float = 300.0
    multiplier: float = 2.0
    max_delay_seconds: float | None = None

    def __post_init__(self) -> None:
        _require_range("retry.max_attempts", self.max_attempts, 1, 10)
        _require_range("retry.initial_delay_seconds", self.initial_delay_seconds, 0)
        _require_range("retry.multiplier", self.multiplier, 1)
        if self.max_delay_seconds is not None:
            _require_range(
                "retry.max_delay_seconds", self.max_delay_seconds, self.initial_delay_seconds
            )

    def delay_for(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (1-based)."""

        delay = self.initial_delay_seconds * self.multiplier ** (attempt - 1)
        if self.max_delay_seconds is None:
            return delay
        return min(delay, self.max_delay_seconds)


class LockBackend(str, Enum):
    DATABASE = "database"
    REDIS = "redis"


@dataclass(slots=True)
class LockSettings:
    """Distributed lock guarding scheduled imports across instances."""

    name: str = DEFAULT_LOCK_NAME
    max_hold_seconds: float = 900.0
    min_hold_seconds: float = 60.0
    backend: LockBackend = LockBackend.DATABASE

    def __post_init__(self) -> None:
        self.backend = LockBackend(self.backend)
        _require_range("lock.min_hold_seconds", self.min_hold_seconds, 0)
        _require_range("lock.max_hold_seconds", self.max_hold_seconds, max(self.min_hold_seconds, 1))


class CacheBackend(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"


@dataclass(slots=True)
class CacheSettings:
    """Where query results are cached and for how long (``0`` disables expiry)."""

    backend: CacheBackend = CacheBackend.MEMORY
    redis_url: str | None = None
    ttl_seconds: int = 86400
    namespace: str = DEFAULT_CACHE_NAMESPACE
    max_entries: int = 1024

    def __post_init__(self) -> None:
        self.backend = CacheBackend(self.backend)
        _require_range("cache.ttl_seconds", self.ttl_seconds, 0)
        _require_range("cache.max_entries", self.max_entries, 1)


@dataclass(slots=True)
class ScheduleSettings:
    """Daily trigger time (UTC) and whether to backfill at startup."""

    daily_at: str = "23:00"
    import_on_startup: bool = True

    def __post_init__(self) -> None:
        parse_time_of_day(self.daily_at)

    @property
    def time_of_day(self) -> time:
        return parse_time_of_day(self.daily_at)


@dataclass(slots=True)
class Settings:
    """Aggregated configuration consumed by :class:`fx_fred.FxFred`."""

    database: DatabaseConnectionInfo = field(default_factory=DatabaseConnectionInfo.default_sqlite)
    fred: FredSettings = field(default_factory=FredSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    lock: LockSettings = field(default_factory=LockSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    schedule: ScheduleSettings = field(default_factory=ScheduleSettings)
    redis_url: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``FXFRED_*`` variables, falling back to defaults."""

        env = os.environ if environ is None else environ

        def _get(key: str) -> str | None:
            value = env.get(f"FXFRED_{key}")
            return value.strip() if value is not None and value.strip() else None

        db_url = _get("DB_URL")
        redis_url = _get("REDIS_URL")
        fred = FredSettings(
            api_key=_get("FRED_API_KEY"),
            base_url=_get("FRED_BASE_URL") or DEFAULT_FRED_BASE_URL,
            timeout_seconds=_int(_get("FRED_TIMEOUT"), 30),
        )
        retry = RetrySettings(
            max_attempts=_int(_get("RETRY_MAX_ATTEMPTS"), 3),
            initial_delay_seconds=_float(_get("RETRY_INITIAL_DELAY"), 300.0),
            multiplier=_float(_get("RETRY_MULTIPLIER"), 2.0),
            max_delay_seconds=_optional_float(_get("RETRY_MAX_DELAY")),
        )
        lock = LockSettings(
            backend=LockBackend((_get("LOCK_BACKEND") or LockBackend.DATABASE.value).lower()),
            max_hold_seconds=_float(_get("LOCK_MAX_HOLD"), 900.0),
            min_hold_seconds=_float(_get("LOCK_MIN_HOLD"), 60.0),
        )
        cache = CacheSettings(
            backend=CacheBackend((_get("CACHE_BACKEND") or CacheBackend.MEMORY.value).lower()),
            redis_url=redis_url,
            ttl_seconds=_int(_get("CACHE_TTL"), 86400),
        )
        schedule = ScheduleSettings(
            daily_at=_get("DAILY_AT") or "23:00",
            import_on_startup=_bool(_get("IMPORT_ON_STARTUP"), True),
        )
        return cls(
            database=(
                DatabaseConnectionInfo.from_url(db_url)
                if db_url
                else DatabaseConnectionInfo.default_sqlite()
            ),
            fred=fred,
            retry=retry,
            lock=lock,
            cache=cache,
            schedule=schedule,
            redis_url=redis_url,
        )


def _int(value: str | None, default: int) -> int:
    return default if value is None else int(value)


def _float(value: str | None, default: float) -> float:
    return default if value is None else float(value)


def _optional_float(value: str | None) -> float | None:
    return None if value is None else float(value)


def _bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Expected a boolean value, got {value!r}")


__all__ = [
    "CacheBackend",
    "CacheSettings",
    "DatabaseBackend",
    "DatabaseConnectionInfo",
    "FredSettings",
    "LockBackend",
    "LockSettings",
    "RetrySettings",
    "ScheduleSettings",
    "Settings",
]
