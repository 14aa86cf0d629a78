"""Calendar helpers shared by the query and scheduling code."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator


def parse_date(value: str | date | None) -> date | None:
    """Parse an ISO ``YYYY-MM-DD`` string into :class:`date`.

    ``None`` and empty strings pass through as ``None`` so optional CLI/query
    parameters can be forwarded untouched.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield each day from ``start`` to ``end`` inclusive."""

    current = start
    step = timedelta(days=1)
    while current <= end:
        yield current
        current += step


def format_optional(value: date | None) -> str:
    """Render ``value`` as ISO text, using ``"null"`` for an open bound."""

    return value.isoformat() if value is not None else "null"


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` into a :class:`time`."""

    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except ValueError as exc:
        raise ValueError(f"Expected HH:MM time of day, got {value!r}") from exc


def seconds_until(at: time, *, now: datetime | None = None) -> float:
    """Return seconds from ``now`` (UTC) until the next occurrence of ``at`` (UTC)."""

    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    target = datetime.combine(current.date(), at, tzinfo=timezone.utc)
    if target <= current:
        target += timedelta(days=1)
    return (target - current).total_seconds()


__all__ = [
    "format_optional",
    "iter_days",
    "parse_date",
    "parse_time_of_day",
    "seconds_until",
]
