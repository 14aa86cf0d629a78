"""FRED H.10 daily exchange rate series shipped with fx_fred.

All entries are seeded disabled; enable the currencies you need with
``fx-fred series enable <id>``.
"""

from __future__ import annotations

from typing import Final

from fx_fred.db.database import Database
from fx_fred.db.repositories import CurrencySeriesRepository
from fx_fred.utils.logger import get_logger

LOGGER = get_logger(__name__)

DEFAULT_SERIES: Final[tuple[tuple[str, str], ...]] = (
    ("AUD", "DEXUSAL"),
    ("BRL", "DEXBZUS"),
    ("CAD", "DEXCAUS"),
    ("CHF", "DEXSZUS"),
    ("CNY", "DEXCHUS"),
    ("DKK", "DEXDNUS"),
    ("EUR", "DEXUSEU"),
    ("GBP", "DEXUSUK"),
    ("HKD", "DEXHKUS"),
    ("INR", "DEXINUS"),
    ("JPY", "DEXJPUS"),
    ("KRW", "DEXKOUS"),
    ("LKR", "DEXSLUS"),
    ("MXN", "DEXMXUS"),
    ("MYR", "DEXMAUS"),
    ("NOK", "DEXNOUS"),
    ("NZD", "DEXUSNZ"),
    ("SEK", "DEXSDUS"),
    ("SGD", "DEXSIUS"),
    ("THB", "DEXTHUS"),
    ("TWD", "DEXTAUS"),
    ("VEF", "DEXVZUS"),
    ("ZAR", "DEXSFUS"),
)


def seed_default_series(database: Database, *, enabled: bool = False) -> int:
    """Insert the default series that are not present yet; returns how many were added."""

    with database.session() as session:
        repository = CurrencySeriesRepository(session)
        existing = repository.existing_codes()
        missing = [
            (code, series_id, enabled) for code, series_id in DEFAULT_SERIES if code not in existing
        ]
        added = repository.add_all(missing) if missing else 0
    LOGGER.info("Seeded %d default currency series (%d already present)", added, len(existing))
    return added


__all__ = ["DEFAULT_SERIES", "seed_default_series"]
