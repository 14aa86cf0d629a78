"""Gap-filled exchange rate retrieval."""

from __future__ import annotations

from datetime import date

from fx_fred.cache import RateCache, rate_cache_key
from fx_fred.db.database import Database
from fx_fred.db.repositories import ExchangeRateRepository
from fx_fred.errors import DateOutOfRangeError, NoDataAvailableError, RateValidationError
from fx_fred.models import ExchangeRate, RateRecord
from fx_fred.utils.currency import BASE_CURRENCY, is_well_formed, normalise_code
from fx_fred.utils.date_range import iter_days
from fx_fred.utils.logger import get_logger

LOGGER = get_logger(__name__)


class ExchangeRateService:
    """Serves daily rate series with the last published rate carried over gaps."""

    def __init__(self, database: Database, cache: RateCache | None = None) -> None:
        self.database = database
        self.cache = cache

    def get_rates(
        self,
        currency: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[RateRecord]:
        """Return one record per day between the effective bounds.

        Open bounds default to the first/last stored observation inside the
        window. Days without an observation repeat the most recent earlier
        rate and are flagged ``inferred``.
        """

        code = normalise_code(currency)
        if not is_well_formed(code):
            raise RateValidationError(f"Currency code must be three letters, got {currency!r}")
        if start_date is not None and end_date is not None and start_date > end_date:
            raise RateValidationError("start_date must be on or before end_date")

        key = rate_cache_key(code, start_date, end_date)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                LOGGER.debug("Cache hit for %s", key)
                return cached

        records = self._build_records(code, start_date, end_date)
        if self.cache is not None:
            self.cache.put(key, records)
        return records

    def _build_records(
        self, code: str, start_date: date | None, end_date: date | None
    ) -> list[RateRecord]:
        with self.database.session() as session:
            repository = ExchangeRateRepository(session)
            earliest = repository.find_earliest_date(code)
            if earliest is None:
                raise NoDataAvailableError(code)
            if start_date is not None and start_date < earliest:
                raise DateOutOfRangeError(code, earliest)

            rows = repository.find_range(code, start_date, end_date)
            if not rows:
                return []

            effective_start = start_date or rows[0].date
            effective_end = end_date or rows[-1].date
            cursor: ExchangeRate = rows[0]
            if rows[0].date > effective_start:
                previous = repository.find_most_recent_before(code, effective_start)
                if previous is not None:
                    cursor = previous

        by_date = {row.date: row for row in rows}
        records: list[RateRecord] = []
        for day in iter_days(effective_start, effective_end):
            observed = by_date.get(day)
            if observed is not None:
                cursor = observed
            records.append(
                RateRecord(
                    date=day,
                    rate=cursor.rate,
                    published_date=cursor.date,
                    base_currency=BASE_CURRENCY,
                    target_currency=code,
                )
            )
        return records


__all__ = ["ExchangeRateService"]
