"""Import reconciliation: merge provider observations into the store."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable

from fx_fred.db.database import Database
from fx_fred.db.repositories import CurrencySeriesRepository, ExchangeRateRepository
from fx_fred.errors import BatchImportError, FxFredError, ImportFailedError, SeriesNotFoundError
from fx_fred.ingestion.provider import ExchangeRateProvider
from fx_fred.models import CurrencySeries, ExchangeRate, ImportResult
from fx_fred.utils.currency import BASE_CURRENCY
from fx_fred.utils.logger import get_logger

LOGGER = get_logger(__name__)

# Matches the NUMERIC(38, 4) rate column.
RATE_QUANTUM = Decimal("0.0001")


def normalise_rate(value: Decimal) -> Decimal:
    return Decimal(value).quantize(RATE_QUANTUM)


class ExchangeRateImportService:
    """Keeps stored observations in sync with the provider, one series at a time."""

    def __init__(
        self,
        database: Database,
        provider: ExchangeRateProvider,
        *,
        base_currency: str = BASE_CURRENCY,
    ) -> None:
        self.database = database
        self.provider = provider
        self.base_currency = base_currency

    def import_series(self, series: CurrencySeries) -> ImportResult:
        """Fetch everything after the latest stored date and reconcile it.

        :class:`FxFredError` subclasses propagate as-is; anything else is
        wrapped in :class:`ImportFailedError`.
        """

        try:
            return self._import_series(series)
        except FxFredError:
            raise
        except Exception as exc:
            raise ImportFailedError(series.currency_code, str(exc)) from exc

    def _import_series(self, series: CurrencySeries) -> ImportResult:
        start_date = self.determine_start_date(series)
        observations = self.provider.fetch_observations(series, start_date)
        if not observations:
            LOGGER.warning(
                "No new observations for %s (%s) since %s",
                series.currency_code,
                series.provider_series_id,
                start_date.isoformat() if start_date else "the beginning",
            )
            return ImportResult(series.currency_code, series.provider_series_id)

        rates = [self._build_rate(series, day, value) for day, value in sorted(observations.items())]
        with self.database.session() as session:
            repository = ExchangeRateRepository(session, base_currency=self.base_currency)
            if repository.find_most_recent_date(series) is None:
                result = self._initial_import(series, repository, rates)
            else:
                result = self._reconcile(series, repository, rates)

        result.earliest_exchange_rate_date = rates[0].date
        result.latest_exchange_rate_date = rates[-1].date
        LOGGER.info(
            "Imported %s: %d new, %d updated, %d skipped (%s to %s)",
            series.currency_code,
            result.new_records,
            result.updated_records,
            result.skipped_records,
            result.earliest_exchange_rate_date,
            result.latest_exchange_rate_date,
        )
        return result

    def determine_start_date(self, series: CurrencySeries) -> date | None:
        """Day after the newest stored observation, or ``None`` to fetch everything."""

        with self.database.session() as session:
            most_recent = ExchangeRateRepository(session).find_most_recent_date(series)
        if most_recent is None:
            LOGGER.info("No stored rates for %s, importing full history", series.currency_code)
            return None
        start = most_recent + timedelta(days=1)
        LOGGER.info("Importing %s from %s", series.currency_code, start.isoformat())
        return start

    def _build_rate(self, series: CurrencySeries, day: date, value: Decimal) -> ExchangeRate:
        return ExchangeRate(
            currency_series_id=series.id,
            base_currency=self.base_currency,
            target_currency=series.currency_code,
            date=day,
            rate=normalise_rate(value),
        )

    @staticmethod
    def _initial_import(
        series: CurrencySeries, repository: ExchangeRateRepository, rates: list[ExchangeRate]
    ) -> ImportResult:
        saved = repository.save_all(rates)
        return ImportResult(series.currency_code, series.provider_series_id, new_records=saved)

    def _reconcile(
        self,
        series: CurrencySeries,
        repository: ExchangeRateRepository,
        rates: list[ExchangeRate],
    ) -> ImportResult:
        result = ImportResult(series.currency_code, series.provider_series_id)
        for rate in rates:
            existing = repository.find_row(self.base_currency, series.currency_code, rate.date)
            if existing is None:
                repository.save_row(rate)
                result.new_records += 1
            elif normalise_rate(existing.rate) != rate.rate:
                LOGGER.warning(
                    "Rate for %s on %s changed upstream from %s to %s; rates are not expected "
                    "to change once published",
                    series.currency_code,
                    rate.date.isoformat(),
                    existing.rate,
                    rate.rate,
                )
                existing.rate = rate.rate
                repository.save_row(existing)
                result.updated_records += 1
            else:
                result.skipped_records += 1
        return result

    def import_many(self, series_list: Iterable[CurrencySeries]) -> list[ImportResult]:
        """Import each series in order, continuing past failures.

        Raises :class:`BatchImportError` after the loop when any series failed.
        """

        results: list[ImportResult] = []
        failures: list[tuple[str, BaseException]] = []
        for series in series_list:
            try:
                results.append(self.import_series(series))
            except FxFredError as exc:
                LOGGER.error("Import failed for %s: %s", series.currency_code, exc)
                failures.append((series.currency_code, exc))
        total_new = sum(result.new_records for result in results)
        total_updated = sum(result.updated_records for result in results)
        LOGGER.info(
            "Batch import finished: %d series succeeded, %d failed, %d new, %d updated",
            len(results),
            len(failures),
            total_new,
            total_updated,
        )
        if failures:
            raise BatchImportError(results, failures)
        return results

    def import_all_enabled(self) -> list[ImportResult]:
        with self.database.session() as session:
            enabled = CurrencySeriesRepository(session).find_enabled()
        if not enabled:
            LOGGER.info("No enabled currency series to import")
        return self.import_many(enabled)

    def import_missing(self) -> list[ImportResult]:
        """Import enabled series that have no stored observations yet."""

        with self.database.session() as session:
            rates = ExchangeRateRepository(session, base_currency=self.base_currency)
            missing = [
                series
                for series in CurrencySeriesRepository(session).find_enabled()
                if rates.count_for_series(series) == 0
            ]
        if not missing:
            LOGGER.info("All enabled currency series already have exchange rates")
            return []
        LOGGER.info(
            "Importing missing exchange rates for %s",
            ", ".join(series.currency_code for series in missing),
        )
        return self.import_many(missing)

    def import_series_by_id(self, series_id: int) -> ImportResult:
        with self.database.session() as session:
            series = CurrencySeriesRepository(session).find_by_id(series_id)
        if series is None:
            raise SeriesNotFoundError(f"Currency series not found with id: {series_id}")
        return self.import_series(series)


__all__ = ["ExchangeRateImportService", "RATE_QUANTUM", "normalise_rate"]
