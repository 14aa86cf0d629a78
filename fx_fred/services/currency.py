"""Administration of tracked currency series."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from fx_fred.db.database import Database
from fx_fred.db.repositories import CurrencySeriesRepository
from fx_fred.errors import (
    DuplicateSeriesError,
    InvalidCurrencyCodeError,
    InvalidProviderSeriesError,
    ProviderError,
    ProviderUnavailableError,
    SeriesNotFoundError,
)
from fx_fred.ingestion.provider import ExchangeRateProvider
from fx_fred.models import CurrencySeries
from fx_fred.utils.currency import is_iso_4217, is_well_formed, normalise_code
from fx_fred.utils.logger import get_logger

LOGGER = get_logger(__name__)


class CurrencyService:
    def __init__(self, database: Database, provider: ExchangeRateProvider) -> None:
        self.database = database
        self.provider = provider

    def create(
        self, currency_code: str, provider_series_id: str, *, enabled: bool = True
    ) -> CurrencySeries:
        """Register a new series after validating the code and the provider id."""

        code = normalise_code(currency_code)
        if not is_well_formed(code) or not is_iso_4217(code):
            raise InvalidCurrencyCodeError(f"Invalid ISO 4217 currency code: {currency_code}")
        series_id = (provider_series_id or "").strip()
        if not series_id:
            raise InvalidProviderSeriesError("Provider series id must not be empty")

        with self.database.session() as session:
            if CurrencySeriesRepository(session).find_by_code(code) is not None:
                raise DuplicateSeriesError(f"Currency code {code} already exists")

        try:
            exists = self.provider.validate_series_exists(series_id)
        except ProviderError as exc:
            raise ProviderUnavailableError(
                f"Could not validate provider series {series_id}: {exc}"
            ) from exc
        if not exists:
            raise InvalidProviderSeriesError(f"Provider series {series_id} does not exist")

        try:
            with self.database.session() as session:
                created = CurrencySeriesRepository(session).add(code, series_id, enabled=enabled)
        except IntegrityError as exc:
            raise DuplicateSeriesError(
                f"Currency code {code} or series {series_id} already exists"
            ) from exc
        LOGGER.info("Created currency series %s (%s)", code, series_id)
        return created

    def get(self, series_id: int) -> CurrencySeries:
        with self.database.session() as session:
            series = CurrencySeriesRepository(session).find_by_id(series_id)
        if series is None:
            raise SeriesNotFoundError(f"Currency series not found with id: {series_id}")
        return series

    def list(self, *, enabled_only: bool = False) -> list[CurrencySeries]:
        with self.database.session() as session:
            repository = CurrencySeriesRepository(session)
            return repository.find_enabled() if enabled_only else repository.find_all()

    def set_enabled(self, series_id: int, enabled: bool) -> CurrencySeries:
        """Enable or disable a series; code and provider id stay immutable."""

        with self.database.session() as session:
            series = CurrencySeriesRepository(session).set_enabled(series_id, enabled)
        if series is None:
            raise SeriesNotFoundError(f"Currency series not found with id: {series_id}")
        LOGGER.info(
            "Currency series %s %s", series.currency_code, "enabled" if enabled else "disabled"
        )
        return series


__all__ = ["CurrencyService"]
