"""Exchange rate provider backed by FRED daily ``DEX*`` series."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal, InvalidOperation

from fx_fred.errors import ProviderError
from fx_fred.ingestion.fred_client import FredClient
from fx_fred.models import CurrencySeries
from fx_fred.utils.logger import get_logger

LOGGER = get_logger(__name__)

# FRED publishes "." for days without an observation (holidays).
MISSING_VALUE = "."


class ExchangeRateProvider(ABC):
    """Capability consumed by the import engine and series administration."""

    @abstractmethod
    def validate_series_exists(self, provider_series_id: str) -> bool:
        """Return True when the provider knows ``provider_series_id``."""

    @abstractmethod
    def fetch_observations(
        self, series: CurrencySeries, since: date | None = None
    ) -> dict[date, Decimal]:
        """Return observations for ``series`` on or after ``since``."""


class FredExchangeRateProvider(ExchangeRateProvider):
    def __init__(self, client: FredClient) -> None:
        self.client = client

    def validate_series_exists(self, provider_series_id: str) -> bool:
        return self.client.series_exists(provider_series_id)

    def fetch_observations(
        self, series: CurrencySeries, since: date | None = None
    ) -> dict[date, Decimal]:
        LOGGER.info(
            "Fetching %s observations for %s from %s",
            series.provider_series_id,
            series.currency_code,
            since.isoformat() if since else "the beginning",
        )
        payload = self.client.get_series_observations(series.provider_series_id, since)
        observations = payload.get("observations")
        if observations is None:
            raise ProviderError(
                f"FRED payload for {series.provider_series_id} has no observations",
                kind="parse_error",
            )
        rates: dict[date, Decimal] = {}
        skipped = 0
        for item in observations:
            value = str(item.get("value", MISSING_VALUE)).strip()
            if value == MISSING_VALUE or not value:
                skipped += 1
                continue
            try:
                observed_on = date.fromisoformat(str(item["date"]))
                rates[observed_on] = Decimal(value)
            except (KeyError, ValueError, InvalidOperation):
                LOGGER.warning(
                    "Ignoring unparsable observation %r for %s", item, series.provider_series_id
                )
                skipped += 1
        LOGGER.info(
            "Fetched %d observations for %s (%d missing values dropped)",
            len(rates),
            series.currency_code,
            skipped,
        )
        return rates


__all__ = ["ExchangeRateProvider", "FredExchangeRateProvider", "MISSING_VALUE"]
