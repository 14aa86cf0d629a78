"""Shared fixtures: a throwaway SQLite store and an in-memory provider."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Callable

import pytest

from fx_fred.db.database import Database
from fx_fred.db.repositories import CurrencySeriesRepository
from fx_fred.ingestion.provider import ExchangeRateProvider
from fx_fred.models import CurrencySeries


class StubProvider(ExchangeRateProvider):
    """Serves canned observations and records every fetch."""

    def __init__(
        self,
        observations: dict[str, dict[date, Decimal]] | None = None,
        *,
        known: set[str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.observations = observations or {}
        self.known = known if known is not None else set(self.observations)
        self.error = error
        self.calls: list[tuple[str, date | None]] = []

    def validate_series_exists(self, provider_series_id: str) -> bool:
        if self.error is not None:
            raise self.error
        return provider_series_id in self.known

    def fetch_observations(
        self, series: CurrencySeries, since: date | None = None
    ) -> dict[date, Decimal]:
        self.calls.append((series.provider_series_id, since))
        if self.error is not None:
            raise self.error
        data = self.observations.get(series.provider_series_id, {})
        return {day: rate for day, rate in data.items() if since is None or day >= since}


@pytest.fixture
def database(tmp_path: Path) -> Database:
    db = Database(f"sqlite:///{tmp_path / 'fx_fred.db'}")
    db.ensure_schema()
    yield db
    db.close()


@pytest.fixture
def add_series(database: Database) -> Callable[..., CurrencySeries]:
    def _add(code: str = "EUR", series_id: str = "DEXUSEU", enabled: bool = True) -> CurrencySeries:
        with database.session() as session:
            return CurrencySeriesRepository(session).add(code, series_id, enabled=enabled)

    return _add


@pytest.fixture
def stub_provider() -> StubProvider:
    return StubProvider()
