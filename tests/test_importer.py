"""Import reconciliation tests."""

from datetime import date
from decimal import Decimal

import pytest

from fx_fred.db.repositories import ExchangeRateRepository
from fx_fred.errors import (
    BatchImportError,
    ImportFailedError,
    ProviderError,
    SeriesNotFoundError,
)
from fx_fred.services.importer import ExchangeRateImportService

from conftest import StubProvider

PAYLOAD = {
    date(2024, 1, 2): Decimal("1.0956"),
    date(2024, 1, 3): Decimal("1.0919"),
    date(2024, 1, 4): Decimal("1.0953"),
}


def _count(database, series) -> int:
    with database.session() as session:
        return ExchangeRateRepository(session).count_for_series(series)


def test_import_is_idempotent(database, add_series) -> None:
    eur = add_series()
    provider = StubProvider({"DEXUSEU": dict(PAYLOAD)})
    service = ExchangeRateImportService(database, provider)

    first = service.import_series(eur)
    assert (first.new_records, first.updated_records, first.skipped_records) == (3, 0, 0)
    assert first.earliest_exchange_rate_date == date(2024, 1, 2)
    assert first.latest_exchange_rate_date == date(2024, 1, 4)

    # A provider that ignores observation_start returns the same payload again.
    provider.fetch_observations = lambda series, since=None: dict(PAYLOAD)
    second = service.import_series(eur)
    assert (second.new_records, second.updated_records, second.skipped_records) == (0, 0, 3)
    assert _count(database, eur) == 3


def test_import_is_incremental(database, add_series) -> None:
    eur = add_series()
    provider = StubProvider({"DEXUSEU": dict(PAYLOAD)})
    service = ExchangeRateImportService(database, provider)

    service.import_series(eur)
    provider.observations["DEXUSEU"][date(2024, 1, 5)] = Decimal("1.0942")
    result = service.import_series(eur)

    assert provider.calls == [("DEXUSEU", None), ("DEXUSEU", date(2024, 1, 5))]
    assert (result.new_records, result.skipped_records) == (1, 0)
    assert service.determine_start_date(eur) == date(2024, 1, 6)


def test_changed_upstream_value_updates_one_row(database, add_series, caplog) -> None:
    eur = add_series()
    provider = StubProvider({"DEXUSEU": dict(PAYLOAD)})
    service = ExchangeRateImportService(database, provider)
    service.import_series(eur)

    revised = dict(PAYLOAD)
    revised[date(2024, 1, 3)] = Decimal("1.0920")
    provider.fetch_observations = lambda series, since=None: dict(revised)
    result = service.import_series(eur)

    assert (result.new_records, result.updated_records, result.skipped_records) == (0, 1, 2)
    assert _count(database, eur) == 3
    with database.session() as session:
        row = ExchangeRateRepository(session).find_row("USD", "EUR", date(2024, 1, 3))
    assert row.rate == Decimal("1.0920")
    assert "changed upstream" in caplog.text


def test_empty_fetch_returns_zero_counts(database, add_series) -> None:
    eur = add_series()
    result = ExchangeRateImportService(database, StubProvider({"DEXUSEU": {}})).import_series(eur)

    assert result.total == 0
    assert result.earliest_exchange_rate_date is None
    assert result.latest_exchange_rate_date is None


def test_rates_are_rounded_to_store_precision(database, add_series) -> None:
    eur = add_series()
    provider = StubProvider({"DEXUSEU": {date(2024, 1, 2): Decimal("1.095649")}})
    ExchangeRateImportService(database, provider).import_series(eur)

    with database.session() as session:
        row = ExchangeRateRepository(session).find_row("USD", "EUR", date(2024, 1, 2))
    assert row.rate == Decimal("1.0956")


def test_provider_errors_propagate_unchanged(database, add_series) -> None:
    eur = add_series()
    error = ProviderError("boom", kind="server_error", status=503)
    service = ExchangeRateImportService(database, StubProvider(error=error))

    with pytest.raises(ProviderError) as excinfo:
        service.import_series(eur)
    assert excinfo.value is error


def test_unexpected_errors_are_wrapped(database, add_series) -> None:
    eur = add_series()
    service = ExchangeRateImportService(database, StubProvider(error=KeyError("value")))

    with pytest.raises(ImportFailedError) as excinfo:
        service.import_series(eur)
    assert excinfo.value.currency == "EUR"
    assert isinstance(excinfo.value.__cause__, KeyError)


def test_batch_continues_past_failures(database, add_series) -> None:
    eur = add_series("EUR", "DEXUSEU")
    jpy = add_series("JPY", "DEXJPUS")
    gbp = add_series("GBP", "DEXUSUK")
    provider = StubProvider(
        {
            "DEXUSEU": dict(PAYLOAD),
            "DEXUSUK": {date(2024, 1, 2): Decimal("1.2700")},
        }
    )
    original = provider.fetch_observations

    def fetch(series, since=None):
        if series.currency_code == "JPY":
            raise ProviderError("timed out", kind="timeout")
        return original(series, since)

    provider.fetch_observations = fetch
    service = ExchangeRateImportService(database, provider)

    with pytest.raises(BatchImportError) as excinfo:
        service.import_many([eur, jpy, gbp])

    error = excinfo.value
    assert [result.currency_code for result in error.results] == ["EUR", "GBP"]
    assert [currency for currency, _ in error.failures] == ["JPY"]
    assert error.kind == "timeout"
    assert _count(database, eur) == 3
    assert _count(database, gbp) == 1


def test_import_all_enabled_skips_disabled(database, add_series) -> None:
    add_series("EUR", "DEXUSEU")
    add_series("JPY", "DEXJPUS", enabled=False)
    provider = StubProvider({"DEXUSEU": dict(PAYLOAD), "DEXJPUS": dict(PAYLOAD)})

    results = ExchangeRateImportService(database, provider).import_all_enabled()

    assert [result.currency_code for result in results] == ["EUR"]
    assert [call[0] for call in provider.calls] == ["DEXUSEU"]


def test_import_missing_only_touches_empty_series(database, add_series) -> None:
    eur = add_series("EUR", "DEXUSEU")
    add_series("GBP", "DEXUSUK")
    provider = StubProvider({"DEXUSEU": dict(PAYLOAD), "DEXUSUK": dict(PAYLOAD)})
    service = ExchangeRateImportService(database, provider)
    service.import_series(eur)
    provider.calls.clear()

    results = service.import_missing()

    assert [result.currency_code for result in results] == ["GBP"]
    assert provider.calls == [("DEXUSUK", None)]
    assert service.import_missing() == []


def test_import_by_unknown_id(database) -> None:
    service = ExchangeRateImportService(database, StubProvider())

    with pytest.raises(SeriesNotFoundError):
        service.import_series_by_id(42)
