"""Series administration tests."""

import pytest

from fx_fred.errors import (
    DuplicateSeriesError,
    InvalidCurrencyCodeError,
    InvalidProviderSeriesError,
    ProviderError,
    ProviderUnavailableError,
    SeriesNotFoundError,
)
from fx_fred.services.currency import CurrencyService

from conftest import StubProvider


def test_create_validates_and_persists(database) -> None:
    service = CurrencyService(database, StubProvider(known={"DEXUSEU"}))

    created = service.create("eur", " DEXUSEU ")

    assert created.currency_code == "EUR"
    assert created.provider_series_id == "DEXUSEU"
    assert created.enabled is True
    assert service.get(created.id) == created
    assert service.list() == [created]


@pytest.mark.parametrize("code", ["EU", "EURO", "XYZ", "12A", ""])
def test_create_rejects_non_iso_codes(database, code: str) -> None:
    service = CurrencyService(database, StubProvider(known={"DEXUSEU"}))

    with pytest.raises(InvalidCurrencyCodeError):
        service.create(code, "DEXUSEU")


def test_create_rejects_unknown_provider_series(database) -> None:
    service = CurrencyService(database, StubProvider(known=set()))

    with pytest.raises(InvalidProviderSeriesError):
        service.create("EUR", "NOTASERIES")
    assert service.list() == []


def test_create_reports_provider_outage(database) -> None:
    provider = StubProvider(error=ProviderError("down", kind="connection"))
    service = CurrencyService(database, provider)

    with pytest.raises(ProviderUnavailableError):
        service.create("EUR", "DEXUSEU")


def test_create_rejects_duplicates(database) -> None:
    service = CurrencyService(database, StubProvider(known={"DEXUSEU", "DEXUSEU2"}))
    service.create("EUR", "DEXUSEU")

    with pytest.raises(DuplicateSeriesError):
        service.create("EUR", "DEXUSEU2")
    with pytest.raises(DuplicateSeriesError):
        service.create("GBP", "DEXUSEU")


def test_set_enabled_toggles_only_the_flag(database) -> None:
    service = CurrencyService(database, StubProvider(known={"DEXUSEU"}))
    created = service.create("EUR", "DEXUSEU", enabled=False)

    enabled = service.set_enabled(created.id, True)

    assert enabled.enabled is True
    assert (enabled.currency_code, enabled.provider_series_id) == ("EUR", "DEXUSEU")
    assert service.list(enabled_only=True) == [enabled]

    with pytest.raises(SeriesNotFoundError):
        service.set_enabled(999, True)
    with pytest.raises(SeriesNotFoundError):
        service.get(999)
