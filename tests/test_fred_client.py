"""FRED client and provider tests with a stubbed requests session."""

from datetime import date
from decimal import Decimal
from typing import Any

import pytest
import requests

from fx_fred.config import FredSettings
from fx_fred.errors import ProviderError
from fx_fred.ingestion.fred_client import FredClient
from fx_fred.ingestion.provider import FredExchangeRateProvider
from fx_fred.models import CurrencySeries


class DummyResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class DummySession:
    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.headers: dict[str, str] = {}
        self.requests: list[tuple[str, dict[str, str]]] = []

    def get(self, url: str, params: dict[str, str], timeout: int) -> DummyResponse:
        self.requests.append((url, params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        pass


def _client(*responses: Any) -> tuple[FredClient, DummySession]:
    session = DummySession(*responses)
    client = FredClient(
        FredSettings(api_key="secret", base_url="https://fred.test/fred/"), session=session
    )
    return client, session


def test_observations_request_shape() -> None:
    client, session = _client(DummyResponse(payload={"observations": []}))

    client.get_series_observations("DEXUSEU", date(2024, 1, 5))

    url, params = session.requests[0]
    assert url == "https://fred.test/fred/series/observations"
    assert params == {
        "series_id": "DEXUSEU",
        "api_key": "secret",
        "file_type": "json",
        "observation_start": "2024-01-05",
    }
    assert session.headers["User-Agent"].startswith("fx-fred/")


def test_observations_without_start_date_fetch_everything() -> None:
    client, session = _client(DummyResponse(payload={"observations": []}))

    client.get_series_observations("DEXUSEU")

    assert "observation_start" not in session.requests[0][1]


@pytest.mark.parametrize(
    "status, expected",
    [(200, True), (400, False), (404, False)],
)
def test_series_exists(status: int, expected: bool) -> None:
    client, session = _client(DummyResponse(status_code=status, payload={}))

    assert client.series_exists("DEXUSEU") is expected
    assert session.requests[0][0] == "https://fred.test/fred/series"


def test_series_exists_raises_on_server_error() -> None:
    client, _ = _client(DummyResponse(status_code=500, text="oops"))

    with pytest.raises(ProviderError) as excinfo:
        client.series_exists("DEXUSEU")
    assert excinfo.value.kind == "server_error"
    assert excinfo.value.status == 500


@pytest.mark.parametrize(
    "response, kind",
    [
        (DummyResponse(status_code=429, text="slow down"), "rate_limited"),
        (DummyResponse(status_code=503, text="unavailable"), "server_error"),
        (DummyResponse(status_code=403, text="forbidden"), "client_error"),
        (
            DummyResponse(
                status_code=400,
                payload={"error_code": 400, "error_message": "Bad Request. The series does not exist."},
            ),
            "api_error",
        ),
        (requests.Timeout("slow"), "timeout"),
        (requests.ConnectionError("refused"), "connection"),
        (DummyResponse(status_code=200, payload=None, text="<html>"), "parse_error"),
    ],
)
def test_failures_are_classified(response: Any, kind: str) -> None:
    client, _ = _client(response)

    with pytest.raises(ProviderError) as excinfo:
        client.get_series_observations("DEXUSEU")
    assert excinfo.value.kind == kind


def test_error_message_uses_fred_payload_or_truncated_body() -> None:
    client, _ = _client(
        DummyResponse(status_code=400, payload={"error_code": 400, "error_message": "Bad key"}),
        DummyResponse(status_code=502, text="x" * 2000),
    )

    with pytest.raises(ProviderError, match=r"\[400\] Bad key"):
        client.get_series_observations("DEXUSEU")
    with pytest.raises(ProviderError) as excinfo:
        client.get_series_observations("DEXUSEU")
    assert str(excinfo.value).count("x") == 500


def test_missing_api_key_is_reported() -> None:
    client = FredClient(FredSettings(), session=DummySession())

    with pytest.raises(ProviderError, match="API key"):
        client.series_exists("DEXUSEU")


def test_provider_drops_missing_values() -> None:
    payload = {
        "observations": [
            {"date": "2024-01-01", "value": "."},
            {"date": "2024-01-02", "value": "1.0956"},
            {"date": "2024-01-03", "value": "1.0919"},
            {"date": "bad", "value": "1.0"},
        ]
    }
    client, _ = _client(DummyResponse(payload=payload))
    provider = FredExchangeRateProvider(client)
    series = CurrencySeries(id=1, currency_code="EUR", provider_series_id="DEXUSEU")

    rates = provider.fetch_observations(series)

    assert rates == {date(2024, 1, 2): Decimal("1.0956"), date(2024, 1, 3): Decimal("1.0919")}


def test_provider_requires_observations_key() -> None:
    client, _ = _client(DummyResponse(payload={"count": 0}))
    provider = FredExchangeRateProvider(client)
    series = CurrencySeries(id=1, currency_code="EUR", provider_series_id="DEXUSEU")

    with pytest.raises(ProviderError) as excinfo:
        provider.fetch_observations(series)
    assert excinfo.value.kind == "parse_error"


def test_provider_validates_series() -> None:
    client, _ = _client(DummyResponse(status_code=404, payload={}))

    assert FredExchangeRateProvider(client).validate_series_exists("NOPE") is False
