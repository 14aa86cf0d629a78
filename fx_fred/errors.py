"""Exception hierarchy raised by fx_fred services."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover - import only for static analyzers
    from fx_fred.models import ImportResult


class FxFredError(Exception):
    """Base class for every error raised on purpose by fx_fred."""

    code: str = "FX_FRED_ERROR"


class RateValidationError(FxFredError, ValueError):
    """Malformed request input such as an inverted date window."""

    code = "INVALID_REQUEST"


class NoDataAvailableError(FxFredError):
    """No exchange rate has ever been stored for the requested currency."""

    code = "NO_EXCHANGE_RATE_DATA_AVAILABLE"

    def __init__(self, currency: str) -> None:
        super().__init__(f"No exchange rate data available for currency: {currency}")
        self.currency = currency


class DateOutOfRangeError(FxFredError):
    """The requested start date precedes the earliest stored observation."""

    code = "START_DATE_OUT_OF_RANGE"

    def __init__(self, currency: str, earliest: date) -> None:
        super().__init__(f"Exchange rates for {currency} not available before {earliest}")
        self.currency = currency
        self.earliest = earliest


class ProviderError(FxFredError):
    """Transport, HTTP or payload failure while talking to the rate provider.

    ``kind`` is a short, stable classification (``timeout``, ``connection``,
    ``rate_limited``, ``server_error``, ``client_error``, ``api_error``,
    ``parse_error``) used to tag metrics.
    """

    code = "PROVIDER_ERROR"

    def __init__(
        self, message: str, *, kind: str = "client_error", status: int | None = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status = status


class ImportFailedError(FxFredError):
    """Unexpected failure while reconciling a single series."""

    code = "IMPORT_FAILED"

    def __init__(self, currency: str, message: str) -> None:
        super().__init__(f"Failed to import exchange rates for {currency}: {message}")
        self.currency = currency


class BatchImportError(FxFredError):
    """One or more series failed while importing a batch.

    Results for the series that did succeed are kept on ``results`` since their
    rows were committed independently.
    """

    code = "BATCH_IMPORT_FAILED"

    def __init__(
        self,
        results: Sequence["ImportResult"],
        failures: Sequence[tuple[str, BaseException]],
    ) -> None:
        failed = ", ".join(currency for currency, _ in failures)
        super().__init__(f"{len(failures)} series failed to import: {failed}")
        self.results = list(results)
        self.failures = list(failures)

    @property
    def kind(self) -> str:
        """Classification of the first failure."""

        return error_kind(self.failures[0][1]) if self.failures else "unknown"


class SeriesNotFoundError(FxFredError):
    code = "CURRENCY_SERIES_NOT_FOUND"


class DuplicateSeriesError(FxFredError):
    code = "DUPLICATE_CURRENCY_CODE"


class InvalidCurrencyCodeError(FxFredError, ValueError):
    code = "INVALID_ISO_4217_CODE"


class InvalidProviderSeriesError(FxFredError):
    code = "INVALID_PROVIDER_SERIES_ID"


class ProviderUnavailableError(FxFredError):
    """The provider could not be reached to validate a series id."""

    code = "PROVIDER_UNAVAILABLE"


def error_kind(exc: BaseException) -> str:
    """Classify ``exc`` for metric tags.

    Provider and batch failures expose their own ``kind``; everything else is
    tagged with its class name.
    """

    kind = getattr(exc, "kind", None)
    if isinstance(kind, str) and kind:
        return kind
    return type(exc).__name__


__all__ = [
    "BatchImportError",
    "DateOutOfRangeError",
    "DuplicateSeriesError",
    "FxFredError",
    "ImportFailedError",
    "InvalidCurrencyCodeError",
    "InvalidProviderSeriesError",
    "NoDataAvailableError",
    "ProviderError",
    "ProviderUnavailableError",
    "RateValidationError",
    "SeriesNotFoundError",
    "error_kind",
]
