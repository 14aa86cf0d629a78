"""Value objects shared by the storage, import and query layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any


@dataclass(slots=True, frozen=True)
class CurrencySeries:
    """A tracked currency and the provider series it is synchronised from."""

    id: int
    currency_code: str
    provider_series_id: str
    enabled: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class ExchangeRate:
    """One stored observation: ``1 base_currency = rate target_currency`` on ``date``."""

    currency_series_id: int
    base_currency: str
    target_currency: str
    date: date
    rate: Decimal
    id: int | None = None


@dataclass(slots=True)
class ImportResult:
    """Counts produced by reconciling one series against the provider."""

    currency_code: str
    provider_series_id: str
    new_records: int = 0
    updated_records: int = 0
    skipped_records: int = 0
    earliest_exchange_rate_date: date | None = None
    latest_exchange_rate_date: date | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total(self) -> int:
        """Return the number of observations processed."""

        return self.new_records + self.updated_records + self.skipped_records

    @property
    def changed(self) -> bool:
        return bool(self.new_records or self.updated_records)


@dataclass(slots=True, frozen=True)
class RateRecord:
    """A point of the gap-filled daily series returned to callers.

    ``published_date`` is the observation date the value was taken from; it
    differs from ``date`` when the rate was carried forward over a gap.
    """

    date: date
    rate: Decimal
    published_date: date
    base_currency: str = "USD"
    target_currency: str = ""

    @property
    def inferred(self) -> bool:
        return self.published_date != self.date

    def as_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "rate": str(self.rate),
            "published_date": self.published_date.isoformat(),
            "base_currency": self.base_currency,
            "target_currency": self.target_currency,
            "inferred": self.inferred,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RateRecord":
        return cls(
            date=date.fromisoformat(payload["date"]),
            rate=Decimal(payload["rate"]),
            published_date=date.fromisoformat(payload["published_date"]),
            base_currency=payload.get("base_currency", "USD"),
            target_currency=payload.get("target_currency", ""),
        )


__all__ = ["CurrencySeries", "ExchangeRate", "ImportResult", "RateRecord"]
