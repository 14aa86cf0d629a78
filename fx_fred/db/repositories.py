"""Repositories mapping ORM rows to :mod:`fx_fred.models` value objects.

Repositories never commit: they work inside the session handed to them so the
caller decides the transaction boundary (see :meth:`Database.session`).
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fx_fred.db.schema import CurrencySeriesRow, ExchangeRateRow, utcnow
from fx_fred.models import CurrencySeries, ExchangeRate
from fx_fred.utils.currency import BASE_CURRENCY


def _to_series(row: CurrencySeriesRow) -> CurrencySeries:
    return CurrencySeries(
        id=row.id,
        currency_code=row.currency_code,
        provider_series_id=row.provider_series_id,
        enabled=bool(row.enabled),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_rate(row: ExchangeRateRow) -> ExchangeRate:
    return ExchangeRate(
        id=row.id,
        currency_series_id=row.currency_series_id,
        base_currency=row.base_currency,
        target_currency=row.target_currency,
        date=row.date,
        rate=row.rate,
    )


class ExchangeRateRepository:
    """Observation store queries used by the import and retrieval engines."""

    def __init__(self, session: Session, *, base_currency: str = BASE_CURRENCY) -> None:
        self.session = session
        self.base_currency = base_currency

    def find_most_recent_date(self, series: CurrencySeries | int) -> date | None:
        series_id = series.id if isinstance(series, CurrencySeries) else series
        stmt = select(func.max(ExchangeRateRow.date)).where(
            ExchangeRateRow.currency_series_id == series_id
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def count_for_series(self, series: CurrencySeries | int) -> int:
        series_id = series.id if isinstance(series, CurrencySeries) else series
        stmt = select(func.count(ExchangeRateRow.id)).where(
            ExchangeRateRow.currency_series_id == series_id
        )
        return int(self.session.execute(stmt).scalar_one())

    def find_row(self, base_currency: str, target_currency: str, on: date) -> ExchangeRate | None:
        row = self._find_orm_row(base_currency, target_currency, on)
        return _to_rate(row) if row is not None else None

    def _find_orm_row(
        self, base_currency: str, target_currency: str, on: date
    ) -> ExchangeRateRow | None:
        stmt = select(ExchangeRateRow).where(
            ExchangeRateRow.base_currency == base_currency,
            ExchangeRateRow.target_currency == target_currency,
            ExchangeRateRow.date == on,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def save_row(self, rate: ExchangeRate) -> ExchangeRate:
        """Insert ``rate``, or overwrite the stored value when it carries an ``id``."""

        if rate.id is not None:
            row = self.session.get(ExchangeRateRow, rate.id)
            if row is None:
                raise LookupError(f"Exchange rate row {rate.id} no longer exists")
            row.rate = rate.rate
            row.updated_at = utcnow()
        else:
            row = ExchangeRateRow(
                currency_series_id=rate.currency_series_id,
                base_currency=rate.base_currency,
                target_currency=rate.target_currency,
                date=rate.date,
                rate=rate.rate,
            )
            self.session.add(row)
        self.session.flush()
        rate.id = row.id
        return rate

    def save_all(self, rates: Iterable[ExchangeRate]) -> int:
        """Bulk insert ``rates``; returns how many rows were added."""

        rows = [
            ExchangeRateRow(
                currency_series_id=rate.currency_series_id,
                base_currency=rate.base_currency,
                target_currency=rate.target_currency,
                date=rate.date,
                rate=rate.rate,
            )
            for rate in rates
        ]
        self.session.add_all(rows)
        self.session.flush()
        return len(rows)

    def find_range(
        self, currency: str, start: date | None = None, end: date | None = None
    ) -> list[ExchangeRate]:
        """Rows for ``currency`` within the inclusive bounds, oldest first."""

        stmt = select(ExchangeRateRow).where(
            ExchangeRateRow.base_currency == self.base_currency,
            ExchangeRateRow.target_currency == currency,
        )
        if start is not None:
            stmt = stmt.where(ExchangeRateRow.date >= start)
        if end is not None:
            stmt = stmt.where(ExchangeRateRow.date <= end)
        stmt = stmt.order_by(ExchangeRateRow.date.asc())
        return [_to_rate(row) for row in self.session.execute(stmt).scalars()]

    def find_most_recent_before(self, currency: str, before: date) -> ExchangeRate | None:
        stmt = (
            select(ExchangeRateRow)
            .where(
                ExchangeRateRow.base_currency == self.base_currency,
                ExchangeRateRow.target_currency == currency,
                ExchangeRateRow.date < before,
            )
            .order_by(ExchangeRateRow.date.desc())
            .limit(1)
        )
        row = self.session.execute(stmt).scalars().first()
        return _to_rate(row) if row is not None else None

    def find_earliest_date(self, currency: str) -> date | None:
        stmt = select(func.min(ExchangeRateRow.date)).where(
            ExchangeRateRow.base_currency == self.base_currency,
            ExchangeRateRow.target_currency == currency,
        )
        return self.session.execute(stmt).scalar_one_or_none()


class CurrencySeriesRepository:
    """Lookup and administration of tracked currency series."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_all(self) -> list[CurrencySeries]:
        stmt = select(CurrencySeriesRow).order_by(CurrencySeriesRow.currency_code)
        return [_to_series(row) for row in self.session.execute(stmt).scalars()]

    def find_enabled(self) -> list[CurrencySeries]:
        stmt = (
            select(CurrencySeriesRow)
            .where(CurrencySeriesRow.enabled.is_(True))
            .order_by(CurrencySeriesRow.currency_code)
        )
        return [_to_series(row) for row in self.session.execute(stmt).scalars()]

    def find_by_id(self, series_id: int) -> CurrencySeries | None:
        row = self.session.get(CurrencySeriesRow, series_id)
        return _to_series(row) if row is not None else None

    def find_by_code(self, currency_code: str) -> CurrencySeries | None:
        stmt = select(CurrencySeriesRow).where(CurrencySeriesRow.currency_code == currency_code)
        row = self.session.execute(stmt).scalar_one_or_none()
        return _to_series(row) if row is not None else None

    def existing_codes(self) -> set[str]:
        return set(self.session.execute(select(CurrencySeriesRow.currency_code)).scalars())

    def add(
        self, currency_code: str, provider_series_id: str, *, enabled: bool = True
    ) -> CurrencySeries:
        row = CurrencySeriesRow(
            currency_code=currency_code,
            provider_series_id=provider_series_id,
            enabled=enabled,
        )
        self.session.add(row)
        self.session.flush()
        return _to_series(row)

    def add_all(self, entries: Sequence[tuple[str, str, bool]]) -> int:
        self.session.add_all(
            CurrencySeriesRow(currency_code=code, provider_series_id=series_id, enabled=enabled)
            for code, series_id, enabled in entries
        )
        self.session.flush()
        return len(entries)

    def set_enabled(self, series_id: int, enabled: bool) -> CurrencySeries | None:
        """Toggle ``enabled``; the only mutable attribute of a series."""

        row = self.session.get(CurrencySeriesRow, series_id)
        if row is None:
            return None
        if bool(row.enabled) != enabled:
            row.enabled = enabled
            row.updated_at = utcnow()
            self.session.flush()
        return _to_series(row)


__all__ = ["CurrencySeriesRepository", "ExchangeRateRepository"]
