"""SQLAlchemy table definitions for the observation store."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column in the schema is naive UTC."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class CurrencySeriesRow(Base):
    __tablename__ = "currency_series"

    id = Column(Integer, primary_key=True, autoincrement=True)
    currency_code = Column(String(3), nullable=False, unique=True)
    provider_series_id = Column(String(50), nullable=False, unique=True)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=utcnow)

    exchange_rates = relationship("ExchangeRateRow", back_populates="currency_series")


class ExchangeRateRow(Base):
    __tablename__ = "exchange_rate"
    __table_args__ = (
        UniqueConstraint(
            "base_currency", "target_currency", "date", name="uk_exchange_rate_currencies_date"
        ),
        Index("idx_exchange_rate_target_currency", "target_currency"),
        Index("idx_exchange_rate_target_currency_date", "target_currency", "date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    currency_series_id = Column(
        Integer, ForeignKey("currency_series.id"), nullable=False, index=True
    )
    base_currency = Column(String(3), nullable=False)
    # Denormalised from currency_series for range queries by currency code.
    target_currency = Column(String(3), nullable=False)
    date = Column(Date, nullable=False)
    rate = Column(Numeric(38, 4), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True, onupdate=utcnow)

    currency_series = relationship("CurrencySeriesRow", back_populates="exchange_rates")


class SchedulerLockRow(Base):
    __tablename__ = "scheduler_lock"

    name = Column(String(64), primary_key=True)
    lock_until = Column(DateTime, nullable=False)
    locked_at = Column(DateTime, nullable=False)
    locked_by = Column(String(255), nullable=False)


__all__ = ["Base", "CurrencySeriesRow", "ExchangeRateRow", "SchedulerLockRow", "utcnow"]
