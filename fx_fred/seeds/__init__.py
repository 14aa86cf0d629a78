"""Seed data for :mod:`fx_fred`."""

from __future__ import annotations

from fx_fred.seeds.default_series import DEFAULT_SERIES, seed_default_series

__all__ = ["DEFAULT_SERIES", "seed_default_series"]
