"""Persistence layer for fx_fred (SQLAlchemy)."""

from __future__ import annotations

from pathlib import Path
from typing import Final

__all__ = ["DEFAULT_SQLITE_DB_PATH", "default_sqlite_path"]

# Resolved so the SQLite URL stays valid regardless of the working directory
# or whether the package lives in site-packages.
DEFAULT_SQLITE_DB_PATH: Final[Path] = Path(__file__).resolve().with_name("fx_fred.db")


def default_sqlite_path() -> Path:
    """Return the absolute path of the package-local ``fx_fred.db`` file."""

    return DEFAULT_SQLITE_DB_PATH
