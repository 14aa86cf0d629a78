"""Engine and session management."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from fx_fred.config import DatabaseBackend, DatabaseConnectionInfo
from fx_fred.db.schema import Base
from fx_fred.utils.logger import get_logger

LOGGER = get_logger(__name__)


class Database:
    """Owns the SQLAlchemy engine and hands out transactional sessions."""

    _DRIVER_HINTS: dict[DatabaseBackend, str] = {
        DatabaseBackend.POSTGRES: "Install psycopg2 or psycopg2-binary via 'pip install psycopg2-binary'.",
        DatabaseBackend.MYSQL: "Install mysqlclient or PyMySQL via 'pip install mysqlclient' or 'pip install PyMySQL'.",
    }

    def __init__(self, connection_info: DatabaseConnectionInfo | str) -> None:
        if isinstance(connection_info, str):
            connection_info = DatabaseConnectionInfo.from_url(connection_info)
        self.connection_info = connection_info
        self.engine: Engine = self._create_engine(connection_info)
        self._SessionFactory: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, future=True
        )

    @classmethod
    def _create_engine(cls, info: DatabaseConnectionInfo) -> Engine:
        if info.is_sqlite:
            if info.name and info.name != ":memory:":
                Path(info.name).expanduser().parent.mkdir(parents=True, exist_ok=True)
            return create_engine(
                info.url,
                echo=False,
                future=True,
                connect_args={"check_same_thread": False},
            )
        try:
            return create_engine(info.url, echo=False, future=True, pool_pre_ping=True)
        except ModuleNotFoundError as exc:
            hint = cls._DRIVER_HINTS.get(info.backend, "")
            raise ModuleNotFoundError(f"{exc}. {hint}".strip()) from exc

    def ensure_schema(self) -> None:
        """Create missing tables."""

        LOGGER.info("Ensuring fx_fred schema exists on %s", self.connection_info.backend.value)
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session inside one transaction.

        The transaction commits when the block exits normally and rolls back
        when it raises.
        """

        session = self._SessionFactory()
        try:
            yield session
            session.commit()
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:  # pragma: no cover - trivial resource cleanup
        self.engine.dispose()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = ["Database"]
