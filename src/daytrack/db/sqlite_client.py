"""SQLite 客户端。"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.sql import Executable

from daytrack.db.schema import metadata
from daytrack.domain.errors import PersistenceError

logger = logging.getLogger(__name__)


def sqlite_url(db_path: Path) -> str:
    # SQLAlchemy expects a file path without URL encoding for local SQLite.
    return f"sqlite+pysqlite:///{db_path}"


def create_sqlite_engine(db_path: Path) -> Engine:
    return create_engine(
        sqlite_url(db_path),
        connect_args={"check_same_thread": False},
        future=True,
    )


@dataclass(slots=True)
class SQLiteClient:
    """带锁重试的 SQLite 客户端。"""

    db_path: Path | str
    max_retries: int = 3
    retry_backoff_seconds: float = 0.05
    _engine: Engine = field(init=False, repr=False)

    def __post_init__(self) -> None:
        resolved_path = Path(self.db_path).expanduser().resolve()
        self.db_path = resolved_path
        self._engine = create_sqlite_engine(resolved_path)
        try:
            metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"SQLite schema setup failed: {exc}") from exc

    @property
    def engine(self) -> Engine:
        return self._engine

    def execute(self, statement: Executable) -> list[dict[str, Any]]:
        """在独立事务中执行单条语句。"""

        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                return self._execute_once(statement)
            except OperationalError as exc:
                if not self._is_retryable(exc) or attempt >= self.max_retries:
                    raise PersistenceError(
                        f"SQLite statement failed after {attempt + 1} attempt(s): {exc}"
                    ) from exc
                sleep_seconds = self.retry_backoff_seconds * (attempt + 1)
                logger.debug("SQLite busy, retrying in %.2fs", sleep_seconds)
                time.sleep(sleep_seconds)
            except SQLAlchemyError as exc:
                raise PersistenceError(f"SQLite statement failed: {exc}") from exc

        raise PersistenceError("SQLite statement failed unexpectedly.")

    @contextmanager
    def begin(self) -> Iterator[Connection]:
        """开启事务，异常时回滚。"""

        try:
            with self._engine.begin() as connection:
                yield connection
        except SQLAlchemyError as exc:
            raise PersistenceError(f"SQLite transaction failed: {exc}") from exc

    def dispose(self) -> None:
        self._engine.dispose()

    def _execute_once(self, statement: Executable) -> list[dict[str, Any]]:
        """执行单次语句。"""

        with self._engine.begin() as connection:
            result: CursorResult[Any] = connection.execute(statement)
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings()]

    @staticmethod
    def _is_retryable(exc: OperationalError) -> bool:
        """判断是否可重试。"""

        message = str(exc).lower()
        return "locked" in message or "busy" in message
