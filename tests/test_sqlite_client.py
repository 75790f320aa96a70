"""SQLite client tests."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql import Executable

from daytrack.db.schema import from_unix_micros, time_slots, to_unix_micros
from daytrack.db.sqlite_client import SQLiteClient, sqlite_url
from daytrack.domain.errors import PersistenceError


def test_sqlite_client_creates_schema(tmp_path: Path) -> None:
    db_path = tmp_path / "schema.sqlite3"
    client = SQLiteClient(db_path)
    try:
        assert client.db_path == db_path.resolve()
        assert client.execute(select(time_slots)) == []
        rows = client.execute(text("SELECT name FROM sqlite_master WHERE type = 'table'"))
        assert {row["name"] for row in rows} >= {"time_slots", "smart_guesses"}
    finally:
        client.dispose()


def test_sqlite_client_retries_when_locked(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    calls = {"count": 0}
    sleeps: list[float] = []
    original_execute_once = SQLiteClient._execute_once

    def flaky_execute_once(self: SQLiteClient, statement: Executable) -> list[dict[str, Any]]:
        if calls["count"] == 0:
            calls["count"] += 1
            raise OperationalError("SELECT", {}, Exception("database is locked"))
        return original_execute_once(self, statement)

    monkeypatch.setattr(SQLiteClient, "_execute_once", flaky_execute_once)
    monkeypatch.setattr("daytrack.db.sqlite_client.time.sleep", sleeps.append)

    client = SQLiteClient(tmp_path / "retry.sqlite3", max_retries=3, retry_backoff_seconds=0.5)
    try:
        rows = client.execute(text("SELECT 'ok' AS value"))
    finally:
        client.dispose()

    assert rows[0]["value"] == "ok"
    assert calls["count"] == 1
    assert sleeps == [0.5]


def test_sqlite_client_gives_up_after_max_retries(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    calls = {"count": 0}

    def locked_execute_once(self: SQLiteClient, statement: Executable) -> list[dict[str, Any]]:
        calls["count"] += 1
        raise OperationalError("SELECT", {}, Exception("database is busy"))

    monkeypatch.setattr(SQLiteClient, "_execute_once", locked_execute_once)
    monkeypatch.setattr("daytrack.db.sqlite_client.time.sleep", lambda _seconds: None)
    client = SQLiteClient(tmp_path / "busy.sqlite3", max_retries=2, retry_backoff_seconds=0.0)

    with pytest.raises(PersistenceError):
        client.execute(text("SELECT 1"))
    client.dispose()

    assert calls["count"] == 3


def test_sqlite_client_raises_after_non_retryable_error(tmp_path: Path) -> None:
    client = SQLiteClient(tmp_path / "error.sqlite3", retry_backoff_seconds=0.0)

    with pytest.raises(PersistenceError):
        client.execute(text("SELECT * FROM missing"))
    client.dispose()


def test_unix_micros_conversion_is_exact() -> None:
    tz = ZoneInfo("UTC")
    value = datetime(2026, 10, 19, 9, 15, 30, 123456, tzinfo=tz)
    assert to_unix_micros(datetime(1970, 1, 1, tzinfo=tz)) == 0
    assert from_unix_micros(to_unix_micros(value), tz) == value


def test_sqlite_url_points_at_file(tmp_path: Path) -> None:
    assert sqlite_url(tmp_path / "a.sqlite3") == f"sqlite+pysqlite:///{tmp_path / 'a.sqlite3'}"
