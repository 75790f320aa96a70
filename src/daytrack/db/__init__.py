"""Database helpers."""

from daytrack.db.sqlite_client import SQLiteClient, create_sqlite_engine, sqlite_url

__all__ = ["SQLiteClient", "create_sqlite_engine", "sqlite_url"]
