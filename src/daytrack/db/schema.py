"""SQLite 表结构。"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()

# 时间统一存为 Unix 微秒整数，保证按起始时间精确匹配。
time_slots = Table(
    "time_slots",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("start_us", BigInteger, nullable=False, unique=True, index=True),
    Column("end_us", BigInteger, nullable=True),
    Column("category", String(20), nullable=False),
    Column("category_set_by_user", Boolean, nullable=False, default=False),
    Column("smart_guess_id", Integer, nullable=True),
    Column("activity", Text, nullable=True),
    Column("latitude", Float, nullable=True),
    Column("longitude", Float, nullable=True),
    Column("location_us", BigInteger, nullable=True),
)

smart_guesses = Table(
    "smart_guesses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("category", String(20), nullable=False),
    Column("latitude", Float, nullable=False),
    Column("longitude", Float, nullable=False),
    Column("location_us", BigInteger, nullable=False),
    Column("last_used_us", BigInteger, nullable=False),
    Column("confidence", Integer, nullable=False, default=1),
    Column("error_count", Integer, nullable=False, default=0),
)

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_unix_micros(value: datetime) -> int:
    """带时区时间转 Unix 微秒。"""

    if value.tzinfo is None:
        raise ValueError(f"Naive datetime cannot be stored: {value.isoformat()}")
    return (value - UNIX_EPOCH) // timedelta(microseconds=1)


def from_unix_micros(value: int, tz: tzinfo) -> datetime:
    """Unix 微秒转时区时间。"""

    return (UNIX_EPOCH + timedelta(microseconds=int(value))).astimezone(tz)
