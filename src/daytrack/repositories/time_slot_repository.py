"""时间段数据仓储。"""

from __future__ import annotations

import threading
from contextlib import AbstractContextManager, contextmanager
from datetime import datetime, tzinfo
from typing import Any, Callable, Iterator, Protocol

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import Executable

from daytrack.db.schema import from_unix_micros, time_slots, to_unix_micros
from daytrack.db.sqlite_client import SQLiteClient
from daytrack.domain.errors import PersistenceError
from daytrack.domain.timeline_types import Location, TimeSlot, parse_category, to_utc

TimeSlotMutator = Callable[[TimeSlot], TimeSlot]


class TimeSlotStore(Protocol):
    """时间段存储接口，谓词只支持起始时间区间与精确匹配。"""

    def get_range(self, start: datetime, end: datetime) -> list[TimeSlot]: ...

    def get_by_start(self, start_time: datetime) -> TimeSlot | None: ...

    def get_last(self) -> TimeSlot | None: ...

    def create(self, time_slot: TimeSlot) -> TimeSlot: ...

    def update(self, start_time: datetime, mutator: TimeSlotMutator) -> TimeSlot | None: ...

    def transaction(self) -> AbstractContextManager[TimeSlotStore]: ...


class InMemoryTimeSlotRepository:
    """内存时间段仓储。"""

    def __init__(self, initial: list[TimeSlot] | None = None) -> None:
        self._lock = threading.RLock()
        self._slots: list[TimeSlot] = sorted(initial or [], key=_start_key)

    def get_range(self, start: datetime, end: datetime) -> list[TimeSlot]:
        with self._lock:
            return [
                slot
                for slot in self._slots
                if to_utc(start) <= to_utc(slot.start_time) < to_utc(end)
            ]

    def get_by_start(self, start_time: datetime) -> TimeSlot | None:
        with self._lock:
            return next(
                (slot for slot in self._slots if _same_instant(slot.start_time, start_time)),
                None,
            )

    def get_last(self) -> TimeSlot | None:
        with self._lock:
            return self._slots[-1] if self._slots else None

    def get_all(self) -> list[TimeSlot]:
        with self._lock:
            return list(self._slots)

    def create(self, time_slot: TimeSlot) -> TimeSlot:
        with self._lock:
            if any(_same_instant(slot.start_time, time_slot.start_time) for slot in self._slots):
                raise PersistenceError(
                    f"TimeSlot starting at {time_slot.start_time.isoformat()} already exists."
                )
            self._slots.append(time_slot)
            self._slots.sort(key=_start_key)
            return time_slot

    def update(self, start_time: datetime, mutator: TimeSlotMutator) -> TimeSlot | None:
        with self._lock:
            for index, slot in enumerate(self._slots):
                if not _same_instant(slot.start_time, start_time):
                    continue
                updated = mutator(slot)
                self._slots[index] = updated
                return updated
            return None

    @contextmanager
    def transaction(self) -> Iterator[InMemoryTimeSlotRepository]:
        """持锁执行，异常时恢复快照。"""

        with self._lock:
            snapshot = list(self._slots)
            try:
                yield self
            except Exception:
                self._slots = snapshot
                raise


def _start_key(time_slot: TimeSlot) -> datetime:
    return to_utc(time_slot.start_time)


def _same_instant(first: datetime, second: datetime) -> bool:
    return to_utc(first) == to_utc(second)


class SQLTimeSlotRepository:
    """基于 SQLite 的时间段仓储。"""

    def __init__(
        self,
        client: SQLiteClient,
        tz: tzinfo,
        connection: Connection | None = None,
    ) -> None:
        self._client = client
        self._tz = tz
        self._connection = connection

    def get_range(self, start: datetime, end: datetime) -> list[TimeSlot]:
        """查询起始时间落在 [start, end) 的时间段。"""

        statement = (
            select(time_slots)
            .where(time_slots.c.start_us >= to_unix_micros(start))
            .where(time_slots.c.start_us < to_unix_micros(end))
            .order_by(time_slots.c.start_us.asc())
        )
        return [self._to_time_slot(row) for row in self._execute(statement)]

    def get_by_start(self, start_time: datetime) -> TimeSlot | None:
        statement = select(time_slots).where(
            time_slots.c.start_us == to_unix_micros(start_time)
        )
        rows = self._execute(statement)
        if not rows:
            return None
        return self._to_time_slot(rows[0])

    def get_last(self) -> TimeSlot | None:
        statement = select(time_slots).order_by(time_slots.c.start_us.desc()).limit(1)
        rows = self._execute(statement)
        if not rows:
            return None
        return self._to_time_slot(rows[0])

    def create(self, time_slot: TimeSlot) -> TimeSlot:
        self._execute(insert(time_slots).values(**_time_slot_values(time_slot)))
        return time_slot

    def update(self, start_time: datetime, mutator: TimeSlotMutator) -> TimeSlot | None:
        """读取、变换并写回，整个过程在同一事务内。"""

        if self._connection is None:
            with self.transaction() as unit:
                return unit.update(start_time, mutator)

        current = self.get_by_start(start_time)
        if current is None:
            return None
        updated = mutator(current)
        statement = (
            update(time_slots)
            .where(time_slots.c.start_us == to_unix_micros(start_time))
            .values(**_time_slot_values(updated))
        )
        self._execute(statement)
        return updated

    @contextmanager
    def transaction(self) -> Iterator[SQLTimeSlotRepository]:
        if self._connection is not None:
            yield self
            return

        with self._client.begin() as connection:
            yield SQLTimeSlotRepository(self._client, self._tz, connection=connection)

    def _execute(self, statement: Executable) -> list[dict[str, Any]]:
        if self._connection is None:
            return self._client.execute(statement)
        try:
            result = self._connection.execute(statement)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"SQLite statement failed: {exc}") from exc
        if not result.returns_rows:
            return []
        return [dict(row) for row in result.mappings()]

    def _to_time_slot(self, row: dict[str, Any]) -> TimeSlot:
        """行记录转时间段。"""

        location = None
        if row.get("latitude") is not None and row.get("longitude") is not None:
            location_us = row.get("location_us")
            if location_us is None:
                location_us = row["start_us"]
            location = Location(
                latitude=float(row["latitude"]),
                longitude=float(row["longitude"]),
                timestamp=from_unix_micros(location_us, self._tz),
            )
        end_us = row.get("end_us")
        smart_guess_id = row.get("smart_guess_id")
        return TimeSlot(
            start_time=from_unix_micros(row["start_us"], self._tz),
            end_time=from_unix_micros(end_us, self._tz) if end_us is not None else None,
            category=parse_category(str(row["category"])),
            location=location,
            category_set_by_user=bool(row["category_set_by_user"]),
            smart_guess_id=int(smart_guess_id) if smart_guess_id is not None else None,
            activity=row.get("activity"),
        )


def _time_slot_values(time_slot: TimeSlot) -> dict[str, Any]:
    """时间段转列值。"""

    location = time_slot.location
    return {
        "start_us": to_unix_micros(time_slot.start_time),
        "end_us": to_unix_micros(time_slot.end_time) if time_slot.end_time else None,
        "category": time_slot.category,
        "category_set_by_user": time_slot.category_set_by_user,
        "smart_guess_id": time_slot.smart_guess_id,
        "activity": time_slot.activity,
        "latitude": location.latitude if location else None,
        "longitude": location.longitude if location else None,
        "location_us": to_unix_micros(location.timestamp) if location else None,
    }
