"""时间段生命周期服务。

同一时间线上的写操作（关闭上一段 + 新建一段）持有互斥锁，
并在同一个存储事务中提交，失败时不留下中间状态。
"""

from __future__ import annotations

import logging
import re
import threading
from datetime import date, datetime, time, timedelta, tzinfo

from daytrack.domain.errors import NegativeDurationError, SlotNotFoundError, TimelineError
from daytrack.domain.timeline_types import Category, Location, SmartGuess, TimeSlot, to_utc
from daytrack.repositories.time_slot_repository import TimeSlotStore
from daytrack.services.events import EventChannel
from daytrack.services.providers import Clock, LocationSource

logger = logging.getLogger(__name__)

MONTH_DAY_PATTERN = re.compile(r"^(\d{1,2})-(\d{1,2})$")


class TimeSlotService:
    """时间段业务服务。"""

    def __init__(
        self,
        repository: TimeSlotStore,
        clock: Clock,
        tz: tzinfo,
        location_source: LocationSource | None = None,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._tz = tz
        self._location_source = location_source
        self._write_lock = threading.Lock()
        self.time_slot_created: EventChannel[TimeSlot] = EventChannel("time_slot_created")
        self.time_slot_updated: EventChannel[TimeSlot] = EventChannel("time_slot_updated")

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return self._ensure_aware(self._clock.now())

    def add_manual_slot(
        self,
        start_time: datetime,
        category: Category,
        set_by_user: bool,
        location: Location | None = None,
    ) -> TimeSlot:
        """用户或系统直接指定分类新建时间段。"""

        time_slot = TimeSlot(
            start_time=self._ensure_aware(start_time),
            category=category,
            category_set_by_user=set_by_user,
            location=location,
        )
        return self._try_add(time_slot)

    def add_manual_slot_at_last_location(
        self,
        start_time: datetime,
        category: Category,
        set_by_user: bool,
    ) -> TimeSlot:
        location = None
        if self._location_source is not None:
            location = self._location_source.last_known_location()
        return self.add_manual_slot(start_time, category, set_by_user, location=location)

    def add_guessed_slot(
        self,
        start_time: datetime,
        smart_guess: SmartGuess,
        location: Location | None = None,
    ) -> TimeSlot:
        """按 smart guess 的分类新建时间段。"""

        time_slot = TimeSlot(
            start_time=self._ensure_aware(start_time),
            category=smart_guess.category,
            smart_guess_id=smart_guess.guess_id,
            location=location,
            category_set_by_user=False,
        )
        return self._try_add(time_slot)

    def add_segmented_slot(
        self,
        start_time: datetime,
        end_time: datetime,
        category: Category,
        location: Location | None = None,
        activity: str | None = None,
    ) -> TimeSlot:
        """后台分段产生的已结束时间段，跨天时截断到午夜。"""

        start_time = self._ensure_aware(start_time)
        end_time = self._ensure_aware(end_time)
        if to_utc(end_time) <= to_utc(start_time):
            logger.warning("Trying to create a negative duration TimeSlot")
            raise NegativeDurationError(
                f"Segment ending at {end_time.isoformat()} does not end after "
                f"{start_time.isoformat()}."
            )
        if local_date(start_time, self._tz) != local_date(end_time, self._tz):
            end_time = start_of_next_day(start_time, self._tz)
            logger.info(
                "Early ending segment started at %s at midnight %s",
                start_time.isoformat(),
                end_time.isoformat(),
            )

        time_slot = TimeSlot(
            start_time=start_time,
            end_time=end_time,
            category=category,
            location=location,
            activity=activity,
        )
        return self._try_add(time_slot)

    def recategorize(self, time_slot: TimeSlot, category: Category) -> TimeSlot:
        """按起始时间定位并改写分类。"""

        with self._write_lock:
            updated = self._repository.update(
                time_slot.start_time,
                lambda stored: stored.with_category(category, set_by_user=True),
            )
        if updated is None:
            logger.warning(
                "Error updating category of TimeSlot created on %s from %s to %s",
                time_slot.start_time.isoformat(),
                time_slot.category,
                category,
            )
            raise SlotNotFoundError(
                f"No TimeSlot starts at {time_slot.start_time.isoformat()}."
            )

        self.time_slot_updated.emit(updated)
        return updated

    def close(self, time_slot: TimeSlot, at_time: datetime) -> TimeSlot:
        """结束指定时间段，跨天时截断到午夜。"""

        with self._write_lock:
            with self._repository.transaction() as unit:
                closed = self._close(unit, time_slot, self._ensure_aware(at_time))
        self.time_slot_updated.emit(closed)
        return closed

    def query_day(self, day: date) -> list[TimeSlot]:
        day_start = start_of_day(day, self._tz)
        return self._repository.get_range(day_start, day_start + timedelta(days=1))

    def query_range(self, start: datetime, end: datetime) -> list[TimeSlot]:
        """起始时间落在 [start, end) 的时间段。"""

        return self._repository.get_range(self._ensure_aware(start), self._ensure_aware(end))

    def query_between(self, first_day: date, last_day: date) -> list[TimeSlot]:
        """两个日期之间（含首尾两天）的时间段。"""

        return self._repository.get_range(
            start_of_day(first_day, self._tz),
            start_of_day(last_day + timedelta(days=1), self._tz),
        )

    def query_since(self, days_ago: int) -> list[TimeSlot]:
        today = local_date(self.now(), self._tz)
        return self.query_between(today - timedelta(days=days_ago), today)

    def most_recent(self) -> TimeSlot | None:
        return self._repository.get_last()

    def find(self, start_time: datetime) -> TimeSlot | None:
        return self._repository.get_by_start(self._ensure_aware(start_time))

    def is_current_day(self, day: date) -> bool:
        return local_date(self.now(), self._tz) == day

    def effective_end(self, time_slot: TimeSlot) -> datetime:
        return effective_end(time_slot, self.now(), self._tz)

    def calculate_duration(self, time_slot: TimeSlot) -> timedelta:
        return to_utc(self.effective_end(time_slot)) - to_utc(time_slot.start_time)

    def _try_add(self, time_slot: TimeSlot) -> TimeSlot:
        """先结束上一段，再写入新的时间段。"""

        closed: TimeSlot | None = None
        try:
            with self._write_lock:
                with self._repository.transaction() as unit:
                    previous = unit.get_last()
                    if previous is not None:
                        closed = self._close(unit, previous, time_slot.start_time)
                    unit.create(time_slot)
        except TimelineError:
            logger.warning("Failed to create new TimeSlot at %s", time_slot.start_time.isoformat())
            raise

        logger.info('New TimeSlot with category "%s" created', time_slot.category)
        if closed is not None:
            self.time_slot_updated.emit(closed)
        self.time_slot_created.emit(time_slot)
        return time_slot

    def _close(self, unit: TimeSlotStore, time_slot: TimeSlot, at_time: datetime) -> TimeSlot:
        start_time = time_slot.start_time
        end_time = at_time
        if to_utc(end_time) <= to_utc(start_time):
            logger.warning("Trying to create a negative duration TimeSlot")
            raise NegativeDurationError(
                f"New TimeSlot at {at_time.isoformat()} does not start after "
                f"{start_time.isoformat()}."
            )

        if local_date(start_time, self._tz) != local_date(end_time, self._tz):
            end_time = start_of_next_day(start_time, self._tz)
            logger.info(
                "Early ending TimeSlot started at %s at midnight %s",
                start_time.isoformat(),
                end_time.isoformat(),
            )

        closed = unit.update(start_time, lambda stored: stored.with_end_time(end_time))
        if closed is None:
            logger.warning(
                "Failed to end TimeSlot started at %s with category %s",
                start_time.isoformat(),
                time_slot.category,
            )
            raise SlotNotFoundError(f"No TimeSlot starts at {start_time.isoformat()}.")
        return closed

    def _ensure_aware(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self._tz)
        return value


def local_date(value: datetime, tz: tzinfo) -> date:
    """时间点在指定时区的日期。"""

    return value.astimezone(tz).date()


def start_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def start_of_next_day(value: datetime, tz: tzinfo) -> datetime:
    """时间点所在日期的下一个午夜。"""

    return start_of_day(local_date(value, tz) + timedelta(days=1), tz)


def effective_end(time_slot: TimeSlot, now: datetime, tz: tzinfo) -> datetime:
    """进行中的时间段以当前时间结束，但不跨过午夜。"""

    if time_slot.end_time is not None:
        return time_slot.end_time

    limit = to_utc(start_of_next_day(time_slot.start_time, tz))
    end = max(to_utc(time_slot.start_time), min(to_utc(now), limit))
    return end.astimezone(tz)


def parse_query_date(date_expr: str, today: date) -> date:
    """解析 today/yesterday/ISO 日期/月-日。"""

    normalized = date_expr.strip().lower()
    if normalized == "today":
        return today
    if normalized == "yesterday":
        return today - timedelta(days=1)

    month_day = MONTH_DAY_PATTERN.match(normalized)
    if month_day:
        try:
            return date(today.year, int(month_day.group(1)), int(month_day.group(2)))
        except ValueError as exc:
            raise ValueError(f"Invalid date expression: {date_expr}.") from exc

    parts = normalized.split("-")
    if len(parts) == 3 and all(part.isdigit() for part in parts):
        try:
            return date(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError as exc:
            raise ValueError(f"Invalid date expression: {date_expr}.") from exc

    raise ValueError(
        f"Invalid date expression: {date_expr}. Use today, yesterday or YYYY-MM-DD."
    )
