"""Timeline grouping tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from daytrack.domain.timeline_types import TimeSlot
from daytrack.repositories.time_slot_repository import InMemoryTimeSlotRepository
from daytrack.services.timeline_items import build_day_timeline, build_timeline_items
from daytrack.services.timeline_service import TimeSlotService

TZ = ZoneInfo("UTC")


class FakeClock:
    """测试用时钟。"""

    def __init__(self, now: datetime) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current


def _at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, day, hour, minute, tzinfo=TZ)


def _slots(day: int, layout: list[tuple[int, int, str]], closed: bool = False) -> list[TimeSlot]:
    time_slots: list[TimeSlot] = []
    for index, (hour, minute, category) in enumerate(layout):
        end_time = None
        if index + 1 < len(layout):
            end_time = _at(day, layout[index + 1][0], layout[index + 1][1])
        elif closed:
            end_time = datetime(2026, 10, day + 1, tzinfo=TZ)
        time_slots.append(
            TimeSlot(start_time=_at(day, hour, minute), category=category, end_time=end_time)
        )
    return time_slots


def test_only_adjacent_slots_of_same_category_are_merged() -> None:
    time_slots = _slots(19, [(9, 0, "work"), (12, 0, "commute"), (12, 30, "work")])

    items = build_timeline_items(time_slots, now=_at(19, 14), tz=TZ, is_current_day=True)

    assert [item.category for item in items] == ["work", "commute", "work"]
    assert all(len(item.time_slots) == 1 for item in items)


def test_run_duration_sums_effective_durations() -> None:
    time_slots = _slots(
        19,
        [(8, 0, "commute"), (9, 0, "work"), (10, 30, "work"), (12, 0, "food")],
    )

    items = build_timeline_items(time_slots, now=_at(19, 12, 45), tz=TZ, is_current_day=True)

    assert [item.category for item in items] == ["commute", "work", "food"]
    work = items[1]
    assert len(work.time_slots) == 2
    assert work.duration == timedelta(hours=3)
    assert work.start_time == _at(19, 9)
    assert work.end_time == _at(19, 12)
    assert items[-1].duration == timedelta(minutes=45)


def test_last_item_of_current_day_is_running() -> None:
    time_slots = _slots(19, [(9, 0, "work"), (12, 0, "food")])

    items = build_timeline_items(time_slots, now=_at(19, 13), tz=TZ, is_current_day=True)

    assert [item.is_running for item in items] == [False, True]
    assert not any(item.is_last_in_past_day for item in items)
    assert all(item.should_display_category_name for item in items)


def test_last_item_of_past_day_is_flagged_and_capped_at_midnight() -> None:
    time_slots = _slots(18, [(9, 0, "work"), (20, 0, "leisure")])

    items = build_timeline_items(time_slots, now=_at(19, 13), tz=TZ, is_current_day=False)

    assert [item.is_last_in_past_day for item in items] == [False, True]
    assert not any(item.is_running for item in items)
    assert items[-1].duration == timedelta(hours=4)


def test_empty_day_has_no_items() -> None:
    assert build_timeline_items([], now=_at(19, 13), tz=TZ, is_current_day=True) == []


def test_build_day_timeline_reads_one_day_from_service() -> None:
    repository = InMemoryTimeSlotRepository(
        _slots(18, [(9, 0, "work"), (18, 0, "friends")], closed=True)
        + _slots(19, [(7, 0, "commute"), (8, 0, "work")])
    )
    service = TimeSlotService(repository, clock=FakeClock(_at(19, 10)), tz=TZ)

    yesterday = build_day_timeline(service, date(2026, 10, 18))
    today = build_day_timeline(service, date(2026, 10, 19))

    assert [item.category for item in yesterday] == ["work", "friends"]
    assert yesterday[-1].is_last_in_past_day
    assert [item.category for item in today] == ["commute", "work"]
    assert today[-1].is_running
    assert today[-1].duration == timedelta(hours=2)
