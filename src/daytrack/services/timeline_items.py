"""时间线分组。"""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from typing import Sequence

from daytrack.config import load_app_config
from daytrack.db.sqlite_client import SQLiteClient
from daytrack.domain.timeline_types import TimelineItem, TimelineResult, TimeSlot, to_utc
from daytrack.repositories.time_slot_repository import SQLTimeSlotRepository
from daytrack.services.providers import SystemClock
from daytrack.services.timeline_service import (
    TimeSlotService,
    effective_end,
    local_date,
    parse_query_date,
)


def build_timeline_items(
    time_slots: Sequence[TimeSlot],
    now: datetime,
    tz: tzinfo,
    is_current_day: bool,
) -> list[TimelineItem]:
    """把相邻同分类时间段合并为展示分组。

    只合并相邻的时间段：工作、通勤、工作会得到三组。
    最后一组在当天标记 is_running，过去的日期标记 is_last_in_past_day。
    """

    runs: list[list[TimeSlot]] = []
    for time_slot in time_slots:
        if runs and runs[-1][-1].category == time_slot.category:
            runs[-1].append(time_slot)
        else:
            runs.append([time_slot])

    items: list[TimelineItem] = []
    for index, run in enumerate(runs):
        is_last = index == len(runs) - 1
        duration = sum(
            (
                to_utc(effective_end(time_slot, now, tz)) - to_utc(time_slot.start_time)
                for time_slot in run
            ),
            timedelta(),
        )
        items.append(
            TimelineItem(
                time_slots=tuple(run),
                category=run[0].category,
                duration=duration,
                should_display_category_name=True,
                is_last_in_past_day=is_last and not is_current_day,
                is_running=is_last and is_current_day,
            )
        )
    return items


def build_day_timeline(service: TimeSlotService, day: date) -> list[TimelineItem]:
    """查询某天并分组。"""

    return build_timeline_items(
        service.query_day(day),
        now=service.now(),
        tz=service.tz,
        is_current_day=service.is_current_day(day),
    )


def get_timeline(
    date_expr: str,
    db_path: str | None = None,
    timezone_name: str | None = None,
) -> TimelineResult:
    """获取指定日期时间线。"""

    config = load_app_config(db_path=db_path, timezone_name=timezone_name)
    clock = SystemClock(config.timezone)
    query_date = parse_query_date(date_expr, local_date(clock.now(), config.timezone))
    client = SQLiteClient(config.db_path)
    try:
        repository = SQLTimeSlotRepository(client, config.timezone)
        service = TimeSlotService(repository, clock=clock, tz=config.timezone)
        items = build_day_timeline(service, query_date)
    finally:
        client.dispose()
    return TimelineResult(
        query_date=query_date,
        timezone=config.timezone_name,
        items=items,
        duration_unit_style=config.duration_unit_style,
    )
