"""Timeline formatter tests."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from daytrack.domain.timeline_types import Location, TimelineResult, TimeSlot
from daytrack.formatters.timeline_json import render_timeline_json, timeline_to_dict
from daytrack.formatters.timeline_pretty import _format_duration, render_timeline_pretty
from daytrack.services.timeline_items import build_timeline_items

TZ = ZoneInfo("UTC")


def _at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, day, hour, minute, tzinfo=TZ)


def _timeline(day: int, is_current_day: bool) -> TimelineResult:
    time_slots = [
        TimeSlot(start_time=_at(day, 9), end_time=_at(day, 10), category="work"),
        TimeSlot(start_time=_at(day, 10), end_time=_at(day, 12), category="work"),
        TimeSlot(
            start_time=_at(day, 12),
            end_time=_at(day, 12, 30),
            category="commute",
            activity="walking",
            location=Location(31.2304, 121.4737, _at(day, 12)),
        ),
        TimeSlot(start_time=_at(day, 12, 30), category="food", smart_guess_id=4),
    ]
    items = build_timeline_items(
        time_slots,
        now=_at(day, 13, 15) if is_current_day else _at(day + 1, 8),
        tz=TZ,
        is_current_day=is_current_day,
    )
    return TimelineResult(query_date=date(2026, 10, day), timezone="UTC", items=items)


def test_pretty_output_for_current_day() -> None:
    output = render_timeline_pretty(_timeline(19, is_current_day=True))

    assert output.splitlines()[0] == "🗓️ 时间线 2026-10-19 (UTC)"
    assert "💼 09:00 -> 12:00 (3h 0m)" in output
    assert "   合并: 2 段" in output
    assert "   活动: walking" in output
    assert "🍽️ 12:30 -> 进行中 (45m)" in output
    assert "   分类: 用餐" in output
    assert output.splitlines()[-1] == "合计: 4h 15m"
    assert "当日结束" not in output


def test_pretty_output_for_past_day_without_emoji() -> None:
    output = render_timeline_pretty(
        _timeline(18, is_current_day=False),
        emoji=False,
        duration_unit_style="en",
    )

    assert output.splitlines()[0] == "Timeline 2026-10-18 (UTC)"
    assert "[food] 12:30 -> 午夜 (11 hours 30 minutes)" in output
    assert "   (end of day)" in output
    assert "进行中" not in output
    assert output.splitlines()[-1] == "合计: 15 hours 0 minutes"


def test_pretty_output_for_empty_day() -> None:
    timeline = TimelineResult(query_date=date(2026, 10, 19), timezone="UTC")
    assert render_timeline_pretty(timeline).splitlines()[-1] == "无数据"


def test_duration_styles() -> None:
    duration = timedelta(days=1, hours=2, minutes=1)
    assert _format_duration(duration, style="compact") == "1d 2h 1m"
    assert _format_duration(duration, style="cn") == "1 天 2 时 1 分"
    assert _format_duration(duration, style="en") == "1 day 2 hours 1 minute"
    assert _format_duration(timedelta(seconds=59), style="compact") == "0m"


def test_json_payload_contains_items_and_slots() -> None:
    timeline = _timeline(19, is_current_day=True)

    payload = json.loads(render_timeline_json(timeline))

    assert payload == timeline_to_dict(timeline)
    assert payload["query_date"] == "2026-10-19"
    assert [item["category"] for item in payload["items"]] == ["work", "commute", "food"]
    work, commute, food = payload["items"]
    assert work["duration_seconds"] == 3 * 3600
    assert len(work["time_slots"]) == 2
    assert commute["time_slots"][0]["activity"] == "walking"
    assert commute["time_slots"][0]["location"] == {"latitude": 31.2304, "longitude": 121.4737}
    assert food["is_running"] is True
    assert food["end_time"] is None
    assert food["time_slots"][0]["smart_guess_id"] == 4
