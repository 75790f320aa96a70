"""JSON 输出格式化。"""

from __future__ import annotations

import json
from typing import Any

from daytrack.domain.timeline_types import TimelineResult, TimeSlot


def timeline_to_dict(timeline: TimelineResult) -> dict[str, Any]:
    """时间线结果转字典。"""

    items: list[dict[str, Any]] = []
    for item in timeline.items:
        items.append(
            {
                "category": item.category,
                "start_time": item.start_time.isoformat(),
                "end_time": item.end_time.isoformat() if item.end_time else None,
                "duration_seconds": int(item.duration.total_seconds()),
                "should_display_category_name": item.should_display_category_name,
                "is_last_in_past_day": item.is_last_in_past_day,
                "is_running": item.is_running,
                "time_slots": [_time_slot_to_dict(time_slot) for time_slot in item.time_slots],
            }
        )

    return {
        "query_date": timeline.query_date.isoformat(),
        "timezone": timeline.timezone,
        "items": items,
    }


def render_timeline_json(timeline: TimelineResult) -> str:
    """渲染 JSON 文本。"""

    payload = timeline_to_dict(timeline)
    return json.dumps(payload, ensure_ascii=False, indent=2)


def _time_slot_to_dict(time_slot: TimeSlot) -> dict[str, Any]:
    location = time_slot.location
    return {
        "start_time": time_slot.start_time.isoformat(),
        "end_time": time_slot.end_time.isoformat() if time_slot.end_time else None,
        "category": time_slot.category,
        "category_set_by_user": time_slot.category_set_by_user,
        "smart_guess_id": time_slot.smart_guess_id,
        "activity": time_slot.activity,
        "location": (
            {"latitude": location.latitude, "longitude": location.longitude}
            if location
            else None
        ),
    }
