"""可读时间线格式化。"""

from __future__ import annotations

from datetime import timedelta

from daytrack.domain.timeline_types import (
    Category,
    DurationUnitStyle,
    TimelineItem,
    TimelineResult,
)

CATEGORY_EMOJI: dict[Category, str] = {
    "commute": "🚇",
    "food": "🍽️",
    "friends": "🧑‍🤝‍🧑",
    "work": "💼",
    "leisure": "🎮",
    "unknown": "❔",
}
CATEGORY_LABEL: dict[Category, str] = {
    "commute": "通勤",
    "food": "用餐",
    "friends": "朋友",
    "work": "工作",
    "leisure": "休闲",
    "unknown": "未分类",
}


def render_timeline_pretty(
    timeline: TimelineResult,
    emoji: bool = True,
    duration_unit_style: DurationUnitStyle = "compact",
) -> str:
    """渲染可读时间线。"""

    lines: list[str] = []
    if emoji:
        lines.append(f"🗓️ 时间线 {timeline.query_date.isoformat()} ({timeline.timezone})")
    else:
        lines.append(f"Timeline {timeline.query_date.isoformat()} ({timeline.timezone})")
    lines.append("─" * 72)

    if not timeline.items:
        lines.append("无数据")
        return "\n".join(lines)

    total = timedelta()
    for item in timeline.items:
        lines.extend(_format_item(item, emoji=emoji, duration_unit_style=duration_unit_style))
        lines.append("")
        total += item.duration

    lines.append(f"合计: {_format_duration(total, style=duration_unit_style)}")
    return "\n".join(lines)


def _format_item(
    item: TimelineItem,
    emoji: bool,
    duration_unit_style: DurationUnitStyle,
) -> list[str]:
    if item.is_running:
        end_text = "进行中"
    elif item.end_time is not None:
        end_text = f"{item.end_time:%H:%M}"
    else:
        end_text = "午夜"
    duration_text = _format_duration(item.duration, style=duration_unit_style)
    marker = CATEGORY_EMOJI[item.category] if emoji else f"[{item.category}]"

    lines = [f"{marker} {item.start_time:%H:%M} -> {end_text} ({duration_text})"]
    if item.should_display_category_name:
        lines.append(f"   分类: {CATEGORY_LABEL[item.category]}")
    if len(item.time_slots) > 1:
        lines.append(f"   合并: {len(item.time_slots)} 段")
    activities = [slot.activity for slot in item.time_slots if slot.activity]
    if activities:
        lines.append(f"   活动: {', '.join(activities)}")
    if item.is_last_in_past_day:
        lines.append("   🌙 当日结束" if emoji else "   (end of day)")
    return lines


def _format_duration(duration: timedelta, style: DurationUnitStyle) -> str:
    total_minutes = int(max(duration.total_seconds(), 0) // 60)
    days = total_minutes // (24 * 60)
    hours = (total_minutes % (24 * 60)) // 60
    minutes = total_minutes % 60

    if style == "cn":
        return _format_duration_cn(days, hours, minutes)
    if style == "en":
        return _format_duration_en(days, hours, minutes)
    return _format_duration_compact(days, hours, minutes)


def _format_duration_compact(days: int, hours: int, minutes: int) -> str:
    parts: list[str] = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")
    return " ".join(parts)


def _format_duration_cn(days: int, hours: int, minutes: int) -> str:
    parts: list[str] = []
    if days > 0:
        parts.append(f"{days} 天")
    if hours > 0:
        parts.append(f"{hours} 时")
    parts.append(f"{minutes} 分")
    return " ".join(parts)


def _format_duration_en(days: int, hours: int, minutes: int) -> str:
    parts: list[str] = []
    if days > 0:
        parts.append(f"{days} {_plural(days, 'day')}")
    if hours > 0:
        parts.append(f"{hours} {_plural(hours, 'hour')}")
    parts.append(f"{minutes} {_plural(minutes, 'minute')}")
    return " ".join(parts)


def _plural(value: int, unit: str) -> str:
    return unit if value == 1 else f"{unit}s"
