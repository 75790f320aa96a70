"""时间线领域类型。"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from typing import Literal, cast

OutputMode = Literal["pretty", "json", "both"]
DurationUnitStyle = Literal["compact", "cn", "en"]
Category = Literal[
    "commute",
    "food",
    "friends",
    "work",
    "leisure",
    "unknown",
]
CATEGORIES: tuple[Category, ...] = (
    "commute",
    "food",
    "friends",
    "work",
    "leisure",
    "unknown",
)


def parse_category(value: str) -> Category:
    """校验分类标签。"""

    normalized = value.strip().lower()
    if normalized not in CATEGORIES:
        raise ValueError(
            f"Invalid category: {value}. Allowed: {', '.join(CATEGORIES)}."
        )
    return cast(Category, normalized)


def to_utc(value: datetime) -> datetime:
    """转为 UTC，同一时区对象之间的比较与相减会忽略夏令时偏移。"""

    return value.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class Location:
    """带时间戳的坐标。"""

    latitude: float
    longitude: float
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class TimeSlot:
    """时间段，end_time 为空表示仍在进行。"""

    start_time: datetime
    category: Category
    end_time: datetime | None = None
    location: Location | None = None
    category_set_by_user: bool = False
    smart_guess_id: int | None = None
    activity: str | None = None

    def __post_init__(self) -> None:
        if self.end_time is not None and to_utc(self.end_time) <= to_utc(self.start_time):
            raise ValueError(
                f"TimeSlot end {self.end_time.isoformat()} must be after "
                f"start {self.start_time.isoformat()}."
            )

    @property
    def is_running(self) -> bool:
        return self.end_time is None

    def with_end_time(self, end_time: datetime) -> TimeSlot:
        return replace(self, end_time=end_time)

    def with_category(self, category: Category, set_by_user: bool = True) -> TimeSlot:
        return replace(self, category=category, category_set_by_user=set_by_user)


@dataclass(frozen=True, slots=True)
class SmartGuess:
    """地点到分类的学习记录。"""

    guess_id: int
    category: Category
    location: Location
    last_used: datetime
    confidence: int = 1
    error_count: int = 0

    def reinforced(self, used_at: datetime) -> SmartGuess:
        return replace(self, confidence=self.confidence + 1, last_used=used_at)

    def struck(self) -> SmartGuess:
        return replace(self, error_count=self.error_count + 1)


@dataclass(frozen=True, slots=True)
class TimelineItem:
    """相邻同分类时间段的展示分组。"""

    time_slots: tuple[TimeSlot, ...]
    category: Category
    duration: timedelta
    should_display_category_name: bool = True
    is_last_in_past_day: bool = False
    is_running: bool = False

    @property
    def start_time(self) -> datetime:
        return self.time_slots[0].start_time

    @property
    def end_time(self) -> datetime | None:
        return self.time_slots[-1].end_time


@dataclass(slots=True)
class TimelineResult:
    """时间线结果。"""

    query_date: date
    timezone: str
    items: list[TimelineItem] = field(default_factory=list)
    duration_unit_style: DurationUnitStyle = "compact"
