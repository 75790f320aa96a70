"""时钟与位置来源接口。"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Protocol

from daytrack.domain.timeline_types import Location


class Clock(Protocol):
    def now(self) -> datetime: ...


class LocationSource(Protocol):
    def last_known_location(self) -> Location | None: ...


@dataclass(frozen=True, slots=True)
class SystemClock:
    """按配置时区读取系统时间。"""

    tz: tzinfo

    def now(self) -> datetime:
        return datetime.now(self.tz)


@dataclass(frozen=True, slots=True)
class StaticLocationSource:
    """固定位置来源，未知位置时为 None。"""

    location: Location | None = None

    def last_known_location(self) -> Location | None:
        return self.location
