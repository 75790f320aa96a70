"""地理与日期工具函数。"""

from __future__ import annotations

import math
from datetime import datetime, tzinfo

from daytrack.domain.timeline_types import Location

EARTH_RADIUS_M = 6_371_000.0


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """两点球面距离（米）。"""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    hav = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * (math.sin(dlambda / 2) ** 2)
    )
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(hav), math.sqrt(1 - hav))


def location_distance(first: Location, second: Location) -> float:
    """两个位置之间的距离（米）。"""

    return distance_meters(
        first.latitude,
        first.longitude,
        second.latitude,
        second.longitude,
    )


def day_of_week(value: datetime, tz: tzinfo | None = None) -> int:
    """星期几，周一为 0。"""

    if tz is not None and value.tzinfo is not None:
        value = value.astimezone(tz)
    return value.weekday()


def same_day_of_week(first: datetime, second: datetime, tz: tzinfo | None = None) -> bool:
    return day_of_week(first, tz) == day_of_week(second, tz)
