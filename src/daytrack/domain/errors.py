"""时间线错误类型。"""

from __future__ import annotations


class TimelineError(RuntimeError):
    """时间线操作失败。"""


class InvalidOrderingError(TimelineError):
    """新时间段起点不晚于当前时间段起点。"""


class NegativeDurationError(InvalidOrderingError):
    """关闭时间段会产生非正时长。"""


class SlotNotFoundError(TimelineError):
    """按起始时间找不到时间段。"""


class PersistenceError(TimelineError):
    """存储读写失败。"""
