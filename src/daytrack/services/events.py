"""时间段事件订阅。

回调在写入线程上同步执行（提交之后），不要在回调中做耗时工作，
需要时请自行转交给队列或线程池。
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class EventChannel(Generic[T]):
    """订阅句柄到回调的映射。"""

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: dict[int, Callable[[T], None]] = {}
        self._handles = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[T], None]) -> int:
        with self._lock:
            handle = next(self._handles)
            self._subscribers[handle] = callback
        return handle

    def unsubscribe(self, handle: int) -> bool:
        with self._lock:
            return self._subscribers.pop(handle, None) is not None

    def emit(self, payload: T) -> None:
        """依次通知订阅者，回调异常只记录不外抛。"""

        with self._lock:
            callbacks = list(self._subscribers.items())
        for handle, callback in callbacks:
            try:
                callback(payload)
            except Exception:
                logger.exception(
                    "Subscriber %s of %s failed", handle, self.name
                )

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
