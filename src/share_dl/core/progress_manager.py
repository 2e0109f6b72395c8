"""进度管理器模块

运行过程中的观测通道：把 RunEvent 分发给注册的回调，
并保留最近的事件供调用方查询。
"""

import logging
from collections import Counter, deque
from typing import Callable, Deque, List, Optional

from ..models import RunEvent, RunEventType

log = logging.getLogger(__name__)

EventCallback = Callable[[RunEvent], None]


class ProgressManager:
    """进度管理器

    负责:
    - 进度回调的注册与分发
    - 按类型统计事件数量
    - 保留最近 history_size 条事件
    """

    def __init__(
        self,
        progress_callback: Optional[EventCallback] = None,
        history_size: int = 256,
    ):
        """初始化进度管理器

        Args:
            progress_callback: 可选的进度回调函数
            history_size: 保留的历史事件数量
        """
        self._callbacks: List[EventCallback] = []
        if progress_callback is not None:
            self._callbacks.append(progress_callback)
        self._history: Deque[RunEvent] = deque(maxlen=history_size)
        self._counts: Counter = Counter()

    def subscribe(self, callback: EventCallback) -> None:
        self._callbacks.append(callback)

    def unsubscribe(self, callback: EventCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def emit(self, event: RunEvent) -> None:
        """记录并分发事件

        回调抛出的异常只记录日志，不影响下载流程。
        """
        self._history.append(event)
        self._counts[event.type] += 1

        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                log.exception("Progress callback failed for %s event", event.type.value)

    def count(self, event_type: RunEventType) -> int:
        return self._counts[event_type]

    def history(self, event_type: Optional[RunEventType] = None) -> List[RunEvent]:
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.type == event_type]

    @property
    def last_event(self) -> Optional[RunEvent]:
        return self._history[-1] if self._history else None

    def reset(self) -> None:
        """清空历史，开始新的运行时调用"""
        self._history.clear()
        self._counts.clear()
