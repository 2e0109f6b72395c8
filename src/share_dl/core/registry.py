"""请求注册表模块

按端点记录所有在途请求。注册表是“这个请求还需要吗”的唯一依据：
取消时先从注册表移除，再中止底层任务；任何迟到的响应回调在动手之前
都必须调用 is_registered 检查，不在表中则什么也不做。
"""

import asyncio
import logging
from collections import OrderedDict
from typing import List, Optional, Union

log = logging.getLogger(__name__)


class _AllEndpoints:
    """代表“所有端点”的选择器"""

    _instance: Optional["_AllEndpoints"] = None

    def __new__(cls) -> "_AllEndpoints":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ALL"


ALL = _AllEndpoints()

Selector = Union[str, _AllEndpoints]


class RequestHandle:
    """一个可取消的在途请求"""

    __slots__ = ("endpoint", "url", "purpose", "task")

    def __init__(self, endpoint: str, url: str, purpose: str = "fetch"):
        self.endpoint = endpoint
        self.url = url
        self.purpose = purpose
        self.task: Optional[asyncio.Task] = None

    def attach(self, task: asyncio.Task) -> None:
        self.task = task
        task.add_done_callback(self._report_failure)

    def _report_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("%r failed unexpectedly", self, exc_info=exc)

    def abort(self) -> None:
        """尽力中止底层请求，已结束的任务上调用无副作用"""
        if self.task is not None and not self.task.done():
            self.task.cancel()

    def __repr__(self) -> str:
        return f"RequestHandle({self.purpose} {self.url})"


class RequestRegistry:
    """在途请求注册表

    所有修改都在事件循环线程中同步完成，两次 await 之间不会被打断，
    因此无需额外加锁。
    """

    def __init__(self) -> None:
        self._buckets: "OrderedDict[str, List[RequestHandle]]" = OrderedDict()

    def register(self, endpoint: str, handle: RequestHandle) -> None:
        """把请求登记到端点名下，同一端点可以有任意多个请求"""
        self._buckets.setdefault(endpoint, []).append(handle)

    def is_registered(self, endpoint: str, handle: RequestHandle) -> bool:
        bucket = self._buckets.get(endpoint)
        if not bucket:
            return False
        return any(h is handle for h in bucket)

    def discard(self, endpoint: str, handle: RequestHandle) -> None:
        """移除已完成的请求，不存在时不做任何事"""
        bucket = self._buckets.get(endpoint)
        if not bucket:
            return
        bucket[:] = [h for h in bucket if h is not handle]
        if not bucket:
            del self._buckets[endpoint]

    def cancel(self, selector: Selector = ALL, invert: bool = False) -> int:
        """取消匹配（invert=True 时为不匹配）选择器的所有请求

        先从注册表移除全部条目，再逐个中止任务，保证中止过程中
        抵达的回调看到的已经是“未注册”。

        Returns:
            被取消的请求数量
        """
        if selector is ALL:
            targets = [] if invert else list(self._buckets.keys())
        elif invert:
            targets = [ep for ep in self._buckets if ep != selector]
        else:
            targets = [selector] if selector in self._buckets else []

        removed: List[RequestHandle] = []
        for endpoint in targets:
            removed.extend(self._buckets.pop(endpoint))

        for handle in removed:
            handle.abort()

        if removed:
            log.debug(
                "Cancelled %d request(s) (selector=%r, invert=%s)",
                len(removed),
                selector,
                invert,
            )
        return len(removed)

    def count(self, selector: Selector = ALL) -> int:
        """在途请求数量"""
        if selector is ALL:
            return sum(len(bucket) for bucket in self._buckets.values())
        return len(self._buckets.get(selector, []))

    def endpoints(self) -> List[str]:
        """当前持有请求的端点"""
        return list(self._buckets.keys())

    def __len__(self) -> int:
        return self.count()
