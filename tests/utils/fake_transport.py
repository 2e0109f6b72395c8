"""可编排的假传输层

按 URL 预设响应序列，支持阻塞请求直到测试放行，
也可以模拟“中止后仍然投递响应”的传输层。
"""

import asyncio
import json
from collections import defaultdict, deque
from typing import Deque, Dict, List, Optional, Union

from share_dl.core.network_client import Transport, TransportResponse
from share_dl.exceptions import NetworkError

Reply = Union[TransportResponse, Exception]

ENDPOINT_A = "http://phone.local:8080/"
ENDPOINT_B = "http://tablet.local:8080/"


def manifest_response(url: str, total, raw: Optional[str] = None) -> TransportResponse:
    """构造清单响应"""
    body = raw if raw is not None else json.dumps({"total": total})
    return TransportResponse(url=url, body=body.encode("utf-8"))


def file_response(url: str, filename: str, body: bytes = b"data") -> TransportResponse:
    """构造带 Content-Disposition 的文件响应"""
    return TransportResponse(
        url=url,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        body=body,
    )


def bare_response(url: str, body: bytes = b"oops") -> TransportResponse:
    """没有文件名响应头的响应"""
    return TransportResponse(url=url, body=body)


class FakeTransport(Transport):
    """假传输层

    每个 URL 对应一个响应队列，队列只剩最后一个时重复使用它。
    未预设的 URL 抛出 NetworkError。
    """

    def __init__(self, deliver_after_cancel: bool = False):
        self._replies: Dict[str, Deque[Reply]] = {}
        self._gates: Dict[str, asyncio.Event] = {}
        self.calls: List[str] = []
        self.call_counts: Dict[str, int] = defaultdict(int)
        self.deliver_after_cancel = deliver_after_cancel
        self.swallowed_cancels = 0
        self.closed = False

    def add(self, url: str, *replies: Reply) -> "FakeTransport":
        self._replies.setdefault(url, deque()).extend(replies)
        return self

    def hold(self, url: str) -> asyncio.Event:
        """让该 URL 的请求阻塞，直到返回的事件被 set"""
        gate = asyncio.Event()
        self._gates[url] = gate
        return gate

    async def get(self, url: str) -> TransportResponse:
        self.calls.append(url)
        self.call_counts[url] += 1

        gate = self._gates.get(url)
        if gate is None:
            await asyncio.sleep(0)
        elif self.deliver_after_cancel:
            while not gate.is_set():
                try:
                    await gate.wait()
                except asyncio.CancelledError:
                    self.swallowed_cancels += 1
        else:
            await gate.wait()

        reply = self._next_reply(url)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def _next_reply(self, url: str) -> Reply:
        queue = self._replies.get(url)
        if not queue:
            return NetworkError("Connection refused", url=url)
        if len(queue) > 1:
            return queue.popleft()
        return queue[0]

    async def close(self) -> None:
        self.closed = True


async def drain(rounds: int = 20) -> None:
    """让事件循环跑几轮"""
    for _ in range(rounds):
        await asyncio.sleep(0)
