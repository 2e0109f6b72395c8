"""运行状态模块

一次运行（Run）的全部可变状态：目标目录、已接收计数、期望总数、
胜出端点以及各文件序号的终态。同一时刻只有一个活动的 Run，
由 RunController 独占持有。
"""

import asyncio
import time
from pathlib import Path
from typing import Callable, List, Optional, Set

from ..models import DownloadedFile, Manifest, RunResult, RunStatus


class Run:
    """一次完整的下载运行"""

    def __init__(
        self,
        directory: Path,
        endpoints: List[str],
        time_source: Callable[[], float] = time.monotonic,
    ):
        self.directory = directory
        self.endpoints = list(endpoints)
        self.received = 0
        self.expected = 0
        self.winner: Optional[str] = None
        self.status = RunStatus.POLLING
        self.files: List[DownloadedFile] = []
        self.abandoned: Set[int] = set()
        self.failed: Set[int] = set()
        self._succeeded: Set[int] = set()
        self._targets: Set[Path] = set()
        self._time_source = time_source
        self.started_at = time_source()
        self.finished_at: Optional[float] = None
        self._done = asyncio.Event()

    @property
    def active(self) -> bool:
        return not self.status.is_terminal

    @property
    def elapsed(self) -> float:
        end = self.finished_at if self.finished_at is not None else self._time_source()
        return end - self.started_at

    @property
    def terminal_count(self) -> int:
        """已进入终态（成功、放弃、写入失败）的文件数"""
        return len(self._succeeded) + len(self.abandoned) + len(self.failed)

    @property
    def all_terminal(self) -> bool:
        return self.expected > 0 and self.terminal_count >= self.expected

    def record_manifest(self, manifest: Manifest) -> None:
        self.winner = manifest.endpoint
        self.expected = manifest.total
        self.status = RunStatus.FETCHING

    def record_success(self, downloaded: DownloadedFile) -> bool:
        """计数加一并与期望总数比较

        在事件循环中同步执行，不会与其他完成回调交错。

        Returns:
            本次成功是否恰好使运行完成
        """
        if not self.active or downloaded.index in self._succeeded:
            return False
        if self.received >= self.expected:
            return False

        self._succeeded.add(downloaded.index)
        self.files.append(downloaded)
        self.received += 1
        if self.received == self.expected:
            return self.finish(RunStatus.COMPLETED)
        return False

    def claim_target(self, path: Path) -> bool:
        """登记写入路径；同一运行内已写过该路径时返回 False"""
        if path in self._targets:
            return False
        self._targets.add(path)
        return True

    def record_abandoned(self, index: int) -> None:
        if self.active:
            self.abandoned.add(index)

    def record_failed(self, index: int) -> None:
        if self.active:
            self.failed.add(index)

    def finish(self, status: RunStatus) -> bool:
        """进入终态，只有第一次调用生效"""
        if not self.active:
            return False
        self.status = status
        self.finished_at = self._time_source()
        self._done.set()
        return True

    async def wait(self, timeout: Optional[float] = None) -> RunResult:
        """等待运行进入终态

        Raises:
            asyncio.TimeoutError: timeout 内未结束
        """
        await asyncio.wait_for(self._done.wait(), timeout)
        return self.result()

    def result(self) -> RunResult:
        return RunResult(
            status=self.status,
            directory=str(self.directory),
            endpoint=self.winner,
            received=self.received,
            expected=self.expected,
            files=list(self.files),
            abandoned=sorted(self.abandoned),
            failed=sorted(self.failed),
            elapsed=self.elapsed,
        )

    def __repr__(self) -> str:
        return (
            f"Run(directory={str(self.directory)!r}, status={self.status.value}, "
            f"received={self.received}/{self.expected})"
        )
