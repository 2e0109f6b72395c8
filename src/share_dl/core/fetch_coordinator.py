"""文件抓取协调器模块

对胜出的清单中的每个文件序号发出一次抓取请求：
- 传输错误或缺少 Content-Disposition 文件名时立即重发 (retry_count + 1)
- 重试序号超过上限时放弃该文件，不再发请求
- 成功时把响应体原样写入目标目录并累加计数，计数等于总数即完成

每个回调在动手之前都要通过注册表确认请求仍然有效。
"""

import asyncio
import logging
from typing import Callable, Optional

from ..exceptions import FileOperationError, NetworkError, PathSecurityError
from ..models import DownloadedFile, FetchContext, RunEvent, RunEventType, RunStatus
from ..parsers import parse_content_disposition
from ..retry import RetryPolicy, RetryStats
from .file_manager import FileManager
from .network_client import Transport, TransportResponse, sanitize_url_for_logging
from .progress_manager import ProgressManager
from .registry import RequestHandle, RequestRegistry
from .run import Run

log = logging.getLogger(__name__)


class FetchCoordinator:
    """文件抓取协调器"""

    def __init__(
        self,
        registry: RequestRegistry,
        transport: Transport,
        file_manager: FileManager,
        progress_manager: ProgressManager,
        retry_policy: RetryPolicy,
        current_run: Callable[[], Optional[Run]],
        on_run_finished: Callable[[Run], None],
    ):
        """初始化抓取协调器

        Args:
            registry: 在途请求注册表
            transport: 传输层
            file_manager: 文件管理器
            progress_manager: 进度事件通道
            retry_policy: 重试策略
            current_run: 返回当前活动运行
            on_run_finished: 运行因抓取结果进入终态（完成或部分完成）时调用
        """
        self.registry = registry
        self.transport = transport
        self.file_manager = file_manager
        self.progress = progress_manager
        self.retry_policy = retry_policy
        self.stats = RetryStats()
        self._current_run = current_run
        self._on_run_finished = on_run_finished

    def fetch(self, context: FetchContext) -> Optional[RequestHandle]:
        """发出（或放弃）一次文件抓取

        Returns:
            已登记的请求；放弃或没有活动运行时返回 None
        """
        run = self._current_run()
        if run is None or not run.active:
            return None

        if self.retry_policy.should_abandon(context):
            self._abandon(run, context)
            return None

        if context.retry_count is not None:
            self.stats.record_retry(context.index)
            self.progress.emit(
                RunEvent(
                    type=RunEventType.RETRY,
                    endpoint=context.endpoint,
                    index=context.index,
                    received=run.received,
                    total=context.expected_total,
                    retry_count=context.retry_count,
                    elapsed=run.elapsed,
                )
            )

        handle = RequestHandle(context.endpoint, context.link, purpose="fetch")
        self.registry.register(context.endpoint, handle)
        task = asyncio.get_running_loop().create_task(
            self._run_fetch(run, context, handle)
        )
        handle.attach(task)
        return handle

    async def _run_fetch(
        self, run: Run, context: FetchContext, handle: RequestHandle
    ) -> None:
        response: Optional[TransportResponse] = None
        reason = ""
        try:
            response = await self.transport.get(context.link)
        except NetworkError as e:
            reason = str(e)

        if not self.registry.is_registered(context.endpoint, handle):
            log.debug("Ignoring late response for %s", handle)
            return

        filename = (
            parse_content_disposition(response.header("Content-Disposition"))
            if response is not None
            else None
        )
        if response is not None and filename is None:
            reason = "response has no Content-Disposition filename"

        if filename is None:
            self.registry.discard(context.endpoint, handle)
            self.stats.record_attempt(False, reason)
            log.debug(
                "Fetch %s failed (attempt %d): %s",
                sanitize_url_for_logging(context.link),
                context.attempt,
                reason,
            )
            self.fetch(context.next_attempt())
            return

        self.stats.record_attempt(True)
        try:
            await self._store(run, context, handle, response, filename)
        except Exception as e:
            log.exception("Unexpected error while saving file %d", context.index)
            if self.registry.is_registered(context.endpoint, handle):
                self.registry.discard(context.endpoint, handle)
                self._write_failed(run, context, e)

    async def _store(
        self,
        run: Run,
        context: FetchContext,
        handle: RequestHandle,
        response: TransportResponse,
        filename: str,
    ) -> None:
        try:
            target = self.file_manager.resolve_target(context.directory, filename)
            if not run.claim_target(target):
                log.warning(
                    "File %d overwrites %s, already written earlier in this run",
                    context.index,
                    target.name,
                )
            size = await self.file_manager.write_bytes(target, response.body)
        except (FileOperationError, PathSecurityError) as e:
            if not self.registry.is_registered(context.endpoint, handle):
                return
            self.registry.discard(context.endpoint, handle)
            self._write_failed(run, context, e)
            return

        # 写盘期间运行可能已被取消
        if not self.registry.is_registered(context.endpoint, handle):
            log.debug("Run cancelled while writing %s", target)
            return
        self.registry.discard(context.endpoint, handle)

        downloaded = DownloadedFile(
            index=context.index, filename=target.name, path=str(target), size=size
        )
        completed = run.record_success(downloaded)

        if completed:
            log.info(
                "All %d file(s) received into %s", context.expected_total, context.directory
            )
            self.progress.emit(
                RunEvent(
                    type=RunEventType.COMPLETED,
                    endpoint=context.endpoint,
                    index=context.index,
                    received=run.received,
                    total=context.expected_total,
                    elapsed=run.elapsed,
                    directory=context.directory,
                )
            )
            self._on_run_finished(run)
            return

        self.progress.emit(
            RunEvent(
                type=RunEventType.PROGRESS,
                endpoint=context.endpoint,
                index=context.index,
                received=run.received,
                total=context.expected_total,
                elapsed=run.elapsed,
                message=target.name,
            )
        )
        self._check_partial(run, context)

    def _abandon(self, run: Run, context: FetchContext) -> None:
        log.warning(
            "Giving up on file %d from %s after %d attempts (%d retries)",
            context.index,
            context.endpoint,
            self.retry_policy.max_attempts,
            self.stats.retries_by_index.get(context.index, 0),
        )
        self.stats.record_abandoned()
        run.record_abandoned(context.index)
        self.progress.emit(
            RunEvent(
                type=RunEventType.ABANDONED,
                endpoint=context.endpoint,
                index=context.index,
                received=run.received,
                total=context.expected_total,
                retry_count=context.retry_count,
                elapsed=run.elapsed,
                message=self.stats.last_error or "",
            )
        )
        self._check_partial(run, context)

    def _write_failed(self, run: Run, context: FetchContext, error: Exception) -> None:
        log.warning("Could not save file %d: %s", context.index, error)
        run.record_failed(context.index)
        self.progress.emit(
            RunEvent(
                type=RunEventType.WRITE_FAILED,
                endpoint=context.endpoint,
                index=context.index,
                received=run.received,
                total=context.expected_total,
                elapsed=run.elapsed,
                message=str(error),
            )
        )
        self._check_partial(run, context)

    def _check_partial(self, run: Run, context: FetchContext) -> None:
        """所有序号都已终态但未收齐时，以部分完成结束运行"""
        if not run.all_terminal or run.received >= run.expected:
            return
        if not run.finish(RunStatus.PARTIAL):
            return

        log.warning(
            "Run finished with %d of %d file(s) (abandoned=%s, failed=%s)",
            run.received,
            run.expected,
            sorted(run.abandoned),
            sorted(run.failed),
        )
        self.progress.emit(
            RunEvent(
                type=RunEventType.PARTIAL,
                endpoint=context.endpoint,
                received=run.received,
                total=run.expected,
                elapsed=run.elapsed,
                directory=context.directory,
            )
        )
        self._on_run_finished(run)
