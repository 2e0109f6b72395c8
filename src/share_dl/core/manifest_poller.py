"""清单轮询器模块

向每个候选端点请求 ``<endpoint>info``。第一个返回有效清单（total > 0）的
端点赢得本次运行：先取消其他所有端点的请求，再为每个文件序号发起抓取。
轮询失败对该端点是终态，本层不重试。

胜出的清单会关闭空闲中止计时器，而不是重新计时：此后卡住的抓取请求
由 HTTP 客户端的请求超时（Config.timeout）转成传输错误，再走正常的重试流程。
"""

import asyncio
import logging
from typing import Callable, Optional

from ..exceptions import NetworkError, ParseError
from ..models import FetchContext, Manifest, RunEvent, RunEventType
from ..parsers import CompositeManifestParser
from .fetch_coordinator import FetchCoordinator
from .network_client import Transport, TransportResponse, sanitize_url_for_logging
from .progress_manager import ProgressManager
from .registry import RequestHandle, RequestRegistry
from .run import Run
from .timer_service import TimerService

log = logging.getLogger(__name__)

MANIFEST_PATH = "info"


class ManifestPoller:
    """清单轮询器"""

    def __init__(
        self,
        registry: RequestRegistry,
        transport: Transport,
        coordinator: FetchCoordinator,
        timers: TimerService,
        progress_manager: ProgressManager,
        current_run: Callable[[], Optional[Run]],
        parser: Optional[CompositeManifestParser] = None,
    ):
        self.registry = registry
        self.transport = transport
        self.coordinator = coordinator
        self.timers = timers
        self.progress = progress_manager
        self.parser = parser or CompositeManifestParser()
        self._current_run = current_run

    def poll(self, endpoint: str, directory: str) -> Optional[RequestHandle]:
        """向端点请求清单，请求登记在该端点名下"""
        run = self._current_run()
        if run is None or not run.active:
            return None

        url = f"{endpoint}{MANIFEST_PATH}"
        handle = RequestHandle(endpoint, url, purpose="manifest")
        self.registry.register(endpoint, handle)
        task = asyncio.get_running_loop().create_task(
            self._run_poll(run, endpoint, directory, handle)
        )
        handle.attach(task)
        return handle

    async def _run_poll(
        self, run: Run, endpoint: str, directory: str, handle: RequestHandle
    ) -> None:
        response: Optional[TransportResponse] = None
        error: Optional[Exception] = None
        try:
            response = await self.transport.get(handle.url)
        except NetworkError as e:
            error = e

        if not self.registry.is_registered(endpoint, handle):
            log.debug("Ignoring late manifest from %s", endpoint)
            return
        self.registry.discard(endpoint, handle)

        if response is None:
            self._poll_failed(run, endpoint, str(error))
            return

        try:
            total = self.parser.parse_total(response.text(), url=handle.url)
        except ParseError as e:
            self._poll_failed(run, endpoint, str(e))
            return

        if total <= 0:
            self._poll_failed(run, endpoint, f"nothing to fetch (total={total})")
            return

        self._accept(run, Manifest(endpoint=endpoint, total=total), directory)

    def _accept(self, run: Run, manifest: Manifest, directory: str) -> None:
        # 先取消竞争端点，再开始抓取
        cancelled = self.registry.cancel(manifest.endpoint, invert=True)
        self.timers.disarm_idle()
        run.record_manifest(manifest)

        log.info(
            "Endpoint %s reports %d file(s); cancelled %d competing request(s)",
            sanitize_url_for_logging(manifest.endpoint),
            manifest.total,
            cancelled,
        )
        self.progress.emit(
            RunEvent(
                type=RunEventType.MANIFEST,
                endpoint=manifest.endpoint,
                total=manifest.total,
                elapsed=run.elapsed,
                directory=directory,
            )
        )

        for index in range(manifest.total):
            self.coordinator.fetch(
                FetchContext(
                    endpoint=manifest.endpoint,
                    link=manifest.link_for(index),
                    index=index,
                    directory=directory,
                    expected_total=manifest.total,
                )
            )

    def _poll_failed(self, run: Run, endpoint: str, reason: str) -> None:
        log.debug("Manifest poll of %s failed: %s", endpoint, reason)
        self.progress.emit(
            RunEvent(
                type=RunEventType.POLL_FAILED,
                endpoint=endpoint,
                elapsed=run.elapsed,
                message=reason,
            )
        )
