"""运行控制器模块

一次下载运行的根编排者：重置状态、启动计时器、并发轮询所有端点，
并提供随时可调用的 cancel_run()。同一时刻最多一个活动运行，
启动新运行会先取消旧运行的全部在途请求。
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from ..config import get_config
from ..exceptions import ConfigurationError
from ..models import Config, RunEvent, RunEventType, RunResult, RunStatus
from ..retry import RetryPolicy
from .fetch_coordinator import FetchCoordinator
from .file_manager import FileManager
from .manifest_poller import ManifestPoller
from .network_client import HTTPClient, Transport
from .progress_manager import EventCallback, ProgressManager
from .registry import ALL, RequestRegistry
from .run import Run
from .timer_service import TimerService
from .validator import ValidationManager

log = logging.getLogger(__name__)

CompletionHook = Callable[[Path], None]


class RunController:
    """运行控制器

    使用依赖注入组装各个组件：
    - Transport: 网络请求（默认 HTTPClient）
    - RequestRegistry: 在途请求登记与取消
    - TimerService: 空闲中止与进度心跳
    - ManifestPoller / FetchCoordinator: 清单轮询与文件抓取
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        transport: Optional[Transport] = None,
        file_manager: Optional[FileManager] = None,
        progress_manager: Optional[ProgressManager] = None,
        progress_callback: Optional[EventCallback] = None,
        on_complete: Optional[CompletionHook] = None,
    ):
        """初始化运行控制器

        Args:
            config: 配置对象（可选，默认读取全局配置）
            transport: 传输层（可选，默认创建 HTTPClient）
            file_manager: 文件管理器（可选）
            progress_manager: 进度管理器（可选）
            progress_callback: 进度事件回调（可选）
            on_complete: 运行完成时以目标目录调用一次（可选）
        """
        self.config = config or get_config()
        self.transport = transport or HTTPClient(self.config)
        self._owns_transport = transport is None
        self.file_manager = file_manager or FileManager(self.config)
        self.progress = progress_manager or ProgressManager()
        if progress_callback is not None:
            self.progress.subscribe(progress_callback)
        self.validator = ValidationManager(self.config)
        self.on_complete = on_complete

        self.registry = RequestRegistry()
        self.timers = TimerService(
            idle_timeout=self.config.idle_timeout,
            tick_interval=self.config.tick_interval,
            on_idle=self._on_idle_abort,
            on_tick=self._on_tick,
        )
        self.coordinator = FetchCoordinator(
            registry=self.registry,
            transport=self.transport,
            file_manager=self.file_manager,
            progress_manager=self.progress,
            retry_policy=RetryPolicy.from_config(self.config),
            current_run=self._current_run,
            on_run_finished=self._on_run_finished,
        )
        self.poller = ManifestPoller(
            registry=self.registry,
            transport=self.transport,
            coordinator=self.coordinator,
            timers=self.timers,
            progress_manager=self.progress,
            current_run=self._current_run,
        )
        self._run: Optional[Run] = None

    @property
    def run(self) -> Optional[Run]:
        """当前（或最近一次）运行"""
        return self._run

    def _current_run(self) -> Optional[Run]:
        return self._run

    async def __aenter__(self) -> "RunController":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def start_run(
        self,
        directory: Union[str, Path],
        endpoints: Optional[Iterable[str]] = None,
    ) -> Run:
        """开始一次新的运行

        Args:
            directory: 目标目录，不存在时递归创建
            endpoints: 候选端点，默认使用配置中的端点

        Returns:
            新的 Run

        Raises:
            ConfigurationError: 没有可用端点
            ValidationError: 端点格式错误
            FileOperationError: 目标目录无法创建
            PathSecurityError: 目标目录指向系统目录
        """
        candidates = self.config.endpoints if endpoints is None else endpoints
        endpoint_list = self.validator.normalize_endpoints(candidates)
        if not endpoint_list:
            raise ConfigurationError("No endpoints configured", config_key="endpoints")

        path = await self.file_manager.prepare_directory(directory)

        self._discard_previous_run()
        self.progress.reset()
        self.coordinator.stats.reset()

        run = Run(path, endpoint_list)
        self._run = run
        self.timers.arm()

        log.info("Polling %d endpoint(s) for shared files", len(endpoint_list))
        self.progress.emit(
            RunEvent(
                type=RunEventType.STARTED,
                directory=str(path),
                message=", ".join(endpoint_list),
            )
        )

        for endpoint in endpoint_list:
            self.poller.poll(endpoint, str(path))
        return run

    def cancel_run(self) -> None:
        """取消全部在途请求并停止计时器，可重复调用"""
        self.registry.cancel(ALL)
        self.timers.stop()

        run = self._run
        if run is not None and run.finish(RunStatus.CANCELLED):
            log.info("Run cancelled")
            self._emit_terminal(run, RunEventType.CANCELLED)

    async def wait(self, timeout: Optional[float] = None) -> RunResult:
        """等待当前运行进入终态

        Raises:
            ConfigurationError: 尚未开始任何运行
            asyncio.TimeoutError: timeout 内未结束
        """
        if self._run is None:
            raise ConfigurationError("No run has been started")
        return await self._run.wait(timeout)

    async def run_to_completion(
        self,
        directory: Union[str, Path],
        endpoints: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
    ) -> RunResult:
        """开始运行并等待其结束；超时时取消运行并返回当前结果"""
        run = await self.start_run(directory, endpoints)
        try:
            return await run.wait(timeout)
        except asyncio.TimeoutError:
            self.cancel_run()
            return run.result()

    async def aclose(self) -> None:
        """取消运行并释放自己创建的传输层"""
        self.cancel_run()
        if self._owns_transport:
            await self.transport.close()

    def _discard_previous_run(self) -> None:
        self.registry.cancel(ALL)
        self.timers.stop()
        previous = self._run
        if previous is not None and previous.finish(RunStatus.CANCELLED):
            log.debug("Previous run superseded by a new run")

    def _on_idle_abort(self) -> None:
        run = self._run
        self.registry.cancel(ALL)
        self.timers.stop()
        if run is not None and run.finish(RunStatus.ABORTED):
            log.warning(
                "No manifest confirmed within %.1fs, aborting run", self.timers.idle_timeout
            )
            self._emit_terminal(run, RunEventType.ABORTED)

    def _on_tick(self, elapsed: float) -> None:
        run = self._run
        if run is None or not run.active:
            return
        self.progress.emit(
            RunEvent(
                type=RunEventType.TICK,
                endpoint=run.winner,
                received=run.received,
                total=run.expected,
                elapsed=elapsed,
            )
        )

    def _on_run_finished(self, run: Run) -> None:
        if run is not self._run:
            return
        self.timers.stop()
        self.registry.cancel(ALL)

        if run.status == RunStatus.COMPLETED and self.on_complete is not None:
            try:
                self.on_complete(run.directory)
            except Exception:
                log.exception("Completion hook failed")

    def _emit_terminal(self, run: Run, event_type: RunEventType) -> None:
        self.progress.emit(
            RunEvent(
                type=event_type,
                endpoint=run.winner,
                received=run.received,
                total=run.expected,
                elapsed=run.elapsed,
                directory=str(run.directory),
            )
        )
