"""计时器服务模块

每次运行持有两个计时器：
- 空闲中止计时器：一次性，idle_timeout 秒后触发中止回调
- 进度心跳计时器：每 tick_interval 秒触发一次心跳回调，只用于观测

两个计时器的取消都是幂等的。
"""

import asyncio
import logging
import time
from typing import Callable, Optional

log = logging.getLogger(__name__)


class TimerService:
    """管理单个空闲中止计时器和单个进度心跳计时器"""

    def __init__(
        self,
        idle_timeout: float,
        tick_interval: float,
        on_idle: Callable[[], None],
        on_tick: Callable[[float], None],
        time_source: Callable[[], float] = time.monotonic,
    ):
        """初始化计时器服务

        Args:
            idle_timeout: 空闲中止窗口(秒)
            tick_interval: 心跳间隔(秒)
            on_idle: 空闲中止触发时调用
            on_tick: 心跳时调用，参数为自 arm() 起经过的秒数
            time_source: 单调时钟
        """
        self.idle_timeout = idle_timeout
        self.tick_interval = tick_interval
        self._on_idle = on_idle
        self._on_tick = on_tick
        self._time_source = time_source
        self._idle_handle: Optional[asyncio.TimerHandle] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._started_at: Optional[float] = None

    @property
    def idle_armed(self) -> bool:
        return self._idle_handle is not None

    @property
    def ticking(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    @property
    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._time_source() - self._started_at

    def arm(self) -> None:
        """（重新）启动两个计时器，必须在事件循环中调用"""
        self.stop()
        loop = asyncio.get_running_loop()
        self._started_at = self._time_source()
        self._idle_handle = loop.call_later(self.idle_timeout, self._fire_idle)
        self._tick_task = loop.create_task(self._tick_loop())

    def disarm_idle(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    def stop_ticks(self) -> None:
        task, self._tick_task = self._tick_task, None
        if task is not None and task is not _current_task():
            task.cancel()

    def stop(self) -> None:
        """停止两个计时器，重复调用无副作用"""
        self.disarm_idle()
        self.stop_ticks()

    def _fire_idle(self) -> None:
        self._idle_handle = None
        log.debug("Idle-abort timer fired after %.1fs", self.idle_timeout)
        self._on_idle()

    async def _tick_loop(self) -> None:
        me = asyncio.current_task()
        while True:
            await asyncio.sleep(self.tick_interval)
            # 心跳回调内部调用 stop() 时任务不会被取消，在这里退出
            if self._tick_task is not me:
                return
            self._on_tick(self.elapsed)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
