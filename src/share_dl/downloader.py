"""便捷下载接口

对 RunController 的薄封装：一次调用完成一次运行并返回 RunResult。
"""

import asyncio
import concurrent.futures
from pathlib import Path
from typing import Iterable, Optional, Union

from .config import get_config
from .core.progress_manager import EventCallback
from .core.run_controller import CompletionHook, RunController
from .models import Config, RunResult


async def download_share(
    directory: Union[str, Path],
    endpoints: Optional[Iterable[str]] = None,
    config: Optional[Config] = None,
    progress_callback: Optional[EventCallback] = None,
    on_complete: Optional[CompletionHook] = None,
    timeout: Optional[float] = None,
) -> RunResult:
    """轮询端点并下载共享文件到 directory

    Args:
        directory: 目标目录
        endpoints: 候选端点，默认使用配置中的端点
        config: 配置对象，默认读取全局配置
        progress_callback: 进度事件回调
        on_complete: 完成时以目标目录调用
        timeout: 整体等待上限(秒)，超时后取消运行

    Returns:
        运行结果
    """
    config = config or get_config()
    async with RunController(
        config=config,
        progress_callback=progress_callback,
        on_complete=on_complete,
    ) as controller:
        return await controller.run_to_completion(directory, endpoints, timeout)


def download_share_sync(
    directory: Union[str, Path],
    endpoints: Optional[Iterable[str]] = None,
    config: Optional[Config] = None,
    progress_callback: Optional[EventCallback] = None,
    on_complete: Optional[CompletionHook] = None,
    timeout: Optional[float] = None,
) -> RunResult:
    """download_share 的同步版本

    在已有事件循环中调用时，改为在独立线程的新事件循环中执行。
    """

    def run() -> RunResult:
        return asyncio.run(
            download_share(
                directory, endpoints, config, progress_callback, on_complete, timeout
            )
        )

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return run()

    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(run).result()
