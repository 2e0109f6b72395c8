"""编排核心模块

这个包包含了下载编排的各个组件：
- network_client: 传输适配层
- registry: 在途请求注册表
- timer_service: 空闲中止与进度心跳计时器
- manifest_poller: 清单轮询
- fetch_coordinator: 文件抓取与重试
- run_controller: 运行控制器
- file_manager: 文件写入
- progress_manager: 进度事件通道
- validator: 端点校验
"""

from .fetch_coordinator import FetchCoordinator
from .file_manager import FileManager
from .manifest_poller import ManifestPoller
from .network_client import HTTPClient, Transport, TransportResponse
from .progress_manager import ProgressManager
from .registry import ALL, RequestHandle, RequestRegistry
from .run import Run
from .run_controller import RunController
from .timer_service import TimerService
from .validator import ValidationManager

__all__ = [
    "ALL",
    "FetchCoordinator",
    "FileManager",
    "HTTPClient",
    "ManifestPoller",
    "ProgressManager",
    "RequestHandle",
    "RequestRegistry",
    "Run",
    "RunController",
    "TimerService",
    "Transport",
    "TransportResponse",
    "ValidationManager",
]
