"""share-dl - 共享文件下载器

轮询一组候选端点的共享文件清单，并发下载全部文件到本地目录
"""

# 版本信息（cli 模块会导入，必须先于其他导入定义）
__version__ = "1.0.0"
__title__ = "share-dl"
__description__ = "共享文件端点的异步批量下载器"
__license__ = "MIT"

from .config import get_config, load_config, save_config
from .core import (
    ALL,
    FetchCoordinator,
    HTTPClient,
    ManifestPoller,
    RequestRegistry,
    Run,
    RunController,
    TimerService,
)
from .downloader import download_share, download_share_sync
from .exceptions import (
    ConfigurationError,
    FileOperationError,
    NetworkError,
    ParseError,
    PathSecurityError,
    ShareDlException,
    ValidationError,
)
from .models import (
    Config,
    DownloadedFile,
    FetchContext,
    Manifest,
    RunEvent,
    RunEventType,
    RunResult,
    RunStatus,
)
from .cli import main

# 公共API
__all__ = [
    # 核心类
    "RunController",
    "Run",
    "RequestRegistry",
    "TimerService",
    "ManifestPoller",
    "FetchCoordinator",
    "HTTPClient",
    "ALL",
    # 数据模型
    "Config",
    "DownloadedFile",
    "FetchContext",
    "Manifest",
    "RunEvent",
    "RunEventType",
    "RunResult",
    "RunStatus",
    # 便捷函数
    "download_share",
    "download_share_sync",
    # 配置管理
    "get_config",
    "load_config",
    "save_config",
    # 异常类
    "ShareDlException",
    "ValidationError",
    "NetworkError",
    "ParseError",
    "FileOperationError",
    "ConfigurationError",
    "PathSecurityError",
    # 命令行入口
    "main",
    # 元数据
    "__version__",
]


def get_version() -> str:
    """获取版本号"""
    return __version__
