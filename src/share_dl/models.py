"""数据模型定义

使用 Pydantic 进行类型安全的数据验证和模型定义
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# 重试上限：首次请求之后最多再重试 4 次
DEFAULT_MAX_RETRIES = 4
DEFAULT_IDLE_TIMEOUT = 4.0
DEFAULT_TICK_INTERVAL = 1.0


class Manifest(BaseModel):
    """端点清单模型"""

    endpoint: str = Field(..., description="产生清单的端点")
    total: int = Field(..., description="待下载文件数量")

    @field_validator("total")
    @classmethod
    def validate_total(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Manifest total must be positive")
        return v

    def link_for(self, index: int) -> str:
        """第 index 个文件的下载地址"""
        return f"{self.endpoint}{index}"


class FetchContext(BaseModel):
    """单次文件抓取的请求上下文（不可变）"""

    endpoint: str = Field(..., description="所属端点")
    link: str = Field(..., description="文件下载地址")
    index: int = Field(..., description="文件序号(从0开始)")
    directory: str = Field(..., description="目标目录")
    expected_total: int = Field(..., description="清单中的文件总数")
    retry_count: Optional[int] = Field(
        default=None, description="重试序号，首次请求为None"
    )

    model_config = ConfigDict(frozen=True)

    def next_attempt(self) -> "FetchContext":
        """生成下一次重试的上下文"""
        return self.model_copy(update={"retry_count": (self.retry_count or 0) + 1})

    @property
    def attempt(self) -> int:
        """当前是第几次尝试"""
        return (self.retry_count or 0) + 1


class DownloadedFile(BaseModel):
    """已写入磁盘的文件"""

    index: int = Field(..., description="文件序号")
    filename: str = Field(..., description="清理后的文件名")
    path: str = Field(..., description="完整路径")
    size: int = Field(default=0, description="字节数")

    @property
    def formatted_size(self) -> str:
        """格式化文件大小"""
        size = float(self.size)
        for unit in ["B", "KB", "MB", "GB"]:
            if size < 1024.0:
                return f"{size:.1f} {unit}"
            size = size / 1024.0
        return f"{size:.1f} TB"


class RunStatus(str, Enum):
    """一次运行的状态"""

    IDLE = "idle"
    POLLING = "polling"
    FETCHING = "fetching"
    COMPLETED = "completed"
    PARTIAL = "partial"
    ABORTED = "aborted"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            RunStatus.COMPLETED,
            RunStatus.PARTIAL,
            RunStatus.ABORTED,
            RunStatus.CANCELLED,
        )


class RunEventType(str, Enum):
    """进度/观测事件类型"""

    STARTED = "started"
    TICK = "tick"
    POLL_FAILED = "poll_failed"
    MANIFEST = "manifest"
    PROGRESS = "progress"
    RETRY = "retry"
    ABANDONED = "abandoned"
    WRITE_FAILED = "write_failed"
    COMPLETED = "completed"
    PARTIAL = "partial"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


class RunEvent(BaseModel):
    """运行过程中的观测事件"""

    type: RunEventType = Field(..., description="事件类型")
    endpoint: Optional[str] = Field(default=None, description="相关端点")
    index: Optional[int] = Field(default=None, description="文件序号")
    received: int = Field(default=0, description="已接收文件数")
    total: int = Field(default=0, description="期望文件数")
    retry_count: Optional[int] = Field(default=None, description="重试序号")
    elapsed: float = Field(default=0.0, description="运行已用时间(秒)")
    directory: Optional[str] = Field(default=None, description="目标目录")
    message: str = Field(default="", description="附加信息")

    model_config = ConfigDict(extra="forbid")

    @property
    def percentage(self) -> float:
        if self.total > 0:
            return (self.received / self.total) * 100
        return 0.0


class RunResult(BaseModel):
    """一次运行的结果"""

    status: RunStatus = Field(..., description="最终状态")
    directory: str = Field(..., description="目标目录")
    endpoint: Optional[str] = Field(default=None, description="胜出的端点")
    received: int = Field(default=0, description="已接收文件数")
    expected: int = Field(default=0, description="期望文件数")
    files: List[DownloadedFile] = Field(default_factory=list, description="已写入的文件")
    abandoned: List[int] = Field(default_factory=list, description="放弃的文件序号")
    failed: List[int] = Field(default_factory=list, description="写入失败的文件序号")
    elapsed: float = Field(default=0.0, description="耗时(秒)")

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED


class Config(BaseModel):
    """应用配置模型"""

    # 端点
    endpoints: List[str] = Field(default_factory=list, description="候选端点列表")

    # 计时器
    idle_timeout: float = Field(
        default=DEFAULT_IDLE_TIMEOUT, description="清单确认前的空闲中止时间(秒)"
    )
    tick_interval: float = Field(
        default=DEFAULT_TICK_INTERVAL, description="进度心跳间隔(秒)"
    )

    # 重试
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, description="首次请求后的最大重试次数")

    # 网络配置
    timeout: int = Field(default=30, description="单个请求的传输层超时(秒)")
    connection_pool_size: int = Field(default=100, description="连接池大小")
    connections_per_host: int = Field(default=30, description="每个主机的连接数")
    user_agent: str = Field(default="share-dl/1.0", description="HTTP用户代理")

    # 文件名设置
    max_filename_length: int = Field(default=200, description="文件名最大长度")

    @field_validator("idle_timeout", "tick_interval")
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator(
        "timeout",
        "connection_pool_size",
        "connections_per_host",
        "max_filename_length",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """验证必须为正数"""
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries cannot be negative")
        return v

    model_config = ConfigDict(extra="allow")
