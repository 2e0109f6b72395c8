"""重试策略模块

文件抓取在传输错误或缺少文件名响应头时立即重发，不做退避延迟；
超过上限的重试序号直接放弃，不再发出请求。
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from .models import DEFAULT_MAX_RETRIES, FetchContext


class RetryPolicy(BaseModel):
    """重试配置"""

    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES, description="首次请求之后允许的最大重试次数"
    )

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries cannot be negative")
        return v

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        """从现有配置对象创建重试配置"""
        return cls(max_retries=getattr(config, "max_retries", DEFAULT_MAX_RETRIES))

    def should_abandon(self, context: FetchContext) -> bool:
        """重试序号超过上限时放弃（首次请求的 retry_count 为 None）"""
        return context.retry_count is not None and context.retry_count > self.max_retries

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


class RetryStats(BaseModel):
    """重试统计"""

    total_attempts: int = Field(default=0, description="总请求次数")
    failed_attempts: int = Field(default=0, description="失败次数")
    abandoned: int = Field(default=0, description="放弃的文件数")
    last_error: Optional[str] = Field(default=None, description="最后的错误信息")
    retries_by_index: Dict[int, int] = Field(default_factory=dict, description="各文件的重试次数")

    def reset(self) -> None:
        """重置统计"""
        self.total_attempts = 0
        self.failed_attempts = 0
        self.abandoned = 0
        self.last_error = None
        self.retries_by_index = {}

    def record_attempt(self, is_success: bool, error: Optional[str] = None) -> None:
        """记录一次请求"""
        self.total_attempts += 1
        if not is_success:
            self.failed_attempts += 1
            self.last_error = error

    def record_retry(self, index: int) -> None:
        self.retries_by_index[index] = self.retries_by_index.get(index, 0) + 1

    def record_abandoned(self) -> None:
        self.abandoned += 1
