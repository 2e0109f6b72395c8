"""异常定义模块

定义应用专用的异常类，提供清晰的错误处理机制
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp


class ShareDlException(Exception):
    """share-dl 基础异常类"""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def _context_part(self) -> Optional[str]:
        if not self.context:
            return None
        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"Context: {context_str}"

    def __str__(self) -> str:
        context_part = self._context_part()
        if context_part:
            return f"{self.message} ({context_part})"
        return self.message


class ValidationError(ShareDlException):
    """数据验证异常"""

    pass


class NetworkError(ShareDlException):
    """网络请求异常"""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.url = url
        self.status_code = status_code

    def __str__(self) -> str:
        parts = [self.message]
        if self.url:
            parts.append(f"URL: {self.url}")
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        context_part = self._context_part()
        if context_part:
            parts.append(context_part)
        return " | ".join(parts)


class ParseError(ShareDlException):
    """清单或响应头解析异常"""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        parser_type: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.url = url
        self.parser_type = parser_type

    def __str__(self) -> str:
        parts = [self.message]
        if self.parser_type:
            parts.append(f"Parser: {self.parser_type}")
        if self.url:
            parts.append(f"URL: {self.url}")
        context_part = self._context_part()
        if context_part:
            parts.append(context_part)
        return " | ".join(parts)


class FileOperationError(ShareDlException):
    """文件操作异常"""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.file_path = file_path
        self.operation = operation

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"Operation: {self.operation}")
        if self.file_path:
            parts.append(f"File: {self.file_path}")
        context_part = self._context_part()
        if context_part:
            parts.append(context_part)
        return " | ".join(parts)


class ConfigurationError(ShareDlException):
    """配置异常"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.config_key = config_key
        self.config_value = config_value

    def __str__(self) -> str:
        parts = [self.message]
        if self.config_key:
            parts.append(f"Key: {self.config_key}")
        if self.config_value is not None:
            parts.append(f"Value: {self.config_value}")
        context_part = self._context_part()
        if context_part:
            parts.append(context_part)
        return " | ".join(parts)


class PathSecurityError(ShareDlException):
    """路径安全异常 - 目标路径越出下载目录"""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        attack_type: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.path = path
        self.attack_type = attack_type

    def __str__(self) -> str:
        parts = [self.message]
        if self.attack_type:
            parts.append(f"Attack Type: {self.attack_type}")
        if self.path:
            parts.append(f"Path: {self.path}")
        context_part = self._context_part()
        if context_part:
            parts.append(context_part)
        return " | ".join(parts)


def wrap_transport_errors(func):
    """异常包装装饰器 - 将传输层异常转换为 NetworkError

    取消信号 (asyncio.CancelledError) 原样向上传播。
    """

    async def wrapper(self, url: str, *args, **kwargs):
        try:
            return await func(self, url, *args, **kwargs)
        except ShareDlException:
            raise
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Request timed out: {e}", url=url) from e
        except aiohttp.ClientResponseError as e:
            raise NetworkError(
                f"HTTP error: {e.message}", url=url, status_code=e.status
            ) from e
        except (aiohttp.ClientError, ConnectionError, OSError) as e:
            raise NetworkError(f"Network error: {e}", url=url) from e

    return wrapper
