"""网络客户端模块

传输适配层：发出异步 GET 请求，返回状态码、响应头和完整响应体，
或者抛出 NetworkError。请求本身运行在调用方创建的 asyncio.Task 中，
取消该任务即中止请求。
"""

import logging
import urllib.parse
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp
from pydantic import BaseModel, Field

from ..exceptions import NetworkError, wrap_transport_errors
from ..models import Config

log = logging.getLogger(__name__)


def sanitize_url_for_logging(url: str) -> str:
    """清理URL中的敏感信息用于日志记录"""
    try:
        parsed = urllib.parse.urlparse(url)
        netloc = parsed.hostname or ""
        if parsed.port:
            netloc = f"{netloc}:{parsed.port}"
        return f"{parsed.scheme}://{netloc}{parsed.path}"
    except ValueError:
        return "[URL]"


class TransportResponse(BaseModel):
    """一次 GET 请求的完整响应"""

    url: str = Field(..., description="请求地址")
    status: int = Field(default=200, description="HTTP状态码")
    headers: Dict[str, str] = Field(default_factory=dict, description="响应头")
    body: bytes = Field(default=b"", description="响应体原始字节")

    def header(self, name: str) -> Optional[str]:
        """大小写不敏感地读取响应头"""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding, errors="replace")


class Transport(ABC):
    """传输层协议接口"""

    @abstractmethod
    async def get(self, url: str) -> TransportResponse:
        """发出 GET 请求

        Raises:
            NetworkError: 连接失败、超时或 HTTP 错误状态
        """
        pass

    async def close(self) -> None:
        """释放底层资源"""
        return None


class HTTPClient(Transport):
    """基于 aiohttp 的 HTTP 客户端

    负责创建和管理 HTTP 会话，包括:
    - 连接池配置
    - 传输层超时
    - 默认请求头
    """

    def __init__(self, config: Config):
        """初始化HTTP客户端

        Args:
            config: 配置对象
        """
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "HTTPClient":
        await self._create_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _create_session(self) -> None:
        """创建HTTP会话"""
        if self._session is not None:
            return

        self._session = aiohttp.ClientSession(
            connector=self._create_connector(),
            timeout=self._create_timeout_config(),
            headers=self._create_headers(),
            auto_decompress=True,
            raise_for_status=False,
        )

    def _create_connector(self) -> aiohttp.TCPConnector:
        """创建TCP连接器"""
        return aiohttp.TCPConnector(
            limit=self.config.connection_pool_size,
            limit_per_host=self.config.connections_per_host,
            enable_cleanup_closed=True,
        )

    def _create_timeout_config(self) -> aiohttp.ClientTimeout:
        """创建超时配置"""
        return aiohttp.ClientTimeout(total=self.config.timeout)

    def _create_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.config.user_agent}

    async def close(self) -> None:
        """关闭HTTP会话"""
        if self._session:
            await self._session.close()
            self._session = None

    @wrap_transport_errors
    async def get(self, url: str) -> TransportResponse:
        """执行 GET 请求并读取完整响应体

        Args:
            url: 请求URL

        Returns:
            TransportResponse

        Raises:
            NetworkError: 当请求失败或返回错误状态码时
        """
        if self._session is None:
            await self._create_session()

        log.debug("GET %s", sanitize_url_for_logging(url))
        async with self._session.get(url) as response:
            body = await response.read()
            if response.status >= 400:
                raise NetworkError(
                    f"HTTP {response.status}: {response.reason}",
                    url=sanitize_url_for_logging(url),
                    status_code=response.status,
                )

            return TransportResponse(
                url=url,
                status=response.status,
                headers={k: v for k, v in response.headers.items()},
                body=body,
            )
