"""验证管理器模块

负责候选端点的校验、标准化与去重。
"""

import re
import urllib.parse
from typing import Iterable, List

from ..exceptions import ValidationError
from ..models import Config


class ValidationManager:
    """验证管理器"""

    ALLOWED_SCHEMES = ("http", "https")

    def __init__(self, config: Config):
        """初始化验证管理器

        Args:
            config: 配置对象
        """
        self.config = config

    def normalize_endpoint(self, endpoint: str) -> str:
        """校验单个端点并保证以 / 结尾

        Raises:
            ValidationError: 端点不是 http(s) 地址或缺少主机名
        """
        endpoint = endpoint.strip()
        if not endpoint:
            raise ValidationError("Empty endpoint")

        if re.search(r'[<>"|\\\s]', endpoint):
            raise ValidationError(f"Invalid characters in endpoint: {endpoint}")

        try:
            parsed = urllib.parse.urlparse(endpoint)
        except ValueError as e:
            raise ValidationError(f"Malformed endpoint {endpoint}: {e}")

        if parsed.scheme not in self.ALLOWED_SCHEMES:
            raise ValidationError(
                f"Endpoint must use http or https: {endpoint}",
                context={"scheme": parsed.scheme or "<none>"},
            )
        if not parsed.hostname:
            raise ValidationError(f"Endpoint has no host: {endpoint}")
        if parsed.query or parsed.fragment:
            raise ValidationError(f"Endpoint must not carry a query or fragment: {endpoint}")

        if not endpoint.endswith("/"):
            endpoint += "/"
        return endpoint

    def normalize_endpoints(self, endpoints: Iterable[str]) -> List[str]:
        """标准化端点列表：跳过空项、按首次出现的顺序去重"""
        seen = set()
        result: List[str] = []
        for raw in endpoints:
            if raw is None or not str(raw).strip():
                continue
            endpoint = self.normalize_endpoint(str(raw))
            if endpoint in seen:
                continue
            seen.add(endpoint)
            result.append(endpoint)
        return result
