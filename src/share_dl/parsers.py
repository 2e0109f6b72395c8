"""响应解析器模块

采用策略模式设计，解析清单响应中的文件总数和下载响应中的文件名
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional
from urllib.parse import unquote

from .exceptions import ParseError


class ManifestParserProtocol(ABC):
    """清单解析器协议接口"""

    @abstractmethod
    def parse_total(self, body: str) -> Optional[int]:
        """解析清单中的 total 字段

        Returns:
            整数 total；本策略无法识别该响应体时返回 None

        Raises:
            ParseError: 本策略识别了响应体，但其中的 total 不是整数
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """解析器名称"""
        pass


class JsonManifestParser(ManifestParserProtocol):
    """把整个响应体当作 JSON 记录解析

    响应体是合法 JSON 时结论即为最终结论，不再交给后续策略。
    """

    @property
    def name(self) -> str:
        return "json"

    def parse_total(self, body: str) -> Optional[int]:
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, TypeError):
            return None

        if not isinstance(data, dict) or "total" not in data:
            raise ParseError("Manifest record has no 'total' field", parser_type=self.name)

        total = _coerce_int(data["total"])
        if total is None:
            raise ParseError(
                f"Manifest 'total' is not an integer: {data['total']!r}",
                parser_type=self.name,
            )
        return total


class EmbeddedRecordParser(ManifestParserProtocol):
    """从任意文本中查找第一个 total 字段"""

    _TOTAL_PATTERN = re.compile(
        r"""(?<![\w])["']?total\b["']?\s*[:=]\s*["']?(-?\d+)(?![\d.])"""
    )

    @property
    def name(self) -> str:
        return "embedded"

    def parse_total(self, body: str) -> Optional[int]:
        match = self._TOTAL_PATTERN.search(body)
        if not match:
            return None
        return _coerce_int(match.group(1))


class CompositeManifestParser:
    """组合解析器，按顺序尝试各个策略"""

    def __init__(self, parsers: Optional[List[ManifestParserProtocol]] = None):
        self.parsers = parsers or [JsonManifestParser(), EmbeddedRecordParser()]

    def parse_total(self, body: str, url: Optional[str] = None) -> int:
        """解析文件总数

        Raises:
            ParseError: 某个策略拒绝了响应体，或所有策略都无法得到整数 total
        """
        for parser in self.parsers:
            try:
                total = parser.parse_total(body)
            except ParseError as e:
                if e.url is None:
                    e.url = url
                raise
            if total is not None:
                return total

        raise ParseError(
            "Manifest does not contain an integer 'total' field",
            url=url,
            parser_type=",".join(p.name for p in self.parsers),
        )


def _coerce_int(value: Any) -> Optional[int]:
    # bool 是 int 的子类，但不是合法的数量
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


_FILENAME_STAR_PATTERN = re.compile(r"filename\*\s*=\s*([^']*)'[^']*'([^;]+)", re.IGNORECASE)
_FILENAME_QUOTED_PATTERN = re.compile(r'filename\s*=\s*"((?:[^"\\]|\\.)*)"', re.IGNORECASE)
_FILENAME_BARE_PATTERN = re.compile(r"filename\s*=\s*([^;\s]+)", re.IGNORECASE)


def parse_content_disposition(value: Optional[str]) -> Optional[str]:
    """从 Content-Disposition 头中提取文件名

    优先 RFC 5987 的 filename*，然后是带引号的 filename，最后是不带引号的写法。
    没有文件名时返回 None。
    """
    if not value:
        return None

    star = _FILENAME_STAR_PATTERN.search(value)
    if star:
        encoding = star.group(1) or "utf-8"
        try:
            name = unquote(star.group(2).strip(), encoding=encoding)
        except LookupError:
            name = unquote(star.group(2).strip())
        if name:
            return name

    quoted = _FILENAME_QUOTED_PATTERN.search(value)
    if quoted:
        name = re.sub(r"\\(.)", r"\1", quoted.group(1))
        return name or None

    bare = _FILENAME_BARE_PATTERN.search(value)
    if bare:
        return bare.group(1).strip("'") or None

    return None
