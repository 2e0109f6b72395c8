"""文件名清理器

服务器通过 Content-Disposition 给出的文件名不可信，写盘前需要清理：
- Unicode 控制字符和零宽字符
- 文件系统非法字符与路径分隔符
- Windows 保留文件名
- 超长文件名（保留扩展名截断）
"""

import platform
import re
import unicodedata
from typing import Optional, Pattern, Set

DEFAULT_MAX_LENGTH = 200
DEFAULT_FALLBACK_NAME = "untitled"
MAX_EXTENSION_LENGTH = 10


class FilenameSanitizer:
    """平台感知的文件名清理器"""

    # 不可见的格式字符
    _INVISIBLE_CHARS: frozenset = frozenset(
        chr(code)
        for code in (
            0x00AD,
            0x200B, 0x200C, 0x200D,
            0x200E, 0x200F,
            0x202A, 0x202B, 0x202C, 0x202D, 0x202E,
            0x2028, 0x2029,
            0x2060,
            0xFEFF,
        )
    )

    _WINDOWS_RESERVED_NAMES: frozenset = frozenset(
        {
            "CON",
            "PRN",
            "AUX",
            "NUL",
            *(f"COM{i}" for i in range(1, 10)),
            *(f"LPT{i}" for i in range(1, 10)),
        }
    )

    def __init__(self, platform_name: Optional[str] = None):
        """初始化清理器

        Args:
            platform_name: 平台名称，None时自动检测
        """
        self.platform = platform_name or platform.system()
        self.illegal_chars: Set[str] = {'"', "<", ">", ":", "|", "?", "*", "/", "\\"}
        self._illegal_table = str.maketrans("", "", "".join(self.illegal_chars))
        self._invisible_table = str.maketrans("", "", "".join(self._INVISIBLE_CHARS))

        patterns = [r"^[\s.]+", r"\.{2,}"]
        if self.platform == "Windows":
            patterns.append(r"[\s.]+$")
        self._compiled_patterns: list[Pattern[str]] = [re.compile(p) for p in patterns]
        self._whitespace_pattern = re.compile(r"\s+")

    def sanitize(self, filename: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
        """清理文件名，结果为空时返回默认文件名"""
        if not filename or not filename.strip():
            return DEFAULT_FALLBACK_NAME

        pipeline = [
            self._normalize_unicode,
            self._remove_control_characters,
            self._remove_illegal_characters,
            self._handle_reserved_names,
            lambda text: self._safe_truncate(text, max_length),
        ]

        cleaned = filename
        for step in pipeline:
            cleaned = step(cleaned)
            if not cleaned:
                return DEFAULT_FALLBACK_NAME

        return cleaned

    def _normalize_unicode(self, text: str) -> str:
        return unicodedata.normalize("NFKC", text)

    def _remove_control_characters(self, text: str) -> str:
        text = text.translate(self._invisible_table)
        return "".join(ch for ch in text if unicodedata.category(ch) not in ("Cc", "Cf"))

    def _remove_illegal_characters(self, text: str) -> str:
        text = text.translate(self._illegal_table)
        for pattern in self._compiled_patterns:
            text = pattern.sub("", text)
        return self._whitespace_pattern.sub(" ", text).strip()

    def _handle_reserved_names(self, text: str) -> str:
        if self.platform != "Windows":
            return text

        if text.split(".", 1)[0].upper() in self._WINDOWS_RESERVED_NAMES:
            return f"file_{text}"
        return text

    def _safe_truncate(self, text: str, max_length: int) -> str:
        if len(text) <= max_length:
            return text

        if "." in text:
            name, ext = text.rsplit(".", 1)
            ext = ext[:MAX_EXTENSION_LENGTH]
            available = max_length - len(ext) - 1
            if available < 1:
                return text[:max_length].rstrip(". \t")
            return f"{name[:available].rstrip('. ')}.{ext}"

        return text[:max_length].rstrip(". \t")


def create_filename_sanitizer(platform_name: Optional[str] = None) -> FilenameSanitizer:
    """工厂函数：创建文件名清理器"""
    return FilenameSanitizer(platform_name)
