"""文件管理器模块

负责目标目录的校验与创建，以及把下载到的字节原样写入磁盘。
"""

import logging
from pathlib import Path
from typing import Union

import aiofiles

from ..exceptions import FileOperationError, PathSecurityError
from ..filename_sanitizer import create_filename_sanitizer
from ..models import Config

log = logging.getLogger(__name__)


class FileManager:
    """文件管理器

    负责所有文件操作的安全管理，包括:
    - 目标目录校验和递归创建
    - 文件名清理，保证写入路径不越出目标目录
    - 二进制写入
    """

    MAX_PATH_LENGTH = 4096

    # 不允许作为下载目录的系统目录
    DANGEROUS_PATHS = [
        "/etc",
        "/bin",
        "/sbin",
        "/usr/bin",
        "/usr/sbin",
        "/boot",
        "/sys",
        "/proc",
        "/dev",
        "c:/windows",
        "c:/program files",
        "c:/program files (x86)",
    ]

    def __init__(self, config: Config):
        """初始化文件管理器

        Args:
            config: 配置对象
        """
        self.config = config
        self.sanitizer = create_filename_sanitizer()

    def validate_download_path(self, download_dir: Union[str, Path]) -> Path:
        """把下载目录解析为绝对路径并做安全检查

        Raises:
            PathSecurityError: 路径过长或指向系统目录
        """
        try:
            path = Path(download_dir).expanduser().resolve()
        except (OSError, RuntimeError, ValueError) as e:
            raise PathSecurityError(
                f"Invalid path format: {e}",
                path=str(download_dir),
                attack_type="invalid_path",
            )

        if len(str(path)) > self.MAX_PATH_LENGTH:
            raise PathSecurityError(
                f"Path too long: exceeds {self.MAX_PATH_LENGTH} characters limit",
                path=str(path),
                attack_type="path_length_limit",
            )

        if self._is_dangerous_system_path(path):
            raise PathSecurityError(
                "Access to system directories not allowed",
                path=str(path),
                attack_type="system_directory_access",
            )

        return path

    def _is_dangerous_system_path(self, path: Path) -> bool:
        path_str = str(path).lower().replace("\\", "/")
        for dangerous in self.DANGEROUS_PATHS:
            if path_str == dangerous or path_str.startswith(dangerous + "/"):
                return True
        return False

    async def create_directory(self, dir_path: Path) -> None:
        """递归创建目录

        Raises:
            FileOperationError: 目录创建失败时
        """
        try:
            dir_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileOperationError(
                f"Directory creation failed: {e}",
                file_path=str(dir_path),
                operation="mkdir",
            )

    async def prepare_directory(self, download_dir: Union[str, Path]) -> Path:
        """校验并创建下载目录，返回绝对路径"""
        path = self.validate_download_path(download_dir)
        await self.create_directory(path)
        return path

    def resolve_target(self, directory: Union[str, Path], filename: str) -> Path:
        """清理文件名并拼出目标路径

        Raises:
            FileOperationError: 路径无法解析（例如符号链接循环）
            PathSecurityError: 结果路径不在目标目录内
        """
        safe_name = self.sanitizer.sanitize(filename, self.config.max_filename_length)
        try:
            base = Path(directory).resolve()
            target = (base / safe_name).resolve()
        except (OSError, RuntimeError) as e:
            raise FileOperationError(
                f"Cannot resolve target path: {e}",
                file_path=str(Path(directory) / safe_name),
                operation="resolve",
            )

        if target.parent != base:
            raise PathSecurityError(
                "Resolved file path escapes the download directory",
                path=str(target),
                attack_type="path_traversal",
            )
        return target

    async def write_bytes(self, file_path: Path, content: bytes) -> int:
        """异步写入二进制内容，返回写入的字节数

        Raises:
            FileOperationError: 文件写入失败时
        """
        try:
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            raise FileOperationError(
                f"File write failed: {e}",
                file_path=str(file_path),
                operation="write",
            )

        log.debug("Wrote %d bytes to %s", len(content), file_path)
        return len(content)
