"""配置管理模块

支持从环境变量、.env 文件以及 JSON 端点文件加载配置
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import (
    DEFAULT_IDLE_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TICK_INTERVAL,
    Config,
)

ENV_PREFIX = "share_dl_"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "share-dl" / "endpoints.json"


class Settings(BaseSettings):
    """应用设置类，继承自 Pydantic BaseSettings"""

    # 端点 (环境变量中使用 JSON 列表)
    share_dl_endpoints: List[str] = []

    # 计时器
    share_dl_idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    share_dl_tick_interval: float = DEFAULT_TICK_INTERVAL

    # 网络配置
    share_dl_max_retries: int = DEFAULT_MAX_RETRIES
    share_dl_timeout: int = 30
    share_dl_user_agent: str = "share-dl/1.0"

    # 文件名设置
    share_dl_max_filename_length: int = 200

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )


class ConfigManager:
    """配置管理器"""

    def __init__(self):
        self._config: Optional[Config] = None

    def get_config(self) -> Config:
        """获取配置，优先环境变量，然后使用默认值"""
        if self._config is not None:
            return self._config

        try:
            settings = Settings()
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid environment configuration: {e}")

        # 移除 share_dl_ 前缀
        clean_config = {}
        for key, value in settings.model_dump().items():
            if key.startswith(ENV_PREFIX):
                clean_config[key[len(ENV_PREFIX):]] = value
            else:
                clean_config[key] = value

        try:
            self._config = Config(**clean_config)
            return self._config
        except PydanticValidationError as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}")

    def reset(self) -> None:
        """丢弃缓存的配置"""
        self._config = None


# 全局配置管理器实例
config_manager = ConfigManager()


def get_config() -> Config:
    """获取全局配置"""
    return config_manager.get_config()


def load_config(
    path: Optional[Union[str, Path]] = None, base: Optional[Config] = None
) -> Config:
    """从 JSON 文件加载配置，文件中的键覆盖 base 中的同名项

    文件可以是完整的配置对象，也可以只是端点列表。
    文件不存在时直接返回 base。
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    base = base or get_config()

    if not config_path.exists():
        return base

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigurationError(
            f"Failed to read config file: {e}", config_key="path", config_value=str(config_path)
        )

    if isinstance(data, list):
        data = {"endpoints": data}
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Config file must contain an object or a list of endpoints",
            config_key="path",
            config_value=str(config_path),
        )

    merged: Dict[str, Any] = {**base.model_dump(), **data}
    try:
        return Config(**merged)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Failed to validate configuration: {e}")


def save_config(config: Config, path: Optional[Union[str, Path]] = None) -> Path:
    """将端点列表写入 JSON 文件"""
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump({"endpoints": config.endpoints}, f, indent=2)
    except OSError as e:
        raise ConfigurationError(
            f"Failed to write config file: {e}", config_key="path", config_value=str(config_path)
        )
    return config_path


def check_environment() -> Dict[str, Any]:
    """检查环境变量配置"""
    env_vars = {}

    for key in os.environ:
        if key.startswith(ENV_PREFIX.upper()):
            env_vars[key] = os.environ[key]

    return env_vars
