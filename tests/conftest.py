"""pytest配置文件"""

import os

import pytest

from share_dl.config import config_manager
from share_dl.core.file_manager import FileManager
from share_dl.core.progress_manager import ProgressManager
from share_dl.models import Config

from .utils.fake_transport import ENDPOINT_A, FakeTransport


@pytest.fixture
def fast_config():
    """缩短计时器的测试配置"""
    return Config(endpoints=[ENDPOINT_A], idle_timeout=1.0, tick_interval=0.05)


@pytest.fixture
def transport():
    """可编排的假传输层"""
    return FakeTransport()


@pytest.fixture
def file_manager(fast_config):
    return FileManager(fast_config)


@pytest.fixture
def progress():
    return ProgressManager()


@pytest.fixture
def download_dir(tmp_path):
    """尚不存在的下载目录"""
    return tmp_path / "downloads"


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """清除 SHARE_DL_* 环境变量并重置全局配置缓存"""
    for key in list(os.environ):
        if key.upper().startswith("SHARE_DL_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    config_manager.reset()
    yield
    config_manager.reset()
