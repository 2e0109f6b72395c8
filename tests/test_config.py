"""配置管理测试"""

import json

import pytest

from share_dl.config import (
    ConfigManager,
    check_environment,
    get_config,
    load_config,
    save_config,
)
from share_dl.exceptions import ConfigurationError
from share_dl.models import Config


class TestEnvironment:
    """环境变量配置"""

    def test_defaults(self, clean_env):
        config = ConfigManager().get_config()

        assert config.endpoints == []
        assert config.idle_timeout == 4.0
        assert config.tick_interval == 1.0
        assert config.max_retries == 4

    def test_env_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("SHARE_DL_IDLE_TIMEOUT", "2.5")
        monkeypatch.setenv("SHARE_DL_MAX_RETRIES", "2")
        monkeypatch.setenv("SHARE_DL_ENDPOINTS", '["http://10.0.0.5:8080/"]')

        config = ConfigManager().get_config()

        assert config.idle_timeout == 2.5
        assert config.max_retries == 2
        assert config.endpoints == ["http://10.0.0.5:8080/"]
        assert "SHARE_DL_IDLE_TIMEOUT" in check_environment()

    def test_dotenv_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("SHARE_DL_TIMEOUT=12\n", encoding="utf-8")
        assert ConfigManager().get_config().timeout == 12

    def test_unparseable_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("SHARE_DL_TIMEOUT", "soon")
        with pytest.raises(ConfigurationError):
            ConfigManager().get_config()

    def test_invalid_value(self, clean_env, monkeypatch):
        monkeypatch.setenv("SHARE_DL_IDLE_TIMEOUT", "-1")
        with pytest.raises(ConfigurationError):
            ConfigManager().get_config()

    def test_global_config_is_cached(self, clean_env):
        assert get_config() is get_config()


class TestConfigFile:
    """JSON 配置文件"""

    def test_list_of_endpoints(self, tmp_path):
        path = tmp_path / "endpoints.json"
        path.write_text(json.dumps(["http://a.local/", "http://b.local/"]), encoding="utf-8")

        config = load_config(path, base=Config())

        assert config.endpoints == ["http://a.local/", "http://b.local/"]

    def test_object_overrides_base(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"max_retries": 1}), encoding="utf-8")

        config = load_config(path, base=Config(endpoints=["http://a.local/"]))

        assert config.max_retries == 1
        assert config.endpoints == ["http://a.local/"]

    def test_missing_file_returns_base(self, tmp_path):
        base = Config(idle_timeout=9)
        assert load_config(tmp_path / "nope.json", base=base) is base

    def test_broken_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path, base=Config())
        assert exc_info.value.config_value == str(path)

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('"just a string"', encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config(path, base=Config())

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"tick_interval": 0}), encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config(path, base=Config())

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "endpoints.json"
        saved = save_config(Config(endpoints=["http://a.local/"]), path)

        assert saved == path
        assert json.loads(path.read_text(encoding="utf-8")) == {"endpoints": ["http://a.local/"]}
        assert load_config(path, base=Config()).endpoints == ["http://a.local/"]
