"""Tests for configuration management."""

from pathlib import Path

import pytest
import yaml

from questrade_ynab.config import SyncConfig
from questrade_ynab.errors import ConfigError
from questrade_ynab.models.plan import SyncMode

ENV_VARS = (
    "QUESTRADE_YNAB_CONFIG_DIR",
    "QUESTRADE_YNAB_TIMEOUT",
    "QUESTRADE_YNAB_MODE",
    "QUESTRADE_YNAB_LOG_LEVEL",
    "QUESTRADE_YNAB_ENCRYPT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestConfig:
    def test_default_config(self) -> None:
        config = SyncConfig()
        assert config.config_dir == Path.home() / ".questrade-ynab"
        assert config.ynab_base_url == "https://api.ynab.com/v1"
        assert config.request_timeout == 10.0
        assert config.max_concurrency == 8
        assert config.default_mode is SyncMode.BALANCE
        assert config.payee_name == "Stock Market"
        assert config.memo == "Questrade sync"
        assert config.security.encrypt_at_rest is False
        assert config.security.mask_tokens is True

    def test_file_locations(self, tmp_path: Path) -> None:
        config = SyncConfig(config_dir=tmp_path)
        assert config.credentials_file == tmp_path / "config.json"
        assert config.mappings_file == tmp_path / "mappings.json"
        assert config.settings_file == tmp_path / "settings.yaml"

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        yaml_content = {
            "config_dir": str(tmp_path / "state"),
            "request_timeout": 30,
            "default_mode": "transaction",
            "payee_name": "Brokerage",
            "security": {"encrypt_at_rest": True},
        }
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(yaml.dump(yaml_content))

        config = SyncConfig.load(str(config_file))
        assert config.config_dir == tmp_path / "state"
        assert config.request_timeout == 30.0
        assert config.default_mode is SyncMode.TRANSACTION
        assert config.payee_name == "Brokerage"
        assert config.security.encrypt_at_rest is True

    def test_load_with_overrides(self, tmp_path: Path) -> None:
        config = SyncConfig.load(None, config_dir=str(tmp_path), max_concurrency=2, memo=None)
        assert config.config_dir == tmp_path
        assert config.max_concurrency == 2
        assert config.memo == "Questrade sync"

    def test_env_var_override(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("QUESTRADE_YNAB_CONFIG_DIR", str(tmp_path))
        monkeypatch.setenv("QUESTRADE_YNAB_TIMEOUT", "2.5")
        monkeypatch.setenv("QUESTRADE_YNAB_MODE", "TRANSACTION")
        monkeypatch.setenv("QUESTRADE_YNAB_LOG_LEVEL", "debug")
        monkeypatch.setenv("QUESTRADE_YNAB_ENCRYPT", "yes")

        config = SyncConfig.load()
        assert config.config_dir == tmp_path
        assert config.request_timeout == 2.5
        assert config.default_mode is SyncMode.TRANSACTION
        assert config.log_level == "DEBUG"
        assert config.security.encrypt_at_rest is True

    def test_overrides_beat_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("QUESTRADE_YNAB_TIMEOUT", "2.5")
        config = SyncConfig.load(request_timeout=4)
        assert config.request_timeout == 4.0

    def test_tilde_expanded(self) -> None:
        config = SyncConfig(config_dir="~/qy")
        assert config.config_dir == Path.home() / "qy"

    def test_missing_config_file(self) -> None:
        config = SyncConfig.load("/nonexistent/settings.yaml")
        assert config.max_concurrency == 8

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("request_timeout: [unclosed")
        with pytest.raises(ConfigError):
            SyncConfig.load(str(config_file))

    def test_non_mapping_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError):
            SyncConfig.load(str(config_file))

    def test_invalid_values(self) -> None:
        with pytest.raises(ConfigError):
            SyncConfig.load(request_timeout=0)
        with pytest.raises(ConfigError):
            SyncConfig.load(max_concurrency=0)
        with pytest.raises(ConfigError):
            SyncConfig.load(default_mode="sideways")
        with pytest.raises(ConfigError):
            SyncConfig.load(log_level="chatty")
