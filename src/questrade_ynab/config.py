"""
questrade-ynab configuration management.

Supports loading from YAML files, environment variables, and keyword overrides.
The resulting ``SyncConfig`` is passed explicitly to every component; nothing
reads settings from module globals.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from questrade_ynab.errors import ConfigError
from questrade_ynab.models.plan import SyncMode

_DEFAULT_CONFIG_DIR = Path.home() / ".questrade-ynab"


class SecurityConfig(BaseModel):
    """Security and privacy settings."""

    encrypt_at_rest: bool = Field(
        default=False,
        description="Encrypt config.json with a machine-bound key",
    )
    mask_tokens: bool = Field(default=True, description="Mask tokens in logs and output")


class SyncConfig(BaseModel):
    """Root configuration for questrade-ynab."""

    config_dir: Path = Field(default=_DEFAULT_CONFIG_DIR)
    questrade_auth_url: str = Field(default="https://login.questrade.com/oauth2/token")
    ynab_base_url: str = Field(default="https://api.ynab.com/v1")
    request_timeout: float = Field(default=10.0, gt=0, description="Per-request timeout in seconds")
    max_concurrency: int = Field(default=8, ge=1, description="Parallel balance fetches")
    default_mode: SyncMode = SyncMode.BALANCE

    # Transaction-mode settings
    payee_name: str = Field(default="Stock Market")
    memo: str = Field(default="Questrade sync")

    security: SecurityConfig = Field(default_factory=SecurityConfig)
    log_level: str = Field(default="WARNING")

    @field_validator("config_dir", mode="before")
    @classmethod
    def _expand_config_dir(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Path(value).expanduser()
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level

    @property
    def credentials_file(self) -> Path:
        return self.config_dir / "config.json"

    @property
    def mappings_file(self) -> Path:
        return self.config_dir / "mappings.json"

    @property
    def settings_file(self) -> Path:
        return self.config_dir / "settings.yaml"

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> SyncConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML file if provided
        if config_path:
            path = Path(config_path).expanduser()
            if path.exists():
                try:
                    with open(path) as f:
                        data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Cannot parse {path}: {e}") from e
                if not isinstance(data, dict):
                    raise ConfigError(f"{path} must contain a mapping at the top level")

        # 2. Override from environment variables
        env_dir = os.environ.get("QUESTRADE_YNAB_CONFIG_DIR")
        env_timeout = os.environ.get("QUESTRADE_YNAB_TIMEOUT")
        env_mode = os.environ.get("QUESTRADE_YNAB_MODE")
        env_level = os.environ.get("QUESTRADE_YNAB_LOG_LEVEL")
        env_encrypt = os.environ.get("QUESTRADE_YNAB_ENCRYPT")

        if env_dir:
            data["config_dir"] = env_dir
        if env_timeout:
            data["request_timeout"] = env_timeout
        if env_mode:
            data["default_mode"] = env_mode.lower()
        if env_level:
            data["log_level"] = env_level

        if env_encrypt:
            security = data.get("security", {})
            security["encrypt_at_rest"] = env_encrypt.lower() in ("1", "true", "yes")
            data["security"] = security

        # 3. Apply keyword overrides
        data.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
