"""Configuration settings and loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shopqa.errors import ConfigError


class HarnessConfig(BaseSettings):
    """Configuration for the shopqa harness.

    Every field can be overridden with a ``SHOPQA_``-prefixed environment
    variable, e.g. ``SHOPQA_USERNAME`` or ``SHOPQA_MIN_TOKEN_LIFETIME``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHOPQA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = "http://localhost:8000"
    api_path: str = "/api"
    api_version: str = ""
    store_api_path: str = "/store-api"

    grant_type: str = "password"
    client_id: str = "administration"
    scope: str = "write"
    username: str = "admin"
    password: str = "shopware"
    min_token_lifetime: int = 60
    auth_single_flight: bool = False

    locale: str = "en-GB"
    sales_channel_name: str = "Storefront"
    timeout: float = 30.0

    local_usage: bool = False
    shopware_root: str = "."
    cleanup_port: int = 8005
    cleanup_url: str | None = None
    fixtures_path: str | None = None

    verbose: bool = False
    json_logs: bool = False

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("min_token_lifetime")
    @classmethod
    def validate_min_token_lifetime(cls, v: int) -> int:
        if v < 0:
            raise ValueError("min_token_lifetime must not be negative")
        return v

    @property
    def admin_api_path(self) -> str:
        """Admin API base path including the optional version segment."""
        path = "/" + self.api_path.strip("/")
        if self.api_version:
            path = f"{path}/{self.api_version.strip('/')}"
        return path

    @property
    def cleanup_endpoint(self) -> str:
        """URL of the local cleanup server's /cleanup route."""
        if self.cleanup_url:
            return self.cleanup_url
        hostname = urlparse(self.base_url).hostname or "localhost"
        return f"http://{hostname}:{self.cleanup_port}/cleanup"

    @property
    def restore_command(self) -> list[str]:
        """Command that restores the baseline database for local usage."""
        root = self.shopware_root.rstrip("/") or "."
        return [f"{root}/bin/console", "e2e:restore-db"]


def load_config(config_path: str | Path | None = None, **overrides: Any) -> HarnessConfig:
    """Load configuration from file and environment.

    Priority: explicit overrides > env vars > config file > defaults
    """
    config_data: dict[str, Any] = {}

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}", field="config_path")
        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}", cause=e) from e
        if not isinstance(config_data, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")

    # init kwargs beat env vars in pydantic-settings, so file values must yield
    config_data = {
        k: v for k, v in config_data.items() if f"SHOPQA_{k.upper()}" not in os.environ
    }
    config_data.update(_get_env_overrides())
    config_data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return HarnessConfig(**config_data)
    except ValueError as e:
        raise ConfigError(str(e), cause=e) from e


def _get_env_overrides() -> dict[str, Any]:
    """Get overrides from the short environment names used by CI pipelines."""
    overrides: dict[str, Any] = {}

    env_mappings = {
        "APP_URL": "base_url",
        "SHOPQA_USER": "username",
        "SHOPQA_PASS": "password",
        "SHOPQA_GRANT": "grant_type",
        "PROJECT_ROOT": "shopware_root",
    }

    for env_key, config_key in env_mappings.items():
        value = os.environ.get(env_key)
        if value is not None:
            overrides[config_key] = value

    return overrides
