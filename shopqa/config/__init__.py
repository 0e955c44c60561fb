"""Configuration management for shopqa."""

from shopqa.config.settings import HarnessConfig, load_config

__all__ = [
    "HarnessConfig",
    "load_config",
]
