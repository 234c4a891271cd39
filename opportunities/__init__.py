"""Facebook opportunities scraper package bootstrap."""

from .settings import ConfigError, Settings, get_settings, reset_settings_cache  # noqa: F401

__all__ = [
    "ConfigError",
    "Settings",
    "get_settings",
    "reset_settings_cache",
]
