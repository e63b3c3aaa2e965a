"""Configuration loading."""

from devsetup.core.config.loader import ConfigError, find_config_file, load_config

__all__ = ["ConfigError", "find_config_file", "load_config"]
