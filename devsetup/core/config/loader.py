"""
Configuration loader — reads devsetup.yml into a SetupConfig.

The file is optional: when none is found the defaults describe the
standard setup. A file that exists but cannot be parsed or validated
is always an error.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from devsetup.core.models.config import SetupConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "devsetup.yml"
CONFIG_ENV_VAR = "DEVSETUP_CONFIG"


class ConfigError(Exception):
    """Raised when configuration is invalid or the host cannot be provisioned."""


def find_config_file(environ: Mapping[str, str] | None = None) -> Path | None:
    """Locate the config file.

    Search order:
        1. ``$DEVSETUP_CONFIG``
        2. ``./devsetup.yml``
        3. ``${XDG_CONFIG_HOME:-~/.config}/devsetup/devsetup.yml``

    Returns:
        Path to the first existing file, or None.
    """
    env = os.environ if environ is None else environ

    explicit = env.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit).expanduser()

    local = Path.cwd() / CONFIG_FILE
    if local.is_file():
        return local

    home = Path(env.get("HOME") or Path.home())
    config_home = Path(env.get("XDG_CONFIG_HOME") or home / ".config")
    candidate = config_home / "devsetup" / CONFIG_FILE
    if candidate.is_file():
        return candidate

    return None


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> SetupConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config path. If None, searches the default locations.
        environ: Environment used for the search (default: ``os.environ``).

    Returns:
        Validated SetupConfig (defaults when no file is found).

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file(environ)

    if path is None:
        logger.debug("No %s found — using defaults", CONFIG_FILE)
        return SetupConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return SetupConfig()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = SetupConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded config from %s", path)
    return config
