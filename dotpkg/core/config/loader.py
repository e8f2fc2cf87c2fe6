"""
Configuration loader — reads config.yml into the Settings model.

Search order for the settings file:
    explicit path  >  DOTPKG_CONFIG env var  >  $XDG_CONFIG_HOME/dotpkg/config.yml

A missing file at the default location is not an error: every setting
has a default. A missing explicit file, unreadable YAML, or values that
fail validation raise ConfigError.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from dotpkg.core.models.settings import Settings

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "config.yml"
CONFIG_ENV_VAR = "DOTPKG_CONFIG"


class ConfigError(Exception):
    """Raised when the settings file is invalid or missing."""


def default_config_path() -> Path:
    """Location of the per-user settings file."""
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.join(
        os.path.expanduser("~"), ".config",
    )
    return Path(base) / "dotpkg" / CONFIG_FILE


def find_config_file(path: Path | None = None) -> tuple[Path, bool]:
    """Resolve which settings file to read.

    Returns:
        (path, explicit). ``explicit`` is True when the path came from the
        caller or the environment, i.e. it must exist.
    """
    if path is not None:
        return path, True
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser(), True
    return default_config_path(), False


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit path to a YAML settings file. If None, uses the
            environment variable or the per-user default.

    Returns:
        Validated Settings model.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    path, explicit = find_config_file(path)

    if not path.is_file():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        logger.debug("No settings file at %s, using defaults", path)
        return Settings()

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return Settings()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "dotpkg" key or be flat
    settings_data = data.get("dotpkg", data)

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e

    logger.info("Loaded settings from %s", path)
    return settings
