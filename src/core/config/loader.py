"""
Configuration loader — reads installer.yml into InstallerSettings.

The file is optional.  When it is absent the defaults apply; when
it is present it must be a YAML mapping that validates against the
InstallerSettings schema.  Environment variables override both.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from src.core.models.settings import InstallerSettings

logger = logging.getLogger(__name__)

# Default config filename
INSTALLER_CONFIG_FILE = "installer.yml"

# env var → settings field
_ENV_OVERRIDES = {
    "LUNA_HOST": "host",
    "LUNA_PORT": "port",
    "LUNA_TEMP_DIR": "temp_dir",
}


class ConfigError(Exception):
    """Raised when installer configuration is invalid or unreadable."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for installer.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to installer.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / INSTALLER_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(
    path: Path | None = None,
    env: dict[str, str] | None = None,
) -> InstallerSettings:
    """Load and validate installer settings.

    Args:
        path: Explicit path to installer.yml. If None, searches upward
            from cwd and falls back to defaults when nothing is found.
        env: Environment mapping for overrides (default: os.environ).

    Returns:
        Validated InstallerSettings.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    explicit = path is not None
    if path is None:
        path = find_config_file()

    data: dict[str, Any] = {}
    if path is not None:
        if not path.is_file():
            if explicit:
                raise ConfigError(f"Config file not found: {path}")
        else:
            data = _read_yaml(path)

    environ = os.environ if env is None else env
    for var, field_name in _ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            data[field_name] = value

    try:
        settings = InstallerSettings.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid installer configuration: {e}") from e

    logger.debug("Settings loaded (port=%d, temp_dir=%s)", settings.port, settings.temp_dir)
    return settings


def _read_yaml(path: Path) -> dict[str, Any]:
    logger.debug("Loading installer config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under an "installer" key or be flat
    return dict(data.get("installer", data))
