"""
InstallerSettings — process-wide configuration.

Loaded from installer.yml (optional) with environment overrides.
Every field has a working default, so the installer runs with no
configuration file at all.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

TEMP_DIR_NAME = "TidaLunaInstaller"


def _default_temp_dir() -> str:
    return str(Path(tempfile.gettempdir()) / TEMP_DIR_NAME)


class InstallerSettings(BaseModel):
    """Runtime settings for the web server and the step pipeline."""

    host: str = "127.0.0.1"
    port: int = 65530
    open_browser: bool = True

    temp_dir: str = Field(default_factory=_default_temp_dir)
    download_timeout: int = 60      # seconds, per socket operation
    command_timeout: int = 60       # seconds, kill / codesign

    pause_min: float = 0.5          # inter-step pause bounds (seconds)
    pause_max: float = 1.5

    @field_validator("port")
    @classmethod
    def _valid_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError(f"port must be between 1 and 65535, got {v}")
        return v

    @model_validator(mode="after")
    def _pause_bounds(self) -> InstallerSettings:
        if self.pause_min < 0 or self.pause_max < self.pause_min:
            raise ValueError("pause bounds must satisfy 0 <= pause_min <= pause_max")
        return self

    @property
    def temp_path(self) -> Path:
        """Installer scratch directory."""
        return Path(self.temp_dir)

    @property
    def archive_path(self) -> Path:
        """Where the downloaded payload archive is written."""
        return self.temp_path / "Luna.zip"

    @property
    def extract_path(self) -> Path:
        """Where the payload archive is unpacked."""
        return self.temp_path / "LunaExtracted"

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}"
