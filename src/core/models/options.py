"""
InstallOptions — user-supplied run parameters.

The web frontend sends camelCase query parameters (``downloadUrl``,
``overwritePath``); both those and the snake_case field names are
accepted.  Options are frozen: once the manager accepts them they do
not change for the duration of a run.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InstallAction(StrEnum):
    """What a run should do to the target application."""

    INSTALL = "install"
    UNINSTALL = "uninstall"


class InstallOptions(BaseModel):
    """Parameters for one install/uninstall run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    action: InstallAction
    download_url: str | None = Field(default=None, alias="downloadUrl")
    overwrite_path: str | None = Field(default=None, alias="overwritePath")

    @model_validator(mode="before")
    @classmethod
    def _blank_to_none(cls, data: Any) -> Any:
        # Query strings deliver "" for omitted optional values
        if isinstance(data, dict):
            data = dict(data)
            for key in ("download_url", "downloadUrl", "overwrite_path", "overwritePath"):
                value = data.get(key)
                if isinstance(value, str) and not value.strip():
                    data[key] = None
            if data.get("action") == InstallAction.UNINSTALL:
                # Uninstall runs never carry a download URL
                data.pop("download_url", None)
                data.pop("downloadUrl", None)
        return data

    @model_validator(mode="after")
    def _require_url_for_install(self) -> InstallOptions:
        if self.action == InstallAction.INSTALL and not self.download_url:
            raise ValueError("downloadUrl is required for action 'install'")
        return self

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase, as the frontend expects)."""
        return {
            "action": self.action.value,
            "downloadUrl": self.download_url,
            "overwritePath": self.overwrite_path,
        }
