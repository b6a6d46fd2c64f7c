"""
Step and StepResult models — the step execution contract.

Steps are stateless identifiers for one stage of an install or
uninstall plan.  The engine tracks position; steps never do.

StepResult is what a step implementation hands back to the engine.
A step NEVER raises to report failure —
it returns ``StepResult.failure(...)`` after logging the cause.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel


class Step(StrEnum):
    """All pipeline stages, in declaration order."""

    SETUP = "SETUP"
    KILLING_TIDAL = "KILLING_TIDAL"
    UNINSTALLING = "UNINSTALLING"
    DOWNLOADING_LUNA = "DOWNLOADING_LUNA"
    EXTRACTING_LUNA = "EXTRACTING_LUNA"
    COPYING_ASAR_INSTALL = "COPYING_ASAR_INSTALL"
    INSERTING_LUNA = "INSERTING_LUNA"
    COPYING_ASAR_UNINSTALL = "COPYING_ASAR_UNINSTALL"
    SIGNING_TIDAL = "SIGNING_TIDAL"

    @property
    def label(self) -> str:
        """Human-readable name shown in progress output."""
        return STEP_LABELS[self]


STEP_LABELS: dict[Step, str] = {
    Step.SETUP: "Preparing installer",
    Step.KILLING_TIDAL: "Closing TIDAL",
    Step.UNINSTALLING: "Removing existing Luna files",
    Step.DOWNLOADING_LUNA: "Downloading Luna",
    Step.EXTRACTING_LUNA: "Extracting Luna",
    Step.COPYING_ASAR_INSTALL: "Backing up app.asar",
    Step.INSERTING_LUNA: "Installing Luna",
    Step.COPYING_ASAR_UNINSTALL: "Restoring app.asar",
    Step.SIGNING_TIDAL: "Signing TIDAL",
}


class StepResult(BaseModel):
    """Outcome of a single step execution."""

    step: Step
    status: Literal["ok", "skipped", "failed"] = "ok"
    message: str = ""
    error: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        """Whether the pipeline may continue (skipped counts as success)."""
        return self.status != "failed"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, step: Step, message: str = "", **kwargs: Any) -> StepResult:
        """Create a success result."""
        return cls(step=step, status="ok", message=message, **kwargs)

    @classmethod
    def skip(cls, step: Step, reason: str = "", **kwargs: Any) -> StepResult:
        """Create a skip result (step had nothing to do)."""
        return cls(step=step, status="skipped", message=reason, **kwargs)

    @classmethod
    def failure(
        cls,
        step: Step,
        message: str,
        error: str | None = None,
        **kwargs: Any,
    ) -> StepResult:
        """Create a failure result."""
        return cls(step=step, status="failed", message=message, error=error, **kwargs)
