"""
Progress messages — the installer's vocabulary on the event bus.

Event types:

    install:log       global log line            {message, error?, isError}
    step:log          log line for one step      {step, message, error?, isError}
    step:update       a step is about to run     {step, index}
    install:start     a run has started          {steps, currentStep, currentStepIndex, action}
    install:complete  the run finished           {}
    install:failed    the run halted             {message, step}

The engine talks through ``Messenger``; step implementations get a
``StepReporter`` already bound to their step so they cannot log under
the wrong identifier.
"""

from __future__ import annotations

import logging
from typing import Any

from src.core.models.step import Step, StepResult
from src.core.services.event_bus import EventBus

logger = logging.getLogger(__name__)

INSTALL_LOG = "install:log"
STEP_LOG = "step:log"
STEP_UPDATE = "step:update"
INSTALL_START = "install:start"
INSTALL_COMPLETE = "install:complete"
INSTALL_FAILED = "install:failed"

EVENT_TYPES = (
    INSTALL_LOG,
    STEP_LOG,
    STEP_UPDATE,
    INSTALL_START,
    INSTALL_COMPLETE,
    INSTALL_FAILED,
)


def _error_text(error: BaseException | str | None) -> str | None:
    if error is None:
        return None
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return error


class Messenger:
    """Publishes installer progress events onto an EventBus."""

    def __init__(self, bus: EventBus) -> None:
        self.bus = bus

    # ── Global ──────────────────────────────────────────────────

    def global_log(self, message: str) -> None:
        logger.info(message)
        self.bus.publish(INSTALL_LOG, data={"message": message, "isError": False})

    def global_error(self, message: str, error: BaseException | str | None = None) -> None:
        err = _error_text(error)
        logger.warning("%s (%s)", message, err or "-")
        self.bus.publish(
            INSTALL_LOG,
            data={"message": message, "error": err, "isError": True},
        )

    # ── Step-scoped ─────────────────────────────────────────────

    def step_log(self, step: Step, message: str) -> None:
        logger.info("[%s] %s", step.value, message)
        self.bus.publish(
            STEP_LOG,
            key=step.value,
            data={"step": step.value, "message": message, "isError": False},
        )

    def step_error(
        self,
        step: Step,
        message: str,
        error: BaseException | str | None = None,
    ) -> None:
        err = _error_text(error)
        logger.warning("[%s] %s (%s)", step.value, message, err or "-")
        self.bus.publish(
            STEP_LOG,
            key=step.value,
            data={"step": step.value, "message": message, "error": err, "isError": True},
        )

    def for_step(self, step: Step) -> StepReporter:
        return StepReporter(self, step)

    # ── Run lifecycle ───────────────────────────────────────────

    def next_step(self, step: Step, index: int) -> None:
        self.bus.publish(STEP_UPDATE, key=step.value, data={"step": step.value, "index": index})

    def install_start(
        self,
        steps: list[Step],
        current_step: Step | None,
        current_step_index: int,
        action: str,
    ) -> None:
        self.bus.publish(
            INSTALL_START,
            data={
                "steps": [s.value for s in steps],
                "currentStep": current_step.value if current_step else None,
                "currentStepIndex": current_step_index,
                "action": action,
            },
        )

    def install_complete(self) -> None:
        self.bus.publish(INSTALL_COMPLETE)

    def install_failed(self, message: str, step: Step | None = None) -> None:
        logger.error(message)
        self.bus.publish(
            INSTALL_FAILED,
            key=step.value if step else "",
            data={"message": message, "step": step.value if step else None},
        )


class StepReporter:
    """Step-bound view of a Messenger, handed to step implementations.

    Usage::

        reporter.log("Creating temporary directory")
        if not path.exists():
            return reporter.fail("TIDAL is not installed", "Invalid file path")
        return reporter.done("TIDAL is installed")
    """

    def __init__(self, messenger: Messenger, step: Step) -> None:
        self._messenger = messenger
        self.step = step

    def log(self, message: str) -> None:
        self._messenger.step_log(self.step, message)

    def error(self, message: str, error: BaseException | str | None = None) -> None:
        self._messenger.step_error(self.step, message, error)

    def fail(self, message: str, error: BaseException | str | None = None) -> StepResult:
        """Emit a step error and build the matching failure result."""
        self.error(message, error)
        return StepResult.failure(self.step, message, _error_text(error))

    def done(self, message: str, **kwargs: Any) -> StepResult:
        """Emit a final log line and build a success result."""
        self.log(message)
        return StepResult.success(self.step, message, **kwargs)

    def skip(self, reason: str) -> StepResult:
        self.log(reason)
        return StepResult.skip(self.step, reason)
