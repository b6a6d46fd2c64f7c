"""
InstallManager — the install/uninstall step pipeline.

The manager owns the run state, turns the requested action into an
ordered plan of steps, and drives the steps one at a time, publishing
progress on the event bus as it goes.

Flow:
    set_options → generate_steps → start → step, pause, step, ... → complete | failed

Single flight
─────────────
At most one run is active.  ``set_options``, ``generate_steps`` and
``start`` refuse while a run is active: they publish one global error
event, leave the state untouched and return False.  Nothing is queued.
The check-and-set of ``is_running`` happens under ``_lock`` because
the HTTP server handles requests on several threads; step execution
itself holds no lock.  Nothing published under ``_lock`` may call back
into the manager's commands.

Terminal paths
──────────────
A run ends on the first failing step (``install:failed``) or after
the last step succeeds (``install:complete``).  On both paths
``is_running`` is cleared *before* the final event is published, so
an observer that sees the final event also sees a stopped run.  Both
happen under ``_lock``, so the next run's ``install:start`` always
follows the previous run's final event.

No rollback is attempted: each step is responsible for leaving the
filesystem recoverable.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from src.core.models.options import InstallAction, InstallOptions
from src.core.models.settings import InstallerSettings
from src.core.models.step import Step, StepResult
from src.core.services.event_bus import EventBus
from src.core.services.event_bus import bus as default_bus
from src.core.services.install.messages import Messenger
from src.core.services.install.registry import STEP_REGISTRY, StepFn

logger = logging.getLogger(__name__)


# ── Plans ────────────────────────────────────────────────────────────

INSTALL_PLAN: tuple[Step, ...] = (
    Step.SETUP,
    Step.KILLING_TIDAL,
    Step.UNINSTALLING,
    Step.DOWNLOADING_LUNA,
    Step.EXTRACTING_LUNA,
    Step.COPYING_ASAR_INSTALL,
    Step.INSERTING_LUNA,
    Step.SIGNING_TIDAL,
)

UNINSTALL_PLAN: tuple[Step, ...] = (
    Step.KILLING_TIDAL,
    Step.UNINSTALLING,
    Step.COPYING_ASAR_UNINSTALL,
)

PLANS: dict[InstallAction, tuple[Step, ...]] = {
    InstallAction.INSTALL: INSTALL_PLAN,
    InstallAction.UNINSTALL: UNINSTALL_PLAN,
}


# ── Pause strategies ─────────────────────────────────────────────────

Pause = Callable[[], None]


def random_pause(low: float = 0.5, high: float = 1.5) -> Pause:
    """Sleep a random duration between steps so progress is visible."""

    def _pause() -> None:
        time.sleep(random.uniform(low, high))

    return _pause


def no_pause() -> None:
    """Pause strategy that returns immediately."""


# ── Runners ──────────────────────────────────────────────────────────

Runner = Callable[[Callable[[], None]], threading.Thread | None]


def thread_runner(target: Callable[[], None]) -> threading.Thread:
    """Run the pipeline on a daemon worker thread."""
    worker = threading.Thread(target=target, name="install-run", daemon=True)
    worker.start()
    return worker


def inline_runner(target: Callable[[], None]) -> None:
    """Run the pipeline on the calling thread (CLI, tests)."""
    target()


# ── State ────────────────────────────────────────────────────────────


@dataclass
class RunState:
    """Mutable state of the current (or most recent) run."""

    is_running: bool = False
    steps: list[Step] = field(default_factory=list)
    current_step_index: int = 0
    current_step: Step | None = None
    options: InstallOptions | None = None
    plan_ready: bool = False
    last_result: str | None = None          # completed | failed
    failed_step: Step | None = None


_ALREADY_RUNNING = "Installation process is already running."


class InstallManager:
    """Plans and executes install/uninstall runs.

    Args:
        bus: Event bus progress is published on.
        registry: Step → implementation table.
        settings: Installer settings handed to every step.
        pause: Called between steps (default: random 0.5–1.5 s from settings).
        runner: Launches the run loop (default: background thread).
    """

    def __init__(
        self,
        *,
        bus: EventBus | None = None,
        registry: Mapping[Step, StepFn] | None = None,
        settings: InstallerSettings | None = None,
        pause: Pause | None = None,
        runner: Runner | None = None,
    ) -> None:
        self.bus = bus or default_bus
        self.messenger = Messenger(self.bus)
        self.settings = settings or InstallerSettings()
        self._registry = STEP_REGISTRY if registry is None else registry
        self._pause = pause or random_pause(self.settings.pause_min, self.settings.pause_max)
        self._runner = runner or thread_runner
        self._state = RunState()
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None
        self.results: list[StepResult] = []

    # ── Read accessors ──────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def current_step(self) -> Step | None:
        return self._state.current_step

    @property
    def steps(self) -> list[Step]:
        return list(self._state.steps)

    @property
    def current_step_index(self) -> int:
        return self._state.current_step_index

    @property
    def options(self) -> InstallOptions | None:
        return self._state.options

    @property
    def last_result(self) -> str | None:
        return self._state.last_result

    def get_state(self) -> dict[str, Any]:
        """Snapshot of the run state for polling observers.

        Safe to call at any time, including before any run and while
        a run is in progress.
        """
        state = self._state
        return {
            "isRunning": state.is_running,
            "options": state.options.to_dict() if state.options else {},
            "currentStep": state.current_step.value if state.current_step else "none",
            "currentStepIndex": state.current_step_index,
            "steps": [s.value for s in state.steps],
            "lastResult": state.last_result,
            "failedStep": state.failed_step.value if state.failed_step else None,
        }

    # ── Commands ────────────────────────────────────────────────

    def set_options(self, options: InstallOptions | Mapping[str, Any]) -> bool:
        """Validate and store the options for the next run.

        Returns:
            True if accepted.  On rejection one global error event is
            published and the state is left unchanged.
        """
        reason = ""
        try:
            parsed = (
                options
                if isinstance(options, InstallOptions)
                else InstallOptions.model_validate(dict(options))
            )
        except ValidationError as e:
            parsed = None
            reason = "; ".join(err["msg"] for err in e.errors())

        with self._lock:
            if self._state.is_running:
                rejected = _ALREADY_RUNNING
            elif parsed is None:
                rejected = "Invalid options."
            else:
                rejected = None
                self._state.options = parsed
                self._state.plan_ready = False

        if rejected == _ALREADY_RUNNING:
            self.messenger.global_error(rejected, "InstallManager.set_options")
            return False
        if rejected:
            self.messenger.global_error(rejected, reason)
            return False

        self.messenger.global_log("Options set successfully.")
        return True

    def generate_steps(self) -> bool:
        """Build the step plan for the stored options' action."""
        with self._lock:
            state = self._state
            if state.is_running:
                error = (_ALREADY_RUNNING, "InstallManager.generate_steps")
            elif state.options is None:
                error = ("Options are not set.", "InstallManager.generate_steps")
            elif state.options.action not in PLANS:
                error = ("Invalid action.", f"Unknown action: {state.options.action}")
            else:
                error = None
                state.steps = list(PLANS[state.options.action])
                state.current_step_index = 0
                state.current_step = state.steps[0]
                state.plan_ready = True
                state.last_result = None
                state.failed_step = None

        if error:
            self.messenger.global_error(*error)
            return False

        self.messenger.global_log("Install steps generated successfully.")
        return True

    def start(self) -> bool:
        """Start executing the generated plan.

        Returns as soon as the run has been handed to the runner;
        progress and the outcome arrive on the event bus.
        """
        with self._lock:
            state = self._state
            if state.is_running:
                error = (_ALREADY_RUNNING, "InstallManager.start")
            elif not state.plan_ready or not state.steps or state.options is None:
                error = (
                    "Install steps are not generated or options missing.",
                    "InstallManager.start",
                )
            else:
                error = None
                state.is_running = True
                state.plan_ready = False
                self.results = []

        if error:
            self.messenger.global_error(*error)
            return False

        self.messenger.install_start(
            self.steps,
            state.current_step,
            state.current_step_index,
            state.options.action.value,
        )
        self.messenger.global_log("Installation process started.")
        self._worker = self._runner(self._run)
        return True

    def run(self, options: InstallOptions | Mapping[str, Any], timeout: float | None = None) -> bool:
        """Set options, plan, start, and wait for the outcome.

        Returns:
            True if the run completed successfully.
        """
        if not (self.set_options(options) and self.generate_steps() and self.start()):
            return False
        self.wait(timeout)
        return self._state.last_result == "completed"

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for a background run to finish.

        Returns:
            True if no run is active when the call returns.
        """
        worker = self._worker
        if worker is not None:
            worker.join(timeout)
        return not self._state.is_running

    # ── Execution ───────────────────────────────────────────────

    def _run(self) -> None:
        try:
            while self._execute_current_step():
                self._pause()
        except Exception as exc:
            logger.exception("Install run aborted")
            if self._state.is_running:
                self._fail(self._state.current_step, f"Installation aborted: {exc}")

    def _execute_current_step(self) -> bool:
        """Run the step at the current index.

        Returns:
            True if another step follows, False once the run has ended.
        """
        state = self._state
        index = state.current_step_index
        options = state.options
        if index >= len(state.steps) or options is None:
            self._fail(None, "Invalid step or missing options.")
            return False

        step = state.steps[index]
        state.current_step = step
        self.messenger.next_step(step, index)

        impl = self._registry.get(step)
        if impl is None:
            self._fail(step, f"No implementation registered for step {step}.")
            return False

        result = self._invoke(step, impl, options)
        self.results.append(result)
        logger.info(
            "%s %s → %s (%dms)",
            "✓" if result.ok else "✗",
            step.value,
            result.status,
            result.duration_ms,
        )

        if result.failed:
            self._fail(step, f"{step.value} step failed.")
            return False

        state.current_step_index = index + 1
        if state.current_step_index >= len(state.steps):
            self._complete()
            return False

        state.current_step = state.steps[state.current_step_index]
        return True

    def _invoke(self, step: Step, impl: StepFn, options: InstallOptions) -> StepResult:
        reporter = self.messenger.for_step(step)
        t0 = time.monotonic()
        try:
            outcome: Any = impl(options, reporter, self.settings)
        except Exception as exc:
            logger.exception("Step %s raised", step.value)
            reporter.error(f"Error executing step {step.value}", exc)
            outcome = StepResult.failure(step, f"Error executing step {step.value}: {exc}", str(exc))

        if isinstance(outcome, StepResult):
            result = outcome
        elif outcome is True:
            result = StepResult.success(step)
        else:
            result = StepResult.failure(step, f"{step.value} reported failure")

        duration_ms = int((time.monotonic() - t0) * 1000)
        return result.model_copy(update={"duration_ms": duration_ms})

    def _fail(self, step: Step | None, message: str) -> None:
        state = self._state
        with self._lock:
            state.last_result = "failed"
            state.failed_step = step
            state.is_running = False
            self.messenger.install_failed(message, step)

    def _complete(self) -> None:
        self.messenger.global_log("Installation process completed successfully.")
        state = self._state
        with self._lock:
            state.last_result = "completed"
            state.is_running = False
            self.messenger.install_complete()
