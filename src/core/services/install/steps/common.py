"""
Helpers shared by step implementations.
"""

from __future__ import annotations

from pathlib import Path

from src.core.models.options import InstallOptions
from src.core.models.step import StepResult
from src.core.services.install.messages import StepReporter
from src.core.services.install.paths import resolve_target


def require_target(
    options: InstallOptions,
    reporter: StepReporter,
) -> tuple[Path | None, StepResult | None]:
    """Resolve the TIDAL resources directory for a step.

    Returns:
        ``(path, None)`` when the directory exists, otherwise
        ``(None, failure)`` with the step error already emitted.
    """
    target = resolve_target(options)
    if target is None or not target.is_dir():
        return None, reporter.fail("TIDAL is not installed", "Invalid file path")
    return target, None
