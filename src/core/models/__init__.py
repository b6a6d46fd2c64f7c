"""
Domain models — Pydantic types for the installer.

All models are re-exported here for convenient access:

    from src.core.models import InstallOptions, Step, StepResult
"""

from src.core.models.options import InstallAction, InstallOptions
from src.core.models.step import STEP_LABELS, Step, StepResult

__all__ = [
    # options.py
    "InstallAction",
    "InstallOptions",
    # step.py
    "STEP_LABELS",
    "Step",
    "StepResult",
]
