"""
Step registry — dispatch table from Step to implementation.

The table is closed over the ``Step`` enum and checked for
exhaustiveness at import time, so a Step without an implementation
fails loudly at startup rather than mid-run.  The engine still guards
against missing entries because tests inject partial registries.
"""

from __future__ import annotations

from typing import Callable, Mapping

from src.core.models.options import InstallOptions
from src.core.models.settings import InstallerSettings
from src.core.models.step import Step, StepResult
from src.core.services.install.messages import StepReporter
from src.core.services.install.steps import (
    backup_asar,
    download,
    extract,
    insert_luna,
    kill_tidal,
    restore_asar,
    setup,
    sign_tidal,
    uninstall,
)

StepFn = Callable[[InstallOptions, StepReporter, InstallerSettings], StepResult]

STEP_REGISTRY: dict[Step, StepFn] = {
    Step.SETUP: setup.execute,
    Step.KILLING_TIDAL: kill_tidal.execute,
    Step.UNINSTALLING: uninstall.execute,
    Step.DOWNLOADING_LUNA: download.execute,
    Step.EXTRACTING_LUNA: extract.execute,
    Step.COPYING_ASAR_INSTALL: backup_asar.execute,
    Step.INSERTING_LUNA: insert_luna.execute,
    Step.COPYING_ASAR_UNINSTALL: restore_asar.execute,
    Step.SIGNING_TIDAL: sign_tidal.execute,
}


def check_registry(registry: Mapping[Step, StepFn]) -> None:
    """Raise if any Step has no implementation."""
    missing = [s.value for s in Step if s not in registry]
    if missing:
        raise RuntimeError(f"Steps without implementation: {', '.join(missing)}")


check_registry(STEP_REGISTRY)
