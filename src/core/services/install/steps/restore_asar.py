"""
COPYING_ASAR_UNINSTALL — put the pristine app.asar back from original.asar.

A missing backup is a hard failure: there is nothing to restore.
The backup itself is left in place so a later restore still works.
"""

from __future__ import annotations

import shutil

from src.core.models.options import InstallOptions
from src.core.models.settings import InstallerSettings
from src.core.models.step import StepResult
from src.core.services.install.messages import StepReporter
from src.core.services.install.paths import APP_ASAR, ORIGINAL_ASAR, resolve_target


def execute(
    options: InstallOptions,
    reporter: StepReporter,
    settings: InstallerSettings,
) -> StepResult:
    target = resolve_target(options)
    if target is None or not target.is_dir():
        return reporter.skip("TIDAL installation not found, nothing to restore")

    original_asar = target / ORIGINAL_ASAR
    app_asar = target / APP_ASAR

    reporter.log("Copying original.asar to app.asar")
    if not original_asar.is_file():
        return reporter.fail(
            "original.asar not found. Your installation is corrupt! Please reinstall TIDAL!",
            "original.asar not found",
        )

    try:
        if app_asar.exists():
            app_asar.unlink()
        shutil.copy2(original_asar, app_asar)
    except OSError as e:
        return reporter.fail("Error restoring app.asar", e)

    return reporter.done("Copying original.asar to app.asar completed successfully")
