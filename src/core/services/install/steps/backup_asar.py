"""
COPYING_ASAR_INSTALL — preserve the pristine app.asar as original.asar.

The backup is taken exactly once.  If original.asar already exists it
is the pristine copy from an earlier install and must not be replaced.
If neither file exists the installation is corrupt or in an unknown
state, and the step refuses to continue.

After the backup, the live app.asar is removed so TIDAL loads the
Luna plugin directory instead.
"""

from __future__ import annotations

import shutil

from src.core.models.options import InstallOptions
from src.core.models.settings import InstallerSettings
from src.core.models.step import StepResult
from src.core.services.install.messages import StepReporter
from src.core.services.install.paths import APP_ASAR, ORIGINAL_ASAR, has_asar
from src.core.services.install.steps.common import require_target


def execute(
    options: InstallOptions,
    reporter: StepReporter,
    settings: InstallerSettings,
) -> StepResult:
    target, failure = require_target(options, reporter)
    if failure:
        return failure

    if not has_asar(target):
        return reporter.fail(
            "TIDAL is not installed or your installation is corrupt!",
            "Asar file missing",
        )

    original_asar = target / ORIGINAL_ASAR
    app_asar = target / APP_ASAR

    if original_asar.exists():
        reporter.log("original.asar already exists, keeping existing backup")
    else:
        if not app_asar.is_file():
            return reporter.fail(
                "app.asar not found. Your installation is corrupt! Please reinstall TIDAL!",
                "app.asar not found",
            )
        reporter.log("Creating original.asar backup")
        try:
            shutil.copy2(app_asar, original_asar)
        except OSError as e:
            return reporter.fail("Error creating original.asar backup", e)

    if app_asar.exists():
        reporter.log("Removing app.asar")
        try:
            app_asar.unlink()
        except OSError as e:
            return reporter.fail("Error removing app.asar", e)

    return reporter.done("Copying app.asar to original.asar completed successfully")
