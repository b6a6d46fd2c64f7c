"""
SETUP — prepare the scratch directory and check TIDAL is present.
"""

from __future__ import annotations

from src.core.models.options import InstallOptions
from src.core.models.settings import InstallerSettings
from src.core.models.step import StepResult
from src.core.services.install.messages import StepReporter
from src.core.services.install.paths import has_asar
from src.core.services.install.steps.common import require_target


def execute(
    options: InstallOptions,
    reporter: StepReporter,
    settings: InstallerSettings,
) -> StepResult:
    """Create the installer temp directory and verify the target install."""
    reporter.log("Creating temporary directory")
    try:
        settings.temp_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return reporter.fail("Could not create temporary directory", e)
    reporter.log(f"Temporary directory ready: {settings.temp_path}")

    reporter.log("Checking if TIDAL is installed")
    target, failure = require_target(options, reporter)
    if failure:
        return failure

    if not has_asar(target):
        return reporter.fail(
            "TIDAL is not installed or your installation is corrupt",
            f"No .asar file in {target}",
        )

    return reporter.done(f"TIDAL found at {target}")
