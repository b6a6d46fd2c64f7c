"""
INSERTING_LUNA — copy the extracted Luna files into TIDAL's plugin directory.
"""

from __future__ import annotations

import shutil

from src.core.models.options import InstallOptions
from src.core.models.settings import InstallerSettings
from src.core.models.step import StepResult
from src.core.services.install.messages import StepReporter
from src.core.services.install.paths import PLUGIN_DIR
from src.core.services.install.steps.common import require_target


def execute(
    options: InstallOptions,
    reporter: StepReporter,
    settings: InstallerSettings,
) -> StepResult:
    target, failure = require_target(options, reporter)
    if failure:
        return failure

    source = settings.extract_path
    destination = target / PLUGIN_DIR

    if not source.is_dir():
        return reporter.fail("Temporary directory does not exist", f"Missing {source}")

    reporter.log(f"Copying Luna files to {destination}")
    try:
        shutil.copytree(source, destination, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        return reporter.fail("Error copying Luna files", e)
    reporter.log("Luna files copied successfully")

    reporter.log("Cleaning up temporary files")
    try:
        _remove_scratch(settings)
    except OSError as e:
        return reporter.fail("Error cleaning up temporary files", e)

    return reporter.done("Temporary files cleaned up successfully")


def _remove_scratch(settings: InstallerSettings) -> None:
    """Remove what the pipeline put in the temp directory, nothing else.

    The temp directory itself goes only if that leaves it empty: it may
    be a user-configured folder with other content.
    """
    if settings.extract_path.exists():
        shutil.rmtree(settings.extract_path)
    settings.archive_path.unlink(missing_ok=True)
    temp = settings.temp_path
    if temp.is_dir() and not any(temp.iterdir()):
        temp.rmdir()
