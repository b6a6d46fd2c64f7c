"""
EXTRACTING_LUNA — unpack the downloaded archive into the temp directory.

The archive is removed once extracted; the extracted tree stays for
INSERTING_LUNA to copy into TIDAL.
"""

from __future__ import annotations

import shutil
import zipfile

from src.core.models.options import InstallOptions
from src.core.models.settings import InstallerSettings
from src.core.models.step import StepResult
from src.core.services.install.messages import StepReporter


def execute(
    options: InstallOptions,
    reporter: StepReporter,
    settings: InstallerSettings,
) -> StepResult:
    archive = settings.archive_path
    extract_path = settings.extract_path

    if not archive.is_file():
        return reporter.fail("Downloaded archive not found", f"Missing {archive}")

    reporter.log("Preparing extract path")
    try:
        if extract_path.exists():
            shutil.rmtree(extract_path)
        extract_path.mkdir(parents=True)
    except OSError as e:
        return reporter.fail("Could not prepare extract path", e)

    reporter.log("Extracting Luna")
    try:
        with zipfile.ZipFile(archive) as zf:
            bad = zf.testzip()
            if bad is not None:
                return reporter.fail("Error extracting Luna", f"Corrupt archive member: {bad}")
            for member in zf.namelist():
                dest = (extract_path / member).resolve()
                if not dest.is_relative_to(extract_path.resolve()):
                    return reporter.fail("Error extracting Luna", f"Unsafe path in archive: {member}")
            zf.extractall(extract_path)
    except (zipfile.BadZipFile, OSError) as e:
        return reporter.fail("Error extracting Luna", e)

    reporter.log("Luna extracted successfully")
    reporter.log("Cleaning up downloaded archive")
    try:
        archive.unlink()
    except OSError as e:
        return reporter.fail("Error cleaning up temporary files", e)

    return reporter.done("Temporary files cleaned up successfully")
