"""
DOWNLOADING_LUNA — stream the Luna release archive to the temp directory.
"""

from __future__ import annotations

import logging
import shutil
import urllib.error
import urllib.request

from src import __version__
from src.core.models.options import InstallOptions
from src.core.models.settings import InstallerSettings
from src.core.models.step import StepResult
from src.core.services.install.messages import StepReporter

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def execute(
    options: InstallOptions,
    reporter: StepReporter,
    settings: InstallerSettings,
) -> StepResult:
    if not options.download_url:
        return reporter.fail("Download URL is not set", "Download URL is not set")

    reporter.log("Finding temporary directory")
    archive = settings.archive_path
    try:
        archive.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return reporter.fail("Could not create temporary directory", e)

    reporter.log(f"Downloading Luna from {options.download_url}")
    try:
        req = urllib.request.Request(
            options.download_url,
            headers={"User-Agent": f"luna-installer/{__version__}"},
        )
        with urllib.request.urlopen(req, timeout=settings.download_timeout) as resp:
            # file: URLs carry no status code
            status = getattr(resp, "status", None) or 200
            if not 200 <= status < 300:
                return reporter.fail(
                    "Error downloading Luna! Please check your network connection!",
                    f"HTTP {status}",
                )
            with archive.open("wb") as fh:
                shutil.copyfileobj(resp, fh, _CHUNK_SIZE)
    except urllib.error.HTTPError as e:
        return reporter.fail(
            "Error downloading Luna! Please check your network connection!",
            f"HTTP {e.code}",
        )
    except (urllib.error.URLError, TimeoutError, ValueError) as e:
        return reporter.fail(
            "Error downloading Luna! Please check your network connection!",
            e,
        )
    except OSError as e:
        return reporter.fail("Error writing the downloaded archive", e)

    size = archive.stat().st_size
    logger.info("Downloaded %d bytes to %s", size, archive)
    return reporter.done(f"Luna downloaded successfully ({size // 1024} KiB)")
