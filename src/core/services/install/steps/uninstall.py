"""
UNINSTALLING — remove the Luna plugin directory if present.

An absent plugin directory means the install is already clean.
"""

from __future__ import annotations

import shutil

from src.core.models.options import InstallOptions
from src.core.models.settings import InstallerSettings
from src.core.models.step import StepResult
from src.core.services.install.messages import StepReporter
from src.core.services.install.paths import PLUGIN_DIR, resolve_target


def execute(
    options: InstallOptions,
    reporter: StepReporter,
    settings: InstallerSettings,
) -> StepResult:
    target = resolve_target(options)
    if target is None or not target.is_dir():
        return reporter.skip("TIDAL installation not found, nothing to uninstall")

    plugin_dir = target / PLUGIN_DIR
    reporter.log("Uninstalling TidaLuna / Neptune...")

    if not plugin_dir.exists():
        return reporter.skip("TidaLuna / Neptune is not installed, skipping uninstallation")

    try:
        if plugin_dir.is_dir() and not plugin_dir.is_symlink():
            shutil.rmtree(plugin_dir)
        else:
            plugin_dir.unlink()
    except OSError as e:
        return reporter.fail("Error uninstalling TidaLuna / Neptune", e)

    return reporter.done("TidaLuna / Neptune uninstalled successfully")
