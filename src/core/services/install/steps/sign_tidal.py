"""
SIGNING_TIDAL — ad-hoc re-sign the TIDAL bundle on macOS.

Modifying a signed bundle invalidates its signature, and macOS refuses
to launch it.  Other platforms do not validate signatures, so the
step is skipped there.
"""

from __future__ import annotations

from pathlib import Path

from src.core.models.options import InstallOptions
from src.core.models.settings import InstallerSettings
from src.core.models.step import StepResult
from src.core.services.install.messages import StepReporter
from src.core.services.install.paths import current_system, resolve_target
from src.core.services.install.subprocess_runner import run_command

_DEFAULT_BUNDLE = Path("/Applications/TIDAL.app")


def bundle_for(resources: Path | None) -> Path:
    """The ``.app`` bundle that owns a ``Contents/Resources`` directory."""
    if resources is not None:
        contents = resources.parent
        bundle = contents.parent
        if contents.name == "Contents" and bundle.suffix == ".app":
            return bundle
    return _DEFAULT_BUNDLE


def execute(
    options: InstallOptions,
    reporter: StepReporter,
    settings: InstallerSettings,
) -> StepResult:
    system = current_system()

    if system in ("windows", "linux"):
        return reporter.skip(f"No need to sign TIDAL on {system.capitalize()}, skipping...")
    if system != "darwin":
        return reporter.fail("Unsupported operating system", f"Unsupported OS: {system}")

    bundle = bundle_for(resolve_target(options))
    reporter.log(f"Signing {bundle}")
    result = run_command(
        ["codesign", "--force", "--deep", "--sign", "-", str(bundle)],
        timeout=settings.command_timeout,
    )
    if result.get("stdout"):
        reporter.log(result["stdout"].strip())
    if not result["ok"]:
        detail = result.get("stderr") or result.get("error", "")
        return reporter.fail("Error signing TIDAL on macOS", detail.strip())

    return reporter.done("TIDAL signed successfully on macOS")
