"""
KILLING_TIDAL — stop running TIDAL processes before files are touched.

A TIDAL that is not running is not an error.  The step only fails
on an unsupported OS or when no kill command could be run at all.
"""

from __future__ import annotations

from src.core.models.options import InstallOptions
from src.core.models.settings import InstallerSettings
from src.core.models.step import StepResult
from src.core.services.install.messages import StepReporter
from src.core.services.install.paths import current_system
from src.core.services.install.subprocess_runner import run_command

# OS → exact process image names to stop
_PROCESS_NAMES: dict[str, tuple[str, ...]] = {
    "windows": ("TIDAL.exe", "Update.exe"),
    "darwin": ("TIDAL", "Tidal"),
    "linux": ("tidal-hifi", "TIDAL"),
}

# Exit codes meaning "nothing matched": pkill 1, taskkill 128
_NOT_RUNNING_CODES = (1, 128)


def execute(
    options: InstallOptions,
    reporter: StepReporter,
    settings: InstallerSettings,
) -> StepResult:
    system = current_system()
    names = _PROCESS_NAMES.get(system)
    if names is None:
        return reporter.fail("Unsupported operating system", f"Unsupported OS: {system}")

    reporter.log(f"Stopping TIDAL processes ({system})")
    executed = 0
    killed = 0
    errors: list[str] = []

    for name in names:
        cmd = _kill_command(system, name)
        result = run_command(
            cmd,
            timeout=settings.command_timeout,
            ok_codes=(0, *_NOT_RUNNING_CODES),
        )
        if not result["ok"]:
            errors.append(result.get("error", "unknown error"))
            continue
        executed += 1
        if result["returncode"] == 0:
            killed += 1
            reporter.log(f"Stopped: {name}")

    if executed == 0:
        return reporter.fail("Error killing TIDAL process", "; ".join(errors))

    if killed == 0:
        return reporter.done("TIDAL is not running")
    return reporter.done("TIDAL process killed successfully")


def _kill_command(system: str, name: str) -> list[str]:
    """Command that stops processes whose image name is exactly *name*.

    Never matches on the command line: the installer's own argv can
    contain a TIDAL path.
    """
    if system == "windows":
        return ["taskkill", "/IM", name, "/T", "/F"]
    return ["pkill", "-x", name]
