"""
Target resolver — locate TIDAL's resources directory.

Pure lookups, no state.  The resources directory is where the packaged
asset (``app.asar``), its backup (``original.asar``) and the Luna
plugin directory (``app/``) live.

Strategy per OS:
    Windows  %LOCALAPPDATA%/TIDAL/app-<version>/resources, newest version
    macOS    TIDAL.app bundle in /Applications or ~/Applications
    Linux    well-known flatpak / system locations of tidal-hifi

Not found is never an exception: ``get_tidal_directory()`` returns
None and ``find_tidal_directories()`` returns an empty list.
"""

from __future__ import annotations

import logging
import os
import platform
from pathlib import Path

from packaging.version import InvalidVersion, Version

from src.core.models.options import InstallOptions

logger = logging.getLogger(__name__)

APP_ASAR = "app.asar"
ORIGINAL_ASAR = "original.asar"
PLUGIN_DIR = "app"

_MAC_BUNDLE_NAMES = ("TIDAL.app", "Tidal.app", "tidal.app")

_FLATPAK_ID = "com.mastermindzh.tidal-hifi"
_FLATPAK_BRANCHES = ("current/active", "x86_64/stable/active", "x86_64/beta/active")
_LINUX_SYSTEM_DIRS = (
    "/opt/tidal-hifi/resources",
    "/opt/TIDAL/resources",
    "/usr/lib/tidal-hifi/resources",
    "/usr/lib/TIDAL/resources",
    "/usr/share/tidal-hifi/resources",
    "/usr/share/TIDAL/resources",
    "/app/extra/tidal-hifi/resources",
)


def current_system() -> str:
    """Normalized OS identifier: ``windows``, ``darwin``, ``linux`` or other."""
    return platform.system().lower()


def is_tidal_resources_directory(path: Path) -> bool:
    """Whether *path* looks like a TIDAL resources directory."""
    return path.is_dir() and (
        (path / APP_ASAR).is_file()
        or (path / ORIGINAL_ASAR).is_file()
        or (path / PLUGIN_DIR).is_dir()
    )


def has_asar(path: Path) -> bool:
    """Whether *path* contains at least one ``*.asar`` file."""
    if not path.is_dir():
        return False
    return any(p.is_file() for p in path.glob("*.asar"))


def _resolve_resources_dir(base_dir: Path) -> Path | None:
    for name in ("resources", "Resources"):
        candidate = base_dir / name
        if is_tidal_resources_directory(candidate):
            return candidate
    return None


def _version_key(dir_name: str) -> tuple[int, Version | str]:
    """Sort key for ``app-<version>`` directory names.

    Parseable versions sort above unparseable ones; unparseable names
    fall back to plain string comparison.
    """
    raw = dir_name.removeprefix("app-")
    try:
        return (1, Version(raw))
    except InvalidVersion:
        return (0, dir_name)


def _collect_versioned_resources(base_dir: Path) -> list[Path]:
    """Resources dirs under ``base_dir/app-*``, newest version first."""
    try:
        entries = [p for p in base_dir.iterdir() if p.is_dir() and p.name.startswith("app-")]
    except OSError:
        return []

    parsed = [e for e in entries if _version_key(e.name)[0] == 1]
    unparsed = [e for e in entries if _version_key(e.name)[0] == 0]
    ordered = sorted(parsed, key=lambda p: _version_key(p.name)[1], reverse=True)
    ordered += sorted(unparsed, key=lambda p: p.name, reverse=True)

    found: list[Path] = []
    for app_dir in ordered:
        resources = _resolve_resources_dir(app_dir)
        if resources is not None:
            found.append(resources)
    return found


def normalize_resources_path(path: Path) -> Path:
    """Map a user-supplied location to the resources directory it implies.

    Accepts the resources directory itself, an ``.asar`` file inside it,
    a macOS ``.app`` bundle or its ``Contents`` directory, or an install
    root that holds ``resources/`` or ``app-<version>/resources``.
    """
    name = path.name.lower()

    if name in (APP_ASAR, ORIGINAL_ASAR):
        return path.parent
    if name == "resources":
        return path
    if name == "contents":
        return path / "Resources"
    if path.suffix.lower() == ".app":
        return path / "Contents" / "Resources"

    resources = _resolve_resources_dir(path)
    if resources is not None:
        return resources

    versioned = _collect_versioned_resources(path)
    if versioned:
        return versioned[0]

    return path


def _candidates_windows() -> list[Path]:
    local_appdata = os.environ.get("LOCALAPPDATA")
    if not local_appdata:
        return []
    tidal_dir = Path(local_appdata) / "TIDAL"
    if not tidal_dir.is_dir():
        return []
    return _collect_versioned_resources(tidal_dir)


def _candidates_darwin() -> list[Path]:
    roots = [Path("/Applications"), Path.home() / "Applications"]
    return [
        root / bundle / "Contents" / "Resources"
        for root in roots
        for bundle in _MAC_BUNDLE_NAMES
    ]


def _candidates_linux() -> list[Path]:
    flatpak_roots = [
        Path("/var/lib/flatpak/app"),
        Path.home() / ".local" / "share" / "flatpak" / "app",
    ]
    paths = [
        root / _FLATPAK_ID / branch / "files" / "lib" / "tidal-hifi" / "resources"
        for root in flatpak_roots
        for branch in _FLATPAK_BRANCHES
    ]
    paths.extend(Path(p) for p in _LINUX_SYSTEM_DIRS)
    return paths


_CANDIDATES = {
    "windows": _candidates_windows,
    "darwin": _candidates_darwin,
    "linux": _candidates_linux,
}


def find_tidal_directories(system: str | None = None) -> list[Path]:
    """All TIDAL resources directories found on this machine, best first.

    Args:
        system: OS identifier override (default: the running OS).

    Returns:
        De-duplicated list of existing resources directories.
        Empty on unsupported systems or when TIDAL is not installed.
    """
    system = system or current_system()
    candidates_fn = _CANDIDATES.get(system)
    if candidates_fn is None:
        logger.debug("No TIDAL lookup strategy for OS '%s'", system)
        return []

    found: list[Path] = []
    for candidate in candidates_fn():
        try:
            if is_tidal_resources_directory(candidate) and candidate not in found:
                found.append(candidate)
        except OSError as exc:
            logger.debug("Skipping unreadable candidate %s: %s", candidate, exc)
    return found


def get_tidal_directory(system: str | None = None) -> Path | None:
    """The preferred TIDAL resources directory, or None if not found."""
    found = find_tidal_directories(system)
    return found[0] if found else None


def resolve_target(options: InstallOptions | None) -> Path | None:
    """Resources directory for a run: the override path if given, else lookup."""
    if options is not None and options.overwrite_path:
        return normalize_resources_path(Path(options.overwrite_path).expanduser())
    return get_tidal_directory()


def install_status(path: Path | None) -> dict:
    """Install status of Luna in a resources directory.

    ``installed`` follows the plugin directory, which uninstall removes.
    ``patched`` means the backup asset exists: TIDAL has been patched at
    least once.  Uninstall keeps the backup, so it stays true afterwards.
    """
    if path is None:
        return {
            "found": False,
            "path": None,
            "installed": False,
            "patched": False,
            "pluginDir": False,
        }

    patched = (path / ORIGINAL_ASAR).is_file()
    plugin_dir = (path / PLUGIN_DIR).is_dir()
    return {
        "found": path.is_dir(),
        "path": str(path),
        "installed": plugin_dir,
        "patched": patched,
        "pluginDir": plugin_dir,
    }
