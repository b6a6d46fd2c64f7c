"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import queue
import zipfile
from pathlib import Path

import pytest

from src.core.models.settings import InstallerSettings
from src.core.services.event_bus import EventBus
from src.core.services.install.manager import InstallManager, inline_runner, no_pause
from src.core.services.install.steps import kill_tidal, sign_tidal


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def events(bus: EventBus) -> queue.Queue:
    """A subscriber queue attached to the test bus."""
    return bus.attach()


@pytest.fixture
def settings(tmp_path: Path) -> InstallerSettings:
    """Settings with the scratch directory inside tmp_path and no pauses."""
    return InstallerSettings(
        temp_dir=str(tmp_path / "scratch"),
        pause_min=0,
        pause_max=0,
        open_browser=False,
    )


@pytest.fixture
def tidal_dir(tmp_path: Path) -> Path:
    """A pristine TIDAL resources directory (app.asar only)."""
    resources = tmp_path / "TIDAL" / "resources"
    resources.mkdir(parents=True)
    (resources / "app.asar").write_bytes(b"pristine-asar")
    return resources


@pytest.fixture
def patched_tidal_dir(tmp_path: Path) -> Path:
    """A TIDAL resources directory with Luna installed."""
    resources = tmp_path / "TIDAL" / "resources"
    (resources / "app").mkdir(parents=True)
    (resources / "app" / "index.js").write_text("// luna\n")
    (resources / "original.asar").write_bytes(b"pristine-asar")
    return resources


@pytest.fixture
def luna_zip(tmp_path: Path) -> Path:
    """A small Luna release archive."""
    archive = tmp_path / "release" / "luna.zip"
    archive.parent.mkdir()
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("package.json", '{"name": "luna", "main": "index.js"}')
        zf.writestr("index.js", "// luna\n")
        zf.writestr("plugins/core.js", "// core\n")
    return archive


@pytest.fixture(autouse=True)
def fake_commands(monkeypatch: pytest.MonkeyPatch) -> list[list[str]]:
    """Never kill or sign real processes in tests.

    Every command succeeds with "nothing matched" (exit 1) for kill
    commands and exit 0 otherwise.  The recorded command lists are
    returned for assertions.
    """
    calls: list[list[str]] = []

    def _fake_run(cmd: list[str], **kwargs) -> dict:
        calls.append(cmd)
        code = 1 if cmd[0] in ("pkill", "taskkill") else 0
        return {"ok": True, "stdout": "", "returncode": code, "elapsed_ms": 0}

    monkeypatch.setattr(kill_tidal, "run_command", _fake_run)
    monkeypatch.setattr(sign_tidal, "run_command", _fake_run)
    monkeypatch.setattr(kill_tidal, "current_system", lambda: "linux")
    monkeypatch.setattr(sign_tidal, "current_system", lambda: "linux")
    return calls


@pytest.fixture
def manager(bus: EventBus, settings: InstallerSettings) -> InstallManager:
    """Manager that runs inline on the test thread with no pauses."""
    return InstallManager(bus=bus, settings=settings, pause=no_pause, runner=inline_runner)


@pytest.fixture
def drain():
    """Return a helper that collects every event currently queued."""

    def _drain(q: queue.Queue) -> list[dict]:
        out: list[dict] = []
        while True:
            try:
                out.append(q.get_nowait())
            except queue.Empty:
                return out

    return _drain
