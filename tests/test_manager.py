"""
Tests for InstallManager — planning, single flight, execution, terminal paths.
"""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from src.core.models.options import InstallOptions
from src.core.models.step import Step, StepResult
from src.core.services.event_bus import EventBus
from src.core.services.install.manager import (
    INSTALL_PLAN,
    UNINSTALL_PLAN,
    InstallManager,
    inline_runner,
    no_pause,
    thread_runner,
)
from src.core.services.install.messages import (
    INSTALL_COMPLETE,
    INSTALL_FAILED,
    INSTALL_LOG,
    INSTALL_START,
    STEP_LOG,
    STEP_UPDATE,
)


def _ok(step: Step):
    def _impl(options, reporter, settings) -> StepResult:
        return reporter.done(f"{step.value} done")

    return _impl


def _failing(options, reporter, settings) -> StepResult:
    return reporter.fail("boom", "forced failure")


def _uninstall_options(path: Path) -> dict:
    return {"action": "uninstall", "overwritePath": str(path)}


def _errors(events: list[dict]) -> list[dict]:
    return [e for e in events if e["type"] == INSTALL_LOG and e["data"]["isError"]]


# ── Initial state ───────────────────────────────────────────────────


class TestInitialState:
    def test_state_before_any_run(self, manager):
        state = manager.get_state()
        assert state == {
            "isRunning": False,
            "options": {},
            "currentStep": "none",
            "currentStepIndex": 0,
            "steps": [],
            "lastResult": None,
            "failedStep": None,
        }

    def test_start_without_options_is_rejected(self, manager, events, drain):
        assert manager.start() is False
        errors = _errors(drain(events))
        assert len(errors) == 1
        assert manager.is_running is False

    def test_generate_without_options_is_rejected(self, manager, events, drain):
        assert manager.generate_steps() is False
        errors = _errors(drain(events))
        assert errors[0]["data"]["message"] == "Options are not set."
        assert manager.steps == []


# ── Options ─────────────────────────────────────────────────────────


class TestSetOptions:
    def test_accepts_mapping(self, manager, tidal_dir):
        assert manager.set_options(_uninstall_options(tidal_dir)) is True
        assert manager.options.overwrite_path == str(tidal_dir)

    def test_accepts_model(self, manager):
        opts = InstallOptions(action="install", downloadUrl="https://example.com/luna.zip")
        assert manager.set_options(opts) is True
        assert manager.options is opts

    def test_install_without_url_is_rejected(self, manager, events, drain):
        assert manager.set_options({"action": "install"}) is False
        errors = _errors(drain(events))
        assert len(errors) == 1
        assert "downloadUrl is required" in errors[0]["data"]["error"]
        assert manager.options is None

    def test_unknown_action_is_rejected(self, manager, events, drain):
        assert manager.set_options({"action": "reinstall"}) is False
        assert len(_errors(drain(events))) == 1
        assert manager.options is None

    def test_rejection_keeps_previous_options(self, manager, tidal_dir):
        manager.set_options(_uninstall_options(tidal_dir))
        manager.set_options({"action": "install"})
        assert manager.options.overwrite_path == str(tidal_dir)


# ── Planning ────────────────────────────────────────────────────────


class TestGenerateSteps:
    def test_install_plan(self, manager):
        manager.set_options({"action": "install", "downloadUrl": "https://x/luna.zip"})
        assert manager.generate_steps() is True
        assert manager.steps == list(INSTALL_PLAN)
        assert manager.current_step == Step.SETUP
        assert manager.current_step_index == 0

    def test_uninstall_plan(self, manager):
        manager.set_options({"action": "uninstall"})
        manager.generate_steps()
        assert manager.steps == [
            Step.KILLING_TIDAL,
            Step.UNINSTALLING,
            Step.COPYING_ASAR_UNINSTALL,
        ]
        assert manager.current_step == Step.KILLING_TIDAL

    def test_plan_is_deterministic(self, manager):
        manager.set_options({"action": "install", "downloadUrl": "https://x/luna.zip"})
        manager.generate_steps()
        first = manager.steps
        manager.generate_steps()
        assert manager.steps == first

    def test_install_plan_order(self):
        assert INSTALL_PLAN.index(Step.COPYING_ASAR_INSTALL) < INSTALL_PLAN.index(Step.INSERTING_LUNA)
        assert INSTALL_PLAN[-1] == Step.SIGNING_TIDAL
        assert UNINSTALL_PLAN[-1] == Step.COPYING_ASAR_UNINSTALL


# ── Execution ───────────────────────────────────────────────────────


class TestRun:
    def test_uninstall_when_tidal_not_found_completes(
        self, manager, events, drain, tmp_path,
    ):
        missing = tmp_path / "nowhere"
        assert manager.run(_uninstall_options(missing)) is True

        seen = drain(events)
        assert seen[-1]["type"] == INSTALL_COMPLETE
        assert not any(e["type"] == INSTALL_FAILED for e in seen)
        assert manager.is_running is False
        assert manager.get_state()["lastResult"] == "completed"
        assert [r.status for r in manager.results] == ["ok", "skipped", "skipped"]

    def test_step_updates_are_monotonic(self, manager, events, drain, tmp_path):
        manager.run(_uninstall_options(tmp_path / "nowhere"))
        updates = [e for e in drain(events) if e["type"] == STEP_UPDATE]
        assert [u["data"]["index"] for u in updates] == [0, 1, 2]
        assert [u["data"]["step"] for u in updates] == [s.value for s in UNINSTALL_PLAN]

    def test_start_event_precedes_first_step(self, manager, events, drain, tmp_path):
        manager.run(_uninstall_options(tmp_path / "nowhere"))
        types = [e["type"] for e in drain(events)]
        assert types.index(INSTALL_START) < types.index(STEP_UPDATE)

    def test_step_update_precedes_step_logs(self, manager, events, drain, tidal_dir, luna_zip):
        manager.run({
            "action": "install",
            "downloadUrl": luna_zip.as_uri(),
            "overwritePath": str(tidal_dir),
        })
        seen = drain(events)

        current = None
        logged: set[str] = set()
        for event in seen:
            if event["type"] == STEP_UPDATE:
                current = event["data"]["step"]
            elif event["type"] == STEP_LOG:
                # Every step log belongs to the step announced last
                assert event["key"] == current
                logged.add(current)
        assert Step.DOWNLOADING_LUNA.value in logged
        assert logged <= {s.value for s in INSTALL_PLAN}

    def test_index_bounded_after_completion(self, manager, tmp_path):
        manager.run(_uninstall_options(tmp_path / "nowhere"))
        state = manager.get_state()
        assert state["lastResult"] == "completed"
        assert 0 <= state["currentStepIndex"] <= len(state["steps"])

    def test_sequence_numbers_increase(self, manager, events, drain, tmp_path):
        manager.run(_uninstall_options(tmp_path / "nowhere"))
        seqs = [e["seq"] for e in drain(events)]
        assert seqs == sorted(seqs)
        assert len(set(seqs)) == len(seqs)

    def test_full_install(self, manager, tidal_dir, luna_zip, settings):
        ok = manager.run({
            "action": "install",
            "downloadUrl": luna_zip.as_uri(),
            "overwritePath": str(tidal_dir),
        })

        assert ok is True
        assert (tidal_dir / "original.asar").read_bytes() == b"pristine-asar"
        assert not (tidal_dir / "app.asar").exists()
        assert (tidal_dir / "app" / "package.json").is_file()
        assert (tidal_dir / "app" / "plugins" / "core.js").is_file()
        assert not settings.temp_path.exists()

    def test_install_into_shared_temp_dir(self, manager, tidal_dir, luna_zip, settings):
        settings.temp_path.mkdir(parents=True)
        notes = settings.temp_path / "notes.txt"
        notes.write_text("keep me")

        assert manager.run({
            "action": "install",
            "downloadUrl": luna_zip.as_uri(),
            "overwritePath": str(tidal_dir),
        })

        assert notes.read_text() == "keep me"
        assert not settings.archive_path.exists()
        assert not settings.extract_path.exists()

    def test_full_uninstall(self, manager, patched_tidal_dir):
        assert manager.run(_uninstall_options(patched_tidal_dir)) is True
        assert (patched_tidal_dir / "app.asar").read_bytes() == b"pristine-asar"
        assert (patched_tidal_dir / "original.asar").is_file()
        assert not (patched_tidal_dir / "app").exists()

    def test_install_then_uninstall_restores_original(self, manager, tidal_dir, luna_zip):
        manager.run({
            "action": "install",
            "downloadUrl": luna_zip.as_uri(),
            "overwritePath": str(tidal_dir),
        })
        manager.run(_uninstall_options(tidal_dir))
        assert (tidal_dir / "app.asar").read_bytes() == b"pristine-asar"
        assert not (tidal_dir / "app").exists()

    def test_download_failure_halts_run(self, manager, events, drain, tidal_dir, tmp_path):
        ok = manager.run({
            "action": "install",
            "downloadUrl": (tmp_path / "missing.zip").as_uri(),
            "overwritePath": str(tidal_dir),
        })

        assert ok is False
        seen = drain(events)
        failed = [e for e in seen if e["type"] == INSTALL_FAILED]
        assert len(failed) == 1
        assert failed[0]["data"]["step"] == "DOWNLOADING_LUNA"
        assert not any(e["type"] == INSTALL_COMPLETE for e in seen)

        # Nothing after the failing step ran
        updated = [e["data"]["step"] for e in seen if e["type"] == STEP_UPDATE]
        assert updated[-1] == "DOWNLOADING_LUNA"
        assert Step.EXTRACTING_LUNA.value not in updated

        state = manager.get_state()
        assert state["isRunning"] is False
        assert state["failedStep"] == "DOWNLOADING_LUNA"
        assert state["lastResult"] == "failed"
        assert state["currentStepIndex"] == INSTALL_PLAN.index(Step.DOWNLOADING_LUNA)
        assert state["currentStep"] == "DOWNLOADING_LUNA"
        # Target untouched
        assert (tidal_dir / "app.asar").is_file()
        assert not (tidal_dir / "original.asar").exists()

    def test_setup_fails_without_tidal(self, manager, tmp_path):
        ok = manager.run({
            "action": "install",
            "downloadUrl": "https://example.com/luna.zip",
            "overwritePath": str(tmp_path / "nowhere"),
        })
        assert ok is False
        assert manager.get_state()["failedStep"] == "SETUP"

    def test_start_requires_fresh_plan(self, manager, tmp_path):
        manager.run(_uninstall_options(tmp_path / "nowhere"))
        assert manager.start() is False
        assert manager.generate_steps() is True
        assert manager.start() is True


class TestStepDispatch:
    def _manager(self, bus, settings, registry) -> InstallManager:
        return InstallManager(
            bus=bus,
            settings=settings,
            registry=registry,
            pause=no_pause,
            runner=inline_runner,
        )

    def test_missing_implementation_fails_run(self, bus, events, drain, settings):
        registry = {Step.KILLING_TIDAL: _ok(Step.KILLING_TIDAL)}
        manager = self._manager(bus, settings, registry)

        assert manager.run({"action": "uninstall"}) is False
        failed = [e for e in drain(events) if e["type"] == INSTALL_FAILED]
        assert failed[0]["data"]["step"] == "UNINSTALLING"
        assert "No implementation" in failed[0]["data"]["message"]

    def test_raising_step_is_a_failure(self, bus, settings):
        def _raises(options, reporter, settings):
            raise RuntimeError("disk on fire")

        registry = {
            Step.KILLING_TIDAL: _raises,
            Step.UNINSTALLING: _ok(Step.UNINSTALLING),
            Step.COPYING_ASAR_UNINSTALL: _ok(Step.COPYING_ASAR_UNINSTALL),
        }
        manager = self._manager(bus, settings, registry)

        assert manager.run({"action": "uninstall"}) is False
        assert manager.get_state()["failedStep"] == "KILLING_TIDAL"
        assert manager.results[0].error == "disk on fire"

    def test_boolean_results_are_accepted(self, bus, settings):
        registry = {
            Step.KILLING_TIDAL: lambda o, r, s: True,
            Step.UNINSTALLING: lambda o, r, s: True,
            Step.COPYING_ASAR_UNINSTALL: lambda o, r, s: False,
        }
        manager = self._manager(bus, settings, registry)

        assert manager.run({"action": "uninstall"}) is False
        assert [r.status for r in manager.results] == ["ok", "ok", "failed"]

    def test_failure_stops_at_failing_step(self, bus, settings):
        calls: list[Step] = []

        def _track(step: Step, impl):
            def _impl(options, reporter, settings):
                calls.append(step)
                return impl(options, reporter, settings)
            return _impl

        registry = {
            Step.KILLING_TIDAL: _track(Step.KILLING_TIDAL, _ok(Step.KILLING_TIDAL)),
            Step.UNINSTALLING: _track(Step.UNINSTALLING, _failing),
            Step.COPYING_ASAR_UNINSTALL: _track(
                Step.COPYING_ASAR_UNINSTALL, _ok(Step.COPYING_ASAR_UNINSTALL),
            ),
        }
        manager = self._manager(bus, settings, registry)
        manager.run({"action": "uninstall"})

        assert calls == [Step.KILLING_TIDAL, Step.UNINSTALLING]

    def test_pause_runs_between_steps(self, bus, settings):
        pauses: list[int] = []
        manager = InstallManager(
            bus=bus,
            settings=settings,
            registry={s: _ok(s) for s in Step},
            pause=lambda: pauses.append(1),
            runner=inline_runner,
        )
        manager.run({"action": "uninstall"})
        assert len(pauses) == len(UNINSTALL_PLAN) - 1


class TestTerminalState:
    class _RecordingBus(EventBus):
        """Records the manager's running flag as each event is published."""

        def __init__(self) -> None:
            super().__init__()
            self.manager: InstallManager | None = None
            self.running_at: dict[str, bool] = {}

        def publish(self, event_type, *, key="", data=None):
            if self.manager is not None:
                self.running_at[event_type] = self.manager.is_running
            return super().publish(event_type, key=key, data=data)

    def _run(self, settings, registry) -> _RecordingBus:
        bus = self._RecordingBus()
        manager = InstallManager(
            bus=bus,
            settings=settings,
            registry=registry,
            pause=no_pause,
            runner=inline_runner,
        )
        bus.manager = manager
        manager.run({"action": "uninstall"})
        return bus

    def test_running_cleared_before_complete(self, settings):
        bus = self._run(settings, {s: _ok(s) for s in Step})
        assert bus.running_at[INSTALL_START] is True
        assert bus.running_at[INSTALL_COMPLETE] is False

    def test_running_cleared_before_failed(self, settings):
        registry = {s: _ok(s) for s in Step}
        registry[Step.UNINSTALLING] = _failing
        bus = self._run(settings, registry)
        assert bus.running_at[INSTALL_FAILED] is False

    def test_next_run_starts_after_final_event(self, settings):
        """A run started as the final event goes out is announced after it."""

        class _RacingBus(EventBus):
            def __init__(self) -> None:
                super().__init__()
                self.manager: InstallManager | None = None
                self.order: list[str] = []
                self.racer: threading.Thread | None = None

            def publish(self, event_type, *, key="", data=None):
                if event_type == INSTALL_COMPLETE and self.racer is None:
                    self.racer = threading.Thread(
                        target=self.manager.run, args=({"action": "uninstall"},)
                    )
                    self.racer.start()
                    self.racer.join(0.1)
                self.order.append(event_type)
                return super().publish(event_type, key=key, data=data)

        bus = _RacingBus()
        manager = InstallManager(
            bus=bus,
            settings=settings,
            registry={s: _ok(s) for s in Step},
            pause=no_pause,
            runner=inline_runner,
        )
        bus.manager = manager
        manager.run({"action": "uninstall"})
        bus.racer.join(5)
        assert not bus.racer.is_alive()

        starts = [i for i, t in enumerate(bus.order) if t == INSTALL_START]
        completes = [i for i, t in enumerate(bus.order) if t == INSTALL_COMPLETE]
        assert len(starts) == 2
        assert len(completes) == 2
        assert completes[0] < starts[1]


# ── Single flight ───────────────────────────────────────────────────


class TestSingleFlight:
    @pytest.fixture
    def gate(self) -> threading.Event:
        return threading.Event()

    @pytest.fixture
    def blocking_manager(self, bus, events, settings, gate) -> InstallManager:
        entered = threading.Event()

        def _blocking(options, reporter, settings):
            entered.set()
            gate.wait(5)
            return reporter.done("released")

        registry = {s: _ok(s) for s in Step}
        registry[Step.KILLING_TIDAL] = _blocking
        manager = InstallManager(
            bus=bus,
            settings=settings,
            registry=registry,
            pause=no_pause,
            runner=thread_runner,
        )
        manager.set_options({"action": "uninstall"})
        manager.generate_steps()
        assert manager.start() is True
        assert entered.wait(5)
        return manager

    def test_second_start_is_rejected(self, blocking_manager, events, drain, gate):
        drain(events)
        assert blocking_manager.start() is False

        errors = _errors(drain(events))
        assert len(errors) == 1
        assert errors[0]["data"]["message"] == "Installation process is already running."

        gate.set()
        assert blocking_manager.wait(5) is True
        assert blocking_manager.last_result == "completed"

    def test_commands_rejected_while_running(self, blocking_manager, events, drain, gate):
        before = blocking_manager.get_state()
        drain(events)

        assert blocking_manager.set_options(
            {"action": "install", "downloadUrl": "https://x/luna.zip"}
        ) is False
        assert blocking_manager.generate_steps() is False

        assert blocking_manager.get_state() == before
        assert len(_errors(drain(events))) == 2

        gate.set()
        blocking_manager.wait(5)

    def test_one_completion_per_start(self, blocking_manager, events, drain, gate):
        blocking_manager.start()
        gate.set()
        blocking_manager.wait(5)
        seen = drain(events)
        assert sum(1 for e in seen if e["type"] == INSTALL_COMPLETE) == 1
        assert sum(1 for e in seen if e["type"] == INSTALL_START) == 1
