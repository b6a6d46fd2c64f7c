"""
Install routes — the HTTP surface of the install pipeline.

Blueprint: install_bp
Prefix: none (the frontend calls these at the server root)

Thin HTTP wrappers over ``InstallManager``.  All endpoints are GET,
matching the frontend, which drives everything with ``fetch(url)``.

Endpoints:
    GET /               — service info and endpoint list
    GET /state          — run state snapshot
    GET /setOptions     — store options (?action=&downloadUrl=&overwritePath=)
    GET /generateSteps  — build the step plan for the stored options
    GET /start          — build the plan and start the run (returns immediately)
    GET /isInstalled    — whether Luna is installed in the resolved TIDAL
    GET /health         — liveness check
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from src import __version__
from src.core.models.options import InstallOptions
from src.core.services.install import paths
from src.core.services.install.manager import InstallManager

logger = logging.getLogger(__name__)

install_bp = Blueprint("install", __name__)


def _manager() -> InstallManager:
    return current_app.extensions["install_manager"]


_ENDPOINTS = (
    "/state",
    "/setOptions",
    "/generateSteps",
    "/start",
    "/isInstalled",
    "/events",
    "/health",
)


@install_bp.route("/")
def index():  # type: ignore[no-untyped-def]
    """Service info, so the browser opened by the CLI lands on a page."""
    return jsonify({
        "name": "TidaLuna Installer",
        "version": __version__,
        "endpoints": list(_ENDPOINTS),
        "state": _manager().get_state(),
    })


@install_bp.route("/state")
def state():  # type: ignore[no-untyped-def]
    """Run state snapshot — pollable at any time."""
    return jsonify(_manager().get_state())


@install_bp.route("/setOptions")
def set_options():  # type: ignore[no-untyped-def]
    """Validate and store options for the next run."""
    if not request.args.get("action"):
        return jsonify({"ok": False, "error": "No options provided!"}), 400

    raw = {
        "action": request.args.get("action", ""),
        "downloadUrl": request.args.get("downloadUrl") or None,
        "overwritePath": request.args.get("overwritePath") or None,
    }

    # Validate here too, so the caller gets a useful status code.
    # The manager repeats the check and publishes the error event.
    try:
        options = InstallOptions.model_validate(raw)
    except ValidationError as e:
        _manager().set_options(raw)
        return jsonify({
            "ok": False,
            "error": "; ".join(err["msg"] for err in e.errors()),
        }), 400

    manager = _manager()
    if not manager.set_options(options):
        return jsonify({"ok": False, "error": "Installation process is already running."}), 409

    return jsonify(options.to_dict())


@install_bp.route("/generateSteps")
def generate_steps():  # type: ignore[no-untyped-def]
    """Build the step plan for the stored options."""
    manager = _manager()
    if not manager.generate_steps():
        return jsonify({"ok": False, "error": "Steps could not be generated."}), 409
    return jsonify({"ok": True, "steps": [s.value for s in manager.steps]})


@install_bp.route("/start")
def start():  # type: ignore[no-untyped-def]
    """Plan and start the run.  Progress follows on /events."""
    manager = _manager()
    if not manager.generate_steps() or not manager.start():
        return jsonify({"ok": False, "error": "Installation could not be started."}), 409
    return jsonify({"ok": True, "message": "Installation started!"})


@install_bp.route("/isInstalled")
def is_installed():  # type: ignore[no-untyped-def]
    """Install status of Luna in the TIDAL directory.

    Uses the stored options' override path when one is set.
    """
    override = request.args.get("overwritePath")
    if override:
        target = paths.normalize_resources_path(Path(override).expanduser())
    else:
        target = paths.resolve_target(_manager().options)

    status = paths.install_status(target)
    return jsonify({"isInstalled": status["installed"], **status})


@install_bp.route("/health")
def health():  # type: ignore[no-untyped-def]
    return jsonify({"ok": True, "version": __version__})
