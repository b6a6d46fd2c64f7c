"""
Web server — Flask app factory.

Creates and configures the Flask application the browser frontend
talks to.  The app owns one InstallManager; every request handler
reaches it through ``current_app.extensions["install_manager"]``.
"""

from __future__ import annotations

import logging

from flask import Flask

from src.core.models.settings import InstallerSettings
from src.core.services.event_bus import EventBus
from src.core.services.event_bus import bus as default_bus
from src.core.services.install.manager import InstallManager

logger = logging.getLogger(__name__)


def create_app(
    settings: InstallerSettings | None = None,
    manager: InstallManager | None = None,
    bus: EventBus | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        settings: Installer settings (default: built-in defaults).
        manager: Pre-built InstallManager (tests inject one with
            inline execution and no pauses).
        bus: Event bus for progress events (default: the global bus,
            or the manager's bus when a manager is given).

    Returns:
        Configured Flask application.
    """
    settings = settings or (manager.settings if manager else InstallerSettings())
    bus = bus or (manager.bus if manager else default_bus)
    manager = manager or InstallManager(bus=bus, settings=settings)

    app = Flask(__name__)
    app.config["INSTALLER_SETTINGS"] = settings
    app.extensions["install_manager"] = manager
    app.extensions["event_bus"] = bus

    # A connecting SSE client rebuilds its view from the run state
    bus.set_snapshot_provider(manager.get_state)

    from src.ui.web.routes_events import events_bp
    from src.ui.web.routes_install import install_bp

    app.register_blueprint(install_bp)
    app.register_blueprint(events_bp)

    logger.info("Installer app created (port=%d)", settings.port)
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 65530,
    debug: bool = False,
) -> None:
    """Run the Flask server (threaded, so SSE streams don't block requests)."""
    logger.info("Starting installer on %s:%d", host, port)
    app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
