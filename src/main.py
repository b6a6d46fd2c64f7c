"""
TidaLuna Installer — CLI entrypoint.

Usage:
    python -m src.main --help
    python -m src.main web
    python -m src.main status
    python -m src.main install https://example.com/luna.zip
    python -m src.main uninstall
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from src.core.models.settings import InstallerSettings
from src.core.observability.logging_config import setup_logging

from src import __version__


@click.group()
@click.version_option(version=__version__, prog_name="luna-installer")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to installer.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """TidaLuna Installer — install Luna into the TIDAL desktop client."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("LUNA_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("LUNA_LOG_FILE"),
        log_file_level=os.environ.get("LUNA_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


def _load_settings(ctx: click.Context) -> InstallerSettings:
    from src.core.config.loader import ConfigError, load_settings

    try:
        return load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(2)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--path",
    "overwrite_path",
    default=None,
    help="TIDAL install location (default: auto-detect).",
)
def status(as_json: bool, overwrite_path: str | None) -> None:
    """Show whether TIDAL is found and Luna is installed."""
    from src.core.services.install import paths

    if overwrite_path:
        target = paths.normalize_resources_path(Path(overwrite_path).expanduser())
    else:
        target = paths.get_tidal_directory()
    result = paths.install_status(target)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    if not result["found"]:
        click.secho("❌ TIDAL installation not found", fg="red")
        sys.exit(1)

    click.secho(f"\n🎵 TIDAL: {result['path']}", fg="cyan", bold=True)
    if result["installed"]:
        click.secho("   Luna: installed ✓", fg="green")
    else:
        click.echo("   Luna: not installed")
    if result["installed"] and not result["patched"]:
        click.secho("   ⚠️  Plugin directory present without app.asar backup", fg="yellow")
    click.echo()


@cli.command()
@click.argument("download_url")
@click.option(
    "--path",
    "overwrite_path",
    default=None,
    help="TIDAL install location (default: auto-detect).",
)
@click.pass_context
def install(ctx: click.Context, download_url: str, overwrite_path: str | None) -> None:
    """Install Luna from DOWNLOAD_URL into TIDAL."""
    ok = _run_action(
        ctx,
        {"action": "install", "downloadUrl": download_url, "overwritePath": overwrite_path},
    )
    sys.exit(0 if ok else 1)


@cli.command()
@click.option(
    "--path",
    "overwrite_path",
    default=None,
    help="TIDAL install location (default: auto-detect).",
)
@click.pass_context
def uninstall(ctx: click.Context, overwrite_path: str | None) -> None:
    """Remove Luna and restore the original TIDAL app."""
    ok = _run_action(ctx, {"action": "uninstall", "overwritePath": overwrite_path})
    sys.exit(0 if ok else 1)


def _run_action(ctx: click.Context, options: dict) -> bool:
    """Run one install/uninstall in the foreground, echoing progress."""
    from src.core.services.event_bus import EventBus
    from src.core.services.install.manager import InstallManager, no_pause
    from src.core.services.install.messages import INSTALL_COMPLETE, INSTALL_FAILED

    settings = _load_settings(ctx)
    bus = EventBus()
    events = bus.attach()
    manager = InstallManager(bus=bus, settings=settings, pause=no_pause)

    started = (
        manager.set_options(options)
        and manager.generate_steps()
        and manager.start()
    )

    quiet = ctx.obj.get("quiet", False)
    while True:
        if not started and events.empty():
            return False
        event = events.get()
        _echo_event(event, quiet)
        if event["type"] == INSTALL_COMPLETE:
            click.secho("\n✅ Done", fg="green", bold=True)
            return True
        if event["type"] == INSTALL_FAILED:
            click.secho(f"\n❌ {event['data'].get('message')}", fg="red", bold=True)
            return False


def _echo_event(event: dict, quiet: bool) -> None:
    from src.core.models.step import Step
    from src.core.services.install.messages import INSTALL_LOG, STEP_LOG, STEP_UPDATE

    data = event["data"]
    kind = event["type"]

    if kind == STEP_UPDATE:
        step = Step(data["step"])
        click.secho(f"▸ {step.label}", bold=True)
    elif kind in (STEP_LOG, INSTALL_LOG):
        if data.get("isError"):
            detail = f" ({data['error']})" if data.get("error") else ""
            click.secho(f"   ✗ {data['message']}{detail}", fg="red")
        elif not quiet:
            click.echo(f"   {data['message']}")


@cli.command()
@click.option("--host", default=None, help="Bind address (default: from settings).")
@click.option("--port", default=None, type=int, help="Port (default: from settings).")
@click.option("--no-browser", is_flag=True, help="Don't open the browser.")
@click.pass_context
def web(ctx: click.Context, host: str | None, port: int | None, no_browser: bool) -> None:
    """Start the installer web UI."""
    from src.ui.web.server import create_app, run_server

    settings = _load_settings(ctx)
    overrides = {k: v for k, v in (("host", host), ("port", port)) if v is not None}
    if overrides:
        settings = settings.model_copy(update=overrides)

    app = create_app(settings=settings)
    debug = ctx.obj.get("debug", False)

    click.echo()
    click.secho("🎵 TidaLuna Installer", bold=True)
    click.echo(f"   Open: {settings.url}")
    click.echo(f"   Temp: {settings.temp_dir}")
    if debug:
        click.secho("   Logging: DEBUG (all output)", fg="yellow")
    click.echo()

    if settings.open_browser and not no_browser:
        click.launch(settings.url)

    run_server(app, host=settings.host, port=settings.port, debug=debug)


if __name__ == "__main__":
    cli()
