"""
relayctl — CLI entrypoint.

Usage:
    relayctl                      # interactive menu
    relayctl install --selection udpgw-only
    relayctl status
    python -m relayctl.main --help
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from relayctl import __version__
from relayctl.core.observability.logging_config import setup_logging


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="relayctl")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to relayctl.yml (default: $RELAYCTL_CONFIG, then /etc/relayctl/relayctl.yml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """relayctl — build, install and operate the BadVPN UDP gateway."""
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
        level = os.environ.get("RELAYCTL_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("RELAYCTL_LOG_FILE"),
        log_file_level=os.environ.get("RELAYCTL_LOG_FILE_LEVEL"),
    )

    # ── Settings and adapters (once per invocation) ─────────────
    from relayctl.adapters.registry import AdapterRegistry
    from relayctl.core.config.loader import load_settings
    from relayctl.core.errors import ConfigError
    from relayctl.ui.operations import AppContext, report_error

    try:
        settings = load_settings(ctx.obj["config_path"])
    except ConfigError as err:
        report_error(err)
        sys.exit(err.exit_code)

    ctx.obj["app"] = AppContext(
        settings=settings,
        registry=AdapterRegistry.from_settings(settings),
    )

    if ctx.invoked_subcommand is None:
        from relayctl.ui.cli.menu import run_menu

        sys.exit(run_menu(ctx.obj["app"]))


# ── Register sub-commands ───────────────────────────────────────────

from relayctl.ui.cli.install import global_command, install, uninstall  # noqa: E402
from relayctl.ui.cli.menu import menu  # noqa: E402
from relayctl.ui.cli.service import (  # noqa: E402
    disable,
    edit,
    enable,
    logs,
    logs_follow,
    ports,
    restart,
    set_addr,
    set_field,
    start,
    status,
    stop,
)
from relayctl.ui.cli.ssl import ssl  # noqa: E402

for _command in (
    install,
    uninstall,
    status,
    logs,
    logs_follow,
    ports,
    start,
    stop,
    restart,
    enable,
    disable,
    edit,
    set_addr,
    set_field,
    ssl,
    global_command,
    menu,
):
    cli.add_command(_command)


if __name__ == "__main__":
    cli()
