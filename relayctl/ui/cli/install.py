"""
CLI commands for install, uninstall and the global command.

Thin wrappers over ``relayctl.ui.operations``.
"""

from __future__ import annotations

import click

from relayctl.core.models.build import COMPONENT_OUTPUTS, SELECTION_KINDS
from relayctl.ui.cli.helpers import run_operation
from relayctl.ui.operations import OPERATIONS_BY_KEY


@click.command()
@click.option(
    "--selection",
    "-s",
    type=click.Choice(SELECTION_KINDS),
    default="full",
    show_default=True,
    help="Which components to build.",
)
@click.option(
    "--flag",
    "flags",
    multiple=True,
    metavar="COMPONENT",
    help=f"Component for --selection custom ({', '.join(COMPONENT_OUTPUTS)}). Repeatable.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, selection: str, flags: tuple[str, ...], as_json: bool) -> None:
    """Install or update: build from source, install binaries, set up the service.

    Examples:

        relayctl install

        relayctl install --selection custom --flag UDPGW --flag SERVER
    """
    run_operation(ctx, "install", as_json=as_json, selection=selection, flags=flags)


@click.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def uninstall(ctx: click.Context, yes: bool, as_json: bool) -> None:
    """Remove everything recorded in the install manifest."""
    if not yes:
        click.confirm(OPERATIONS_BY_KEY["uninstall"].confirm, abort=True)
    run_operation(ctx, "uninstall", as_json=as_json)


@click.command("global")
@click.pass_context
def global_command(ctx: click.Context) -> None:
    """Install the 'badvpn' command that opens the menu."""
    run_operation(ctx, "global")
