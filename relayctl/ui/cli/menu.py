"""
Interactive numbered menu — the same operations as the CLI.

Entries come straight from ``OPERATIONS``; the number shown is the
position in that table.  Errors are printed and the menu continues.
"""

from __future__ import annotations

import click

from relayctl.ui.cli.helpers import get_app
from relayctl.ui.operations import OPERATIONS, AppContext, dispatch

TITLE = "BadVPN Manager"


def render_menu() -> str:
    lines = [f"=========== {TITLE} ==========="]
    lines += [f"{i}) {op.label}" for i, op in enumerate(OPERATIONS, start=1)]
    lines.append("0) Exit")
    lines.append("=" * (len(TITLE) + 24))
    return "\n".join(lines)


def run_menu(app: AppContext) -> int:
    """Loop until the operator picks 0 or aborts; return the last status."""
    last = 0
    while True:
        click.echo()
        click.echo(render_menu())
        try:
            choice = click.prompt("Choose", type=str, default="", show_default=False).strip()
        except click.Abort:
            click.echo()
            return last

        if choice == "0":
            return last
        if not choice.isdigit() or not 1 <= int(choice) <= len(OPERATIONS):
            click.secho("Invalid choice.", fg="yellow")
            continue

        op = OPERATIONS[int(choice) - 1]
        try:
            if op.confirm and not click.confirm(op.confirm, default=False):
                continue
            last = dispatch(app, op.key)
        except click.Abort:
            click.echo()
            click.secho("Cancelled.", fg="yellow")


@click.command()
@click.pass_context
def menu(ctx: click.Context) -> None:
    """Open the interactive menu."""
    run_menu(get_app(ctx))
