"""
CLI commands for operating the installed service.

Thin wrappers over ``relayctl.ui.operations``.
"""

from __future__ import annotations

import click

from relayctl.ui.cli.helpers import run_operation


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show service state (Running / Stopped / Failed / Unknown)."""
    run_operation(ctx, "status", as_json=as_json)


@click.command()
@click.option("--lines", "-n", type=click.IntRange(min=1), default=None,
              help="Number of journal lines (default: service.log_lines).")
@click.pass_context
def logs(ctx: click.Context, lines: int | None) -> None:
    """Show the last journal lines of the service."""
    run_operation(ctx, "logs", lines=lines)


@click.command("logs-f")
@click.pass_context
def logs_follow(ctx: click.Context) -> None:
    """Follow the service journal until Ctrl+C."""
    run_operation(ctx, "logs-f")


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def ports(ctx: click.Context, as_json: bool) -> None:
    """Show UDP sockets on the configured listen port."""
    run_operation(ctx, "ports", as_json=as_json)


@click.command()
@click.pass_context
def start(ctx: click.Context) -> None:
    """Start the service."""
    run_operation(ctx, "start")


@click.command()
@click.pass_context
def stop(ctx: click.Context) -> None:
    """Stop the service."""
    run_operation(ctx, "stop")


@click.command()
@click.pass_context
def restart(ctx: click.Context) -> None:
    """Restart the service."""
    run_operation(ctx, "restart")


@click.command()
@click.pass_context
def enable(ctx: click.Context) -> None:
    """Enable the service on boot and start it."""
    run_operation(ctx, "enable")


@click.command()
@click.pass_context
def disable(ctx: click.Context) -> None:
    """Disable the service on boot and stop it."""
    run_operation(ctx, "disable")


@click.command()
@click.pass_context
def edit(ctx: click.Context) -> None:
    """Edit the runtime config in an editor, then restart."""
    run_operation(ctx, "edit")


@click.command("set-addr")
@click.argument("addr", required=False)
@click.pass_context
def set_addr(ctx: click.Context, addr: str | None) -> None:
    """Set LISTEN_ADDR (host:port) and restart.  Prompts when ADDR is omitted."""
    run_operation(ctx, "set-addr", addr=addr)


@click.command("set")
@click.argument("field")
@click.argument("value")
@click.pass_context
def set_field(ctx: click.Context, field: str, value: str) -> None:
    """Set one config FIELD (LISTEN_ADDR, MAX_CLIENTS, MAX_CONN_PER_CLIENT) and restart."""
    run_operation(ctx, "set", field=field, value=value)
