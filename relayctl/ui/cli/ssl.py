"""
CLI command for certificate issuance.

Thin wrapper over ``relayctl.ui.operations``.
"""

from __future__ import annotations

import click

from relayctl.ui.cli.helpers import run_operation


@click.command()
@click.argument("domain", required=False)
@click.option("--force", is_flag=True, help="Issue again even if acme.sh already has the domain.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def ssl(ctx: click.Context, domain: str | None, force: bool, as_json: bool) -> None:
    """Issue a Let's Encrypt certificate for the x-ui panel (standalone, port 80).

    DOMAIN must resolve to this host.  Prompts when omitted.
    """
    run_operation(ctx, "ssl", as_json=as_json, domain=domain, force=force)
