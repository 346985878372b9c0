"""Shared plumbing for the click commands."""

from __future__ import annotations

import sys

import click

from relayctl.ui.operations import AppContext, dispatch


def get_app(ctx: click.Context) -> AppContext:
    app = ctx.obj.get("app") if ctx.obj else None
    if app is None:
        raise click.UsageError("relayctl settings were not loaded")
    return app


def run_operation(ctx: click.Context, key: str, *, as_json: bool = False, **kwargs) -> None:
    """Dispatch ``key`` and exit with its status when non-zero."""
    app = get_app(ctx)
    app.as_json = as_json
    code = dispatch(app, key, **kwargs)
    if code:
        sys.exit(code)
