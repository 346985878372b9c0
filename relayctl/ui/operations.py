"""
Operations — the one dispatch table behind both front ends.

Every user-facing operation is an ``Operation(key, label, handler)``.
The click commands call ``dispatch(app, key, **kwargs)`` with their
arguments; the interactive menu calls it with none and the handler
prompts for whatever it needs.

Handlers print through click and return an ``OperationReport`` (or
None).  ``dispatch`` owns the error contract:

    RelayError        → "❌ [Category] message" on stderr, its exit code
    failed report     → exit 1
    warnings          → "⚠️ ..." lines, exit 0
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import click
from pydantic import ValidationError

from relayctl.adapters.registry import AdapterRegistry
from relayctl.core.errors import InvalidInput, RelayError
from relayctl.core.models.build import SELECTION_KINDS, BuildSelection
from relayctl.core.models.result import OperationReport
from relayctl.core.models.service_config import ENV_FIELDS
from relayctl.core.models.settings import ManagerSettings
from relayctl.core.services.cert_ops import CertificateWorkflow
from relayctl.core.services.global_command import install_global_command
from relayctl.core.services.provisioner import Provisioner
from relayctl.core.services.service_ops import ServiceControl, ServiceState

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a handler needs, built once per invocation."""

    settings: ManagerSettings
    registry: AdapterRegistry
    as_json: bool = False

    @property
    def control(self) -> ServiceControl:
        return ServiceControl(self.settings, self.registry.systemd, self.registry.sockets)

    @property
    def certificates(self) -> CertificateWorkflow:
        return CertificateWorkflow(
            self.settings,
            self.registry.acme,
            self.registry.panel,
            self.registry.sockets,
            self.registry.systemd,
            Provisioner(self.registry.apt, self.registry.git),
        )


Handler = Callable[..., OperationReport | None]


@dataclass(frozen=True)
class Operation:
    key: str
    label: str
    handler: Handler
    confirm: str = ""  # asked before running, when set


# ── Output helpers ──────────────────────────────────────────────

_STATE_COLORS = {
    ServiceState.RUNNING: "green",
    ServiceState.STOPPED: "yellow",
    ServiceState.FAILED: "red",
    ServiceState.UNKNOWN: "white",
}


def report_error(err: RelayError) -> None:
    click.secho(f"❌ [{err.category}] {err.message}", fg="red", err=True)
    if err.hint:
        click.echo(f"   {err.hint}", err=True)


def report_warnings(warnings: list[str]) -> None:
    for warning in warnings:
        click.secho(f"⚠️  {warning}", fg="yellow", err=True)


def _emit_json(app: AppContext, data: dict) -> bool:
    if app.as_json:
        click.echo(json.dumps(data, indent=2))
    return app.as_json


# ── Handlers ────────────────────────────────────────────────────


def do_install(
    app: AppContext,
    selection: str | None = None,
    flags: tuple[str, ...] = (),
) -> OperationReport:
    from relayctl.core.use_cases.install import run_install

    if selection is None:
        selection = click.prompt(
            "Build selection",
            type=click.Choice(SELECTION_KINDS),
            default="full",
        )
        if selection == "custom":
            raw = click.prompt("Components (comma separated, e.g. UDPGW,TUN2SOCKS)")
            flags = tuple(f for f in raw.replace(",", " ").split() if f)
    try:
        chosen = BuildSelection.parse(selection, flags)
    except ValidationError as e:
        raise InvalidInput(f"Invalid build selection: {e.errors()[0]['msg']}") from e

    result = run_install(app.settings, chosen, app.registry)
    if _emit_json(app, result.to_dict()):
        return result.report

    click.secho("✅ Installed", fg="green", bold=True)
    for name, path in result.binaries.items():
        click.echo(f"   {name:<18} {path}")
    if result.unit_path:
        click.echo(f"   {'service':<18} {app.settings.service.name}")
    if result.config_path:
        note = "created" if result.config_created else "kept"
        click.echo(f"   {'config':<18} {result.config_path} ({note})")
    if result.source:
        click.echo(f"   {'source':<18} {result.source.ref} @ {result.source.commit[:12]}")
    if result.unit_path:
        _show_ports_after(app, result.report)
    return result.report


def do_uninstall(app: AppContext) -> OperationReport:
    from relayctl.core.use_cases.uninstall import run_uninstall

    result = run_uninstall(app.settings, app.registry)
    if not _emit_json(app, result.to_dict()):
        click.secho(f"🗑  Removed {len(result.removal.removed)} path(s)", fg="green", bold=True)
        for path in result.removal.removed:
            click.echo(f"   • {path}")
        for path in result.removal.pruned:
            click.echo(f"   • {path}/ (empty)")
        if not result.removal.manifest_removed:
            click.echo(f"   Manifest kept for retry: {app.settings.manifest_path}")
    report = result.report
    for warning in result.removal.warnings:
        report.warn(warning)
    return report


def do_status(app: AppContext) -> None:
    status = app.control.status(detail=not app.as_json)
    if _emit_json(app, status.to_dict()):
        return
    click.echo(f"{status.unit}: ", nl=False)
    click.secho(status.state.value, fg=_STATE_COLORS[status.state], bold=True)
    if status.detail:
        click.echo(status.detail.rstrip())


def do_logs(app: AppContext, lines: int | None = None) -> None:
    click.echo(app.control.tail_logs(lines).rstrip())


def do_follow_logs(app: AppContext) -> None:
    click.secho("Following logs, Ctrl+C to stop", fg="cyan", err=True)
    app.control.follow_logs()


def _show_ports(app: AppContext) -> None:
    ports = app.control.ports()
    if _emit_json(app, {"listen_addr": ports.listen_addr, "port": ports.port,
                        "listeners": ports.listeners}):
        return
    if ports.listening:
        click.secho(f"UDP :{ports.port} ({ports.listen_addr})", fg="green")
        for line in ports.listeners:
            click.echo(f"   {line}")
    else:
        click.secho(f"Nothing listening on UDP :{ports.port}", fg="yellow")


def _show_ports_after(app: AppContext, report: OperationReport) -> None:
    """Port listing after a change that already succeeded; failures only warn."""
    try:
        _show_ports(app)
    except RelayError as e:
        logger.debug("Port listing failed after a successful change: %s", e)
        report.warn(f"ports: {e.message}")


def do_ports(app: AppContext) -> None:
    _show_ports(app)


def do_start(app: AppContext) -> OperationReport:
    report = app.control.start()
    if report.ok:
        _show_ports_after(app, report)
    return report


def do_stop(app: AppContext) -> OperationReport:
    report = app.control.stop()
    if report.ok:
        do_status(app)
    return report


def do_restart(app: AppContext) -> OperationReport:
    report = app.control.restart()
    if report.ok:
        _show_ports_after(app, report)
    return report


def do_enable(app: AppContext) -> OperationReport:
    return app.control.enable()


def do_disable(app: AppContext) -> OperationReport:
    return app.control.disable()


def do_edit(app: AppContext) -> OperationReport:
    editor = app.settings.editor or os.environ.get("EDITOR") or "nano"

    def launch(path: Path) -> None:
        click.edit(filename=str(path), editor=editor)

    report = app.control.edit_config(launch)
    _show_ports_after(app, report)
    return report


def do_set(app: AppContext, field: str | None = None, value: str | None = None) -> OperationReport:
    if field is None:
        field = click.prompt("Field", type=click.Choice(list(ENV_FIELDS), case_sensitive=False))
    if value is None:
        value = click.prompt(f"New {field.upper()}", default="", show_default=False)
    report = app.control.set_field(field, value)
    click.secho(f"✅ {field.upper()}={value}", fg="green")
    _show_ports_after(app, report)
    return report


def do_set_addr(app: AppContext, addr: str | None = None) -> OperationReport:
    if addr is None:
        addr = click.prompt("New LISTEN_ADDR (example: 127.0.0.1:7300)", default="", show_default=False)
    return do_set(app, "LISTEN_ADDR", addr)


def do_ssl(app: AppContext, domain: str | None = None, force: bool = False) -> OperationReport:
    if domain is None:
        domain = click.prompt("Domain (A/AAAA must point to this host)", default="", show_default=False)
    report = OperationReport(operation="ssl")
    record = app.certificates.issue(domain, force=force, report=report)
    if _emit_json(app, {**record.model_dump(), "access_url": record.access_url}):
        return report
    click.secho(f"✅ Certificate installed for {record.domain}", fg="green", bold=True)
    click.echo(f"   Cert: {record.cert_path}")
    click.echo(f"   Key:  {record.key_path}")
    click.echo(f"   Access URL: {record.access_url}")
    return report


def do_global(app: AppContext) -> None:
    path = install_global_command(app.settings)
    click.secho(f"✅ Global command installed. Run: {path.name}", fg="green")


# ── Table ───────────────────────────────────────────────────────

OPERATIONS: tuple[Operation, ...] = (
    Operation("install", "Install / Update (build + setup service)", do_install),
    Operation("status", "Service status", do_status),
    Operation("logs", "Show logs", do_logs),
    Operation("logs-f", "Follow logs (live)", do_follow_logs),
    Operation("ports", "Show listening port(s)", do_ports),
    Operation("start", "Start service", do_start),
    Operation("stop", "Stop service", do_stop),
    Operation("restart", "Restart service", do_restart),
    Operation("edit", "Edit config (then restart)", do_edit),
    Operation("set-addr", "Set LISTEN_ADDR quickly", do_set_addr),
    Operation("set", "Set any config field", do_set),
    Operation("ssl", "SSL install (x-ui cert via acme.sh)", do_ssl),
    Operation("global", "Install global menu command: badvpn", do_global),
    Operation("enable", "Enable on boot", do_enable),
    Operation("disable", "Disable on boot", do_disable),
    Operation(
        "uninstall",
        "Uninstall (remove everything installed)",
        do_uninstall,
        confirm="Stop the service and remove all installed files?",
    ),
)

OPERATIONS_BY_KEY: dict[str, Operation] = {op.key: op for op in OPERATIONS}


def dispatch(app: AppContext, key: str, **kwargs) -> int:
    """Run one operation and return the process exit status."""
    op = OPERATIONS_BY_KEY[key]
    logger.debug("Dispatching %s %s", key, kwargs)
    try:
        report = op.handler(app, **kwargs)
    except RelayError as err:
        report_error(err)
        return err.exit_code

    if report is None:
        return 0
    report_warnings(report.warnings)
    if not report.ok:
        for step in report.steps:
            if step.failed and not step.best_effort:
                click.secho(f"❌ {step.step} failed: {step.error}", fg="red", err=True)
        return 1
    return 0
