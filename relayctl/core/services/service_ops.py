"""
Operational control surface — day-2 operations on the installed gateway.

State is derived from ``systemctl show`` only::

    Unknown ──► Stopped | Running | Failed

Mutating operations (start/stop/restart/enable/disable/edit/set) check
for root before their first side effect.  Configuration changes are
persisted before the restart, so a failing restart never rolls back an
edit; it is reported as a warning on the returned OperationReport.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from pydantic import ValidationError

from relayctl.adapters.net.sockets import SocketLister
from relayctl.adapters.supervisor.systemd import SystemdAdapter
from relayctl.core.errors import DependencyUnavailable, InvalidInput, ManifestMissing
from relayctl.core.models.result import OperationReport, StepResult
from relayctl.core.models.service_config import (
    ENV_FIELDS,
    ServiceConfig,
    replace_env_field,
)
from relayctl.core.models.settings import ManagerSettings
from relayctl.core.persistence.atomic import atomic_write_text
from relayctl.core.persistence.manifest_store import ManifestStore
from relayctl.core.services.installer import Installer
from relayctl.core.services.privilege import require_root
from relayctl.core.services.runner import CommandResult

logger = logging.getLogger(__name__)


class ServiceState(str, Enum):
    UNKNOWN = "Unknown"
    STOPPED = "Stopped"
    RUNNING = "Running"
    FAILED = "Failed"


_ACTIVE_STATE_MAP = {
    "active": ServiceState.RUNNING,
    "reloading": ServiceState.RUNNING,
    "inactive": ServiceState.STOPPED,
    "deactivating": ServiceState.STOPPED,
    "failed": ServiceState.FAILED,
}


@dataclass
class ServiceStatus:
    """Snapshot of the unit as systemd reports it."""

    unit: str
    state: ServiceState
    properties: dict[str, str] = field(default_factory=dict)
    detail: str = ""

    @property
    def loaded(self) -> bool:
        return self.properties.get("LoadState") == "loaded"

    @property
    def enabled(self) -> bool:
        return self.properties.get("UnitFileState") == "enabled"

    def to_dict(self) -> dict:
        return {
            "unit": self.unit,
            "state": self.state.value,
            "properties": self.properties,
        }


@dataclass
class PortReport:
    """UDP sockets bound to the configured listen port."""

    listen_addr: str
    port: int
    listeners: list[str] = field(default_factory=list)

    @property
    def listening(self) -> bool:
        return bool(self.listeners)


def state_from_properties(props: dict[str, str]) -> ServiceState:
    if not props or props.get("LoadState") == "not-found":
        return ServiceState.UNKNOWN
    return _ACTIVE_STATE_MAP.get(props.get("ActiveState", ""), ServiceState.UNKNOWN)


class ServiceControl:
    """Status, logs and lifecycle of the configured unit."""

    def __init__(
        self,
        settings: ManagerSettings,
        systemd: SystemdAdapter,
        sockets: SocketLister,
    ):
        self._settings = settings
        self._systemd = systemd
        self._sockets = sockets

    @property
    def unit(self) -> str:
        return self._settings.service.name

    @property
    def env_file(self) -> Path:
        return self._settings.service.env_file

    # ── Read-only ───────────────────────────────────────────────

    def status(self, *, detail: bool = False) -> ServiceStatus:
        props = self._systemd.show(self.unit)
        status = ServiceStatus(unit=self.unit, state=state_from_properties(props), properties=props)
        if detail:
            status.detail = self._systemd.status_text(self.unit).combined
        return status

    def tail_logs(self, lines: int | None = None) -> str:
        n = lines or self._settings.service.log_lines
        if n <= 0:
            raise InvalidInput(f"line count must be positive, got {n}")
        result = self._systemd.journal(self.unit, n)
        if not result.ok:
            logger.warning("journalctl failed: %s", result.error)
        return result.combined

    def follow_logs(self) -> int:
        """Stream the journal until the operator interrupts.

        An interrupt is the normal way out and returns 0.
        """
        try:
            return self._systemd.follow_journal(self.unit)
        except KeyboardInterrupt:
            logger.debug("Log follow interrupted")
            return 0

    def ports(self) -> PortReport:
        config = self.read_config()
        holders = self._sockets.port_holders("udp", config.port)
        if holders is None:
            raise DependencyUnavailable(
                "Cannot list sockets (ss failed)",
                hint="Install iproute2.",
            )
        return PortReport(listen_addr=config.listen_addr, port=config.port, listeners=holders)

    def read_config(self) -> ServiceConfig:
        """Current runtime config; built-in defaults if the file is absent."""
        if not self.env_file.exists():
            return self._settings.defaults
        try:
            return ServiceConfig.parse(self.env_file.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise InvalidInput(
                f"{self.env_file} holds invalid values: {_first_error(e)}",
                hint="Fix it with: relayctl edit",
            ) from e

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self) -> OperationReport:
        return self._lifecycle("start", self._systemd.start)

    def stop(self) -> OperationReport:
        return self._lifecycle("stop", self._systemd.stop)

    def restart(self) -> OperationReport:
        return self._lifecycle("restart", self._systemd.restart)

    def enable(self) -> OperationReport:
        return self._lifecycle("enable", lambda unit: self._systemd.enable(unit, now=True))

    def disable(self) -> OperationReport:
        return self._lifecycle("disable", lambda unit: self._systemd.disable(unit, now=True))

    def _lifecycle(self, verb: str, action: Callable[[str], CommandResult]) -> OperationReport:
        require_root(verb)
        report = OperationReport(operation=verb)
        result = action(self.unit)
        if result.ok:
            report.add(StepResult.success(verb))
        else:
            report.add(StepResult.failure(verb, result.error))
        return report

    # ── Configuration ───────────────────────────────────────────

    def ensure_config(self) -> bool:
        """Create the environment file from defaults if it is missing.

        When an installation manifest exists the new file is recorded
        in it, so uninstall removes it too.
        """
        if self.env_file.exists():
            return False

        store = ManifestStore(self._settings.manifest_path)
        tracked = False
        if store.exists():
            try:
                store.load()
                tracked = True
            except ManifestMissing as e:
                logger.warning("Not recording %s: %s", self.env_file, e.message)

        created = Installer(store).write_config_if_absent(self._settings.defaults, self.env_file)
        if created and tracked:
            store.persist()
        return created

    def edit_config(self, launch_editor: Callable[[Path], None]) -> OperationReport:
        """Open the config in an editor, validate it, reload and restart.

        Args:
            launch_editor: Blocks until the operator closes the editor.

        Raises:
            InvalidInput: The saved file no longer validates.  It is
                left as written and the service is not restarted.
        """
        require_root("edit")
        report = OperationReport(operation="edit")
        if self.ensure_config():
            report.warn(f"{self.env_file} did not exist; created with defaults")

        launch_editor(self.env_file)
        self.read_config()

        self._apply(report)
        return report

    def set_field(self, name: str, value: str) -> OperationReport:
        """Set one ``NAME=`` line in the config file, then restart.

        Raises:
            InvalidInput: Unknown field, empty value or a value the
                config model rejects.  Nothing is written.
        """
        require_root("set")
        key = name.strip().upper()
        value = value.strip()
        if key not in ENV_FIELDS:
            raise InvalidInput(
                f"Unknown field {name!r}",
                hint=f"Valid fields: {', '.join(ENV_FIELDS)}",
            )
        if not value:
            raise InvalidInput(f"{key} must not be empty")
        if '"' in value or "\n" in value:
            raise InvalidInput(f"{key} must not contain quotes or newlines")

        current = self.read_config().model_dump()
        current[ENV_FIELDS[key]] = value
        try:
            ServiceConfig.model_validate(current)
        except ValidationError as e:
            raise InvalidInput(f"Invalid {key}: {_first_error(e)}") from e

        report = OperationReport(operation="set")
        if self.ensure_config():
            report.warn(f"{self.env_file} did not exist; created with defaults")

        text = self.env_file.read_text(encoding="utf-8")
        mode = self.env_file.stat().st_mode & 0o777
        atomic_write_text(self.env_file, replace_env_field(text, key, value), mode=mode)
        logger.info("Set %s=%s in %s", key, value, self.env_file)
        report.add(StepResult.success(f"set {key}", output=value))

        self._apply(report)
        return report

    def _apply(self, report: OperationReport) -> None:
        reload = self._systemd.daemon_reload()
        report.add(_best_effort("daemon-reload", reload))
        restart = self._systemd.restart(self.unit)
        report.add(_best_effort("restart", restart))


def _best_effort(step: str, result: CommandResult) -> StepResult:
    if result.ok:
        return StepResult.success(step, best_effort=True)
    logger.warning("%s failed: %s", step, result.error)
    return StepResult.failure(step, result.error, best_effort=True)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    return errors[0].get("msg", str(exc))
