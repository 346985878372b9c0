"""
Service unit generator — render and atomically place the systemd unit.

The unit is regenerated on every install (it is ours, unlike the
environment file).  The rendered text goes to a temp file in the unit
directory, is read back and compared, and only then renamed over the
live unit, so systemd never sees a partial file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel

from relayctl.adapters.supervisor.systemd import SystemdAdapter
from relayctl.core.errors import UnitGenerationError
from relayctl.core.models.result import OperationReport, StepResult
from relayctl.core.persistence.atomic import write_temp
from relayctl.core.persistence.manifest_store import ManifestStore

logger = logging.getLogger(__name__)

UNIT_MODE = 0o644

_UNIT_TEMPLATE = """\
[Unit]
Description={description}
After=network-online.target
Wants=network-online.target

[Service]
Type=simple
EnvironmentFile=-{env_file}
ExecStart={binary} --listen-addr ${{LISTEN_ADDR}} --max-clients ${{MAX_CLIENTS}} --max-connections-for-client ${{MAX_CONN_PER_CLIENT}}
Restart=always
RestartSec=2
KillSignal=SIGINT
TimeoutStopSec=5

[Install]
WantedBy=multi-user.target
"""

# Indirection point for the temp-file write (tests substitute a truncating writer)
_write_temp = write_temp


class ServiceUnit(BaseModel):
    """A unit file as written to disk."""

    name: str
    path: str
    binary: str
    env_file: str
    content: str


def render_unit(binary_path: Path, env_file: Path, description: str) -> str:
    return _UNIT_TEMPLATE.format(
        description=description,
        env_file=env_file,
        binary=binary_path,
    )


class UnitGenerator:
    """Writes ``<unit_dir>/<name>`` and reloads systemd."""

    def __init__(
        self,
        store: ManifestStore,
        systemd: SystemdAdapter,
        unit_dir: Path,
        name: str,
        description: str,
    ):
        self._store = store
        self._systemd = systemd
        self._unit_dir = unit_dir
        self._name = name
        self._description = description

    @property
    def unit_path(self) -> Path:
        return self._unit_dir / self._name

    def generate(
        self,
        binary_path: Path,
        env_file: Path,
        report: OperationReport | None = None,
    ) -> ServiceUnit:
        """Render, verify and install the unit, then daemon-reload.

        The reload is best-effort: its failure lands in ``report`` as a
        warning.

        Raises:
            UnitGenerationError: the temp file could not be written or
                did not read back intact.  The live unit is untouched.
        """
        content = render_unit(binary_path, env_file, self._description)
        target = self.unit_path

        try:
            self._unit_dir.mkdir(parents=True, exist_ok=True)
            tmp = _write_temp(self._unit_dir, f".{self._name}.", content, UNIT_MODE)
        except OSError as e:
            raise UnitGenerationError(f"Cannot write unit to {self._unit_dir}: {e}") from e

        try:
            written = tmp.read_text(encoding="utf-8")
            if written != content:
                raise UnitGenerationError(
                    f"Unit temp file {tmp} is incomplete "
                    f"({len(written)} of {len(content)} bytes); {target} left unchanged"
                )
            os.replace(tmp, target)
        except OSError as e:
            raise UnitGenerationError(f"Cannot install unit {target}: {e}") from e
        finally:
            tmp.unlink(missing_ok=True)

        self._store.record(target, "unit")
        logger.info("Wrote unit %s", target)

        reload_step = self.reload()
        if report is not None:
            report.add(reload_step)

        return ServiceUnit(
            name=self._name,
            path=str(target),
            binary=str(binary_path),
            env_file=str(env_file),
            content=content,
        )

    def reload(self) -> StepResult:
        result = self._systemd.daemon_reload()
        if result.ok:
            return StepResult.success("daemon-reload", best_effort=True)
        logger.warning("systemctl daemon-reload failed: %s", result.error)
        return StepResult.failure("daemon-reload", result.error, best_effort=True)
