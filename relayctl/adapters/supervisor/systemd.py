"""
Systemd adapter — unit control, state queries and journal access.

Read-only queries follow the ``systemctl show --property=`` pattern so
the output is machine-parseable regardless of locale.
"""

from __future__ import annotations

import logging
import shutil

from relayctl.adapters.base import Adapter
from relayctl.core.services.runner import CommandResult

logger = logging.getLogger(__name__)

STATE_PROPERTIES = ("ActiveState", "SubState", "LoadState", "UnitFileState")


class SystemdAdapter(Adapter):
    """systemctl / journalctl wrapper."""

    @property
    def name(self) -> str:
        return "systemd"

    def is_available(self) -> bool:
        return shutil.which("systemctl") is not None

    # ── Definitions ─────────────────────────────────────────────

    def daemon_reload(self) -> CommandResult:
        return self._run(["systemctl", "daemon-reload"])

    def enable(self, unit: str, *, now: bool = False) -> CommandResult:
        return self._run(["systemctl", "enable", *(["--now"] if now else []), unit])

    def disable(self, unit: str, *, now: bool = False) -> CommandResult:
        return self._run(["systemctl", "disable", *(["--now"] if now else []), unit])

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self, unit: str) -> CommandResult:
        logger.info("Starting %s", unit)
        return self._run(["systemctl", "start", unit])

    def stop(self, unit: str) -> CommandResult:
        logger.info("Stopping %s", unit)
        return self._run(["systemctl", "stop", unit])

    def restart(self, unit: str) -> CommandResult:
        logger.info("Restarting %s", unit)
        return self._run(["systemctl", "restart", unit])

    # ── Queries ─────────────────────────────────────────────────

    def show(self, unit: str, properties: tuple[str, ...] = STATE_PROPERTIES) -> dict[str, str]:
        """Return ``{property: value}``; empty when systemctl fails."""
        result = self._run(
            ["systemctl", "show", unit, f"--property={','.join(properties)}"]
        )
        if not result.ok:
            logger.debug("systemctl show %s failed: %s", unit, result.error)
            return {}
        values: dict[str, str] = {}
        for line in result.stdout.splitlines():
            key, sep, val = line.partition("=")
            if sep:
                values[key.strip()] = val.strip()
        return values

    def status_text(self, unit: str) -> CommandResult:
        return self._run(["systemctl", "status", unit, "--no-pager", "-l"])

    def journal(self, unit: str, lines: int) -> CommandResult:
        return self._run(["journalctl", "-u", unit, "--no-pager", "-n", str(lines)])

    def follow_journal(self, unit: str) -> int:
        """Stream the journal until interrupted; returns the exit status."""
        return self.runner.stream(["journalctl", "-u", unit, "-f"])
