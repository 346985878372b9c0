"""
Socket listing adapter — who is listening on a port, via ``ss``.
"""

from __future__ import annotations

import shutil
from typing import Literal

from relayctl.adapters.base import Adapter
from relayctl.core.services.runner import CommandResult


class SocketLister(Adapter):
    """Listening-socket queries through iproute2's ``ss``."""

    @property
    def name(self) -> str:
        return "ss"

    def is_available(self) -> bool:
        return shutil.which("ss") is not None

    def listeners(self, proto: Literal["tcp", "udp"], port: int | None = None) -> CommandResult:
        """List listening sockets, optionally filtered to one local port.

        Output has no header line (``-H``) and includes owning processes.
        """
        cmd = ["ss", "-H", "-l", "-n", "-p", "-t" if proto == "tcp" else "-u"]
        if port is not None:
            cmd += ["sport", "=", f":{port}"]
        return self._run(cmd)

    def port_holders(self, proto: Literal["tcp", "udp"], port: int) -> list[str] | None:
        """Lines describing sockets bound to ``port``.

        Empty when the port is free, None when ss itself failed.
        """
        result = self.listeners(proto, port)
        if not result.ok:
            return None
        return [line for line in result.stdout.splitlines() if line.strip()]
