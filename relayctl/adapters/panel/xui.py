"""
x-ui panel adapter — read web settings, point the panel at a certificate.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from relayctl.adapters.base import Adapter
from relayctl.core.models.certificate import PanelSettings
from relayctl.core.services.runner import CommandResult

logger = logging.getLogger(__name__)

_SETTING_RE = re.compile(r"^\s*(webBasePath|port)\s*:\s*(\S+)", re.MULTILINE)


class XuiPanelAdapter(Adapter):
    """The x-ui binary's ``setting`` and ``cert`` subcommands."""

    def __init__(self, binary: Path, runner=None):
        super().__init__(runner)
        self._binary = binary

    @property
    def name(self) -> str:
        return "panel"

    @property
    def binary(self) -> Path:
        return self._binary

    def is_available(self) -> bool:
        return self._binary.is_file() and os.access(self._binary, os.X_OK)

    def settings(self) -> PanelSettings:
        """Current base path and port; defaults when unreadable."""
        result = self._run([str(self._binary), "setting", "-show", "true"])
        if not result.ok:
            logger.warning("Cannot read panel settings: %s", result.error)
            return PanelSettings()
        found: dict[str, str] = {}
        for key, value in _SETTING_RE.findall(result.stdout):
            found.setdefault(key, value)
        port = found.get("port", "")
        return PanelSettings(
            base_path=found.get("webBasePath") or "/",
            port=int(port) if port.isdigit() else 443,
        )

    def set_certificate(self, cert: Path, key: Path) -> CommandResult:
        logger.info("Pointing panel at %s", cert)
        return self._run(
            [str(self._binary), "cert", "-webCert", str(cert), "-webCertKey", str(key)]
        )
