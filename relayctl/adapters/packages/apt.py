"""
Apt adapter — idempotent "ensure installed" over Debian packages.
"""

from __future__ import annotations

import logging
import shutil

from relayctl.adapters.base import Adapter
from relayctl.core.services.runner import CommandResult

logger = logging.getLogger(__name__)

_NONINTERACTIVE = {"DEBIAN_FRONTEND": "noninteractive"}


class AptAdapter(Adapter):
    """Package queries and installs through apt-get / dpkg-query."""

    @property
    def name(self) -> str:
        return "apt"

    def is_available(self) -> bool:
        return shutil.which("apt-get") is not None

    def is_installed(self, package: str) -> bool:
        result = self._run(["dpkg-query", "-W", "-f=${Status}", package])
        return result.ok and "install ok installed" in result.stdout

    def update(self) -> CommandResult:
        logger.info("Refreshing package lists")
        return self._run(["apt-get", "update", "-y"], env_overrides=_NONINTERACTIVE)

    def install(self, packages: list[str]) -> CommandResult:
        logger.info("Installing packages: %s", " ".join(packages))
        return self._run(
            ["apt-get", "install", "-y", "--no-install-recommends", *packages],
            env_overrides=_NONINTERACTIVE,
        )
