"""
Uninstall use case — remove exactly what the manifest lists.

No manifest, no uninstall: paths are never guessed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from relayctl.adapters.registry import AdapterRegistry
from relayctl.core.models.result import OperationReport, StepResult
from relayctl.core.models.settings import ManagerSettings
from relayctl.core.persistence.build_info import remove_build_info
from relayctl.core.persistence.instance_lock import instance_lock
from relayctl.core.persistence.manifest_store import ManifestStore, RemovalReport
from relayctl.core.services.privilege import require_root
from relayctl.core.services.runner import CommandResult

logger = logging.getLogger(__name__)


@dataclass
class UninstallResult:
    removal: RemovalReport = field(default_factory=RemovalReport)
    report: OperationReport = field(default_factory=lambda: OperationReport(operation="uninstall"))

    @property
    def warnings(self) -> list[str]:
        return self.report.warnings + self.removal.warnings

    def to_dict(self) -> dict:
        return {**self.removal.to_dict(), "warnings": self.warnings}


def run_uninstall(
    settings: ManagerSettings,
    registry: AdapterRegistry | None = None,
) -> UninstallResult:
    """Stop the service and delete every manifest entry.

    Raises:
        PrivilegeRequired: Not running as root.
        ManifestMissing: No readable manifest; nothing is touched.
    """
    require_root("uninstall")
    registry = registry or AdapterRegistry.from_settings(settings)
    result = UninstallResult()
    store = ManifestStore(settings.manifest_path)
    store.load()  # refuse before the lock creates state_dir

    with instance_lock(settings.lock_path):
        manifest = store.load()
        has_unit = any(e.kind == "unit" for e in manifest.entries)

        unit = settings.service.name
        if has_unit:
            result.report.add(_best_effort("stop", registry.systemd.stop(unit)))
            result.report.add(_best_effort("disable", registry.systemd.disable(unit)))

        result.removal = store.remove_all()

        if remove_build_info(settings.build_info_path):
            logger.info("Removed %s", settings.build_info_path)

        if has_unit:
            result.report.add(_best_effort("daemon-reload", registry.systemd.daemon_reload()))

    logger.info(
        "Uninstall: %d removed, %d missing, %d failed",
        len(result.removal.removed),
        len(result.removal.missing),
        len(result.removal.failed),
    )
    return result


def _best_effort(step: str, result: CommandResult) -> StepResult:
    if result.ok:
        return StepResult.success(step, best_effort=True)
    return StepResult.failure(step, result.error, best_effort=True)
