"""
Install use case — provision, build, install and start the gateway.

    root check → lock → tools → source → build → binaries
        → config (if absent) → unit → enable --now → build info

The manifest is persisted whether the run succeeds or not, so whatever
was placed on the host before a failure stays removable by uninstall.
Re-running install after an interruption picks up the same manifest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from relayctl import __version__
from relayctl.adapters.registry import AdapterRegistry
from relayctl.core.models.build import BuildInfo, BuildSelection, SourceState
from relayctl.core.models.result import OperationReport, StepResult
from relayctl.core.models.settings import ManagerSettings
from relayctl.core.persistence.build_info import save_build_info
from relayctl.core.persistence.instance_lock import instance_lock
from relayctl.core.persistence.manifest_store import ManifestStore
from relayctl.core.services.build_ops import BuildOrchestrator
from relayctl.core.services.installer import Installer
from relayctl.core.services.privilege import require_root
from relayctl.core.services.provisioner import BUILD_TOOLS, Provisioner
from relayctl.core.services.unit_generator import UnitGenerator

logger = logging.getLogger(__name__)

UDPGW_BINARY = "badvpn-udpgw"


@dataclass
class InstallResult:
    """What one install run put on the host."""

    selection: BuildSelection
    source: SourceState | None = None
    binaries: dict[str, str] = field(default_factory=dict)
    config_path: str | None = None
    config_created: bool = False
    unit_path: str | None = None
    manifest_path: str = ""
    report: OperationReport = field(default_factory=lambda: OperationReport(operation="install"))

    @property
    def warnings(self) -> list[str]:
        return self.report.warnings

    def to_dict(self) -> dict:
        return {
            "selection": self.selection.label(),
            "source": self.source.model_dump() if self.source else None,
            "binaries": self.binaries,
            "config_path": self.config_path,
            "config_created": self.config_created,
            "unit_path": self.unit_path,
            "manifest_path": self.manifest_path,
            "warnings": self.warnings,
        }


def run_install(
    settings: ManagerSettings,
    selection: BuildSelection,
    registry: AdapterRegistry | None = None,
) -> InstallResult:
    """Run a full install or update.

    Args:
        settings: Explicit manager configuration.
        selection: Which components to build.
        registry: Tool adapters; built from ``settings`` when omitted.

    Returns:
        InstallResult; best-effort failures are in ``warnings``.

    Raises:
        RelayError: The first fatal step's categorized error.
    """
    require_root("install")
    registry = registry or AdapterRegistry.from_settings(settings)
    result = InstallResult(selection=selection, manifest_path=str(settings.manifest_path))

    with instance_lock(settings.lock_path):
        store = ManifestStore(settings.manifest_path)
        store.begin()
        try:
            _install(settings, selection, registry, store, result)
        except BaseException:
            _save_partial(store)
            raise
        store.persist()

    return result


def _install(
    settings: ManagerSettings,
    selection: BuildSelection,
    registry: AdapterRegistry,
    store: ManifestStore,
    result: InstallResult,
) -> None:
    report = result.report

    # ── Source and build ────────────────────────────────────────
    provisioner = Provisioner(registry.apt, registry.git)
    installed = provisioner.ensure_tools(BUILD_TOOLS)
    if installed:
        report.add(StepResult.success("packages", output=" ".join(installed)))

    src = settings.source
    result.source = provisioner.sync_source(
        src.repo_url, src.src_dir, src.preferred_ref, src.fallback_ref
    )
    report.add(StepResult.success("source", output=f"{result.source.ref}@{result.source.commit[:12]}"))

    built = BuildOrchestrator(registry.cmake, src.jobs).build(
        src.src_dir, settings.build_dir, selection
    )
    report.add(StepResult.success("build", output=", ".join(sorted(built))))

    # ── Host artifacts ──────────────────────────────────────────
    installer = Installer(store)
    installer.install(built, settings.bin_dir)
    result.binaries = {name: str(settings.bin_dir / name) for name in sorted(built)}

    if selection.includes_udpgw:
        env_file = settings.service.env_file
        result.config_path = str(env_file)
        result.config_created = installer.write_config_if_absent(settings.defaults, env_file)

        generator = UnitGenerator(
            store,
            registry.systemd,
            settings.service.unit_dir,
            settings.service.name,
            settings.service.description,
        )
        unit = generator.generate(settings.bin_dir / UDPGW_BINARY, env_file, report)
        result.unit_path = unit.path

        enabled = registry.systemd.enable(settings.service.name, now=True)
        if enabled.ok:
            report.add(StepResult.success("enable", best_effort=True))
        else:
            logger.warning("Enabling %s failed: %s", settings.service.name, enabled.error)
            report.add(StepResult.failure("enable", enabled.error, best_effort=True))
    else:
        report.warn(
            f"Selection {selection.label()} has no udpgw; service unit and config not written"
        )

    # ── Build metadata ──────────────────────────────────────────
    info = BuildInfo(
        selection=selection.label(),
        cmake_flags=selection.cmake_flags(),
        source_url=src.repo_url,
        source_ref=result.source.ref,
        source_commit=result.source.commit,
        binaries=sorted(result.binaries.values()),
        manager_version=__version__,
    )
    try:
        save_build_info(info, settings.build_info_path)
    except OSError as e:
        report.warn(f"Cannot write {settings.build_info_path}: {e}")


def _save_partial(store: ManifestStore) -> None:
    if not store.manifest.entries and not store.exists():
        return
    try:
        store.persist()
    except OSError as e:
        logger.error("Manifest of the partial install could not be saved: %s", e)
