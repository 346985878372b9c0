"""
Domain models — Pydantic types for the relay manager.

All models are re-exported here for convenient access:

    from relayctl.core.models import ManagerSettings, BuildSelection, StepResult
"""

from relayctl.core.models.build import BuildInfo, BuildSelection, SourceState
from relayctl.core.models.certificate import CertificateRecord, PanelSettings
from relayctl.core.models.manifest import InstallationManifest, ManifestEntry
from relayctl.core.models.result import OperationReport, StepResult
from relayctl.core.models.service_config import ServiceConfig
from relayctl.core.models.settings import ManagerSettings

__all__ = [
    # build.py
    "BuildInfo",
    "BuildSelection",
    # certificate.py
    "CertificateRecord",
    # manifest.py
    "InstallationManifest",
    # settings.py
    "ManagerSettings",
    "ManifestEntry",
    # result.py
    "OperationReport",
    "PanelSettings",
    # service_config.py
    "ServiceConfig",
    "SourceState",
    "StepResult",
]
