"""
ManagerSettings — the explicit configuration of one invocation.

Loaded once by the CLI entrypoint (see ``relayctl.core.config.loader``)
and passed to every component that needs it.  Nothing reads paths or
defaults from module globals.

Every field has a working default, so an empty or missing settings
file yields the canonical single-host layout::

    /usr/local/bin/badvpn-udpgw             binaries
    /etc/default/badvpn-udpgw               runtime config (operator-owned)
    /etc/systemd/system/badvpn.service      unit (regenerated)
    /var/lib/badvpn/install_manifest.json   manifest
    /var/lib/badvpn/build_info.json         build metadata
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from relayctl.core.models.service_config import ServiceConfig


class SourceSettings(BaseModel):
    """Where the BadVPN source comes from and where it is built."""

    repo_url: str = "https://github.com/MasterHide/badvpn.git"
    preferred_ref: str = "master"
    fallback_ref: str = "main"
    src_dir: Path = Path("/root/badvpn")
    build_dir: Path | None = None  # default: <src_dir>/badvpn-build
    jobs: int | None = Field(default=None, gt=0)  # default: CPU count


class ServiceSettings(BaseModel):
    """Names and paths of the supervised UDP gateway."""

    name: str = "badvpn.service"
    description: str = "BadVPN UDPGW service"
    unit_dir: Path = Path("/etc/systemd/system")
    env_file: Path = Path("/etc/default/badvpn-udpgw")
    log_lines: int = Field(default=120, gt=0)


class PanelSettingsConfig(BaseModel):
    """The dependent x-ui panel that receives issued certificates."""

    binary: Path = Path("/usr/local/x-ui/x-ui")
    service: str = "x-ui"


class AcmeSettings(BaseModel):
    """acme.sh location and issuance parameters."""

    home: Path = Path("/root/.acme.sh")
    install_url: str = "https://get.acme.sh"
    ca_server: str = "letsencrypt"
    cert_root: Path = Path("/root/cert")
    challenge_port: int = 80


class ManagerSettings(BaseModel):
    """Root settings model — loaded from relayctl.yml (all keys optional)."""

    bin_dir: Path = Path("/usr/local/bin")
    state_dir: Path = Path("/var/lib/badvpn")
    command_path: Path = Path("/usr/local/bin/badvpn")
    editor: str | None = None  # default: $EDITOR, then nano

    source: SourceSettings = Field(default_factory=SourceSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    defaults: ServiceConfig = Field(default_factory=ServiceConfig)
    panel: PanelSettingsConfig = Field(default_factory=PanelSettingsConfig)
    acme: AcmeSettings = Field(default_factory=AcmeSettings)

    # ── Derived paths ───────────────────────────────────────────

    @property
    def build_dir(self) -> Path:
        return self.source.build_dir or self.source.src_dir / "badvpn-build"

    @property
    def unit_path(self) -> Path:
        return self.service.unit_dir / self.service.name

    @property
    def manifest_path(self) -> Path:
        return self.state_dir / "install_manifest.json"

    @property
    def build_info_path(self) -> Path:
        return self.state_dir / "build_info.json"

    @property
    def lock_path(self) -> Path:
        return self.state_dir / ".lock"

    @property
    def acme_script(self) -> Path:
        return self.acme.home / "acme.sh"
