"""
acme.sh adapter — standalone HTTP-01 issuance and certificate install.

acme.sh keeps per-domain state under ``<home>/<domain>`` (RSA) or
``<home>/<domain>_ecc`` (ECDSA).  ``--list`` reads those directories, so
they are the source of truth for "is this domain already issued".
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from relayctl.adapters.base import Adapter
from relayctl.core.services.runner import CommandResult

logger = logging.getLogger(__name__)


class AcmeShAdapter(Adapter):
    """Wrapper around ``<home>/acme.sh``."""

    def __init__(self, home: Path, runner=None):
        super().__init__(runner)
        self._home = home

    @property
    def name(self) -> str:
        return "acme"

    @property
    def home(self) -> Path:
        return self._home

    @property
    def script(self) -> Path:
        return self._home / "acme.sh"

    def is_available(self) -> bool:
        return self.script.is_file() and os.access(self.script, os.X_OK)

    # ── Setup ───────────────────────────────────────────────────

    def install(self, install_url: str) -> CommandResult:
        """Download the official installer and run it (``curl | sh``)."""
        logger.info("Installing acme.sh from %s", install_url)
        fetched = self._run(["curl", "-fsSL", install_url])
        if not fetched.ok:
            return fetched
        return self._run(["sh"], input_text=fetched.stdout)

    def set_default_ca(self, server: str) -> CommandResult:
        return self._acme("--set-default-ca", "--server", server)

    def upgrade(self) -> CommandResult:
        return self._acme("--upgrade", "--auto-upgrade")

    # ── Certificates ────────────────────────────────────────────

    def list_domains(self) -> list[str] | None:
        """Main domains known to acme.sh; None if the listing failed."""
        result = self._acme("--list")
        if not result.ok:
            return None
        lines = result.stdout.splitlines()
        domains = []
        for line in lines[1:]:  # header: Main_Domain KeyLength SAN_Domains ...
            fields = line.split()
            if fields:
                domains.append(fields[0])
        return domains

    def issue_standalone(
        self,
        domain: str,
        fullchain: Path,
        key: Path,
        *,
        force: bool = False,
    ) -> CommandResult:
        args = ["--issue", "--standalone", "-d", domain,
                "--fullchain-file", str(fullchain), "--key-file", str(key)]
        if force:
            args.insert(1, "--force")
        logger.info("Issuing certificate for %s (standalone)", domain)
        return self._acme(*args)

    def install_cert(self, domain: str, fullchain: Path, key: Path) -> CommandResult:
        return self._acme(
            "--installcert", "-d", domain,
            "--key-file", str(key), "--fullchain-file", str(fullchain),
        )

    def domain_state_dirs(self, domain: str) -> list[Path]:
        """acme.sh's own per-domain state directories."""
        return [self._home / domain, self._home / f"{domain}_ecc"]

    # ── Helpers ─────────────────────────────────────────────────

    def _acme(self, *args: str) -> CommandResult:
        return self._run([str(self.script), *args])
