"""
Certificate issuance workflow — a Let's Encrypt certificate for the x-ui panel.

Standalone HTTP-01 through acme.sh: acme.sh binds port 80 itself for the
duration of the challenge.  Preconditions are checked in order and stop
at the first failure, before anything is written::

    domain syntax → panel present → acme.sh + socat/ss present
        → port 80 free → domain not already issued (unless forced)

Issuance writes into a staging directory that replaces the live one
only once both files exist.  On failure the staging directory and any
acme.sh state created by this run are removed; a live certificate from
an earlier issuance and its acme.sh state stay as they were.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path

from relayctl.adapters.acme.acme_sh import AcmeShAdapter
from relayctl.adapters.net.sockets import SocketLister
from relayctl.adapters.panel.xui import XuiPanelAdapter
from relayctl.adapters.supervisor.systemd import SystemdAdapter
from relayctl.core.errors import (
    AlreadyIssued,
    DependencyUnavailable,
    InvalidInput,
    IssuanceError,
    PortBlocked,
)
from relayctl.core.models.certificate import CertificateRecord
from relayctl.core.models.result import OperationReport, StepResult
from relayctl.core.models.settings import ManagerSettings
from relayctl.core.services.privilege import require_root
from relayctl.core.services.provisioner import CERT_TOOLS, Provisioner
from relayctl.core.services.runner import CommandResult

logger = logging.getLogger(__name__)

FULLCHAIN_NAME = "fullchain.pem"
KEY_NAME = "privkey.pem"

_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")

# acme.sh output fragment → IssuanceError category (checked in order)
_FAILURE_PATTERNS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("DNSNotPointed", ("dns problem", "nxdomain", "verify error", "invalid response")),
    ("PortBlocked", ("connection refused", "timeout", "firewall")),
    ("AlreadyIssued", ("domains not changed", "already")),
)

_HINTS = {
    "DNSNotPointed": "Point the domain's A/AAAA record at this host and retry.",
    "PortBlocked": "Port 80 must be reachable from the internet; check the firewall.",
    "AlreadyIssued": "Use --force to issue again.",
}


def validate_domain(domain: str) -> str:
    """Return the normalized domain or raise InvalidInput."""
    name = domain.strip().lower().rstrip(".")
    if not name:
        raise InvalidInput("Domain cannot be empty")
    labels = name.split(".")
    if (
        len(name) > 253
        or len(labels) < 2
        or not all(_LABEL_RE.match(label) for label in labels)
        or labels[-1].isdigit()
    ):
        raise InvalidInput(f"{domain!r} is not a valid domain name")
    return name


def classify_failure(output: str) -> str:
    """Map acme.sh output onto an IssuanceError category."""
    s = output.lower()
    for category, needles in _FAILURE_PATTERNS:
        if any(n in s for n in needles):
            return category
    return "Unknown"


class CertificateWorkflow:
    """Issue a certificate and hand it to the panel."""

    def __init__(
        self,
        settings: ManagerSettings,
        acme: AcmeShAdapter,
        panel: XuiPanelAdapter,
        sockets: SocketLister,
        systemd: SystemdAdapter,
        provisioner: Provisioner,
    ):
        self._settings = settings
        self._acme = acme
        self._panel = panel
        self._sockets = sockets
        self._systemd = systemd
        self._provisioner = provisioner

    def cert_dir(self, domain: str) -> Path:
        return self._settings.acme.cert_root / domain

    # ── Preconditions ───────────────────────────────────────────

    def check_preconditions(self, domain: str, *, force: bool = False) -> None:
        """Run every precondition; raise on the first that fails.

        Raises:
            DependencyUnavailable: panel or acme.sh missing (and acme.sh
                could not be installed).
            PortBlocked: something listens on the challenge port.
            AlreadyIssued: acme.sh already manages ``domain``.
        """
        if not self._panel.is_available():
            raise DependencyUnavailable(
                f"x-ui binary not found at {self._panel.binary}",
                hint="Install x-ui first; certificates are issued for its web panel.",
            )

        self._provisioner.ensure_tools(CERT_TOOLS)
        if not self._acme.is_available():
            self._install_acme()

        port = self._settings.acme.challenge_port
        holders = self._sockets.port_holders("tcp", port)
        if holders is None:
            raise DependencyUnavailable(f"Cannot check port {port} (ss failed)")
        if holders:
            for line in holders:
                logger.warning("Port %d held: %s", port, line)
            raise PortBlocked(
                f"TCP port {port} is in use; standalone issuance needs it",
                hint="Stop the web server holding it (nginx, apache, caddy) and retry.",
            )

        issued = self._acme.list_domains()
        if issued is None:
            raise DependencyUnavailable("acme.sh --list failed")
        if domain in issued and not force:
            raise AlreadyIssued(
                f"A certificate for {domain} already exists in acme.sh",
                hint="Use --force to issue again.",
            )

    def _install_acme(self) -> None:
        logger.info("acme.sh not found in %s, installing", self._acme.home)
        result = self._acme.install(self._settings.acme.install_url)
        if not result.ok or not self._acme.is_available():
            raise DependencyUnavailable(
                f"Installing acme.sh failed: {result.error}",
                hint=f"Install it manually from {self._settings.acme.install_url}",
            )

    # ── Issuance ────────────────────────────────────────────────

    def issue(
        self,
        domain: str,
        force: bool = False,
        report: OperationReport | None = None,
    ) -> CertificateRecord:
        """Issue a certificate for ``domain`` and install it in the panel.

        The new files are issued into ``<cert_root>/.<domain>.new`` and
        only replace ``<cert_root>/<domain>`` once both exist.  The
        previous directory is kept as ``.<domain>.old`` until the panel
        accepts the new pair, and is put back if it does not.

        Args:
            domain: Fully qualified name resolving to this host.
            force: Re-issue even if acme.sh already lists the domain.
            report: Collects best-effort steps (renewal paths, acme
                upgrade, panel restart).

        Raises:
            InvalidInput, DependencyUnavailable, PortBlocked, AlreadyIssued:
                precondition failures; nothing was written.
            IssuanceError: a step failed after preconditions passed; the
                live certificate and any earlier acme.sh state are intact.
        """
        domain = validate_domain(domain)
        require_root("ssl")
        report = report if report is not None else OperationReport(operation="ssl")

        self.check_preconditions(domain, force=force)

        cert_root = self._settings.acme.cert_root
        live = self.cert_dir(domain)
        staging = cert_root / f".{domain}.new"
        previous = cert_root / f".{domain}.old"
        acme_before = {p for p in self._acme.domain_state_dirs(domain) if p.exists()}
        panel_settings = self._panel.settings()

        try:
            self._issue_into(domain, staging, force)
        except IssuanceError:
            self._discard(domain, staging, acme_before)
            raise
        except OSError as e:
            self._discard(domain, staging, acme_before)
            raise IssuanceError(f"Cannot prepare {staging}: {e}") from e

        try:
            _swap_in(staging, live, previous)
        except OSError as e:
            self._discard(domain, staging, acme_before)
            raise IssuanceError(f"Cannot move the new certificate into {live}: {e}") from e

        fullchain, key = live / FULLCHAIN_NAME, live / KEY_NAME
        try:
            self._fatal(domain, "panel cert", self._panel.set_certificate(fullchain, key))
        except IssuanceError:
            _restore(live, previous)
            self._discard(domain, staging, acme_before)
            raise
        shutil.rmtree(previous, ignore_errors=True)

        # acme.sh renews into the paths of the last --installcert
        report.add(_step("renewal paths", self._acme.install_cert(domain, fullchain, key)))
        report.add(_step("acme upgrade", self._acme.upgrade()))
        report.add(_step("panel restart", self._systemd.restart(self._settings.panel.service)))

        record = CertificateRecord(
            domain=domain,
            cert_path=str(fullchain),
            key_path=str(key),
            panel=panel_settings,
        )
        logger.info("Certificate for %s installed; panel at %s", domain, record.access_url)
        return record

    def _issue_into(self, domain: str, target: Path, force: bool) -> None:
        fullchain, key = target / FULLCHAIN_NAME, target / KEY_NAME
        _reset_dir(target)

        self._fatal(domain, "set-default-ca",
                    self._acme.set_default_ca(self._settings.acme.ca_server))
        self._fatal(domain, "issue",
                    self._acme.issue_standalone(domain, fullchain, key, force=force))
        self._fatal(domain, "installcert",
                    self._acme.install_cert(domain, fullchain, key))

        if not (fullchain.is_file() and key.is_file()):
            raise IssuanceError(f"Certificate files not found in {target} after issuance")
        os.chmod(fullchain, 0o644)
        os.chmod(key, 0o600)

    def _fatal(self, domain: str, step: str, result: CommandResult) -> None:
        if result.ok:
            return
        category = classify_failure(result.combined)
        logger.error("acme %s for %s failed:\n%s", step, domain, result.combined)
        raise IssuanceError(
            f"{step} failed for {domain}: {result.error}",
            category=category,
            hint=_HINTS.get(category, ""),
        )

    def _discard(self, domain: str, staging: Path, acme_before: set[Path]) -> None:
        """Remove the staging directory and acme.sh state this run created."""
        created = [p for p in self._acme.domain_state_dirs(domain) if p not in acme_before]
        for path in [staging, *created]:
            if not path.exists():
                continue
            try:
                shutil.rmtree(path)
                logger.info("Removed partial state %s", path)
            except OSError as e:
                logger.warning("Cannot remove %s: %s", path, e)


def _reset_dir(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, mode=0o700)


def _swap_in(staging: Path, live: Path, previous: Path) -> None:
    if previous.exists():
        shutil.rmtree(previous)
    if live.exists():
        os.replace(live, previous)
    try:
        os.replace(staging, live)
    except OSError:
        if previous.exists():
            os.replace(previous, live)
        raise


def _restore(live: Path, previous: Path) -> None:
    """Put the pre-run certificate directory back in place."""
    try:
        if previous.exists():
            if live.exists():
                shutil.rmtree(live)
            os.replace(previous, live)
        elif live.exists():
            shutil.rmtree(live)
    except OSError as e:
        logger.error("Cannot restore %s from %s: %s", live, previous, e)


def _step(name: str, result: CommandResult) -> StepResult:
    if result.ok:
        return StepResult.success(name, best_effort=True)
    logger.warning("%s failed: %s", name, result.error)
    return StepResult.failure(name, result.error, best_effort=True)
