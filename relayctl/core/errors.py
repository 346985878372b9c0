"""
Error taxonomy — every fatal condition the manager can report.

Each error carries a ``category`` (printed in brackets by the CLI) and
an ``exit_code``.  Precondition errors are raised before any mutation;
mid-operation errors are raised after the failing step has cleaned up
its own partial artifacts.

Best-effort steps never raise: they are reported as warnings through
``StepResult`` (see ``relayctl.core.models.result``).
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all categorized, user-facing failures."""

    category: str = "Error"
    exit_code: int = 1

    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_dict(self) -> dict:
        data = {"category": self.category, "message": self.message}
        if self.hint:
            data["hint"] = self.hint
        return data


# ── Preconditions ───────────────────────────────────────────────


class PrivilegeRequired(RelayError):
    """The operation needs root and the process is not privileged."""

    category = "PrivilegeRequired"
    exit_code = 77


class Conflict(RelayError):
    """A target path exists and is not recognized as ours (or a lock is held)."""

    category = "Conflict"
    exit_code = 3


class ManifestMissing(RelayError):
    """Uninstall was requested but no readable install manifest exists."""

    category = "ManifestMissing"
    exit_code = 4


class InvalidInput(RelayError):
    """An operator-supplied value failed validation."""

    category = "InvalidInput"
    exit_code = 2


class ConfigError(RelayError):
    """The manager's own settings file is unreadable or invalid."""

    category = "ConfigError"
    exit_code = 2


class DependencyUnavailable(RelayError):
    """A required external tool is absent and could not be installed."""

    category = "DependencyUnavailable"
    exit_code = 5


# ── Source and build ────────────────────────────────────────────


class SourceSyncError(RelayError):
    """Clone, fetch or reset against the source remote failed."""

    category = "SourceSync"
    exit_code = 6


class MissingBuildDescriptor(RelayError):
    """The synced checkout has no CMakeLists.txt."""

    category = "MissingBuildDescriptor"
    exit_code = 7


class BuildIncomplete(RelayError):
    """One or more expected binaries are missing after the build."""

    category = "BuildIncomplete"
    exit_code = 8


class BuildFailed(BuildIncomplete):
    """The configure or compile step itself exited non-zero."""


# ── Install ─────────────────────────────────────────────────────


class FatalInstallError(RelayError):
    """Copying a binary or writing a runtime file failed."""

    category = "FatalInstallError"
    exit_code = 9


class UnitGenerationError(FatalInstallError):
    """The unit file could not be written intact."""


# ── Certificates ────────────────────────────────────────────────


class PortBlocked(RelayError):
    """Port 80 is bound by another process (standalone ACME needs it)."""

    category = "PortBlocked"
    exit_code = 10


class AlreadyIssued(RelayError):
    """A certificate for the domain already exists and force was not given."""

    category = "AlreadyIssued"
    exit_code = 11


class IssuanceError(RelayError):
    """Issuance or certificate installation failed after preconditions passed.

    ``category`` is one of ``DNSNotPointed``, ``PortBlocked``,
    ``AlreadyIssued`` or ``Unknown``, classified from acme.sh output.
    """

    exit_code = 12

    def __init__(self, message: str, *, category: str = "Unknown", hint: str = "") -> None:
        super().__init__(message, hint=hint)
        self.category = category
