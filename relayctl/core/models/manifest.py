"""
InstallationManifest — the authoritative list of artifacts one
installation created.

The manifest is an append-only sequence of path records.  Uninstall
deletes exactly the recorded paths and nothing else, so every writer
of a runtime artifact must record it here.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

EntryKind = Literal["binary", "unit", "config", "command"]


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ManifestEntry(BaseModel):
    """One filesystem artifact owned by the installation."""

    path: str
    kind: EntryKind
    recorded_at: str = Field(default_factory=_now_iso)

    @field_validator("path")
    @classmethod
    def _absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"manifest paths must be absolute, got {value!r}")
        return value


class InstallationManifest(BaseModel):
    """Root manifest model — serialized to install_manifest.json."""

    schema_version: int = 1
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)
    entries: list[ManifestEntry] = Field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [e.path for e in self.entries]

    def contains(self, path: str) -> bool:
        return any(e.path == path for e in self.entries)

    def append(self, path: str, kind: EntryKind) -> bool:
        """Append a path; return False when it was already recorded."""
        if self.contains(path):
            return False
        self.entries.append(ManifestEntry(path=path, kind=kind))
        return True

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()
