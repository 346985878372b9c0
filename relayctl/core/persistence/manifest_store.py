"""
Manifest store — persistence for the InstallationManifest.

The manifest lives at ``<state_dir>/install_manifest.json`` and is the
sole input to uninstall.  Writes are atomic (write to temp file, then
rename) so a crash mid-persist leaves the previous manifest intact.

Uninstall never guesses: without a readable manifest it refuses.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from relayctl.core.errors import Conflict, ManifestMissing
from relayctl.core.models.manifest import EntryKind, InstallationManifest
from relayctl.core.persistence.atomic import atomic_write_text

logger = logging.getLogger(__name__)

# Empty or not, these are never pruned.
_SYSTEM_DIRS = frozenset(Path(p) for p in (
    "/", "/etc", "/etc/default", "/etc/systemd", "/etc/systemd/system",
    "/usr", "/usr/bin", "/usr/local", "/usr/local/bin", "/usr/local/sbin",
    "/var", "/var/lib", "/opt", "/root", "/home", "/tmp",
))


@dataclass
class RemovalReport:
    """Outcome of ``ManifestStore.remove_all``."""

    removed: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    pruned: list[str] = field(default_factory=list)
    manifest_removed: bool = False

    @property
    def warnings(self) -> list[str]:
        out = [f"{p}: already absent" for p in self.missing]
        out += [f"{p}: could not remove ({reason})" for p, reason in self.failed.items()]
        return out

    def to_dict(self) -> dict:
        return {
            "removed": self.removed,
            "missing": self.missing,
            "failed": self.failed,
            "pruned": self.pruned,
            "manifest_removed": self.manifest_removed,
        }


class ManifestStore:
    """Append-only record of the artifacts one installation created."""

    def __init__(self, path: Path):
        self._path = path
        self._manifest: InstallationManifest | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def manifest(self) -> InstallationManifest:
        if self._manifest is None:
            self._manifest = InstallationManifest()
        return self._manifest

    def exists(self) -> bool:
        return self._path.is_file()

    # ── Install side ────────────────────────────────────────────

    def begin(self) -> InstallationManifest:
        """Start an install run on top of any previous manifest.

        Entries from earlier installs are kept so a reinstall never
        loses track of artifacts that are still on disk.

        Raises:
            Conflict: If a manifest exists but cannot be parsed.
        """
        if self.exists():
            try:
                self._manifest = self._read()
            except ManifestMissing as e:
                raise Conflict(
                    f"{e.message}; refusing to overwrite it",
                    hint=f"Inspect or move {self._path} aside, then re-run install.",
                ) from e
            logger.debug("Continuing manifest with %d entries", len(self._manifest.entries))
        else:
            self._manifest = InstallationManifest()
        return self._manifest

    def record(self, path: Path | str, kind: EntryKind) -> None:
        """Append ``path`` to the manifest; recording it again is a no-op."""
        path_str = str(Path(path).absolute())
        if self.manifest.append(path_str, kind):
            logger.debug("Manifest + %s (%s)", path_str, kind)

    def persist(self) -> None:
        """Write the manifest atomically."""
        manifest = self.manifest
        manifest.touch()
        data = manifest.model_dump(mode="json")
        content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
        try:
            atomic_write_text(self._path, content, mode=0o600)
        except OSError as e:
            logger.error("Failed to save manifest to %s: %s", self._path, e)
            raise
        logger.info("Manifest saved: %s (%d entries)", self._path, len(manifest.entries))

    # ── Uninstall side ──────────────────────────────────────────

    def load(self) -> InstallationManifest:
        """Read the persisted manifest.

        Raises:
            ManifestMissing: If it does not exist or is unreadable.
        """
        self._manifest = self._read()
        return self._manifest

    def remove_all(self, stop_at: Iterable[Path] = ()) -> RemovalReport:
        """Delete every recorded path that still exists, then the manifest.

        Missing paths and paths that cannot be removed are reported,
        never fatal.  If any removal failed, the manifest is rewritten
        with just the failed entries so a later run can retry them.

        Parent directories left empty by a removal are pruned upwards,
        stopping at the first non-empty one, at a system directory or
        at any directory in ``stop_at``.
        """
        keep = {*_SYSTEM_DIRS, self._path.parent.absolute()}
        keep.update(Path(p).absolute() for p in stop_at)
        manifest = self.load()
        report = RemovalReport()

        for entry in manifest.entries:
            target = Path(entry.path)
            if not target.exists() and not target.is_symlink():
                logger.warning("Already absent: %s", target)
                report.missing.append(entry.path)
                continue
            try:
                if target.is_dir() and not target.is_symlink():
                    target.rmdir()
                else:
                    target.unlink()
            except OSError as e:
                logger.warning("Cannot remove %s: %s", target, e)
                report.failed[entry.path] = e.strerror or str(e)
                continue
            logger.info("Removed %s", target)
            report.removed.append(entry.path)
            report.pruned += _prune_empty_parents(target.parent, keep)

        if report.failed:
            manifest.entries = [e for e in manifest.entries if e.path in report.failed]
            self.persist()
        else:
            self._path.unlink(missing_ok=True)
            self._manifest = None
            report.manifest_removed = True

        return report

    # ── Helpers ─────────────────────────────────────────────────

    def _read(self) -> InstallationManifest:
        if not self._path.is_file():
            raise ManifestMissing(
                f"Manifest not found: {self._path}",
                hint="Uninstall cannot be done safely without it.",
            )
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return InstallationManifest.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise ManifestMissing(f"Manifest unreadable: {self._path} ({e})") from e


def _prune_empty_parents(directory: Path, keep: set[Path]) -> list[str]:
    """rmdir ``directory`` and its ancestors while they are empty."""
    pruned: list[str] = []
    current = directory.absolute()
    while current not in keep and current != current.parent:
        try:
            current.rmdir()
        except OSError:
            break
        logger.info("Removed empty directory %s", current)
        pruned.append(str(current))
        current = current.parent
    return pruned
