"""
Dependency & source provisioner — build tools and the source checkout.

Both operations are idempotent and safe to call on every run:

- ``ensure_tools`` installs only the packages of tools that are missing.
- ``sync_source`` clones once, then fetches and hard-resets on later runs.

The only correctness check before the build is the presence of the
CMake build descriptor in the synced tree.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from relayctl.adapters.packages.apt import AptAdapter
from relayctl.adapters.vcs.git import GitAdapter
from relayctl.core.errors import (
    Conflict,
    DependencyUnavailable,
    MissingBuildDescriptor,
    SourceSyncError,
)
from relayctl.core.models.build import SourceState

logger = logging.getLogger(__name__)

BUILD_DESCRIPTOR = "CMakeLists.txt"


@dataclass(frozen=True)
class Requirement:
    """A tool the manager needs and the package that provides it.

    ``command`` is looked up on PATH; when None the package itself is
    queried (for packages that ship no command, like ca-certificates).
    """

    name: str
    package: str
    command: str | None = None


REQUIREMENTS: dict[str, Requirement] = {
    r.name: r
    for r in (
        Requirement("git", "git", "git"),
        Requirement("cmake", "cmake", "cmake"),
        Requirement("make", "build-essential", "make"),
        Requirement("gcc", "build-essential", "gcc"),
        Requirement("pkg-config", "pkg-config", "pkg-config"),
        Requirement("ss", "iproute2", "ss"),
        Requirement("nano", "nano", "nano"),
        Requirement("curl", "curl", "curl"),
        Requirement("socat", "socat", "socat"),
        Requirement("ca-certificates", "ca-certificates", None),
    )
}

BUILD_TOOLS: frozenset[str] = frozenset(
    {"ca-certificates", "git", "cmake", "make", "gcc", "pkg-config", "ss", "curl"}
)
CERT_TOOLS: frozenset[str] = frozenset({"curl", "socat", "ss", "ca-certificates"})


class Provisioner:
    """Ensures build prerequisites and a matching source checkout."""

    def __init__(self, apt: AptAdapter, git: GitAdapter):
        self._apt = apt
        self._git = git

    # ── Tools ───────────────────────────────────────────────────

    def missing_tools(self, required: Iterable[str]) -> list[Requirement]:
        missing = []
        for name in sorted(set(required)):
            req = REQUIREMENTS.get(name)
            if req is None:
                raise KeyError(f"unknown requirement {name!r}")
            if not self._is_present(req):
                missing.append(req)
        return missing

    def ensure_tools(self, required: Iterable[str]) -> list[str]:
        """Install whatever part of ``required`` is missing.

        Returns:
            The packages that were installed (empty when nothing was missing).

        Raises:
            DependencyUnavailable: apt is unavailable, the install failed,
                or a tool is still missing afterwards.
        """
        required = set(required)
        missing = self.missing_tools(required)
        if not missing:
            logger.debug("All required tools present: %s", ", ".join(sorted(required)))
            return []

        packages = sorted({r.package for r in missing})
        names = ", ".join(r.name for r in missing)
        if not self._apt.is_available():
            raise DependencyUnavailable(
                f"Missing tools ({names}) and apt-get is not available",
                hint=f"Install manually: {' '.join(packages)}",
            )

        update = self._apt.update()
        if not update.ok:
            logger.warning("apt-get update failed: %s", update.error)

        result = self._apt.install(packages)
        if not result.ok:
            raise DependencyUnavailable(
                f"Installing {' '.join(packages)} failed: {result.error}"
            )

        still_missing = self.missing_tools(required)
        if still_missing:
            raise DependencyUnavailable(
                "Still missing after install: "
                + ", ".join(r.name for r in still_missing)
            )
        return packages

    def _is_present(self, req: Requirement) -> bool:
        if req.command:
            return shutil.which(req.command) is not None
        return self._apt.is_installed(req.package)

    # ── Source ──────────────────────────────────────────────────

    def sync_source(
        self,
        repo_url: str,
        target_dir: Path,
        preferred_ref: str,
        fallback_ref: str | None = None,
    ) -> SourceState:
        """Make ``target_dir`` a checkout of ``repo_url`` at the wanted ref.

        Raises:
            Conflict: ``target_dir`` holds something that is not our checkout.
            SourceSyncError: clone/fetch/reset failed or no ref matched.
            MissingBuildDescriptor: the synced tree has no CMakeLists.txt.
        """
        if self._git.is_checkout(target_dir):
            ref = self._update_checkout(repo_url, target_dir, preferred_ref, fallback_ref)
        elif target_dir.exists() and (not target_dir.is_dir() or any(target_dir.iterdir())):
            raise Conflict(
                f"{target_dir} exists and is not a git checkout",
                hint="Move it away or point source.src_dir somewhere else.",
            )
        else:
            ref = self._fresh_clone(repo_url, target_dir, preferred_ref, fallback_ref)

        if not (target_dir / BUILD_DESCRIPTOR).is_file():
            raise MissingBuildDescriptor(f"{BUILD_DESCRIPTOR} missing in {target_dir}")

        state = SourceState(path=str(target_dir), ref=ref, commit=self._git.head_commit(target_dir))
        logger.info("Source ready: %s @ %s (%s)", target_dir, ref, state.commit[:12])
        return state

    def _update_checkout(
        self,
        repo_url: str,
        target_dir: Path,
        preferred_ref: str,
        fallback_ref: str | None,
    ) -> str:
        origin = self._git.origin_url(target_dir)
        if origin is not None and _normalize_url(origin) != _normalize_url(repo_url):
            raise Conflict(
                f"{target_dir} is a checkout of {origin}, not {repo_url}",
                hint="Remove the directory or change source.repo_url.",
            )

        fetched = self._git.fetch(target_dir)
        if not fetched.ok:
            raise SourceSyncError(f"git fetch failed in {target_dir}: {fetched.error}")

        ref = self._pick_ref(target_dir, preferred_ref, fallback_ref)
        reset = self._git.reset_hard(target_dir, ref)
        if not reset.ok:
            raise SourceSyncError(f"git reset to origin/{ref} failed: {reset.error}")
        return ref

    def _fresh_clone(
        self,
        repo_url: str,
        target_dir: Path,
        preferred_ref: str,
        fallback_ref: str | None,
    ) -> str:
        target_dir.parent.mkdir(parents=True, exist_ok=True)
        cloned = self._git.clone(repo_url, target_dir)
        if not cloned.ok:
            raise SourceSyncError(f"git clone {repo_url} failed: {cloned.error}")

        ref = self._pick_ref(target_dir, preferred_ref, fallback_ref)
        reset = self._git.reset_hard(target_dir, ref)
        if not reset.ok:
            raise SourceSyncError(f"git reset to origin/{ref} failed: {reset.error}")
        return ref

    def _pick_ref(self, target_dir: Path, preferred: str, fallback: str | None) -> str:
        if self._git.has_remote_ref(target_dir, preferred):
            return preferred
        if fallback and self._git.has_remote_ref(target_dir, fallback):
            logger.info("origin/%s not found, using origin/%s", preferred, fallback)
            return fallback
        wanted = preferred + (f" or {fallback}" if fallback else "")
        raise SourceSyncError(f"Remote has no branch {wanted}")


def _normalize_url(url: str) -> str:
    url = url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[:-4]
    return url.lower()
