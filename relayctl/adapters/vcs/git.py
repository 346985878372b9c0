"""
Git adapter — clone, fetch and reset against the source remote.

Uses the git CLI only.  Every method returns a ``CommandResult`` (or a
plain value derived from one) and never raises for a git failure.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from relayctl.adapters.base import Adapter
from relayctl.core.services.runner import CommandResult

logger = logging.getLogger(__name__)


class GitAdapter(Adapter):
    """Version control operations on one working tree."""

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    # ── Queries ─────────────────────────────────────────────────

    def is_checkout(self, path: Path) -> bool:
        """True if ``path`` is the top of a git working tree."""
        if not (path / ".git").exists():
            return False
        result = self._git(path, "rev-parse", "--is-inside-work-tree")
        return result.ok and result.stdout.strip() == "true"

    def origin_url(self, path: Path) -> str | None:
        result = self._git(path, "remote", "get-url", "origin")
        return result.stdout.strip() if result.ok else None

    def has_remote_ref(self, path: Path, ref: str) -> bool:
        result = self._git(path, "show-ref", "--verify", "--quiet", f"refs/remotes/origin/{ref}")
        return result.ok

    def head_commit(self, path: Path) -> str:
        result = self._git(path, "rev-parse", "HEAD")
        return result.stdout.strip() if result.ok else ""

    # ── Mutations ───────────────────────────────────────────────

    def clone(self, url: str, path: Path) -> CommandResult:
        logger.info("Cloning %s into %s", url, path)
        return self._run(["git", "clone", url, str(path)])

    def fetch(self, path: Path) -> CommandResult:
        logger.info("Fetching updates in %s", path)
        return self._git(path, "fetch", "--all", "--prune")

    def reset_hard(self, path: Path, ref: str) -> CommandResult:
        logger.info("Resetting %s to origin/%s", path, ref)
        return self._git(path, "reset", "--hard", f"origin/{ref}")

    # ── Helpers ─────────────────────────────────────────────────

    def _git(self, path: Path, *args: str) -> CommandResult:
        return self._run(["git", "-C", str(path), *args])
