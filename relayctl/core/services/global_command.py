"""
Global command — a ``badvpn`` wrapper on PATH that opens the manager.

The wrapper re-executes relayctl through sudo when invoked by a
non-root user, so ``badvpn`` works the same from any shell.
"""

from __future__ import annotations

import logging
import shutil
import sys
from pathlib import Path

from relayctl.core.errors import Conflict, FatalInstallError
from relayctl.core.models.settings import ManagerSettings
from relayctl.core.persistence.atomic import atomic_write_text
from relayctl.core.persistence.instance_lock import instance_lock
from relayctl.core.persistence.manifest_store import ManifestStore
from relayctl.core.services.privilege import require_root

logger = logging.getLogger(__name__)

_MARKER = "# Installed by relayctl"

_WRAPPER = """\
#!/usr/bin/env bash
{marker}; removed by 'relayctl uninstall'.
if [[ "${{EUID:-$(id -u)}}" -ne 0 ]]; then
  if command -v sudo >/dev/null 2>&1; then
    exec sudo {manager} "$@"
  fi
  echo "sudo not found. Run as root: su -c {manager}" >&2
  exit 1
fi
exec {manager} "$@"
"""


def manager_executable() -> str:
    """Absolute path of the relayctl entry point to wrap."""
    found = shutil.which("relayctl")
    if found:
        return str(Path(found).absolute())
    return f"{sys.executable} -m relayctl.main"


def render_wrapper(manager: str) -> str:
    return _WRAPPER.format(marker=_MARKER, manager=manager)


def install_global_command(settings: ManagerSettings, manager: str | None = None) -> Path:
    """Write the wrapper to ``settings.command_path`` and record it.

    The wrapper is recorded in the installation manifest (one is
    started if none exists) so uninstall removes it.

    Raises:
        Conflict: If ``command_path`` holds a file relayctl did not write.
    """
    require_root("global")
    target = settings.command_path
    content = render_wrapper(manager or manager_executable())

    with instance_lock(settings.lock_path):
        store = ManifestStore(settings.manifest_path)
        store.begin()
        if not _is_ours(target, store):
            raise Conflict(
                f"{target} exists and was not installed by relayctl",
                hint="Move it aside or set command_path to another location.",
            )
        try:
            atomic_write_text(target, content, mode=0o755)
        except OSError as e:
            raise FatalInstallError(f"Cannot write {target}: {e.strerror or e}") from e
        store.record(target, "command")
        store.persist()

    logger.info("Global command installed at %s", target)
    return target


def _is_ours(target: Path, store: ManifestStore) -> bool:
    """True when ``target`` is absent, recorded, or carries our marker."""
    if not target.exists() and not target.is_symlink():
        return True
    if store.manifest.contains(str(target.absolute())):
        return True
    try:
        head = target.read_text(encoding="utf-8")[:512]
    except (OSError, UnicodeDecodeError):
        return False
    return _MARKER in head
