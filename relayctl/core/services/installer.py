"""
Installer — place built binaries and the runtime config on the host.

Every path written here is recorded in the manifest before the next
step starts, so a failure halfway still leaves a removable set.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from relayctl.core.errors import FatalInstallError
from relayctl.core.models.manifest import InstallationManifest
from relayctl.core.models.service_config import ServiceConfig
from relayctl.core.persistence.atomic import atomic_write_text
from relayctl.core.persistence.manifest_store import ManifestStore

logger = logging.getLogger(__name__)

BINARY_MODE = 0o755
CONFIG_MODE = 0o644


class Installer:
    """Copies binaries into ``dest_dir`` and seeds the config file."""

    def __init__(self, store: ManifestStore):
        self._store = store

    def install(self, binaries: dict[str, Path], dest_dir: Path) -> InstallationManifest:
        """Copy each binary to ``dest_dir/<name>`` with mode 0755.

        The copy goes to a temp name next to the destination and is
        renamed over it, so a running daemon keeps its old inode.

        Raises:
            FatalInstallError: a copy failed.  Binaries copied before
                the failure stay recorded.
        """
        dest_dir.mkdir(parents=True, exist_ok=True)
        for name, source in sorted(binaries.items()):
            dest = dest_dir / name
            try:
                _copy_executable(source, dest)
            except OSError as e:
                raise FatalInstallError(
                    f"Cannot install {name} to {dest}: {e.strerror or e}"
                ) from e
            self._store.record(dest, "binary")
            logger.info("Installed %s", dest)
        return self._store.manifest

    def write_config_if_absent(self, config: ServiceConfig, env_file: Path) -> bool:
        """Write the environment file unless one already exists.

        Returns:
            True if the file was created (and recorded), False if an
            operator config was already present and left untouched.
        """
        if env_file.exists():
            logger.info("Keeping existing config %s", env_file)
            return False
        try:
            atomic_write_text(env_file, config.render(str(env_file)), mode=CONFIG_MODE)
        except OSError as e:
            raise FatalInstallError(f"Cannot write {env_file}: {e.strerror or e}") from e
        self._store.record(env_file, "config")
        logger.info("Wrote default config %s", env_file)
        return True


def _copy_executable(source: Path, dest: Path) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        shutil.copyfile(source, tmp)
        os.chmod(tmp, BINARY_MODE)
        os.replace(tmp, dest)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
