"""
Atomic file writes — temp file in the target directory, then rename.

A reader never observes a half-written file: either the old content
or the new content is on disk, never a mix.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def write_temp(directory: Path, prefix: str, content: str, mode: int | None = None) -> Path:
    """Write ``content`` to a fresh temp file inside ``directory``.

    The caller owns the returned path and must rename or unlink it.
    """
    fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=prefix, suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        if mode is not None:
            os.chmod(tmp, mode)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return tmp


def atomic_write_text(path: Path, content: str, *, mode: int | None = None) -> None:
    """Replace ``path`` with ``content`` atomically.

    Args:
        path: Target file. Parent directories are created.
        content: Full new file content.
        mode: Optional permission bits for the new file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = write_temp(path.parent, f".{path.name}.", content, mode)
    try:
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Wrote %s (%d bytes)", path, len(content))
