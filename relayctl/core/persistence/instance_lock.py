"""Exclusive lock for mutating invocations.

Two operators running install (or install and uninstall) against the
same state directory would interleave manifest writes.  Mutating use
cases hold this lock; a second invocation fails fast with Conflict.
"""

from __future__ import annotations

import fcntl
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from relayctl.core.errors import Conflict

logger = logging.getLogger(__name__)


@contextmanager
def instance_lock(path: Path) -> Iterator[Path]:
    """Hold an exclusive non-blocking ``flock`` on ``path``.

    Raises:
        Conflict: If another relayctl process holds the lock.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = open(path, "a+", encoding="utf-8")
    try:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as exc:
            raise Conflict(
                f"Another relayctl invocation holds {path}",
                hint="Concurrent installs are not supported; wait for it to finish.",
            ) from exc
        logger.debug("Acquired lock %s", path)
        try:
            yield path
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    finally:
        handle.close()
