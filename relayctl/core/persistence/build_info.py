"""
Build metadata — what the last successful install built and from where.

Stored as ``<state_dir>/build_info.json`` beside the manifest.  It is a
tracking file, not a runtime artifact: uninstall removes it together
with the manifest.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from relayctl.core.models.build import BuildInfo
from relayctl.core.persistence.atomic import atomic_write_text

logger = logging.getLogger(__name__)


def save_build_info(info: BuildInfo, path: Path) -> None:
    """Write build metadata atomically."""
    content = json.dumps(info.model_dump(mode="json"), indent=2) + "\n"
    atomic_write_text(path, content, mode=0o644)
    logger.debug("Build info saved to %s", path)


def load_build_info(path: Path) -> BuildInfo | None:
    """Read build metadata; None if absent or unreadable."""
    if not path.is_file():
        return None
    try:
        return BuildInfo.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning("Cannot read build info %s: %s", path, e)
        return None


def remove_build_info(path: Path) -> bool:
    """Delete the metadata file; True if something was removed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
