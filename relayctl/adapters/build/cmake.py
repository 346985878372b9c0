"""
CMake adapter — configure and compile an out-of-tree build.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from relayctl.adapters.base import Adapter
from relayctl.core.services.runner import CommandResult

logger = logging.getLogger(__name__)


class CMakeAdapter(Adapter):
    """Drive ``cmake -S/-B`` and ``cmake --build``."""

    @property
    def name(self) -> str:
        return "cmake"

    def is_available(self) -> bool:
        return shutil.which("cmake") is not None

    def configure(self, source_dir: Path, build_dir: Path, definitions: list[str]) -> CommandResult:
        cmd = ["cmake", "-S", str(source_dir), "-B", str(build_dir), *definitions]
        logger.info("Configuring: %s", " ".join(definitions))
        return self._run(cmd, cwd=str(build_dir))

    def build(self, build_dir: Path, jobs: int) -> CommandResult:
        logger.info("Compiling with %d job(s)", jobs)
        return self._run(["cmake", "--build", str(build_dir), "-j", str(jobs)], cwd=str(build_dir))
