"""
Build orchestrator — compile the selected BadVPN components with CMake.

Out-of-tree build in ``<src>/badvpn-build`` (or ``source.build_dir``)::

    cmake -S <src> -B <build> -DBUILD_NOTHING_BY_DEFAULT=1 -DBUILD_UDPGW=1 ...
    cmake --build <build> -j <nproc>

The build directory is scratch: it is reused across runs and never
recorded in the install manifest.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from relayctl.adapters.build.cmake import CMakeAdapter
from relayctl.core.errors import BuildFailed, BuildIncomplete
from relayctl.core.models.build import BuildSelection
from relayctl.core.services.runner import CommandResult

logger = logging.getLogger(__name__)


# ── Failure analysis ────────────────────────────────────────────


def analyse_build_failure(output: str) -> str:
    """Suggest a remediation for a failed configure/compile step.

    Returns an empty string when the output matches no known pattern.
    """
    if not output:
        return ""
    s = output.lower()

    if "fatal error:" in s and ".h" in s:
        m = re.search(r"fatal error:\s*(\S+\.h):\s*no such file", s)
        header = m.group(1) if m else "a header"
        return f"Missing header {header}; install the matching -dev package."

    if "cannot find -l" in s:
        m = re.search(r"cannot find -l(\S+)", s)
        lib = m.group(1) if m else "?"
        return f"Missing library lib{lib}; install lib{lib}-dev."

    if "internal compiler error" in s and ("killed" in s or "virtual memory" in s):
        return "Compiler ran out of memory; set source.jobs to 1 or add swap."

    if "could not find" in s:
        m = re.search(r"provided by\s+(?:package\s+)?\"?(\w+)", s) or re.search(
            r"could not find\s+(?:package\s+)?(\w+)", s
        )
        pkg = m.group(1) if m else "a required package"
        return f"CMake package not found: {pkg}."

    if "no cmake_c_compiler could be found" in s or "gcc: not found" in s:
        return "No C compiler found; install build-essential."

    if "permission denied" in s:
        return "Permission denied in the build tree; run as root."

    return ""


# ── Orchestrator ────────────────────────────────────────────────


class BuildOrchestrator:
    """Configure, compile and verify one BuildSelection."""

    def __init__(self, cmake: CMakeAdapter, jobs: int | None = None):
        self._cmake = cmake
        self._jobs = jobs

    @property
    def jobs(self) -> int:
        return self._jobs or os.cpu_count() or 1

    def build(
        self,
        source_dir: Path,
        build_dir: Path,
        selection: BuildSelection,
    ) -> dict[str, Path]:
        """Build ``selection`` and return ``{binary name: absolute path}``.

        Raises:
            BuildFailed: configure or compile exited non-zero.
            BuildIncomplete: a selected binary is missing afterwards.
        """
        build_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Building %s in %s", selection.label(), build_dir)

        configured = self._cmake.configure(source_dir, build_dir, selection.cmake_flags())
        if not configured.ok:
            raise self._failure("configure", configured)

        compiled = self._cmake.build(build_dir, self.jobs)
        if not compiled.ok:
            raise self._failure("compile", compiled)

        return self.verify_outputs(build_dir, selection)

    def verify_outputs(self, build_dir: Path, selection: BuildSelection) -> dict[str, Path]:
        """Check that every expected binary exists and is executable."""
        found: dict[str, Path] = {}
        missing: list[str] = []
        for name, rel in selection.expected_outputs().items():
            path = build_dir / rel
            if path.is_file() and os.access(path, os.X_OK):
                found[name] = path.absolute()
            else:
                missing.append(rel)

        if missing:
            raise BuildIncomplete(
                f"Build finished but outputs are missing: {', '.join(missing)}",
                hint=f"Inspect {build_dir} and the compiler output above.",
            )
        logger.info("Build produced %s", ", ".join(sorted(found)))
        return found

    @staticmethod
    def _failure(step: str, result: CommandResult) -> BuildFailed:
        logger.error("cmake %s failed:\n%s", step, result.combined)
        return BuildFailed(
            f"cmake {step} step failed: {result.error}",
            hint=analyse_build_failure(result.combined),
        )
