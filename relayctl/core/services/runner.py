"""
Command runner — the single place external commands are executed.

Every adapter goes through a ``CommandRunner`` so logging, environment
handling and "tool not installed" detection live in one spot, and so
tests can swap in a scripted runner.

Commands never raise for a non-zero exit: the caller inspects the
returned ``CommandResult`` and decides whether the step was fatal or
best-effort.  No default timeout is applied; long steps (apt, clone,
compile, issuance) run until they finish or the operator interrupts.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Exit status used when the executable itself is missing (like a shell)
EXIT_NOT_FOUND = 127


@dataclass
class CommandResult:
    """Outcome of one external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def not_found(self) -> bool:
        return self.returncode == EXIT_NOT_FOUND

    @property
    def error(self) -> str:
        """Best single-line description of a failure."""
        text = (self.stderr or self.stdout).strip()
        if text:
            return text.splitlines()[-1]
        return f"{self.args[0]} exited with code {self.returncode}"

    @property
    def combined(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class CommandRunner:
    """Run commands with captured or inherited output."""

    def run(
        self,
        cmd: list[str],
        *,
        cwd: str | os.PathLike[str] | None = None,
        env_overrides: dict[str, str] | None = None,
        input_text: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run ``cmd`` and capture its output.

        Args:
            cmd: Command list, never a shell string.
            cwd: Working directory.
            env_overrides: Extra environment variables.
            input_text: Text piped to stdin.
            timeout: Seconds before giving up; None waits indefinitely.
        """
        env = os.environ.copy()
        if env_overrides:
            env.update(env_overrides)

        logger.debug("Executing: %s (cwd=%s)", shlex.join(cmd), cwd)
        start = time.monotonic()
        try:
            proc = subprocess.run(
                cmd,
                cwd=cwd,
                env=env,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError:
            return CommandResult(cmd, EXIT_NOT_FOUND, stderr=f"{cmd[0]}: command not found")
        except subprocess.TimeoutExpired:
            return CommandResult(cmd, -1, stderr=f"{cmd[0]} timed out after {timeout}s")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        result = CommandResult(cmd, proc.returncode, proc.stdout or "", proc.stderr or "", elapsed_ms)
        if not result.ok:
            logger.debug("Command failed (exit %d): %s", proc.returncode, result.error)
        return result

    def stream(
        self,
        cmd: list[str],
        *,
        cwd: str | os.PathLike[str] | None = None,
    ) -> int:
        """Run ``cmd`` attached to the terminal and return its exit status.

        KeyboardInterrupt propagates to the caller, which owns the
        decision of what an interrupt means.
        """
        logger.debug("Streaming: %s", shlex.join(cmd))
        try:
            return subprocess.run(cmd, cwd=cwd).returncode
        except FileNotFoundError:
            logger.error("%s: command not found", cmd[0])
            return EXIT_NOT_FOUND
