"""
StepResult and OperationReport — the outcome contract.

A StepResult records what one external step did.  Steps are either
*fatal* (their failure is turned into a ``RelayError`` by the service
that ran them) or *best-effort* (their failure is carried to the user
as a warning and the operation still counts as a success).

An OperationReport collects the steps of one operation so the CLI can
print the warnings without the services knowing about click.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StepResult(BaseModel):
    """Result of one step of an operation."""

    step: str
    status: Literal["ok", "failed"] = "ok"
    best_effort: bool = False

    started_at: str = Field(default_factory=_now_iso)

    output: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the step succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the step failed."""
        return self.status == "failed"

    @classmethod
    def success(cls, step: str, output: str = "", **kwargs: Any) -> StepResult:
        """Create a success result."""
        return cls(step=step, status="ok", output=output, **kwargs)

    @classmethod
    def failure(cls, step: str, error: str, **kwargs: Any) -> StepResult:
        """Create a failure result."""
        return cls(step=step, status="failed", error=error, **kwargs)


class OperationReport(BaseModel):
    """All steps of one operation plus free-form warnings."""

    operation: str
    steps: list[StepResult] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)

    def add(self, result: StepResult) -> StepResult:
        self.steps.append(result)
        return result

    def warn(self, message: str) -> None:
        self.notes.append(message)

    @property
    def warnings(self) -> list[str]:
        """Failed best-effort steps and explicit notes, in order."""
        out = [
            f"{s.step}: {s.error}" for s in self.steps
            if s.failed and s.best_effort
        ]
        return out + self.notes

    @property
    def ok(self) -> bool:
        """True unless a non-best-effort step failed."""
        return not any(s.failed and not s.best_effort for s in self.steps)
