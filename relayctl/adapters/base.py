"""
Adapter base — the contract between services and external tools.

Services never call external programs directly; they talk to an
adapter, and adapters talk to a ``CommandRunner``.  Adapters report
command failures through ``CommandResult`` and never raise for them:
deciding whether a failure is fatal belongs to the service.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from relayctl.core.services.runner import CommandResult, CommandRunner


class Adapter(ABC):
    """Abstract base class for all tool adapters.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name and is_available
        3. Register it in the AdapterRegistry
    """

    def __init__(self, runner: CommandRunner | None = None):
        self._runner = runner or CommandRunner()

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g. 'git', 'systemd', 'acme')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the underlying tool is installed.

        Should be fast and never raise.
        """

    def _run(self, cmd: list[str], **kwargs) -> CommandResult:
        return self._runner.run(cmd, **kwargs)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
