"""
Adapter registry — one place that owns every tool adapter.

Built once per invocation from ManagerSettings and a CommandRunner.
Services receive the registry (or the specific adapters they need)
instead of constructing adapters themselves, which is what lets tests
drive the whole stack through a scripted runner.
"""

from __future__ import annotations

import logging
from typing import TypeVar, cast

from relayctl.adapters.acme.acme_sh import AcmeShAdapter
from relayctl.adapters.base import Adapter
from relayctl.adapters.build.cmake import CMakeAdapter
from relayctl.adapters.net.sockets import SocketLister
from relayctl.adapters.packages.apt import AptAdapter
from relayctl.adapters.panel.xui import XuiPanelAdapter
from relayctl.adapters.supervisor.systemd import SystemdAdapter
from relayctl.adapters.vcs.git import GitAdapter
from relayctl.core.models.settings import ManagerSettings
from relayctl.core.services.runner import CommandRunner

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=Adapter)


class AdapterRegistry:
    """Registry of adapters keyed by name."""

    def __init__(self, runner: CommandRunner | None = None):
        self._runner = runner or CommandRunner()
        self._adapters: dict[str, Adapter] = {}

    @classmethod
    def from_settings(
        cls,
        settings: ManagerSettings,
        runner: CommandRunner | None = None,
    ) -> AdapterRegistry:
        """Create a registry with every adapter the manager uses."""
        registry = cls(runner)
        r = registry.runner
        for adapter in (
            GitAdapter(r),
            AptAdapter(r),
            CMakeAdapter(r),
            SystemdAdapter(r),
            SocketLister(r),
            AcmeShAdapter(settings.acme.home, r),
            XuiPanelAdapter(settings.panel.binary, r),
        ):
            registry.register(adapter)
        return registry

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    def register(self, adapter: Adapter) -> None:
        """Register (or replace) an adapter."""
        if adapter.name in self._adapters:
            logger.debug("Replacing adapter: %s", adapter.name)
        self._adapters[adapter.name] = adapter

    def require(self, name: str, kind: type[A]) -> A:
        adapter = self._adapters.get(name)
        if not isinstance(adapter, kind):
            raise KeyError(f"adapter {name!r} is not registered as {kind.__name__}")
        return cast(A, adapter)

    # ── Typed accessors ─────────────────────────────────────────

    @property
    def git(self) -> GitAdapter:
        return self.require("git", GitAdapter)

    @property
    def apt(self) -> AptAdapter:
        return self.require("apt", AptAdapter)

    @property
    def cmake(self) -> CMakeAdapter:
        return self.require("cmake", CMakeAdapter)

    @property
    def systemd(self) -> SystemdAdapter:
        return self.require("systemd", SystemdAdapter)

    @property
    def sockets(self) -> SocketLister:
        return self.require("ss", SocketLister)

    @property
    def acme(self) -> AcmeShAdapter:
        return self.require("acme", AcmeShAdapter)

    @property
    def panel(self) -> XuiPanelAdapter:
        return self.require("panel", XuiPanelAdapter)
