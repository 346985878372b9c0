"""
Shared test fixtures and configuration.

No test touches the real host: every external command goes through
``FakeRunner``, every path lives under ``tmp_path`` and the root check
is patched.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest
import yaml

from relayctl.adapters.registry import AdapterRegistry
from relayctl.core.models.build import COMPONENT_OUTPUTS
from relayctl.core.models.settings import (
    AcmeSettings,
    ManagerSettings,
    PanelSettingsConfig,
    ServiceSettings,
    SourceSettings,
)
from relayctl.core.services import privilege
from relayctl.core.services.runner import CommandResult, CommandRunner

REPO_URL = "https://github.com/MasterHide/badvpn.git"
HEAD_COMMIT = "0123456789abcdef0123456789abcdef01234567"

RUNNING_PROPS = "ActiveState=active\nSubState=running\nLoadState=loaded\nUnitFileState=enabled\n"
STOPPED_PROPS = "ActiveState=inactive\nSubState=dead\nLoadState=loaded\nUnitFileState=enabled\n"


# ── Scripted command runner ─────────────────────────────────────────


@dataclass
class Scripted:
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    effect: Callable[[list[str]], None] | None = None
    raises: type[BaseException] | None = None


class FakeRunner(CommandRunner):
    """CommandRunner that answers from a script instead of the host.

    ``on(pattern, ...)`` registers a response for every command whose
    joined text contains ``pattern``.  The longest matching pattern
    wins; among equal lengths the latest registration wins.  Unscripted
    commands succeed with empty output.
    """

    def __init__(self) -> None:
        self._script: list[tuple[str, Scripted]] = []
        self.calls: list[list[str]] = []
        self.inputs: list[str | None] = []

    def on(
        self,
        pattern: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Callable[[list[str]], None] | None = None,
        raises: type[BaseException] | None = None,
    ) -> FakeRunner:
        self._script.append((pattern, Scripted(returncode, stdout, stderr, effect, raises)))
        return self

    def _match(self, cmd: list[str]) -> Scripted:
        line = " ".join(cmd)
        best: tuple[str, Scripted] | None = None
        for pattern, scripted in self._script:
            if pattern in line and (best is None or len(pattern) >= len(best[0])):
                best = (pattern, scripted)
        return best[1] if best else Scripted()

    def _play(self, cmd: list[str]) -> Scripted:
        self.calls.append(list(cmd))
        scripted = self._match(cmd)
        if scripted.raises is not None:
            raise scripted.raises()
        if scripted.effect is not None:
            scripted.effect(list(cmd))
        return scripted

    def run(self, cmd, *, cwd=None, env_overrides=None, input_text=None, timeout=None):
        self.inputs.append(input_text)
        s = self._play(cmd)
        return CommandResult(list(cmd), s.returncode, s.stdout, s.stderr)

    def stream(self, cmd, *, cwd=None):
        return self._play(cmd).returncode

    # ── Assertions ──────────────────────────────────────────────

    def called(self, pattern: str) -> bool:
        return any(pattern in " ".join(c) for c in self.calls)

    def count(self, pattern: str) -> int:
        return sum(1 for c in self.calls if pattern in " ".join(c))

    def first_index(self, pattern: str) -> int:
        for i, c in enumerate(self.calls):
            if pattern in " ".join(c):
                return i
        return -1


# ── Host simulation effects ─────────────────────────────────────────


def fake_clone(cmd: list[str]) -> None:
    """``git clone URL PATH`` → a checkout with a build descriptor."""
    target = Path(cmd[-1])
    (target / ".git").mkdir(parents=True, exist_ok=True)
    (target / "CMakeLists.txt").write_text("project(badvpn C)\n")


def fake_build(cmd: list[str]) -> None:
    """``cmake --build DIR ...`` → every component binary, executable."""
    build_dir = Path(cmd[2])
    for rel in COMPONENT_OUTPUTS.values():
        out = build_dir / rel
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(f"#!/bin/sh\n# {out.name}\n")
        os.chmod(out, 0o755)


def fake_issue(cmd: list[str]) -> None:
    """acme.sh ``--issue`` → fullchain and key files at the requested paths."""
    for flag in ("--fullchain-file", "--key-file"):
        path = Path(cmd[cmd.index(flag) + 1])
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"-----BEGIN {flag}-----\n")


def make_executable(path: Path, content: str = "#!/bin/sh\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    os.chmod(path, 0o755)
    return path


# ── Fixtures ────────────────────────────────────────────────────────


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(autouse=True)
def _as_root(monkeypatch):
    """Pretend to be root; tests of the privilege gate override this."""
    monkeypatch.setattr(privilege, "is_privileged", lambda: True)


@pytest.fixture(autouse=True)
def _tools_on_path(monkeypatch):
    """Every looked-up command is found on PATH."""
    monkeypatch.setattr(shutil, "which", lambda name, *a, **kw: f"/usr/bin/{name}")


@pytest.fixture
def settings(tmp_path: Path) -> ManagerSettings:
    """ManagerSettings with every host path under tmp_path."""
    return ManagerSettings(
        bin_dir=tmp_path / "usr/local/bin",
        state_dir=tmp_path / "var/lib/badvpn",
        command_path=tmp_path / "usr/local/bin/badvpn",
        editor="true",
        source=SourceSettings(repo_url=REPO_URL, src_dir=tmp_path / "root/badvpn", jobs=2),
        service=ServiceSettings(
            unit_dir=tmp_path / "etc/systemd/system",
            env_file=tmp_path / "etc/default/badvpn-udpgw",
        ),
        panel=PanelSettingsConfig(binary=tmp_path / "usr/local/x-ui/x-ui"),
        acme=AcmeSettings(home=tmp_path / "root/.acme.sh", cert_root=tmp_path / "root/cert"),
    )


@pytest.fixture
def runner(settings: ManagerSettings) -> FakeRunner:
    """A FakeRunner scripted as a healthy Debian host with systemd."""
    fake = FakeRunner()
    fake.on("dpkg-query", stdout="install ok installed")
    fake.on("git clone", effect=fake_clone)
    fake.on("rev-parse --is-inside-work-tree", stdout="true\n")
    fake.on("remote get-url origin", stdout=REPO_URL + "\n")
    fake.on("rev-parse HEAD", stdout=HEAD_COMMIT + "\n")
    fake.on("cmake --build", effect=fake_build)
    fake.on("systemctl show", stdout=RUNNING_PROPS)
    fake.on("acme.sh --list", stdout="Main_Domain  KeyLength  SAN_Domains  CA  Created  Renew\n")
    fake.on("acme.sh --issue", effect=fake_issue)
    fake.on("x-ui setting -show true", stdout="webBasePath: /panel/\nport: 2053\n")
    return fake


@pytest.fixture
def registry(settings: ManagerSettings, runner: FakeRunner) -> AdapterRegistry:
    return AdapterRegistry.from_settings(settings, runner)


@pytest.fixture
def cli_config(settings: ManagerSettings, runner: FakeRunner, tmp_path: Path, monkeypatch) -> Path:
    """relayctl.yml mirroring ``settings``; the CLI's adapters use ``runner``."""
    path = tmp_path / "relayctl.yml"
    path.write_text(yaml.safe_dump(settings.model_dump(mode="json")))

    build = AdapterRegistry.from_settings.__func__
    monkeypatch.setattr(
        AdapterRegistry,
        "from_settings",
        classmethod(lambda cls, s, r=None: build(cls, s, runner)),
    )
    return path
