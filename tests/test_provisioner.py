"""
Tests for the dependency & source provisioner.
"""

import shutil
from pathlib import Path

import pytest

from relayctl.adapters.packages.apt import AptAdapter
from relayctl.adapters.vcs.git import GitAdapter
from relayctl.core.errors import (
    Conflict,
    DependencyUnavailable,
    MissingBuildDescriptor,
    SourceSyncError,
)
from relayctl.core.services.provisioner import BUILD_TOOLS, Provisioner

from conftest import REPO_URL, FakeRunner


@pytest.fixture
def provisioner(runner: FakeRunner) -> Provisioner:
    return Provisioner(AptAdapter(runner), GitAdapter(runner))


# ── Tools ────────────────────────────────────────────────────────────


class TestEnsureTools:
    def test_noop_when_satisfied(self, provisioner: Provisioner, runner: FakeRunner):
        assert provisioner.ensure_tools(BUILD_TOOLS) == []
        assert not runner.called("apt-get")

    def test_installs_only_missing_packages(self, provisioner, runner, monkeypatch):
        installed: set[str] = set()

        def which(name, *a, **kw):
            if name in {"cmake", "gcc"} and name not in installed:
                return None
            return f"/usr/bin/{name}"

        monkeypatch.setattr(shutil, "which", which)
        runner.on("apt-get install", effect=lambda cmd: installed.update({"cmake", "gcc"}))

        packages = provisioner.ensure_tools({"git", "cmake", "gcc"})

        assert packages == ["build-essential", "cmake"]
        assert runner.first_index("apt-get update") < runner.first_index("apt-get install")
        install_cmd = next(c for c in runner.calls if c[:2] == ["apt-get", "install"])
        assert install_cmd[-2:] == ["build-essential", "cmake"]

    def test_commandless_package_checked_with_dpkg(self, provisioner, runner):
        runner.on("dpkg-query", returncode=1)
        runner.on("apt-get install", effect=lambda cmd: runner.on("dpkg-query", stdout="install ok installed"))
        assert provisioner.ensure_tools({"ca-certificates"}) == ["ca-certificates"]

    def test_install_failure(self, provisioner, runner, monkeypatch):
        monkeypatch.setattr(shutil, "which", lambda name, *a, **kw: None if name == "git" else "/x")
        runner.on("apt-get install", returncode=100, stderr="E: Unable to locate package git")
        with pytest.raises(DependencyUnavailable, match="Unable to locate"):
            provisioner.ensure_tools({"git"})

    def test_still_missing_after_install(self, provisioner, monkeypatch):
        monkeypatch.setattr(shutil, "which", lambda name, *a, **kw: None if name == "socat" else "/x")
        with pytest.raises(DependencyUnavailable, match="Still missing"):
            provisioner.ensure_tools({"socat"})

    def test_unknown_requirement(self, provisioner):
        with pytest.raises(KeyError):
            provisioner.ensure_tools({"rustc"})


# ── Source ───────────────────────────────────────────────────────────


class TestSyncSource:
    def test_fresh_clone(self, provisioner, runner, tmp_path: Path):
        target = tmp_path / "badvpn"
        state = provisioner.sync_source(REPO_URL, target, "master", "main")

        assert runner.called(f"git clone {REPO_URL} {target}")
        assert runner.called("reset --hard origin/master")
        assert state.ref == "master"
        assert state.commit.startswith("0123456789")

    def test_twice_is_identical(self, provisioner, runner, tmp_path: Path):
        target = tmp_path / "badvpn"
        first = provisioner.sync_source(REPO_URL, target, "master", "main")
        second = provisioner.sync_source(REPO_URL, target, "master", "main")

        assert first == second
        assert runner.count("git clone") == 1
        assert runner.called("fetch --all --prune")

    def test_falls_back_to_main(self, provisioner, runner, tmp_path: Path):
        runner.on("refs/remotes/origin/master", returncode=1)
        state = provisioner.sync_source(REPO_URL, tmp_path / "badvpn", "master", "main")
        assert state.ref == "main"
        assert runner.called("reset --hard origin/main")

    def test_no_matching_ref(self, provisioner, runner, tmp_path: Path):
        runner.on("show-ref --verify", returncode=1)
        with pytest.raises(SourceSyncError, match="master or main"):
            provisioner.sync_source(REPO_URL, tmp_path / "badvpn", "master", "main")

    def test_clone_failure(self, provisioner, runner, tmp_path: Path):
        runner.on("git clone", returncode=128, stderr="fatal: unable to access")
        with pytest.raises(SourceSyncError, match="unable to access"):
            provisioner.sync_source(REPO_URL, tmp_path / "badvpn", "master", "main")

    def test_foreign_directory_is_conflict(self, provisioner, runner, tmp_path: Path):
        target = tmp_path / "badvpn"
        target.mkdir()
        (target / "notes.txt").write_text("mine")
        with pytest.raises(Conflict):
            provisioner.sync_source(REPO_URL, target, "master", "main")
        assert not runner.called("git clone")
        assert (target / "notes.txt").read_text() == "mine"

    def test_empty_directory_is_cloned_into(self, provisioner, runner, tmp_path: Path):
        target = tmp_path / "badvpn"
        target.mkdir()
        provisioner.sync_source(REPO_URL, target, "master", "main")
        assert runner.called("git clone")

    def test_other_origin_is_conflict(self, provisioner, runner, tmp_path: Path):
        target = tmp_path / "badvpn"
        (target / ".git").mkdir(parents=True)
        runner.on("remote get-url origin", stdout="https://github.com/ambrop72/badvpn.git\n")
        with pytest.raises(Conflict, match="ambrop72"):
            provisioner.sync_source(REPO_URL, target, "master", "main")
        assert not runner.called("reset --hard")

    def test_origin_compare_ignores_dot_git(self, provisioner, runner, tmp_path: Path):
        target = tmp_path / "badvpn"
        (target / ".git").mkdir(parents=True)
        (target / "CMakeLists.txt").write_text("")
        runner.on("remote get-url origin", stdout="https://github.com/MasterHide/badvpn\n")
        provisioner.sync_source(REPO_URL, target, "master", "main")

    def test_missing_cmakelists(self, provisioner, runner, tmp_path: Path):
        runner.on("git clone", effect=lambda cmd: (Path(cmd[-1]) / ".git").mkdir(parents=True))
        with pytest.raises(MissingBuildDescriptor):
            provisioner.sync_source(REPO_URL, tmp_path / "badvpn", "master", "main")
