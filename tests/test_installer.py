"""
Tests for the installer — binary placement and create-if-absent config.
"""

from pathlib import Path

import pytest

from relayctl.core.errors import FatalInstallError
from relayctl.core.models.service_config import ServiceConfig
from relayctl.core.persistence.manifest_store import ManifestStore
from relayctl.core.services.installer import Installer

from conftest import make_executable


@pytest.fixture
def store(tmp_path: Path) -> ManifestStore:
    s = ManifestStore(tmp_path / "state" / "m.json")
    s.begin()
    return s


class TestInstallBinaries:
    def test_copies_with_mode_and_records(self, store, tmp_path: Path):
        built = make_executable(tmp_path / "build" / "udpgw" / "badvpn-udpgw", "binary-v1")
        dest = tmp_path / "bin"

        manifest = Installer(store).install({"badvpn-udpgw": built}, dest)

        target = dest / "badvpn-udpgw"
        assert target.read_text() == "binary-v1"
        assert (target.stat().st_mode & 0o777) == 0o755
        assert manifest.paths == [str(target)]
        assert manifest.entries[0].kind == "binary"

    def test_reinstall_replaces_and_records_once(self, store, tmp_path: Path):
        built = make_executable(tmp_path / "build" / "badvpn-udpgw", "v1")
        installer = Installer(store)
        installer.install({"badvpn-udpgw": built}, tmp_path / "bin")
        built.write_text("v2")
        installer.install({"badvpn-udpgw": built}, tmp_path / "bin")

        assert (tmp_path / "bin" / "badvpn-udpgw").read_text() == "v2"
        assert len(store.manifest.entries) == 1
        assert sorted(p.name for p in (tmp_path / "bin").iterdir()) == ["badvpn-udpgw"]

    def test_copy_failure_keeps_earlier_records(self, store, tmp_path: Path):
        good = make_executable(tmp_path / "build" / "badvpn-tun2socks")
        with pytest.raises(FatalInstallError, match="badvpn-udpgw"):
            Installer(store).install(
                {"badvpn-tun2socks": good, "badvpn-udpgw": tmp_path / "build" / "missing"},
                tmp_path / "bin",
            )
        assert store.manifest.paths == [str(tmp_path / "bin" / "badvpn-tun2socks")]


class TestWriteConfig:
    def test_creates_default(self, store, tmp_path: Path):
        env_file = tmp_path / "etc" / "default" / "badvpn-udpgw"
        assert Installer(store).write_config_if_absent(ServiceConfig(), env_file) is True
        assert 'LISTEN_ADDR="127.0.0.1:7300"' in env_file.read_text()
        assert store.manifest.contains(str(env_file))

    def test_never_overwrites_operator_config(self, store, tmp_path: Path):
        env_file = tmp_path / "badvpn-udpgw"
        env_file.write_text('LISTEN_ADDR="0.0.0.0:9999"\n')

        created = Installer(store).write_config_if_absent(ServiceConfig(), env_file)

        assert created is False
        assert env_file.read_text() == 'LISTEN_ADDR="0.0.0.0:9999"\n'
        assert not store.manifest.contains(str(env_file))
