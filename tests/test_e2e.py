"""
End-to-end tests — full operator flows through the CLI.

Each test drives ``relayctl`` the way an operator would, against a
FakeRunner host whose paths all live under tmp_path.
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from relayctl.main import cli

from conftest import STOPPED_PROPS, FakeRunner, make_executable


def _invoke(config: Path, *args: str, input: str | None = None):
    return CliRunner().invoke(cli, ["--config", str(config), *args], input=input)


def _manifest_kinds(settings) -> list[str]:
    data = json.loads(settings.manifest_path.read_text())
    return sorted(e["kind"] for e in data["entries"])


class TestFreshInstall:
    def test_udpgw_only(self, cli_config, settings):
        result = _invoke(cli_config, "install", "--selection", "udpgw-only")

        assert result.exit_code == 0, result.output
        assert "Installed" in result.output
        assert [p.name for p in settings.bin_dir.iterdir()] == ["badvpn-udpgw"]
        assert _manifest_kinds(settings) == ["binary", "config", "unit"]
        assert 'LISTEN_ADDR="127.0.0.1:7300"' in settings.service.env_file.read_text()
        unit = settings.unit_path.read_text()
        assert f"ExecStart={settings.bin_dir / 'badvpn-udpgw'}" in unit

    def test_install_json(self, cli_config, settings):
        result = _invoke(cli_config, "install", "-s", "udpgw-only", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["selection"] == "udpgw-only"
        assert data["config_created"] is True


class TestReconfigure:
    def test_set_listen_addr_restarts(self, cli_config, settings, runner: FakeRunner):
        assert _invoke(cli_config, "install", "-s", "udpgw-only").exit_code == 0

        result = _invoke(cli_config, "set", "LISTEN_ADDR", "0.0.0.0:9000")

        assert result.exit_code == 0, result.output
        assert 'LISTEN_ADDR="0.0.0.0:9000"' in settings.service.env_file.read_text()
        assert runner.count("systemctl restart badvpn.service") == 1

        status = _invoke(cli_config, "status", "--json")
        assert json.loads(status.output)["state"] == "Running"

    def test_stop_then_status(self, cli_config, runner):
        runner.on("systemctl show", stdout=STOPPED_PROPS)
        result = _invoke(cli_config, "stop")
        assert result.exit_code == 0
        assert "Stopped" in result.output


class TestUninstall:
    def test_missing_entry_is_a_warning(self, cli_config, settings):
        assert _invoke(cli_config, "install", "-s", "udpgw-only").exit_code == 0
        settings.service.env_file.unlink()

        result = _invoke(cli_config, "uninstall", "--yes")

        assert result.exit_code == 0, result.output
        assert "Removed 2 path(s)" in result.output
        assert "already absent" in result.output
        assert not (settings.bin_dir / "badvpn-udpgw").exists()
        assert not settings.unit_path.exists()
        assert not settings.manifest_path.exists()

    def test_without_manifest(self, cli_config):
        result = _invoke(cli_config, "uninstall", "--yes")
        assert result.exit_code == 4
        assert "[ManifestMissing]" in result.output

    def test_confirmation_declined(self, cli_config, settings):
        assert _invoke(cli_config, "install", "-s", "udpgw-only").exit_code == 0
        result = _invoke(cli_config, "uninstall", input="n\n")
        assert result.exit_code == 1
        assert settings.manifest_path.exists()


class TestCertificate:
    @pytest.fixture(autouse=True)
    def _panel(self, settings):
        make_executable(settings.panel.binary)
        make_executable(settings.acme_script)

    def test_port_80_occupied(self, cli_config, settings, runner):
        runner.on("ss -H -l -n -p -t", stdout='LISTEN 0 511 *:80 *:* users:(("nginx",pid=1,fd=6))\n')

        result = _invoke(cli_config, "ssl", "vpn.example.com")

        assert result.exit_code == 10
        assert "[PortBlocked]" in result.output
        assert not [c for c in runner.calls if c[0].endswith("acme.sh")]
        assert not (settings.acme.cert_root / "vpn.example.com").exists()

    def test_issued(self, cli_config):
        result = _invoke(cli_config, "ssl", "vpn.example.com")
        assert result.exit_code == 0, result.output
        assert "https://vpn.example.com:2053/panel/" in result.output
