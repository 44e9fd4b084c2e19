"""
Tests for the CLI — option parsing, output and exit statuses.

The real host is never touched: ``HostProviders.system`` is patched to
return mock providers and the layout points into ``tmp_path``.
"""

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from openvpn_unroot.adapters.mock import mock_host
from openvpn_unroot.adapters.registry import HostProviders
from openvpn_unroot.main import cli


@pytest.fixture
def layout_file(tmp_path: Path, layout) -> Path:
    path = tmp_path / "layout.yml"
    path.write_text(yaml.safe_dump({"layout": layout.model_dump()}))
    return path


@pytest.fixture
def fake_host(monkeypatch):
    """The mock host every CLI invocation in the test will use."""
    host = mock_host()
    monkeypatch.setattr(HostProviders, "system", classmethod(lambda cls, layout=None: host))
    return host


@pytest.fixture
def invoke(layout_file: Path, old_config: Path, fake_host):
    runner = CliRunner()

    def _invoke(*args: str, config: Path | None = None):
        argv = ["--layout", str(layout_file), *args, str(config or old_config)]
        return runner.invoke(cli, argv)

    return _invoke


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "unprivileged" in result.output
        assert "--automagic" in result.output
        assert "--no-netdev" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestRuns:
    def test_pretend_json(self, invoke, old_config: Path):
        result = invoke("--automagic", "--pretend", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["ok"]
        assert data["pretend"]
        assert data["plan"][:2] == ["group", "user"]
        assert data["identifiers"]["device"] == "tun0-unrooted"
        assert not (old_config.parent / "work-unrooted.conf").exists()

    def test_real_run(self, invoke, old_config: Path, fake_host):
        result = invoke("-a")
        assert result.exit_code == 0
        assert "artifact(s) created" in result.output
        assert (old_config.parent / "work-unrooted.conf").is_file()
        assert fake_host.accounts.user_exists("openvpn")

    def test_explicit_requests(self, invoke, old_config: Path, fake_host):
        result = invoke("--user", "vpn", "--with", "group,sudoers", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["plan"] == ["group", "user", "sudoers"]
        assert fake_host.accounts.user_exists("vpn")

    def test_skip_and_no_flags(self, invoke):
        result = invoke("-a", "-p", "--skip", "sudoers,unit", "--no-netdev", "--json")
        data = json.loads(result.stdout)
        assert data["skipped"]["sudoers"] == "suppressed"
        assert data["skipped"]["netdev"] == "suppressed"
        assert "sudoers" not in data["plan"]

    def test_verbose_lists_values(self, invoke):
        result = invoke("-a", "-p", "-v")
        assert result.exit_code == 0
        assert "tun0-unrooted" in result.output
        assert "would create" in result.output


class TestExitStatuses:
    def test_nothing_to_do(self, invoke):
        result = invoke()
        assert result.exit_code == 78

    def test_missing_prerequisites(self, invoke):
        result = invoke("--with", "config", "--json")
        assert result.exit_code == 78
        data = json.loads(result.stdout)
        assert data["error_type"] == "ValidationError"
        assert "user, group, dev, iproute" in data["error"]

    def test_request_and_suppress(self, invoke):
        result = invoke("--with", "up", "--no-up")
        assert result.exit_code == 2

    def test_unknown_artifact(self, invoke):
        result = invoke("--with", "kernel")
        assert result.exit_code == 2
        assert "unknown artifact" in result.output

    def test_missing_old_config(self, invoke, tmp_path: Path):
        result = invoke("-a", config=tmp_path / "nope.conf")
        assert result.exit_code == 78

    def test_bad_layout(self, old_config: Path, tmp_path: Path, fake_host):
        bad = tmp_path / "bad.yml"
        bad.write_text("- not a mapping\n")
        result = CliRunner().invoke(cli, ["--layout", str(bad), "-a", str(old_config)])
        assert result.exit_code == 78

    def test_allocation_error(self, invoke, fake_host):
        fake_host.devices.devices.update(
            {f"tun{n}-unrooted": ("tun", "root", "root") for n in range(100)}
        )
        result = invoke("-a")
        assert result.exit_code == 75

    def test_transaction_failure_uses_command_status(self, invoke, fake_host):
        fake_host.devices.set_failure("create", error="Operation not permitted", returncode=2)
        result = invoke("-a", "--json")
        data = json.loads(result.stdout)
        assert result.exit_code == 2
        assert data["report"]["status"] == "rolled-back"
        assert not fake_host.accounts.users
