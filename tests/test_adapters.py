"""
Tests for providers — local files, recording wrappers, mocks and the shell runner.
"""

import os
import stat
from pathlib import Path

import pytest

from openvpn_unroot.adapters.base import ProviderError
from openvpn_unroot.adapters.mock import MockAccounts, mock_host
from openvpn_unroot.adapters.recording import Journal, recording_host
from openvpn_unroot.adapters.registry import HostProviders
from openvpn_unroot.adapters.shell.command import check_command, run_command
from openvpn_unroot.adapters.shell.devices import IpTuntapProvider
from openvpn_unroot.adapters.shell.filesystem import (
    LocalFileProvider,
    next_backup_path,
    numbered_backups,
)
from openvpn_unroot.adapters.shell.policy import VisudoPolicyProvider
from openvpn_unroot.core.config.layout import HostLayout

# ── Local files ──────────────────────────────────────────────────────


class TestNumberedBackups:
    def test_next_backup_numbering(self, tmp_path: Path):
        target = tmp_path / "app.conf"
        assert next_backup_path(target).name == "app.conf.~1~"
        (tmp_path / "app.conf.~1~").write_text("")
        (tmp_path / "app.conf.~7~").write_text("")
        (tmp_path / "app.conf.~x~").write_text("")
        assert next_backup_path(target).name == "app.conf.~8~"
        assert [n for n, _ in numbered_backups(target)] == [1, 7]


class TestLocalFileProvider:
    def _files(self) -> LocalFileProvider:
        return LocalFileProvider(apply_ownership=False)

    def test_state(self, tmp_path: Path):
        files = self._files()
        (tmp_path / "f").write_text("x")
        assert files.state(str(tmp_path / "f")) == "regular"
        assert files.state(str(tmp_path / "missing")) == "absent"
        assert files.state(str(tmp_path)) == "other"

    def test_fresh_write(self, tmp_path: Path):
        files = self._files()
        path = tmp_path / "new.sh"
        result = files.write(str(path), "echo\n", mode=0o750, owner="vpn", group="vpn")
        assert result.previous == "absent"
        assert result.created
        assert result.backup is None
        assert path.read_text() == "echo\n"
        assert stat.S_IMODE(path.stat().st_mode) == 0o750
        assert files.ownership[str(path)] == ("vpn", "vpn")

    def test_overwrite_takes_backup_and_replaces(self, tmp_path: Path):
        files = self._files()
        path = tmp_path / "conf"
        path.write_text("old\n")
        result = files.write(str(path), "new\n", mode=0o640)
        assert result.backup == str(tmp_path / "conf.~1~")
        assert Path(result.backup).read_text() == "old\n"
        assert path.read_text() == "new\n"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["conf", "conf.~1~"]

    def test_overwrite_without_backup(self, tmp_path: Path):
        files = self._files()
        path = tmp_path / "conf"
        path.write_text("old\n")
        result = files.write(str(path), "new\n", backup=False)
        assert result.backup is None
        assert list(tmp_path.iterdir()) == [path]

    def test_write_into_missing_directory_fails(self, tmp_path: Path):
        with pytest.raises(ProviderError):
            self._files().write(str(tmp_path / "nope" / "f"), "x")

    def test_find_backup_newest_own_regular(self, tmp_path: Path):
        files = self._files()
        target = tmp_path / "conf"
        (tmp_path / "conf.~1~").write_text("1")
        (tmp_path / "conf.~2~").mkdir()
        assert files.find_backup(str(target)) == str(tmp_path / "conf.~1~")
        (tmp_path / "conf.~3~").write_text("3")
        assert files.find_backup(str(target)) == str(tmp_path / "conf.~3~")

    def test_restore_and_delete(self, tmp_path: Path):
        files = self._files()
        path = tmp_path / "conf"
        path.write_text("old\n")
        result = files.write(str(path), "new\n")
        files.restore(result.backup, str(path))
        assert path.read_text() == "old\n"
        assert not Path(result.backup).exists()
        files.delete(str(path))
        files.delete(str(path))
        assert not path.exists()

    def test_append(self, tmp_path: Path):
        files = self._files()
        path = tmp_path / "sudoers"
        path.write_text("a\n")
        files.append(str(path), "b\n")
        assert path.read_text() == "a\nb\n"


# ── Recording (pretend) ──────────────────────────────────────────────


class TestRecording:
    def test_mutations_journaled_not_applied(self, tmp_path: Path):
        inner = mock_host()
        host = recording_host(inner)
        path = str(tmp_path / "f")

        host.accounts.create_group("vpn")
        host.accounts.create_user("vpn", "vpn")
        host.devices.create("tun0", "tun", "vpn", "vpn")
        result = host.files.write(path, "x")

        assert inner.accounts.call_count == 0
        assert inner.devices.call_count == 0
        assert not os.path.exists(path)
        assert result.created
        assert host.journal == [
            ("accounts", "create_group", "vpn"),
            ("accounts", "create_user", "vpn"),
            ("devices", "create", "tun0"),
            ("files", "write", path),
        ]

    def test_would_be_state_is_remembered(self, tmp_path: Path):
        host = recording_host(mock_host())
        path = str(tmp_path / "f")
        host.accounts.create_user("vpn", "vpn")
        host.files.write(path, "content")
        assert host.accounts.user_exists("vpn")
        assert host.accounts.user_in_group("vpn", "vpn")
        assert host.files.state(path) == "regular"
        assert host.files.read_text(path) == "content"

    def test_would_be_backup_named(self, tmp_path: Path):
        path = tmp_path / "conf"
        path.write_text("old")
        host = recording_host(mock_host())
        result = host.files.write(str(path), "new")
        assert result.backup == str(tmp_path / "conf.~1~")
        assert not Path(result.backup).exists()

    def test_shared_journal(self):
        journal = Journal()
        host = mock_host()
        assert recording_host(host, journal).journal is journal
        assert isinstance(host.recording(), HostProviders)


# ── Mocks ────────────────────────────────────────────────────────────


class TestMockAccounts:
    def test_credentials(self):
        accounts = MockAccounts()
        assert accounts.credentials("vpn", "vpn") is None
        accounts.add_existing_user("vpn", "vpn", uid=1500)
        uid, gids = accounts.credentials("vpn", "vpn")
        assert uid == 1500
        assert gids == {accounts.groups["vpn"]}

    def test_failure_for_one_target(self):
        accounts = MockAccounts()
        accounts.set_failure("create_user", "bad", error="name taken", returncode=9)
        accounts.create_user("good", "g")
        with pytest.raises(ProviderError) as exc:
            accounts.create_user("bad", "g")
        assert exc.value.returncode == 9
        assert accounts.call_log == [("create_user", "good"), ("create_user", "bad")]

    def test_reset(self):
        accounts = MockAccounts()
        accounts.set_failure("create_group")
        accounts.reset()
        accounts.create_group("g")
        assert accounts.call_count == 1


class TestRegistry:
    def test_provider_status(self):
        status = mock_host().provider_status()
        assert set(status) == {"accounts", "devices", "policy", "files"}
        assert all(s["available"] for s in status.values())

    def test_system_providers(self):
        host = HostProviders.system(HostLayout())
        assert isinstance(host.devices, IpTuntapProvider)


# ── Shell ────────────────────────────────────────────────────────────


class TestShellCommand:
    def test_success(self):
        result = run_command(["echo", "hello"])
        assert result["ok"]
        assert result["stdout"] == "hello"

    def test_failure_carries_returncode(self):
        result = run_command(["sh", "-c", "echo oops >&2; exit 3"])
        assert not result["ok"]
        assert result["returncode"] == 3
        assert result["error"] == "oops"

    def test_missing_binary(self):
        result = run_command(["definitely-not-a-real-binary-xyz"])
        assert result["returncode"] == 127

    def test_check_command_raises(self):
        with pytest.raises(ProviderError) as exc:
            check_command(["sh", "-c", "exit 5"])
        assert exc.value.returncode == 5


class TestShellProviders:
    def test_device_exists_via_sysfs(self, tmp_path: Path):
        (tmp_path / "tun0").mkdir()
        devices = IpTuntapProvider(HostLayout(sysfs_net=str(tmp_path)))
        assert devices.exists("tun0")
        assert not devices.exists("tun1")

    def test_policy_check_fails_without_visudo(self):
        policy = VisudoPolicyProvider(HostLayout(visudo="no-such-visudo-binary"))
        assert not policy.is_available()
        with pytest.raises(ProviderError, match="sudoers validation failed"):
            policy.check("root ALL=(ALL) ALL\n")
