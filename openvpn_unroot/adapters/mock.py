"""
Mock providers — in-memory test doubles for the host.

Accounts, groups and devices live in dictionaries; files go to the real
disk through ``LocalFileProvider`` without chown, so tests can run
unprivileged against ``tmp_path``. Every mutation is logged and any of
them can be told to fail.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from openvpn_unroot.adapters.base import (
    AccountProvider,
    DeviceProvider,
    PolicyProvider,
    ProviderError,
    WriteResult,
)
from openvpn_unroot.adapters.registry import HostProviders
from openvpn_unroot.adapters.shell.filesystem import LocalFileProvider


class _FailureMixin:
    """Failure injection and call logging shared by all mocks."""

    def _init_mock(self) -> None:
        self._failures: dict[tuple[str, str | None], tuple[str, int]] = {}
        self._call_log: list[tuple[str, str]] = []

    @property
    def call_log(self) -> list[tuple[str, str]]:
        """Every mutation received, as (operation, target)."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def set_failure(
        self,
        operation: str,
        target: str | None = None,
        error: str = "Mock failure",
        returncode: int = 1,
    ) -> None:
        """Make ``operation`` fail (for ``target`` only, or for any target)."""
        self._failures[(operation, target)] = (error, returncode)

    def _call(self, operation: str, target: str) -> None:
        self._call_log.append((operation, target))
        failure = self._failures.get((operation, target)) or self._failures.get((operation, None))
        if failure:
            error, returncode = failure
            raise ProviderError(f"{operation} {target}: {error}", returncode=returncode)

    def reset(self) -> None:
        """Clear call log and failures."""
        self._call_log.clear()
        self._failures.clear()


@dataclass
class MockUser:
    uid: int
    group: str
    groups: set[str] = field(default_factory=set)


class MockAccounts(_FailureMixin, AccountProvider):
    """In-memory passwd/group databases."""

    def __init__(self):
        self._init_mock()
        self.users: dict[str, MockUser] = {}
        self.groups: dict[str, int] = {}
        self._next_id = 900

    def _allocate_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def add_existing_group(self, group: str, gid: int | None = None) -> None:
        self.groups[group] = gid if gid is not None else self._allocate_id()

    def add_existing_user(self, user: str, group: str, uid: int | None = None) -> None:
        if group not in self.groups:
            self.add_existing_group(group)
        self.users[user] = MockUser(uid=uid if uid is not None else self._allocate_id(), group=group)

    def user_exists(self, user: str) -> bool:
        return user in self.users

    def group_exists(self, group: str) -> bool:
        return group in self.groups

    def primary_group(self, user: str) -> str:
        entry = self.users.get(user)
        return entry.group if entry else ""

    def user_in_group(self, user: str, group: str) -> bool:
        entry = self.users.get(user)
        return entry is not None and (entry.group == group or group in entry.groups)

    def credentials(self, user: str, group: str) -> tuple[int, set[int]] | None:
        entry = self.users.get(user)
        if entry is None or group not in self.groups:
            return None
        gids = {self.groups[g] for g in ({entry.group, group} | entry.groups) if g in self.groups}
        return entry.uid, gids

    def create_group(self, group: str) -> None:
        self._call("create_group", group)
        self.groups[group] = self._allocate_id()

    def create_user(self, user: str, group: str) -> None:
        self._call("create_user", user)
        self.users[user] = MockUser(uid=self._allocate_id(), group=group)

    def add_to_group(self, user: str, group: str) -> None:
        self._call("add_to_group", user)
        self.users[user].groups.add(group)

    def delete_user(self, user: str) -> None:
        self._call("delete_user", user)
        self.users.pop(user, None)

    def delete_group(self, group: str) -> None:
        self._call("delete_group", group)
        self.groups.pop(group, None)


class MockDevices(_FailureMixin, DeviceProvider):
    """In-memory device table: name → (kind, user, group)."""

    def __init__(self, existing: list[str] | None = None):
        self._init_mock()
        self.devices: dict[str, tuple[str, str, str]] = {
            name: (name[:3], "root", "root") for name in (existing or [])
        }

    def exists(self, device: str) -> bool:
        return device in self.devices

    def create(self, device: str, kind: str, user: str, group: str) -> None:
        self._call("create", device)
        self.devices[device] = (kind, user, group)

    def delete(self, device: str, kind: str) -> None:
        self._call("delete", device)
        self.devices.pop(device, None)


class MockPolicy(_FailureMixin, PolicyProvider):
    """Accepts everything unless a failure for 'check' is set."""

    def __init__(self):
        self._init_mock()
        self.checked: list[str] = []

    def check(self, content: str) -> None:
        self.checked.append(content)
        self._call("check", "sudoers")


class MockFiles(_FailureMixin, LocalFileProvider):
    """Local files without chown, with per-path write failures."""

    def __init__(self):
        LocalFileProvider.__init__(self, apply_ownership=False)
        self._init_mock()

    def write(
        self,
        path: str,
        content: str,
        mode: int = 0o644,
        owner: str | None = None,
        group: str | None = None,
        backup: bool = True,
    ) -> WriteResult:
        self._call("write", path)
        return super().write(path, content, mode=mode, owner=owner, group=group, backup=backup)

    def append(self, path: str, content: str) -> None:
        self._call("append", path)
        super().append(path, content)

    def restore(self, backup: str, path: str) -> None:
        self._call("restore", path)
        super().restore(backup, path)

    def delete(self, path: str) -> None:
        self._call("delete", path)
        super().delete(path)


def mock_host(existing_devices: list[str] | None = None) -> HostProviders:
    """A complete set of mock providers."""
    return HostProviders(
        accounts=MockAccounts(),
        devices=MockDevices(existing_devices),
        policy=MockPolicy(),
        files=MockFiles(),
    )
