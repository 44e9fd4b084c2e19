"""
Recording providers — pretend mode.

Every read goes to the wrapped provider so decisions are made against
the real host. Every mutation is replaced by an entry in a shared
journal and remembered, so that later existence checks answer as they
would after a real run. Nothing on the host changes.
"""

from __future__ import annotations

import logging
from pathlib import Path

from openvpn_unroot.adapters.base import (
    AccountProvider,
    DeviceProvider,
    FileProvider,
    FileState,
    PolicyProvider,
    WriteResult,
)
from openvpn_unroot.adapters.registry import HostProviders
from openvpn_unroot.adapters.shell.filesystem import next_backup_path

logger = logging.getLogger(__name__)


class Journal(list):
    """Shared list of (provider, operation, target) the pretend run would perform."""

    def add(self, provider: str, operation: str, target: str) -> None:
        logger.info("[pretend] %s.%s %s", provider, operation, target)
        self.append((provider, operation, target))


class RecordingAccounts(AccountProvider):
    def __init__(self, inner: AccountProvider, journal: Journal):
        self._inner = inner
        self._journal = journal
        self._users: dict[str, str] = {}
        self._groups: set[str] = set()
        self._members: set[tuple[str, str]] = set()
        self._deleted: set[str] = set()

    def user_exists(self, user: str) -> bool:
        if user in self._users:
            return True
        return user not in self._deleted and self._inner.user_exists(user)

    def group_exists(self, group: str) -> bool:
        if group in self._groups:
            return True
        return f"group:{group}" not in self._deleted and self._inner.group_exists(group)

    def primary_group(self, user: str) -> str:
        return self._users.get(user) or self._inner.primary_group(user)

    def user_in_group(self, user: str, group: str) -> bool:
        if self._users.get(user) == group or (user, group) in self._members:
            return True
        return self._inner.user_in_group(user, group)

    def credentials(self, user: str, group: str) -> tuple[int, set[int]] | None:
        return self._inner.credentials(user, group)

    def create_group(self, group: str) -> None:
        self._journal.add(self.name, "create_group", group)
        self._groups.add(group)

    def create_user(self, user: str, group: str) -> None:
        self._journal.add(self.name, "create_user", user)
        self._users[user] = group

    def add_to_group(self, user: str, group: str) -> None:
        self._journal.add(self.name, "add_to_group", f"{user}:{group}")
        self._members.add((user, group))

    def delete_user(self, user: str) -> None:
        self._journal.add(self.name, "delete_user", user)
        self._users.pop(user, None)
        self._deleted.add(user)

    def delete_group(self, group: str) -> None:
        self._journal.add(self.name, "delete_group", group)
        self._groups.discard(group)
        self._deleted.add(f"group:{group}")


class RecordingDevices(DeviceProvider):
    def __init__(self, inner: DeviceProvider, journal: Journal):
        self._inner = inner
        self._journal = journal
        self._created: set[str] = set()
        self._deleted: set[str] = set()

    def exists(self, device: str) -> bool:
        if device in self._created:
            return True
        return device not in self._deleted and self._inner.exists(device)

    def create(self, device: str, kind: str, user: str, group: str) -> None:
        self._journal.add(self.name, "create", device)
        self._created.add(device)

    def delete(self, device: str, kind: str) -> None:
        self._journal.add(self.name, "delete", device)
        self._created.discard(device)
        self._deleted.add(device)


class RecordingPolicy(PolicyProvider):
    """Validation is read-only, so pretend mode still runs the real checker."""

    def __init__(self, inner: PolicyProvider, journal: Journal):
        self._inner = inner
        self._journal = journal

    def is_available(self) -> bool:
        return self._inner.is_available()

    def check(self, content: str) -> None:
        self._inner.check(content)


class RecordingFiles(FileProvider):
    def __init__(self, inner: FileProvider, journal: Journal):
        self._inner = inner
        self._journal = journal
        self._written: dict[str, str] = {}

    def state(self, path: str) -> FileState:
        if path in self._written:
            return "regular"
        return self._inner.state(path)

    def read_text(self, path: str) -> str | None:
        if path in self._written:
            return self._written[path]
        return self._inner.read_text(path)

    def write(
        self,
        path: str,
        content: str,
        mode: int = 0o644,
        owner: str | None = None,
        group: str | None = None,
        backup: bool = True,
    ) -> WriteResult:
        previous = self.state(path)
        backup_path = None
        if previous == "regular" and backup:
            backup_path = str(next_backup_path(Path(path)))
        self._journal.add(self.name, "write", path)
        if previous != "other":
            self._written[path] = content
        return WriteResult(path=path, previous=previous, backup=backup_path)

    def append(self, path: str, content: str) -> None:
        self._journal.add(self.name, "append", path)

    def find_backup(self, path: str) -> str | None:
        return self._inner.find_backup(path)

    def restore(self, backup: str, path: str) -> None:
        self._journal.add(self.name, "restore", path)
        self._written.pop(path, None)

    def delete(self, path: str) -> None:
        self._journal.add(self.name, "delete", path)
        self._written.pop(path, None)


def recording_host(inner: HostProviders, journal: Journal | None = None) -> HostProviders:
    """Wrap every provider of ``inner`` for pretend mode."""
    journal = journal if journal is not None else Journal()
    return HostProviders(
        accounts=RecordingAccounts(inner.accounts, journal),
        devices=RecordingDevices(inner.devices, journal),
        policy=RecordingPolicy(inner.policy, journal),
        files=RecordingFiles(inner.files, journal),
        journal=journal,
    )
