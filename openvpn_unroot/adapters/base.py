"""
Provider base — the capability contract between engine and host.

The engine only talks to the host through these interfaces, never
directly to system tools. Each capability has a real implementation
under ``adapters/shell``, an in-memory double in ``adapters/mock`` and a
recording wrapper in ``adapters/recording`` used for pretend mode.

Read-only queries never raise. Mutations raise ``ProviderError`` on
failure; the generators turn that into a failed Outcome.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

FileState = Literal["absent", "regular", "other"]


class ProviderError(RuntimeError):
    """A host mutation or check failed."""

    def __init__(self, message: str, returncode: int = 1):
        super().__init__(message)
        self.returncode = returncode or 1


@dataclass(frozen=True)
class WriteResult:
    """What a scoped write did to its target."""

    path: str
    previous: FileState             # state of the target before the write
    backup: str | None = None       # numbered backup taken, if any

    @property
    def created(self) -> bool:
        """Whether this write is undoable (new file or replaced regular file)."""
        return self.previous != "other"


class Provider(ABC):
    """Common surface of all capability providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g., 'accounts', 'devices')."""

    def is_available(self) -> bool:
        """Whether the underlying tool exists. Should be fast and never raise."""
        return True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class AccountProvider(Provider):
    """System account and group directory."""

    @property
    def name(self) -> str:
        return "accounts"

    @abstractmethod
    def user_exists(self, user: str) -> bool: ...

    @abstractmethod
    def group_exists(self, group: str) -> bool: ...

    @abstractmethod
    def primary_group(self, user: str) -> str:
        """Primary group name of ``user``, or an empty string if unknown."""

    @abstractmethod
    def user_in_group(self, user: str, group: str) -> bool:
        """Whether ``group`` is the primary or a supplementary group of ``user``."""

    @abstractmethod
    def credentials(self, user: str, group: str) -> tuple[int, set[int]] | None:
        """(uid, gids) the daemon would run with as ``user``:``group``."""

    @abstractmethod
    def create_group(self, group: str) -> None: ...

    @abstractmethod
    def create_user(self, user: str, group: str) -> None: ...

    @abstractmethod
    def add_to_group(self, user: str, group: str) -> None: ...

    @abstractmethod
    def delete_user(self, user: str) -> None: ...

    @abstractmethod
    def delete_group(self, group: str) -> None: ...


class DeviceProvider(Provider):
    """Persistent tun/tap devices."""

    @property
    def name(self) -> str:
        return "devices"

    @abstractmethod
    def exists(self, device: str) -> bool: ...

    @abstractmethod
    def create(self, device: str, kind: str, user: str, group: str) -> None: ...

    @abstractmethod
    def delete(self, device: str, kind: str) -> None: ...


class PolicyProvider(Provider):
    """Privilege-escalation policy syntax checker."""

    @property
    def name(self) -> str:
        return "policy"

    @abstractmethod
    def check(self, content: str) -> None:
        """Raise ProviderError unless ``content`` is a valid sudoers document."""


class FileProvider(Provider):
    """Filesystem access with scoped writes and numbered backups."""

    @property
    def name(self) -> str:
        return "files"

    @abstractmethod
    def state(self, path: str) -> FileState: ...

    @abstractmethod
    def read_text(self, path: str) -> str | None:
        """Content of a regular file, or None if absent or unreadable."""

    @abstractmethod
    def write(
        self,
        path: str,
        content: str,
        mode: int = 0o644,
        owner: str | None = None,
        group: str | None = None,
        backup: bool = True,
    ) -> WriteResult:
        """Scoped write: backup + temp file + atomic replace for regular targets,
        direct write for absent or non-regular ones."""

    @abstractmethod
    def append(self, path: str, content: str) -> None: ...

    @abstractmethod
    def find_backup(self, path: str) -> str | None:
        """Newest numbered backup of ``path`` owned by us, if any."""

    @abstractmethod
    def restore(self, backup: str, path: str) -> None: ...

    @abstractmethod
    def delete(self, path: str) -> None: ...
