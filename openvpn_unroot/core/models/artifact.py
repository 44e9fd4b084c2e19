"""
Artifact and TransactionLog models — what a run created.

The log is the sole input of the rollback engine. Only things this run
actually created go into it; pre-existing entities that were merely
touched are tracked separately and never undone.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ArtifactKey(str, Enum):
    """Every artifact the tool knows how to produce, in CLI vocabulary."""

    USER = "user"
    GROUP = "group"
    DEV = "dev"
    SUDOERS = "sudoers"
    IPROUTE = "iproute"
    UP = "up"
    DOWN = "down"
    NETDEV = "netdev"
    CONFIG = "config"
    UNIT = "unit"

    @classmethod
    def parse(cls, value: str) -> ArtifactKey:
        """Look up a key by name, accepting a few long-hand aliases."""
        aliases = {
            "account": "user",
            "device": "dev",
            "iproute-wrapper": "iproute",
            "up-wrapper": "up",
            "down-wrapper": "down",
            "network-device": "netdev",
        }
        name = value.strip().lower()
        return cls(aliases.get(name, name))


class ArtifactKind(str, Enum):
    ACCOUNT = "account"
    GROUP = "group"
    DEVICE = "device"
    FILE = "file"


class Artifact(BaseModel):
    """A thing this run created and may have to undo."""

    model_config = ConfigDict(frozen=True)

    kind: ArtifactKind
    key: ArtifactKey
    identity: str                   # account/group/device name, or file path
    backup: str | None = None       # numbered backup taken before overwrite
    device_kind: str = ""           # tun/tap, needed to deallocate a device


class TransactionLog(BaseModel):
    """Ordered, append-only record of created artifacts."""

    entries: list[Artifact] = Field(default_factory=list)
    touched: list[str] = Field(default_factory=list)

    def record(self, artifact: Artifact) -> None:
        if artifact.kind is not ArtifactKind.FILE and any(
            e.kind is artifact.kind for e in self.entries
        ):
            raise ValueError(f"{artifact.kind.value} already recorded in this run")
        self.entries.append(artifact)

    def touch(self, description: str) -> None:
        """Note a change to a pre-existing entity (never rolled back)."""
        self.touched.append(description)

    def drain(self) -> list[Artifact]:
        """Remove and return all entries, newest first."""
        drained = list(reversed(self.entries))
        self.entries.clear()
        return drained

    def __len__(self) -> int:
        return len(self.entries)
