"""
Outcome model — the result contract between executor and generators.

Generators never raise: they return an Outcome whose status is
``created``, ``satisfied`` or ``failed``. A created outcome carries the
artifact to append to the transaction log.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from openvpn_unroot.core.models.artifact import Artifact, ArtifactKey


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Outcome(BaseModel):
    """Result of running one generator."""

    key: ArtifactKey
    status: Literal["created", "satisfied", "failed"] = "created"
    target: str = ""
    artifact: Artifact | None = None
    pretend: bool = False

    finished_at: str = Field(default_factory=_now_iso)
    message: str = ""
    error: str | None = None
    exit_code: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def created(self) -> bool:
        return self.status == "created"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def decision(self) -> tuple[str, str, str]:
        """(key, status, target) — what was decided, independent of pretend mode."""
        return (self.key.value, self.status, self.target)

    @classmethod
    def create(
        cls,
        key: ArtifactKey,
        target: str,
        artifact: Artifact | None,
        message: str = "",
        **kwargs: Any,
    ) -> Outcome:
        """A created outcome; ``artifact`` is None when nothing undoable was made."""
        return cls(
            key=key,
            status="created",
            target=target,
            artifact=artifact,
            message=message,
            **kwargs,
        )

    @classmethod
    def satisfied(cls, key: ArtifactKey, target: str, message: str = "", **kwargs: Any) -> Outcome:
        return cls(key=key, status="satisfied", target=target, message=message, **kwargs)

    @classmethod
    def failure(
        cls,
        key: ArtifactKey,
        target: str,
        error: str,
        exit_code: int = 1,
        **kwargs: Any,
    ) -> Outcome:
        return cls(
            key=key,
            status="failed",
            target=target,
            error=error,
            exit_code=exit_code,
            **kwargs,
        )
