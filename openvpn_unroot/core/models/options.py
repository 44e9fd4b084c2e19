"""
EffectiveOptions — the resolved view of what the user asked for.

Produced once per run by the CLI (or a test) and never mutated.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from openvpn_unroot.core.models.artifact import ArtifactKey


class EffectiveOptions(BaseModel):
    """All CLI-level intents for one run."""

    model_config = ConfigDict(frozen=True)

    old_config: Path
    overrides: dict[ArtifactKey, str] = Field(default_factory=dict)
    enabled: frozenset[ArtifactKey] = frozenset()
    suppressed: frozenset[ArtifactKey] = frozenset()

    automagic: bool = False
    pretend: bool = False
    verbose: bool = False
    no_backup: bool = False

    def override(self, key: ArtifactKey) -> str:
        """Explicit override for ``key``, or an empty string."""
        return self.overrides.get(key, "") or ""

    def is_specified(self, key: ArtifactKey) -> bool:
        """Whether ``key`` was explicitly requested (override or enable flag)."""
        return bool(self.override(key)) or key in self.enabled

    def is_suppressed(self, key: ArtifactKey) -> bool:
        return key in self.suppressed

    @property
    def specified(self) -> list[ArtifactKey]:
        return [k for k in ArtifactKey if self.is_specified(k)]
