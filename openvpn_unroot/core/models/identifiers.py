"""
DerivedIdentifiers — every new name and path, resolved once per run.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from openvpn_unroot.core.models.artifact import ArtifactKey


class DerivedIdentifiers(BaseModel):
    """Output of the derivation engine. Read-only after construction."""

    model_config = ConfigDict(frozen=True)

    user: str
    group: str
    device_kind: str = ""           # tun | tap | "" when undeterminable
    device: str = ""
    config: str = ""
    base_name: str = ""
    up: str = ""
    down: str = ""
    iproute: str = ""
    sudoers: str = ""
    netdev: str = ""
    unit: str = ""
    unit_template: str = ""

    # Old values the generators re-invoke under sudo
    ip_command: str = ""
    old_iproute: str = ""
    old_up: list[str] = Field(default_factory=list)
    old_down: list[str] = Field(default_factory=list)

    eligible: frozenset[ArtifactKey] = frozenset()

    def path_for(self, key: ArtifactKey) -> str:
        """Target path (or name) of the artifact produced for ``key``."""
        return {
            ArtifactKey.USER: self.user,
            ArtifactKey.GROUP: self.group,
            ArtifactKey.DEV: self.device,
            ArtifactKey.SUDOERS: self.sudoers,
            ArtifactKey.IPROUTE: self.iproute,
            ArtifactKey.UP: self.up,
            ArtifactKey.DOWN: self.down,
            ArtifactKey.NETDEV: self.netdev,
            ArtifactKey.CONFIG: self.config,
            ArtifactKey.UNIT: self.unit,
        }[key]

    @property
    def old_up_path(self) -> str:
        return self.old_up[0] if self.old_up else ""

    @property
    def old_down_path(self) -> str:
        return self.old_down[0] if self.old_down else ""

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["eligible"] = sorted(k.value for k in self.eligible)
        return data
