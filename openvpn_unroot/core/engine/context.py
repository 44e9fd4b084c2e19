"""
Run context — everything one run reads and the log it writes.

Constructed once at the start of a run and passed explicitly to every
stage; there is no process-wide state outside it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from openvpn_unroot.adapters.registry import HostProviders
from openvpn_unroot.core.config.layout import HostLayout
from openvpn_unroot.core.models.artifact import ArtifactKey, TransactionLog
from openvpn_unroot.core.models.identifiers import DerivedIdentifiers
from openvpn_unroot.core.models.options import EffectiveOptions


@dataclass
class RunContext:
    """Options, derived identifiers, host providers and the transaction log."""

    options: EffectiveOptions
    ids: DerivedIdentifiers
    host: HostProviders
    layout: HostLayout = field(default_factory=HostLayout)
    old_lines: list[str] = field(default_factory=list)
    log: TransactionLog = field(default_factory=TransactionLog)
    # keys of the running plan; None when generators run outside one
    planned: frozenset[ArtifactKey] | None = None
    rolled_back: bool = False

    @property
    def pretend(self) -> bool:
        return self.options.pretend

    @property
    def backup(self) -> bool:
        return not self.options.no_backup
