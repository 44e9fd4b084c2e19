"""
Rollback engine — undo everything the transaction log says was created.

The log is drained newest-first, so files (chowned to the new account
and group) are handled before the account and group themselves.
Rollback is best effort: a failure to undo one artifact is logged and
the rest are still attempted. It runs at most once per run context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from openvpn_unroot.adapters.base import ProviderError
from openvpn_unroot.core.engine.context import RunContext
from openvpn_unroot.core.models.artifact import Artifact, ArtifactKind

logger = logging.getLogger(__name__)


@dataclass
class RollbackReport:
    """What rollback did."""

    undone: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {"undone": self.undone, "failed": self.failed, "skipped": self.skipped}


def _undo_file(ctx: RunContext, artifact: Artifact) -> str:
    files = ctx.host.files
    path = artifact.identity
    # Without a backup taken by this run the file did not exist before it
    if ctx.backup and artifact.backup:
        backup = files.find_backup(path) or artifact.backup
        if backup:
            files.restore(backup, path)
            return f"restored {path} from {backup}"
    files.delete(path)
    return f"deleted {path}"


def _undo_account(ctx: RunContext, artifact: Artifact) -> str:
    accounts = ctx.host.accounts
    if not accounts.user_exists(artifact.identity):
        return f"account {artifact.identity} already gone"
    accounts.delete_user(artifact.identity)
    return f"deleted account {artifact.identity}"


def _undo_group(ctx: RunContext, artifact: Artifact) -> str:
    accounts = ctx.host.accounts
    if not accounts.group_exists(artifact.identity):
        return f"group {artifact.identity} already gone"
    accounts.delete_group(artifact.identity)
    return f"deleted group {artifact.identity}"


def _undo_device(ctx: RunContext, artifact: Artifact) -> str:
    devices = ctx.host.devices
    if not devices.exists(artifact.identity):
        return f"device {artifact.identity} already gone"
    devices.delete(artifact.identity, artifact.device_kind)
    return f"deallocated device {artifact.identity}"


_UNDO = {
    ArtifactKind.FILE: _undo_file,
    ArtifactKind.ACCOUNT: _undo_account,
    ArtifactKind.GROUP: _undo_group,
    ArtifactKind.DEVICE: _undo_device,
}


def rollback(ctx: RunContext) -> RollbackReport:
    """Undo every artifact in ``ctx.log``. A second call is a no-op."""
    report = RollbackReport()
    if ctx.rolled_back:
        report.skipped = True
        return report
    ctx.rolled_back = True

    entries = ctx.log.drain()
    if entries:
        logger.warning("Rolling back %d artifact(s)", len(entries))

    for artifact in entries:
        try:
            done = _UNDO[artifact.kind](ctx, artifact)
        except (ProviderError, OSError) as e:
            logger.error("Rollback of %s %s failed: %s", artifact.kind.value, artifact.identity, e)
            report.failed.append(f"{artifact.kind.value} {artifact.identity}: {e}")
            continue
        logger.info("Rollback: %s", done)
        report.undone.append(done)

    return report
