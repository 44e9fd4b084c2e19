"""
Accessibility checker — can the new account read what it needs?

Runs after a successful transaction and only warns. Read access is
simulated from POSIX permission bits: every ancestor directory must be
searchable and the file itself readable by the account's uid or one of
its gids. Files referenced by the old config (keys, certificates,
credentials) are the usual culprits: they tend to be root-only.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path

from openvpn_unroot.core.config.openvpn import referenced_files
from openvpn_unroot.core.engine.context import RunContext
from openvpn_unroot.core.models.artifact import ArtifactKey

logger = logging.getLogger(__name__)

_READ = (stat.S_IRUSR, stat.S_IRGRP, stat.S_IROTH)
_SEARCH = (stat.S_IXUSR, stat.S_IXGRP, stat.S_IXOTH)

# Files the unprivileged daemon itself opens or executes
_RUNTIME_KEYS = (ArtifactKey.CONFIG, ArtifactKey.IPROUTE, ArtifactKey.UP, ArtifactKey.DOWN)


@dataclass(frozen=True)
class Advisory:
    """A non-fatal accessibility warning."""

    path: str
    reason: str

    def __str__(self) -> str:
        return f"{self.path}: {self.reason}"


def _permitted(st: os.stat_result, uid: int, gids: set[int], bits: tuple[int, int, int]) -> bool:
    if st.st_uid == uid:
        return bool(st.st_mode & bits[0])
    if st.st_gid in gids:
        return bool(st.st_mode & bits[1])
    return bool(st.st_mode & bits[2])


def readable_by(path: Path, uid: int, gids: set[int]) -> tuple[bool, str]:
    """Whether ``uid``/``gids`` could open ``path`` for reading, and why not."""
    if uid == 0:
        return True, ""
    path = Path(os.path.abspath(path))
    for directory in reversed(path.parents):
        try:
            st = os.stat(directory)
        except OSError as e:
            return False, f"cannot stat {directory}: {e.strerror}"
        if not _permitted(st, uid, gids, _SEARCH):
            return False, f"directory {directory} is not searchable"
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return False, "does not exist"
    except OSError as e:
        return False, f"cannot stat: {e.strerror}"
    if not _permitted(st, uid, gids, _READ):
        return False, "not readable"
    return True, ""


def _journaled_writes(ctx: RunContext) -> set[str]:
    """Paths a pretend run only recorded writing."""
    journal = ctx.host.journal or []
    return {target for provider, op, target in journal if provider == "files" and op == "write"}


def paths_to_check(ctx: RunContext) -> list[Path]:
    """Generated runtime files that exist, plus files the old config references.

    In pretend mode files that were only journaled are left out: their
    permissions on disk say nothing about what a real run would write.
    """
    skipped = _journaled_writes(ctx)
    paths: list[Path] = []
    for key in _RUNTIME_KEYS:
        value = ctx.ids.path_for(key)
        if value in skipped:
            logger.debug("Not checking %s: pretend write only", value)
            continue
        if value and ctx.host.files.state(value) == "regular":
            paths.append(Path(value))
    base_dir = ctx.options.old_config.parent
    for path in referenced_files(ctx.old_lines, base_dir):
        if path not in paths:
            paths.append(path)
    return paths


def check_accessibility(ctx: RunContext) -> list[Advisory]:
    """Advisories for every file the new account cannot read. Never raises."""
    credentials = ctx.host.accounts.credentials(ctx.ids.user, ctx.ids.group)
    if credentials is None:
        logger.debug(
            "Skipping accessibility check: %s:%s does not exist", ctx.ids.user, ctx.ids.group
        )
        return []
    uid, gids = credentials

    advisories: list[Advisory] = []
    for path in paths_to_check(ctx):
        ok, reason = readable_by(path, uid, gids)
        if not ok:
            advisory = Advisory(path=str(path), reason=f"{reason} for {ctx.ids.user}")
            logger.warning("%s", advisory)
            advisories.append(advisory)
    return advisories
