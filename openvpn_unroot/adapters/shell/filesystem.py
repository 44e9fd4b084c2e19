"""
File provider — scoped writes with numbered backups on the local disk.

A regular target is never written in place: a numbered backup
(``PATH.~N~``, as GNU ``cp --backup=numbered`` names them) is taken
first, then the new content goes to a temp file in the same directory
which atomically replaces the target. Absent targets and non-regular
ones (``/dev/stdout``, a FIFO) are written directly.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import stat
import tempfile
from pathlib import Path

from openvpn_unroot.adapters.base import FileProvider, FileState, ProviderError, WriteResult

logger = logging.getLogger(__name__)


def _backup_pattern(target: Path) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(target.name)}\.~(\d+)~$")


def numbered_backups(target: Path) -> list[tuple[int, Path]]:
    """Existing numbered backups of ``target``, oldest first."""
    pattern = _backup_pattern(target)
    found: list[tuple[int, Path]] = []
    try:
        entries = list(target.parent.iterdir())
    except OSError:
        return []
    for entry in entries:
        match = pattern.match(entry.name)
        if match:
            found.append((int(match.group(1)), entry))
    return sorted(found)


def next_backup_path(target: Path) -> Path:
    """Name the next numbered backup of ``target`` would get."""
    existing = numbered_backups(target)
    number = existing[-1][0] + 1 if existing else 1
    return target.with_name(f"{target.name}.~{number}~")


class LocalFileProvider(FileProvider):
    """Filesystem operations on the local disk.

    Args:
        apply_ownership: When False, ``owner``/``group`` are only recorded
            in ``ownership`` instead of being applied with chown (used by
            unprivileged test harnesses).
    """

    def __init__(self, apply_ownership: bool = True):
        self._apply_ownership = apply_ownership
        self.ownership: dict[str, tuple[str | None, str | None]] = {}

    def state(self, path: str) -> FileState:
        try:
            st = os.stat(path)
        except FileNotFoundError:
            return "absent"
        except OSError:
            return "other"
        return "regular" if stat.S_ISREG(st.st_mode) else "other"

    def read_text(self, path: str) -> str | None:
        if self.state(path) != "regular":
            return None
        try:
            return Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def _chown(self, path: str, owner: str | None, group: str | None) -> None:
        if owner is None and group is None:
            return
        if self._apply_ownership:
            shutil.chown(path, user=owner, group=group)

    def _record_owner(self, path: str, owner: str | None, group: str | None) -> None:
        if owner is not None or group is not None:
            self.ownership[path] = (owner, group)

    def write(
        self,
        path: str,
        content: str,
        mode: int = 0o644,
        owner: str | None = None,
        group: str | None = None,
        backup: bool = True,
    ) -> WriteResult:
        target = Path(path)
        previous = self.state(path)
        try:
            if previous == "regular":
                backup_path = self._take_backup(target) if backup else None
                self._replace(target, content, mode, owner, group)
                logger.debug("Replaced %s (backup: %s)", target, backup_path)
                return WriteResult(path=path, previous=previous, backup=backup_path)

            self._write_direct(target, content, mode, owner, group, fresh=previous == "absent")
            logger.debug("Wrote %s directly (%s)", target, previous)
            return WriteResult(path=path, previous=previous)
        except (OSError, LookupError) as e:
            raise ProviderError(f"Cannot write {path}: {e}") from e

    def _take_backup(self, target: Path) -> str:
        backup = next_backup_path(target)
        shutil.copy2(target, backup)
        logger.info("Backed up %s → %s", target, backup)
        return str(backup)

    def _replace(
        self,
        target: Path,
        content: str,
        mode: int,
        owner: str | None,
        group: str | None,
    ) -> None:
        fd, tmp_path = tempfile.mkstemp(
            dir=target.parent,
            prefix=f".{target.name}.",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.chmod(tmp, mode)
            self._chown(tmp_path, owner, group)
            os.replace(tmp, target)
            self._record_owner(str(target), owner, group)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

    def _write_direct(
        self,
        target: Path,
        content: str,
        mode: int,
        owner: str | None,
        group: str | None,
        fresh: bool,
    ) -> None:
        try:
            with open(target, "w", encoding="utf-8") as fh:
                fh.write(content)
            if fresh:
                os.chmod(target, mode)
                self._chown(str(target), owner, group)
                self._record_owner(str(target), owner, group)
        except BaseException:
            if fresh:
                target.unlink(missing_ok=True)
            raise

    def append(self, path: str, content: str) -> None:
        try:
            with open(path, "a", encoding="utf-8") as fh:
                fh.write(content)
        except OSError as e:
            raise ProviderError(f"Cannot append to {path}: {e}") from e

    def find_backup(self, path: str) -> str | None:
        euid = os.geteuid()
        for _number, candidate in reversed(numbered_backups(Path(path))):
            try:
                st = candidate.lstat()
            except OSError:
                continue
            if stat.S_ISREG(st.st_mode) and st.st_uid == euid:
                return str(candidate)
        return None

    def restore(self, backup: str, path: str) -> None:
        try:
            os.replace(backup, path)
        except OSError as e:
            raise ProviderError(f"Cannot restore {path} from {backup}: {e}") from e
        logger.info("Restored %s from %s", path, backup)

    def delete(self, path: str) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            raise ProviderError(f"Cannot delete {path}: {e}") from e
        self.ownership.pop(path, None)
        logger.info("Deleted %s", path)
