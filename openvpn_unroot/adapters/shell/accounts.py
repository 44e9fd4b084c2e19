"""
Account provider — the system passwd/group databases.

Lookups use the ``pwd``/``grp`` modules; mutations go through the
shadow-utils commands so that nscd, audit hooks and friends see them.
"""

from __future__ import annotations

import grp
import logging
import os
import pwd
import shutil

from openvpn_unroot.adapters.base import AccountProvider
from openvpn_unroot.adapters.shell.command import check_command
from openvpn_unroot.core.config.layout import HostLayout

logger = logging.getLogger(__name__)


def _passwd(user: str) -> pwd.struct_passwd | None:
    try:
        return pwd.getpwnam(user)
    except KeyError:
        return None


def _group(group: str) -> grp.struct_group | None:
    try:
        return grp.getgrnam(group)
    except KeyError:
        return None


class ShellAccountProvider(AccountProvider):
    """useradd/groupadd/usermod/userdel/groupdel over the local databases."""

    def __init__(self, layout: HostLayout | None = None):
        self._layout = layout or HostLayout()

    def is_available(self) -> bool:
        return all(shutil.which(tool) for tool in ("useradd", "groupadd", "usermod"))

    def user_exists(self, user: str) -> bool:
        return _passwd(user) is not None

    def group_exists(self, group: str) -> bool:
        return _group(group) is not None

    def primary_group(self, user: str) -> str:
        entry = _passwd(user)
        if entry is None:
            return ""
        try:
            return grp.getgrgid(entry.pw_gid).gr_name
        except KeyError:
            return ""

    def user_in_group(self, user: str, group: str) -> bool:
        entry = _group(group)
        if entry is None:
            return False
        if user in entry.gr_mem:
            return True
        account = _passwd(user)
        return account is not None and account.pw_gid == entry.gr_gid

    def credentials(self, user: str, group: str) -> tuple[int, set[int]] | None:
        account = _passwd(user)
        primary = _group(group)
        if account is None or primary is None:
            return None
        gids = set(os.getgrouplist(user, primary.gr_gid))
        gids.add(primary.gr_gid)
        return account.pw_uid, gids

    def create_group(self, group: str) -> None:
        logger.info("Creating group %s", group)
        check_command(["groupadd", "--system", group])

    def create_user(self, user: str, group: str) -> None:
        logger.info("Creating account %s (group %s)", user, group)
        check_command([
            "useradd",
            "--system",
            "--no-create-home",
            "--home-dir", "/nonexistent",
            "--shell", self._layout.nologin_shell,
            "--gid", group,
            user,
        ])

    def add_to_group(self, user: str, group: str) -> None:
        logger.info("Adding %s to group %s", user, group)
        check_command(["usermod", "--append", "--groups", group, user])

    def delete_user(self, user: str) -> None:
        logger.info("Deleting account %s", user)
        check_command(["userdel", user])

    def delete_group(self, group: str) -> None:
        logger.info("Deleting group %s", group)
        check_command(["groupdel", group])
