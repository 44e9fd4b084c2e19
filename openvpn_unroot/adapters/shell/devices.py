"""
Device provider — persistent tun/tap devices via ``ip tuntap``.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from openvpn_unroot.adapters.base import DeviceProvider
from openvpn_unroot.adapters.shell.command import check_command
from openvpn_unroot.core.config.layout import HostLayout

logger = logging.getLogger(__name__)


class IpTuntapProvider(DeviceProvider):
    """Existence via sysfs, allocation via iproute2."""

    def __init__(self, layout: HostLayout | None = None):
        self._layout = layout or HostLayout()

    @property
    def _ip(self) -> str:
        return shutil.which(self._layout.ip_command) or self._layout.ip_fallback

    def is_available(self) -> bool:
        return Path(self._ip).exists()

    def exists(self, device: str) -> bool:
        return (Path(self._layout.sysfs_net) / device).exists()

    def create(self, device: str, kind: str, user: str, group: str) -> None:
        logger.info("Allocating %s device %s for %s:%s", kind, device, user, group)
        check_command([
            self._ip, "tuntap", "add",
            "dev", device,
            "mode", kind,
            "user", user,
            "group", group,
        ])

    def delete(self, device: str, kind: str) -> None:
        logger.info("Deallocating %s device %s", kind, device)
        check_command([self._ip, "tuntap", "del", "dev", device, "mode", kind])
