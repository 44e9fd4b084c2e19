"""
Provider registry — the host as the engine sees it.

Bundles one provider per capability. The engine never constructs
providers itself: it receives a ``HostProviders`` (real, mock, or the
recording wrapper used in pretend mode) and talks only to that.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from openvpn_unroot.adapters.base import (
    AccountProvider,
    DeviceProvider,
    FileProvider,
    PolicyProvider,
)
from openvpn_unroot.core.config.layout import HostLayout

logger = logging.getLogger(__name__)


@dataclass
class HostProviders:
    """One provider per capability."""

    accounts: AccountProvider
    devices: DeviceProvider
    policy: PolicyProvider
    files: FileProvider
    journal: list | None = None     # pretend-mode record of skipped mutations

    @classmethod
    def system(cls, layout: HostLayout | None = None) -> HostProviders:
        """Providers that mutate the real host."""
        from openvpn_unroot.adapters.shell.accounts import ShellAccountProvider
        from openvpn_unroot.adapters.shell.devices import IpTuntapProvider
        from openvpn_unroot.adapters.shell.filesystem import LocalFileProvider
        from openvpn_unroot.adapters.shell.policy import VisudoPolicyProvider

        layout = layout or HostLayout()
        return cls(
            accounts=ShellAccountProvider(layout),
            devices=IpTuntapProvider(layout),
            policy=VisudoPolicyProvider(layout),
            files=LocalFileProvider(),
        )

    def recording(self) -> HostProviders:
        """Pretend-mode view: reads pass through, mutations are only recorded."""
        from openvpn_unroot.adapters.recording import recording_host

        return recording_host(self)

    def providers(self) -> list[Any]:
        return [self.accounts, self.devices, self.policy, self.files]

    def provider_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every provider."""
        status = {}
        for provider in self.providers():
            try:
                available = provider.is_available()
            except Exception:
                available = False
            status[provider.name] = {
                "name": provider.name,
                "available": available,
                "type": provider.__class__.__name__,
            }
        return status
