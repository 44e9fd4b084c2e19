"""Adapters — capability providers the engine drives the host through.

Public re-exports for convenient access.
"""

from openvpn_unroot.adapters.base import (
    AccountProvider,
    DeviceProvider,
    FileProvider,
    PolicyProvider,
    ProviderError,
    WriteResult,
)
from openvpn_unroot.adapters.registry import HostProviders

__all__ = [
    "AccountProvider",
    "DeviceProvider",
    "FileProvider",
    "HostProviders",
    "PolicyProvider",
    "ProviderError",
    "WriteResult",
]
