"""
Host layout — where the well-known system files live on this machine.

The defaults describe a standard systemd-based Linux host. A YAML file
(``--layout`` or ``OPENVPN_UNROOT_LAYOUT``) can override any of them,
which is also how tests point the engine at a temporary directory.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from openvpn_unroot.core.errors import ConfigError

logger = logging.getLogger(__name__)

LAYOUT_ENV_VAR = "OPENVPN_UNROOT_LAYOUT"


class HostLayout(BaseModel):
    """Well-known paths and literal defaults."""

    suffix: str = "-unrooted"
    default_user: str = "openvpn"

    sudoers_dir: str = "/etc/sudoers.d"
    sudoers_file: str = "/etc/sudoers"
    netdev_dir: str = "/etc/systemd/network"
    unit_dir: str = "/etc/systemd/system"
    unit_templates: list[str] = Field(
        default_factory=lambda: [
            "/etc/systemd/system/openvpn-client@.service",
            "/lib/systemd/system/openvpn-client@.service",
            "/usr/lib/systemd/system/openvpn-client@.service",
        ]
    )
    iproute_dir: str = "/etc/openvpn"

    ip_command: str = "ip"
    ip_fallback: str = "/sbin/ip"
    visudo: str = "visudo"
    nologin_shell: str = "/usr/sbin/nologin"
    sysfs_net: str = "/sys/class/net"

    def find_unit_template(self) -> str:
        """First existing template unit, or an empty string."""
        for candidate in self.unit_templates:
            if Path(candidate).is_file():
                return candidate
        return ""


def load_layout(path: Path | None = None) -> HostLayout:
    """Load the host layout.

    Args:
        path: Explicit YAML file. If None, ``OPENVPN_UNROOT_LAYOUT`` is
            consulted; without either the built-in defaults are used.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        env_path = os.environ.get(LAYOUT_ENV_VAR)
        if not env_path:
            return HostLayout()
        path = Path(env_path)

    if not path.is_file():
        raise ConfigError(f"Layout file not found: {path}")

    logger.debug("Loading host layout from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The file may wrap everything under a "layout" key or be flat
    layout_data = data.get("layout", data)

    try:
        layout = HostLayout.model_validate(layout_data)
    except Exception as e:
        raise ConfigError(f"Invalid host layout: {e}") from e

    logger.info("Loaded host layout from %s", path)
    return layout
