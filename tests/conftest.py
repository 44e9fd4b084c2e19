"""
Shared test fixtures and configuration.

Every test runs against a private host layout rooted in ``tmp_path`` and
in-memory account/device providers, so nothing on the real machine is
read or touched.
"""

import textwrap
from pathlib import Path

import pytest

from openvpn_unroot.adapters.mock import mock_host
from openvpn_unroot.core.config.layout import HostLayout
from openvpn_unroot.core.models.options import EffectiveOptions

UNIT_TEMPLATE = textwrap.dedent("""\
    [Unit]
    Description=OpenVPN tunnel for %I
    After=network-online.target

    [Service]
    Type=notify
    PrivateTmp=true
    WorkingDirectory=/etc/openvpn/client
    ExecStart=/usr/sbin/openvpn --suppress-timestamps --nobind --config %i.conf
    CapabilityBoundingSet=CAP_IPC_LOCK CAP_NET_ADMIN CAP_NET_RAW CAP_SETGID CAP_SETUID
    LimitNPROC=10

    [Install]
    WantedBy=multi-user.target
""")


@pytest.fixture
def etc_dir(tmp_path: Path) -> Path:
    """A fake /etc with the directories a systemd host has."""
    etc = tmp_path / "etc"
    for sub in ("sudoers.d", "systemd/network", "systemd/system", "openvpn/client"):
        (etc / sub).mkdir(parents=True)
    (etc / "sudoers").write_text("root ALL=(ALL) ALL\n")
    return etc


@pytest.fixture
def layout(tmp_path: Path, etc_dir: Path) -> HostLayout:
    """Host layout pointing every well-known path into ``tmp_path``."""
    return HostLayout(
        sudoers_dir=str(etc_dir / "sudoers.d"),
        sudoers_file=str(etc_dir / "sudoers"),
        netdev_dir=str(etc_dir / "systemd" / "network"),
        unit_dir=str(etc_dir / "systemd" / "system"),
        unit_templates=[str(tmp_path / "lib" / "openvpn-client@.service")],
        iproute_dir=str(etc_dir / "openvpn"),
        ip_command="ip-not-installed-anywhere",
        ip_fallback="/sbin/ip",
        sysfs_net=str(tmp_path / "sys" / "class" / "net"),
    )


@pytest.fixture
def unit_template(tmp_path: Path) -> Path:
    """Install the openvpn-client@ template unit into the layout."""
    path = tmp_path / "lib" / "openvpn-client@.service"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(UNIT_TEMPLATE)
    return path


@pytest.fixture
def write_config(etc_dir: Path):
    """Factory writing an old OpenVPN config (plus its scripts) into the fake /etc."""

    def _write(body: str, name: str = "work.conf", scripts: tuple[str, ...] = ()) -> Path:
        client_dir = etc_dir / "openvpn" / "client"
        for script in scripts:
            path = client_dir / script
            path.write_text("#!/bin/sh\nexit 0\n")
            path.chmod(0o755)
        path = client_dir / name
        path.write_text(textwrap.dedent(body).format(dir=client_dir))
        return path

    return _write


@pytest.fixture
def old_config(write_config) -> Path:
    """A typical root-run client config with separate up and down scripts."""
    return write_config(
        """\
        client
        dev tun
        proto udp
        remote vpn.example.com 1194
        persist-tun
        ca ca.crt
        up {dir}/update-resolv.sh
        down {dir}/restore-resolv.sh
        verb 3
        """,
        scripts=("update-resolv.sh", "restore-resolv.sh"),
    )


@pytest.fixture
def host():
    """Mock accounts/devices/policy and local files without chown."""
    return mock_host()


@pytest.fixture
def make_options(old_config: Path):
    """Factory for EffectiveOptions bound to ``old_config``."""

    def _make(**kwargs) -> EffectiveOptions:
        kwargs.setdefault("old_config", old_config)
        return EffectiveOptions(**kwargs)

    return _make


def snapshot(root: Path) -> dict[str, bytes | None]:
    """Every path under ``root`` with file contents (None for directories)."""
    return {
        str(p.relative_to(root)): (p.read_bytes() if p.is_file() else None)
        for p in sorted(root.rglob("*"))
    }


@pytest.fixture
def tree_snapshot():
    """The ``snapshot`` helper, for tests comparing filesystem state."""
    return snapshot
