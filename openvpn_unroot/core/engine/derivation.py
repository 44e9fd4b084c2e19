"""
Value derivation engine — resolve every new name and path.

Each value comes from a derivation chain: an ordered list of candidate
sources (explicit override, value scraped from the old config, computed
default) where the first non-empty candidate wins. Changing the order of
a chain changes observable behavior, so each chain is its own function.

Values are resolved once, in a fixed order, because later defaults
depend on earlier results:

    user → group → device kind → device → config → base name
         → up → down → iproute → sudoers → netdev → unit

Only read-only host queries happen here (account lookup, device
existence probing, file type checks).
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path

from openvpn_unroot.adapters.base import AccountProvider, DeviceProvider, FileProvider
from openvpn_unroot.adapters.registry import HostProviders
from openvpn_unroot.core.config.layout import HostLayout
from openvpn_unroot.core.config.openvpn import (
    directive_with_prefix,
    get_down_root_command,
    get_old_config_command,
    get_old_config_value,
    has_directive,
    resolve_path,
)
from openvpn_unroot.core.errors import AllocationError
from openvpn_unroot.core.models.artifact import ArtifactKey
from openvpn_unroot.core.models.identifiers import DerivedIdentifiers
from openvpn_unroot.core.models.options import EffectiveOptions

logger = logging.getLogger(__name__)

DEVICE_KINDS = ("tun", "tap")
DEVICE_PROBE_LIMIT = 100
IPROUTE_WRAPPER_NAME = "iproute"


def first_nonempty(*candidates: str | None) -> str:
    """First candidate that is not None and not blank."""
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return ""


def suffixed(path: str, suffix: str) -> str:
    """Insert ``suffix`` before the extension of ``path``'s file name.

    ``/etc/openvpn/up.sh`` → ``/etc/openvpn/up-unrooted.sh``; without a
    recognizable extension the suffix is appended to the end.
    """
    if not path:
        return ""
    head, name = os.path.split(path)
    stem, ext = os.path.splitext(name)
    return os.path.join(head, f"{stem}{suffix}{ext}")


def _is_non_regular(files: FileProvider, path: str) -> bool:
    return files.state(path) == "other"


def config_dir(options: EffectiveOptions) -> Path:
    """Absolute directory of the old config; relative paths in it start here."""
    return Path(os.path.abspath(options.old_config)).parent


def anchored_command(command: list[str], base_dir: Path) -> list[str]:
    """``command`` with a relative program path made absolute.

    The daemon runs a relative ``up``/``down`` program from the config's
    directory; wrappers and sudoers rules need the full path.
    """
    if not command:
        return []
    return [resolve_path(command[0], base_dir), *command[1:]]


# ── Chains ──────────────────────────────────────────────────────────


def derive_user(options: EffectiveOptions, lines: list[str], layout: HostLayout) -> str:
    return first_nonempty(
        options.override(ArtifactKey.USER),
        get_old_config_value(lines, "user"),
        layout.default_user,
    )


def derive_group(
    options: EffectiveOptions,
    lines: list[str],
    user: str,
    accounts: AccountProvider,
) -> str:
    existing_primary = accounts.primary_group(user) if accounts.user_exists(user) else ""
    return first_nonempty(
        options.override(ArtifactKey.GROUP),
        get_old_config_value(lines, "group"),
        existing_primary,
        user,
    )


def _kind_prefix(name: str) -> str:
    return name[:3] if name.startswith(DEVICE_KINDS) else ""


def derive_device_kind(options: EffectiveOptions, lines: list[str]) -> str:
    dev_type = get_old_config_value(lines, "dev-type")
    # topology only makes sense for tun
    topology = "tun" if has_directive(lines, "topology") else ""
    return first_nonempty(
        _kind_prefix(options.override(ArtifactKey.DEV)),
        dev_type if dev_type in DEVICE_KINDS else "",
        _kind_prefix(get_old_config_value(lines, "dev")),
        topology,
        _kind_prefix(directive_with_prefix(lines, ("tun-", "tap-"))),
    )


def old_device_number(lines: list[str]) -> int:
    """Numeric suffix of the old ``dev`` directive (``tun3`` → 3), default 0."""
    match = re.search(r"(\d+)$", get_old_config_value(lines, "dev"))
    if match and int(match.group(1)) < DEVICE_PROBE_LIMIT:
        return int(match.group(1))
    return 0


def probe_device_name(kind: str, start: int, devices: DeviceProvider, suffix: str) -> str:
    """First ``<kind><N><suffix>`` with no existing device.

    Tries ``start`` first, then 0..99.

    Raises:
        AllocationError: If every candidate is taken.
    """
    numbers = [start] + [n for n in range(DEVICE_PROBE_LIMIT) if n != start]
    for number in numbers:
        candidate = f"{kind}{number}{suffix}"
        if not devices.exists(candidate):
            logger.debug("Device name %s is free", candidate)
            return candidate
        logger.debug("Device name %s is taken", candidate)
    raise AllocationError(
        f"No free {kind} device name: {kind}0{suffix} … {kind}{DEVICE_PROBE_LIMIT - 1}{suffix} all exist"
    )


def derive_device(
    options: EffectiveOptions,
    lines: list[str],
    kind: str,
    devices: DeviceProvider,
    layout: HostLayout,
) -> str:
    explicit = options.override(ArtifactKey.DEV)
    if explicit:
        return explicit
    if not kind:
        return ""
    return probe_device_name(kind, old_device_number(lines), devices, layout.suffix)


def derive_config(options: EffectiveOptions, layout: HostLayout) -> str:
    return first_nonempty(
        options.override(ArtifactKey.CONFIG),
        suffixed(os.path.abspath(options.old_config), layout.suffix),
    )


def derive_base_name(
    config: str,
    options: EffectiveOptions,
    layout: HostLayout,
    files: FileProvider,
) -> str:
    """Name shared by the sudoers fragment, unit and runtime directory."""
    source = config
    if not config or _is_non_regular(files, config):
        source = suffixed(str(options.old_config), layout.suffix)
    stem = Path(source).stem
    return stem.replace(".", "_")


def derive_script_wrapper(
    options: EffectiveOptions,
    key: ArtifactKey,
    old_path: str,
    layout: HostLayout,
) -> str:
    return first_nonempty(
        options.override(key),
        suffixed(old_path, layout.suffix),
    )


def derive_iproute(
    options: EffectiveOptions,
    old_iproute: str,
    neighbours: list[str],
    layout: HostLayout,
    files: FileProvider,
) -> str:
    """Explicit → suffixed old iproute → next to up/down/config → layout dir."""
    name = f"{IPROUTE_WRAPPER_NAME}{layout.suffix}"
    alongside = ""
    for neighbour in neighbours:
        if neighbour and not _is_non_regular(files, neighbour):
            alongside = os.path.join(os.path.dirname(os.path.abspath(neighbour)), name)
            break
    in_layout_dir = ""
    if Path(layout.iproute_dir).is_dir():
        in_layout_dir = os.path.join(layout.iproute_dir, name)
    return first_nonempty(
        options.override(ArtifactKey.IPROUTE),
        suffixed(old_iproute, layout.suffix),
        alongside,
        in_layout_dir,
    )


def derive_sudoers(options: EffectiveOptions, base_name: str, layout: HostLayout) -> str:
    fragment = ""
    if Path(layout.sudoers_dir).is_dir() and base_name:
        fragment = os.path.join(layout.sudoers_dir, f"openvpn-{base_name}")
    monolithic = layout.sudoers_file if Path(layout.sudoers_file).is_file() else ""
    return first_nonempty(options.override(ArtifactKey.SUDOERS), fragment, monolithic)


def derive_netdev(options: EffectiveOptions, device: str, layout: HostLayout) -> str:
    default = ""
    if device and Path(layout.netdev_dir).is_dir():
        default = os.path.join(layout.netdev_dir, f"{device}.netdev")
    return first_nonempty(options.override(ArtifactKey.NETDEV), default)


def derive_unit(options: EffectiveOptions, base_name: str, layout: HostLayout) -> str:
    default = os.path.join(layout.unit_dir, f"openvpn-{base_name}.service") if base_name else ""
    return first_nonempty(options.override(ArtifactKey.UNIT), default)


def resolve_ip_command(old_iproute: str, layout: HostLayout) -> str:
    """The privileged ``ip`` binary the iproute wrapper re-invokes."""
    return first_nonempty(
        old_iproute,
        shutil.which(layout.ip_command),
        layout.ip_fallback,
    )


# ── Engine ──────────────────────────────────────────────────────────


def _eligible(ids: dict, unit_template: str) -> frozenset[ArtifactKey]:
    eligible = {ArtifactKey.USER, ArtifactKey.GROUP}
    if ids["device_kind"] and ids["device"]:
        eligible.add(ArtifactKey.DEV)
    if ids["sudoers"] and ids["ip_command"]:
        eligible.add(ArtifactKey.SUDOERS)
    if ids["iproute"] and ids["ip_command"]:
        eligible.add(ArtifactKey.IPROUTE)
    if ids["up"] and ids["old_up"]:
        eligible.add(ArtifactKey.UP)
    if ids["down"] and ids["old_down"]:
        eligible.add(ArtifactKey.DOWN)
    if ids["netdev"] and ids["device_kind"] and ids["device"]:
        eligible.add(ArtifactKey.NETDEV)
    if ids["config"]:
        eligible.add(ArtifactKey.CONFIG)
    if ids["unit"] and unit_template:
        eligible.add(ArtifactKey.UNIT)
    return frozenset(eligible)


def derive_identifiers(
    options: EffectiveOptions,
    lines: list[str],
    host: HostProviders,
    layout: HostLayout,
) -> DerivedIdentifiers:
    """Resolve every derived value once, in dependency order.

    Raises:
        AllocationError: If a device name has to be probed and none is free.
    """
    user = derive_user(options, lines, layout)
    group = derive_group(options, lines, user, host.accounts)
    kind = derive_device_kind(options, lines)
    device = derive_device(options, lines, kind, host.devices, layout)
    config = derive_config(options, layout)
    base_name = derive_base_name(config, options, layout, host.files)

    base_dir = config_dir(options)
    old_up = anchored_command(get_old_config_command(lines, "up"), base_dir)
    old_down = anchored_command(
        get_old_config_command(lines, "down") or get_down_root_command(lines), base_dir
    )
    up = derive_script_wrapper(options, ArtifactKey.UP, old_up[0] if old_up else "", layout)
    down = derive_script_wrapper(options, ArtifactKey.DOWN, old_down[0] if old_down else "", layout)

    old_iproute = resolve_path(get_old_config_value(lines, "iproute"), base_dir)
    iproute = derive_iproute(options, old_iproute, [up, down, config], layout, host.files)
    sudoers = derive_sudoers(options, base_name, layout)
    netdev = derive_netdev(options, device, layout)
    unit = derive_unit(options, base_name, layout)
    unit_template = layout.find_unit_template()

    values = {
        "user": user,
        "group": group,
        "device_kind": kind,
        "device": device,
        "config": config,
        "base_name": base_name,
        "up": up,
        "down": down,
        "iproute": iproute,
        "sudoers": sudoers,
        "netdev": netdev,
        "unit": unit,
        "unit_template": unit_template,
        "ip_command": resolve_ip_command(old_iproute, layout),
        "old_iproute": old_iproute,
        "old_up": old_up,
        "old_down": old_down,
    }
    ids = DerivedIdentifiers(**values, eligible=_eligible(values, unit_template))

    for key, value in ids.model_dump(exclude={"eligible", "old_up", "old_down"}).items():
        logger.info("%-14s %s", key, value or "-")
    return ids
