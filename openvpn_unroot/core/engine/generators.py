"""
Generator registry — one idempotent unit per artifact.

``GENERATORS`` is a closed, ordered list of descriptors. Each carries
its artifact key (also the suppression key), the artifact kind, the keys
it needs when requested without automagic, and the function that does
the work. The executor iterates the list explicitly; nothing is looked
up by name.

Every generator consults existence first and returns an Outcome:
``created`` (artifact for the transaction log), ``satisfied`` (nothing
to do, nothing recorded) or ``failed``. Provider errors are captured,
never raised.
"""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass
from typing import Callable

from openvpn_unroot.adapters.base import ProviderError
from openvpn_unroot.core.config.rewrite import (
    apply_rules,
    config_rules,
    config_trailer,
    unit_rules,
)
from openvpn_unroot.core.engine.context import RunContext
from openvpn_unroot.core.models.artifact import Artifact, ArtifactKey, ArtifactKind
from openvpn_unroot.core.models.identifiers import DerivedIdentifiers
from openvpn_unroot.core.models.outcome import Outcome

logger = logging.getLogger(__name__)

GENERATED_BY = "# Generated by openvpn-unroot"

WRAPPER_MODE = 0o750
CONFIG_MODE = 0o640
SUDOERS_MODE = 0o440
PUBLIC_MODE = 0o644


@dataclass(frozen=True)
class GeneratorSpec:
    """Descriptor of one generator."""

    key: ArtifactKey
    kind: ArtifactKind
    prerequisites: tuple[ArtifactKey, ...]
    run: Callable[[RunContext], Outcome]
    description: str = ""


# ── Content builders (pure) ─────────────────────────────────────────


def sudoers_line(ids: DerivedIdentifiers) -> str:
    """The single policy line granting the new account what it needs."""
    clauses = [f"NOPASSWD: {ids.ip_command}"]
    up = ids.old_up_path
    down = ids.old_down_path
    if up and up != ids.ip_command:
        clauses.append(f"NOPASSWD:SETENV: {up}")
    if down and down not in (up, ids.ip_command) and ids.down != ids.up:
        clauses.append(f"NOPASSWD:SETENV: {down}")
    return f"{ids.user} ALL=(ALL) " + ", ".join(clauses)


def wrapper_script(command: list[str], setenv: bool = False) -> str:
    """Shell script re-invoking ``command`` under sudo with all arguments."""
    flags = "-n -E" if setenv else "-n"
    return f'#!/bin/sh\nexec sudo {flags} {shlex.join(command)} "$@"\n'


def netdev_descriptor(ids: DerivedIdentifiers) -> str:
    """systemd-networkd .netdev for the persistent device."""
    section = ids.device_kind.capitalize()
    return (
        f"{GENERATED_BY}\n"
        "[NetDev]\n"
        f"Name={ids.device}\n"
        f"Kind={ids.device_kind}\n"
        "\n"
        f"[{section}]\n"
        f"User={ids.user}\n"
        f"Group={ids.group}\n"
    )


def rewritten_config(
    ids: DerivedIdentifiers,
    old_lines: list[str],
    available: frozenset[ArtifactKey] | None = None,
) -> str:
    return apply_rules(
        "\n".join(old_lines),
        config_rules(ids, available),
        trailer=config_trailer(ids, available),
    )


def rewritten_unit(ids: DerivedIdentifiers, template: str) -> str:
    return apply_rules(template, unit_rules(ids))


# ── Shared file step ────────────────────────────────────────────────


def write_file(
    ctx: RunContext,
    key: ArtifactKey,
    path: str,
    content: str,
    mode: int,
    owner: str | None = None,
    group: str | None = None,
) -> Outcome:
    """Idempotent scoped write of one file artifact."""
    files = ctx.host.files
    if files.state(path) == "regular" and files.read_text(path) == content:
        return Outcome.satisfied(key, path, "up to date")

    result = files.write(path, content, mode=mode, owner=owner, group=group, backup=ctx.backup)
    artifact = None
    if result.created:
        artifact = Artifact(kind=ArtifactKind.FILE, key=key, identity=path, backup=result.backup)
    message = f"backup {result.backup}" if result.backup else ""
    return Outcome.create(key, path, artifact, message=message, pretend=ctx.pretend)


# ── Generators ──────────────────────────────────────────────────────


def generate_group(ctx: RunContext) -> Outcome:
    group = ctx.ids.group
    accounts = ctx.host.accounts
    if accounts.group_exists(group):
        return Outcome.satisfied(ArtifactKey.GROUP, group, "group exists")
    accounts.create_group(group)
    artifact = Artifact(kind=ArtifactKind.GROUP, key=ArtifactKey.GROUP, identity=group)
    return Outcome.create(ArtifactKey.GROUP, group, artifact, pretend=ctx.pretend)


def generate_account(ctx: RunContext) -> Outcome:
    user, group = ctx.ids.user, ctx.ids.group
    accounts = ctx.host.accounts
    if accounts.user_exists(user):
        if accounts.user_in_group(user, group):
            return Outcome.satisfied(ArtifactKey.USER, user, "account exists")
        # Membership of a pre-existing account is not undone on rollback
        accounts.add_to_group(user, group)
        ctx.log.touch(f"added {user} to group {group}")
        return Outcome.satisfied(
            ArtifactKey.USER, user, f"added to group {group}", metadata={"touched": True}
        )
    accounts.create_user(user, group)
    artifact = Artifact(kind=ArtifactKind.ACCOUNT, key=ArtifactKey.USER, identity=user)
    return Outcome.create(ArtifactKey.USER, user, artifact, pretend=ctx.pretend)


def _is_monolithic(ctx: RunContext, path: str) -> bool:
    return os.path.realpath(path) == os.path.realpath(ctx.layout.sudoers_file)


def generate_sudoers(ctx: RunContext) -> Outcome:
    path = ctx.ids.sudoers
    line = sudoers_line(ctx.ids)
    files, policy = ctx.host.files, ctx.host.policy

    if _is_monolithic(ctx, path):
        existing = files.read_text(path) or ""
        if line in existing.splitlines():
            return Outcome.satisfied(ArtifactKey.SUDOERS, path, "entry present")
        separator = "" if not existing or existing.endswith("\n") else "\n"
        policy.check(f"{existing}{separator}{line}\n")
        files.append(path, f"{separator}{line}\n")
        # Appended to the system-wide file: never owned, never removed
        return Outcome.create(
            ArtifactKey.SUDOERS, path, None, message="appended", pretend=ctx.pretend
        )

    content = f"{line}\n"
    if files.state(path) == "regular" and files.read_text(path) == content:
        return Outcome.satisfied(ArtifactKey.SUDOERS, path, "up to date")
    policy.check(content)
    return write_file(ctx, ArtifactKey.SUDOERS, path, content, SUDOERS_MODE)


def _wrapper(ctx: RunContext, key: ArtifactKey, path: str, command: list[str], setenv: bool) -> Outcome:
    return write_file(
        ctx,
        key,
        path,
        wrapper_script(command, setenv=setenv),
        WRAPPER_MODE,
        owner=ctx.ids.user,
        group=ctx.ids.group,
    )


def generate_iproute(ctx: RunContext) -> Outcome:
    return _wrapper(ctx, ArtifactKey.IPROUTE, ctx.ids.iproute, [ctx.ids.ip_command], setenv=False)


def generate_up(ctx: RunContext) -> Outcome:
    return _wrapper(ctx, ArtifactKey.UP, ctx.ids.up, ctx.ids.old_up, setenv=True)


def generate_down(ctx: RunContext) -> Outcome:
    return _wrapper(ctx, ArtifactKey.DOWN, ctx.ids.down, ctx.ids.old_down, setenv=True)


def generate_device(ctx: RunContext) -> Outcome:
    ids = ctx.ids
    devices = ctx.host.devices
    if devices.exists(ids.device):
        return Outcome.satisfied(ArtifactKey.DEV, ids.device, "device exists")
    devices.create(ids.device, ids.device_kind, ids.user, ids.group)
    artifact = Artifact(
        kind=ArtifactKind.DEVICE,
        key=ArtifactKey.DEV,
        identity=ids.device,
        device_kind=ids.device_kind,
    )
    return Outcome.create(ArtifactKey.DEV, ids.device, artifact, pretend=ctx.pretend)


def generate_netdev(ctx: RunContext) -> Outcome:
    return write_file(ctx, ArtifactKey.NETDEV, ctx.ids.netdev, netdev_descriptor(ctx.ids), PUBLIC_MODE)


_CONFIG_WRAPPERS = (ArtifactKey.IPROUTE, ArtifactKey.UP, ArtifactKey.DOWN)


def available_wrappers(ctx: RunContext) -> frozenset[ArtifactKey] | None:
    """Wrappers the rewritten config may point at: planned or already present."""
    if ctx.planned is None:
        return None
    available = set()
    for key in _CONFIG_WRAPPERS:
        path = ctx.ids.path_for(key)
        if key in ctx.planned or (path and ctx.host.files.state(path) == "regular"):
            available.add(key)
        elif path:
            logger.warning(
                "%s wrapper %s is not generated and does not exist; keeping the original directive",
                key.value,
                path,
            )
    return frozenset(available)


def generate_config(ctx: RunContext) -> Outcome:
    content = rewritten_config(ctx.ids, ctx.old_lines, available_wrappers(ctx))
    logger.debug("Rewritten config:\n%s", content)
    return write_file(
        ctx,
        ArtifactKey.CONFIG,
        ctx.ids.config,
        content,
        CONFIG_MODE,
        owner=ctx.ids.user,
        group=ctx.ids.group,
    )


def generate_unit(ctx: RunContext) -> Outcome:
    template = ctx.host.files.read_text(ctx.ids.unit_template)
    if template is None:
        return Outcome.failure(
            ArtifactKey.UNIT, ctx.ids.unit, f"Cannot read unit template {ctx.ids.unit_template}"
        )
    content = rewritten_unit(ctx.ids, template)
    logger.debug("Rewritten unit:\n%s", content)
    return write_file(ctx, ArtifactKey.UNIT, ctx.ids.unit, content, PUBLIC_MODE)


_USER_GROUP = (ArtifactKey.USER, ArtifactKey.GROUP)

GENERATORS: tuple[GeneratorSpec, ...] = (
    GeneratorSpec(ArtifactKey.GROUP, ArtifactKind.GROUP, (), generate_group, "system group"),
    GeneratorSpec(ArtifactKey.USER, ArtifactKind.ACCOUNT, (), generate_account, "system account"),
    GeneratorSpec(
        ArtifactKey.SUDOERS, ArtifactKind.FILE, (ArtifactKey.USER,), generate_sudoers, "sudoers entry"
    ),
    GeneratorSpec(ArtifactKey.IPROUTE, ArtifactKind.FILE, _USER_GROUP, generate_iproute, "iproute wrapper"),
    GeneratorSpec(ArtifactKey.UP, ArtifactKind.FILE, _USER_GROUP, generate_up, "up wrapper"),
    GeneratorSpec(ArtifactKey.DOWN, ArtifactKind.FILE, _USER_GROUP, generate_down, "down wrapper"),
    GeneratorSpec(ArtifactKey.DEV, ArtifactKind.DEVICE, _USER_GROUP, generate_device, "tun/tap device"),
    GeneratorSpec(
        ArtifactKey.NETDEV,
        ArtifactKind.FILE,
        (ArtifactKey.DEV, ArtifactKey.USER, ArtifactKey.GROUP),
        generate_netdev,
        "network device descriptor",
    ),
    GeneratorSpec(
        ArtifactKey.CONFIG,
        ArtifactKind.FILE,
        (ArtifactKey.USER, ArtifactKey.GROUP, ArtifactKey.DEV, ArtifactKey.IPROUTE),
        generate_config,
        "rewritten config",
    ),
    GeneratorSpec(ArtifactKey.UNIT, ArtifactKind.FILE, _USER_GROUP, generate_unit, "service unit"),
)


def generator_for(key: ArtifactKey) -> GeneratorSpec:
    for spec in GENERATORS:
        if spec.key is key:
            return spec
    raise KeyError(key)


def run_generator(spec: GeneratorSpec, ctx: RunContext) -> Outcome:
    """Run one generator, capturing provider failures in the Outcome."""
    target = ctx.ids.path_for(spec.key)
    try:
        return spec.run(ctx)
    except ProviderError as e:
        logger.error("%s failed: %s", spec.description or spec.key.value, e)
        return Outcome.failure(spec.key, target, str(e), exit_code=e.returncode)
    except OSError as e:
        logger.error("%s failed: %s", spec.description or spec.key.value, e)
        return Outcome.failure(spec.key, target, str(e))
