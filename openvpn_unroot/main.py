"""
openvpn-unroot — CLI entrypoint.

Usage:
    openvpn-unroot --help
    openvpn-unroot --automagic --pretend /etc/openvpn/client/work.conf
    openvpn-unroot --user vpn --group vpn --dev tun0 --with iproute,config work.conf
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from openvpn_unroot import __version__
from openvpn_unroot.core.models.artifact import ArtifactKey
from openvpn_unroot.core.observability.logging_config import resolve_level, setup_logging

# (key, metavar, help) for every --<key> override
_OVERRIDES = (
    (ArtifactKey.USER, "NAME", "Account the daemon runs as."),
    (ArtifactKey.GROUP, "NAME", "Group the daemon runs as."),
    (ArtifactKey.DEV, "NAME", "Persistent tun/tap device name."),
    (ArtifactKey.CONFIG, "PATH", "Where to write the rewritten config."),
    (ArtifactKey.IPROUTE, "PATH", "Where to write the iproute wrapper."),
    (ArtifactKey.UP, "PATH", "Where to write the up-script wrapper."),
    (ArtifactKey.DOWN, "PATH", "Where to write the down-script wrapper."),
    (ArtifactKey.SUDOERS, "PATH", "Sudoers fragment (or the main sudoers file to append to)."),
    (ArtifactKey.NETDEV, "PATH", "Where to write the systemd .netdev descriptor."),
    (ArtifactKey.UNIT, "PATH", "Where to write the systemd service unit."),
)


def _artifact_options(func):
    """Attach one override and one --no-<key> flag per artifact."""
    for key, metavar, help_text in reversed(_OVERRIDES):
        func = click.option(
            f"--no-{key.value}",
            f"no_{key.value}",
            is_flag=True,
            help=f"Never generate the {key.value} artifact.",
        )(func)
        func = click.option(
            f"--{key.value}",
            f"override_{key.value}",
            metavar=metavar,
            default=None,
            help=help_text,
        )(func)
    return func


def _parse_keys(values: tuple[str, ...], param_hint: str) -> set[ArtifactKey]:
    """Flatten repeated, comma-separated artifact names into keys."""
    keys: set[ArtifactKey] = set()
    for value in values:
        for name in value.split(","):
            if not name.strip():
                continue
            try:
                keys.add(ArtifactKey.parse(name))
            except ValueError:
                choices = ", ".join(k.value for k in ArtifactKey)
                raise click.BadParameter(
                    f"unknown artifact {name.strip()!r} (choose from {choices})",
                    param_hint=param_hint,
                ) from None
    return keys


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="openvpn-unroot")
@click.argument("old_config", type=click.Path(dir_okay=False, path_type=Path))
@_artifact_options
@click.option(
    "--with",
    "with_keys",
    multiple=True,
    metavar="KEY[,KEY...]",
    help="Generate these artifacts at their default locations.",
)
@click.option(
    "--skip",
    "skip_keys",
    multiple=True,
    metavar="KEY[,KEY...]",
    help="Never generate these artifacts.",
)
@click.option("--automagic", "-a", is_flag=True, help="Generate everything applicable to this host.")
@click.option("--pretend", "-p", is_flag=True, help="Show what would be done, change nothing.")
@click.option("--no-backup", is_flag=True, help="Overwrite existing files without a numbered backup.")
@click.option(
    "--layout",
    "layout_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML file overriding well-known host paths.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def cli(
    old_config: Path,
    with_keys: tuple[str, ...],
    skip_keys: tuple[str, ...],
    automagic: bool,
    pretend: bool,
    no_backup: bool,
    layout_path: Path | None,
    verbose: bool,
    debug: bool,
    as_json: bool,
    **artifact_flags: str | bool | None,
) -> None:
    """Turn a root-run OpenVPN client config into an unprivileged setup.

    OLD_CONFIG is the existing configuration; it is never modified.
    """
    setup_logging(level=resolve_level(debug=debug, verbose=verbose))

    from openvpn_unroot.core.config.layout import load_layout
    from openvpn_unroot.core.errors import ConfigError
    from openvpn_unroot.core.models.options import EffectiveOptions
    from openvpn_unroot.core.use_cases.unroot import run_unroot

    overrides = {}
    suppressed = _parse_keys(skip_keys, "--skip")
    for key in ArtifactKey:
        value = artifact_flags.get(f"override_{key.value}")
        if value:
            overrides[key] = value
        if artifact_flags.get(f"no_{key.value}"):
            suppressed.add(key)

    options = EffectiveOptions(
        old_config=old_config,
        overrides=overrides,
        enabled=frozenset(_parse_keys(with_keys, "--with")),
        suppressed=frozenset(suppressed),
        automagic=automagic,
        pretend=pretend,
        verbose=verbose,
        no_backup=no_backup,
    )

    try:
        layout = load_layout(layout_path)
    except ConfigError as e:
        if as_json:
            click.echo(json.dumps({"ok": False, "error": str(e), "error_type": "ConfigError",
                                   "exit_code": e.exit_code}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(e.exit_code)

    result = run_unroot(options, layout=layout)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    _print_result(result, verbose=verbose)
    sys.exit(result.exit_code)


def _print_result(result, verbose: bool = False) -> None:
    """Human-readable summary of one run."""
    title = "🔍 Pretend run" if result.pretend else "🔧 Unroot"

    if result.ids is not None and verbose:
        click.secho(f"\n{title}: derived values", fg="cyan", bold=True)
        ids = result.ids
        for key in ArtifactKey:
            value = ids.path_for(key)
            if value:
                click.echo(f"   {key.value:<8} {value}")

    if result.report is not None:
        click.secho(f"\n{title}", fg="cyan", bold=True)
        for outcome in result.report.outcomes:
            marker, color = {
                "created": ("✓", "green"),
                "satisfied": ("=", "white"),
                "failed": ("✗", "red"),
            }[outcome.status]
            verb = "would create" if outcome.pretend and outcome.created else outcome.status
            click.secho(f"   {marker} {outcome.key.value:<8} {verb:<13} {outcome.target}", fg=color)
            if outcome.error:
                click.echo(f"     {outcome.error}")
        for note in result.report.touched:
            click.echo(f"   ~ {note}")

        rb = result.report.rollback
        if rb is not None:
            click.echo()
            click.secho(f"↩️  Rolled back {len(rb.undone)} artifact(s)", fg="yellow", bold=True)
            for item in rb.failed:
                click.secho(f"   ✗ could not undo {item}", fg="red")

    if result.plan is not None and verbose and result.plan.skipped:
        click.echo()
        for key, reason in result.plan.skipped.items():
            click.echo(f"   - {key:<8} skipped ({reason})")

    if result.advisories:
        click.echo()
        click.secho("⚠️  Accessibility:", fg="yellow")
        for advisory in result.advisories:
            click.echo(f"   • {advisory}")

    if result.error:
        click.echo()
        click.secho(f"❌ {result.error}", fg="red", err=True)
        return

    click.echo()
    if result.report is not None and result.report.created:
        done = "would be created" if result.pretend else "created"
        click.secho(f"✅ {result.report.created} artifact(s) {done}", fg="green", bold=True)
    else:
        click.secho("✅ Nothing to change", fg="green", bold=True)


if __name__ == "__main__":
    cli()
