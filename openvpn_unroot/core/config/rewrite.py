"""
Line-rewrite rule engine — auditable config and unit transformations.

A rewrite is an ordered list of rules applied to the parsed source lines.
For every line the first rule whose predicate matches decides what
happens: the line is dropped, or replaced by zero or more output lines.
Lines no rule matches are copied verbatim, trailing comments included.

The two rule sets used by the generators are built here as well:

    config_rules(ids)  — OpenVPN client config → unrooted config
                         (wrappers outside ``available`` are left alone)
    unit_rules(ids)    — systemd template unit → dedicated unit
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from openvpn_unroot.core.config.openvpn import DOWN_ROOT_PLUGIN
from openvpn_unroot.core.models.artifact import ArtifactKey
from openvpn_unroot.core.models.identifiers import DerivedIdentifiers

HEADER_MARK = "# Added by openvpn-unroot"


@dataclass(frozen=True)
class SourceLine:
    """One line of a source file, split into code and trailing comment."""

    text: str
    code: str
    comment: str

    @classmethod
    def parse(cls, text: str) -> SourceLine:
        code, comment = _split_comment(text)
        return cls(text=text, code=code, comment=comment)

    @property
    def words(self) -> list[str]:
        return self.code.split()

    @property
    def directive(self) -> str:
        """First word of a non-comment line, or an empty string."""
        words = self.words
        return words[0] if words else ""

    def with_code(self, code: str) -> str:
        """Render ``code`` followed by this line's original comment."""
        if not self.comment:
            return code
        return f"{code} {self.comment}"


def _split_comment(text: str) -> tuple[str, str]:
    stripped = text.lstrip()
    if stripped.startswith(("#", ";")):
        return "", text
    quote = ""
    for i, ch in enumerate(text):
        if quote:
            if ch == quote:
                quote = ""
        elif ch in "\"'":
            quote = ch
        elif ch in "#;" and i > 0 and text[i - 1].isspace():
            return text[:i].rstrip(), text[i:]
    return text, ""


Transform = Callable[[SourceLine], list[str]]


@dataclass(frozen=True)
class LineRule:
    """Predicate plus transform; ``transform=None`` drops the line."""

    name: str
    applies: Callable[[SourceLine], bool]
    transform: Transform | None = None


def apply_rules(
    text: str,
    rules: list[LineRule],
    trailer: list[str] | None = None,
) -> str:
    """Apply ``rules`` to every line of ``text`` and append ``trailer``."""
    out: list[str] = []
    for raw in text.splitlines():
        line = SourceLine.parse(raw)
        for rule in rules:
            if rule.applies(line):
                if rule.transform is not None:
                    out.extend(rule.transform(line))
                break
        else:
            out.append(raw)
    if trailer:
        out.extend(trailer)
    return "\n".join(out) + "\n"


def drop_directives(*names: str) -> LineRule:
    wanted = frozenset(names)
    return LineRule(
        name=f"drop {', '.join(names)}",
        applies=lambda line: line.directive in wanted,
    )


# ── OpenVPN client config ───────────────────────────────────────────


def _retarget(directive: str, target: str) -> Transform:
    def transform(line: SourceLine) -> list[str]:
        indent = line.code[: len(line.code) - len(line.code.lstrip())]
        return [line.with_code(f"{indent}{directive} {target}")]

    return transform


def _is_down_root_plugin(line: SourceLine) -> bool:
    words = line.words
    return len(words) >= 2 and words[0] == "plugin" and words[1].endswith(DOWN_ROOT_PLUGIN)


def _wanted(key: ArtifactKey, available: frozenset[ArtifactKey] | None) -> bool:
    return available is None or key in available


def config_rules(
    ids: DerivedIdentifiers,
    available: frozenset[ArtifactKey] | None = None,
) -> list[LineRule]:
    """Rules turning the old client config into the unrooted one.

    ``available`` names the wrappers that exist once the run finishes
    (``None``: all of them). Directives pointing at any other wrapper are
    copied unchanged.
    """
    dropped = ["dev", "dev-type", "group", "user", "persist-tun"]
    if _wanted(ArtifactKey.IPROUTE, available):
        dropped.append("iproute")
    rules = [drop_directives(*dropped)]
    if ids.up and _wanted(ArtifactKey.UP, available):
        rules.append(LineRule("retarget up", lambda l: l.directive == "up", _retarget("up", ids.up)))
    if ids.down and _wanted(ArtifactKey.DOWN, available):
        rules.append(
            LineRule("retarget down", lambda l: l.directive == "down", _retarget("down", ids.down))
        )
        rules.append(LineRule("down-root plugin", _is_down_root_plugin, _retarget("down", ids.down)))
    return rules


def config_trailer(
    ids: DerivedIdentifiers,
    available: frozenset[ArtifactKey] | None = None,
) -> list[str]:
    """Directives appended to the rewritten config."""
    trailer = [HEADER_MARK]
    if ids.device_kind:
        trailer.append(f"dev-type {ids.device_kind}")
    if ids.device:
        trailer.append(f"dev {ids.device}")
    if ids.iproute and _wanted(ArtifactKey.IPROUTE, available):
        trailer.append(f"iproute {ids.iproute}")
    return trailer


# ── systemd unit ────────────────────────────────────────────────────

_UNIT_KEY = re.compile(r"^\s*([A-Za-z]+)\s*=")
_RUNTIME_DIR = re.compile(r"(%t|/var/run|/run)/[^/\s]+/")
_RUNTIME_FILE = re.compile(r"(%t|/var/run|/run)/([^/\s]+\.(?:pid|status|log|sock))")
_CONFIG_ARG = re.compile(r"--config\s+\S+")
_INSTANCE = re.compile(r"%[iI]")


def _unit_key(line: SourceLine) -> str:
    match = _UNIT_KEY.match(line.text)
    return match.group(1) if match else ""


def _has_runtime_path(line: SourceLine) -> bool:
    return bool(_RUNTIME_DIR.search(line.text) or _RUNTIME_FILE.search(line.text))


def _relocate_runtime(text: str, base_name: str) -> str:
    """Move shared runtime paths under the unit's own ``%t/<base>/``."""
    runtime = f"%t/{base_name}/"
    text = _RUNTIME_DIR.sub(lambda _m: runtime, text)
    text = _RUNTIME_FILE.sub(lambda m: runtime + m.group(2), text)
    return _INSTANCE.sub(lambda _m: base_name, text)


def _rewrite_exec(ids: DerivedIdentifiers) -> Transform:
    def transform(line: SourceLine) -> list[str]:
        text = line.text
        if ids.config:
            text = _CONFIG_ARG.sub(lambda _m: f"--config {ids.config}", text)
        return [_relocate_runtime(text, ids.base_name)]

    return transform


def unit_rules(ids: DerivedIdentifiers) -> list[LineRule]:
    """Rules turning a template service unit into the dedicated one."""

    def service_section(line: SourceLine) -> list[str]:
        return [
            line.text,
            f"User={ids.user}",
            f"Group={ids.group}",
            f"RuntimeDirectory={ids.base_name}",
        ]

    return [
        LineRule(
            "drop owner and runtime dir",
            lambda l: _unit_key(l) in ("User", "Group", "RuntimeDirectory"),
        ),
        LineRule("service section", lambda l: l.text.strip() == "[Service]", service_section),
        LineRule("exec lines", lambda l: _unit_key(l).startswith("Exec"), _rewrite_exec(ids)),
        # PIDFile= and friends must agree with --writepid/--status on ExecStart
        LineRule(
            "runtime paths",
            lambda l: bool(_unit_key(l)) and _has_runtime_path(l),
            lambda l: [_relocate_runtime(l.text, ids.base_name)],
        ),
        LineRule(
            "instance name",
            lambda l: bool(_INSTANCE.search(l.text)),
            lambda l: [_INSTANCE.sub(lambda _m: ids.base_name, l.text)],
        ),
    ]
