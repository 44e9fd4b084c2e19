"""
OpenVPN config reader — scrape the few directives the engine needs.

This is not a parser for the whole format. Directives are matched with a
line-anchored pattern: name, whitespace, first non-whitespace token.
Comment lines (``#`` or ``;``) never match, trailing comments are
ignored, and the first occurrence wins.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
from pathlib import Path

from openvpn_unroot.core.errors import ConfigError

logger = logging.getLogger(__name__)

DOWN_ROOT_PLUGIN = "openvpn-plugin-down-root.so"

# Directives whose argument is a file the daemon reads at startup
FILE_DIRECTIVES = (
    "ca",
    "cert",
    "key",
    "tls-auth",
    "tls-crypt",
    "tls-crypt-v2",
    "auth-user-pass",
    "secret",
    "pkcs12",
    "crl-verify",
    "dh",
    "askpass",
)


def read_config(path: Path) -> list[str]:
    """Read the old config as a list of lines (without newlines).

    Raises:
        ConfigError: If the file is missing or unreadable.
    """
    if not path.is_file():
        raise ConfigError(f"OpenVPN config not found: {path}")
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e


def _directive_pattern(name: str) -> re.Pattern[str]:
    return re.compile(rf"^\s*{re.escape(name)}\s+(\S+)")


def _unquote(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        return token[1:-1]
    return token


def get_old_config_value(lines: list[str], name: str) -> str:
    """First value of directive ``name``, or an empty string."""
    pattern = _directive_pattern(name)
    for line in lines:
        match = pattern.match(line)
        if match:
            return _unquote(match.group(1))
    return ""


def has_directive(lines: list[str], name: str) -> bool:
    """Whether ``name`` appears as a directive, with or without arguments."""
    pattern = re.compile(rf"^\s*{re.escape(name)}(\s|$)")
    return any(pattern.match(line) for line in lines)


def directive_with_prefix(lines: list[str], prefixes: tuple[str, ...]) -> str:
    """Name of the first directive starting with one of ``prefixes``."""
    for line in lines:
        words = line.split()
        if words and words[0].startswith(prefixes):
            return words[0]
    return ""


def _command_argument(rest: str) -> list[str]:
    """Split the single (possibly quoted) command argument into words."""
    try:
        args = shlex.split(rest, comments=True)
    except ValueError:
        args = rest.split()
    if not args:
        return []
    try:
        return shlex.split(args[0])
    except ValueError:
        return args[0].split()


def get_old_config_command(lines: list[str], name: str) -> list[str]:
    """Command words of the first ``up``/``down``-style directive."""
    pattern = re.compile(rf"^\s*{re.escape(name)}\s+(.*)$")
    for line in lines:
        match = pattern.match(line)
        if match:
            return _command_argument(match.group(1))
    return []


def get_down_root_command(lines: list[str]) -> list[str]:
    """Command passed to the legacy down-root plugin, if any.

    Matches ``plugin /path/openvpn-plugin-down-root.so "cmd args"``.
    """
    pattern = re.compile(r"^\s*plugin\s+(\S+)\s+(.*)$")
    for line in lines:
        match = pattern.match(line)
        if match and match.group(1).endswith(DOWN_ROOT_PLUGIN):
            return _command_argument(match.group(2))
    return []


def resolve_path(value: str, base_dir: Path) -> str:
    """``value`` as an absolute path, relative ones taken from ``base_dir``."""
    if not value:
        return ""
    path = Path(value)
    if not path.is_absolute():
        path = Path(os.path.abspath(base_dir)) / path
    return str(path)


def referenced_files(lines: list[str], base_dir: Path) -> list[Path]:
    """Files the daemon will read at startup, resolved against ``base_dir``.

    Inline blocks (``<ca>…</ca>``) and the ``stdin`` pseudo-file are skipped.
    """
    found: list[Path] = []
    for name in FILE_DIRECTIVES:
        value = get_old_config_value(lines, name)
        if not value or value == "stdin" or value.startswith("["):
            continue
        path = Path(resolve_path(value, base_dir))
        if path not in found:
            found.append(path)
    return found
