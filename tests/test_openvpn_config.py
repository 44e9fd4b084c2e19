"""
Tests for the OpenVPN config reader — directive scraping.
"""

from pathlib import Path

import pytest

from openvpn_unroot.core.config.openvpn import (
    directive_with_prefix,
    get_down_root_command,
    get_old_config_command,
    get_old_config_value,
    has_directive,
    read_config,
    referenced_files,
)
from openvpn_unroot.core.errors import ConfigError

LINES = [
    "# user commented-out",
    "; group also-commented",
    "client",
    "  user nobody  # drop privileges",
    "group nogroup",
    "user second",
    'dev "tun3"',
    "topology subnet",
    "up '/etc/openvpn/up.sh --flag value'",
    'plugin /usr/lib/openvpn/openvpn-plugin-down-root.so "/etc/openvpn/down.sh arg"',
]


class TestGetOldConfigValue:
    def test_first_occurrence_wins(self):
        assert get_old_config_value(LINES, "user") == "nobody"

    def test_comment_lines_never_match(self):
        assert get_old_config_value(["# user root"], "user") == ""

    def test_value_is_unquoted(self):
        assert get_old_config_value(LINES, "dev") == "tun3"

    def test_missing_directive(self):
        assert get_old_config_value(LINES, "iproute") == ""

    def test_prefix_of_other_directive_does_not_match(self):
        assert get_old_config_value(["dev-type tap"], "dev") == ""


class TestDirectives:
    def test_has_directive_without_argument(self):
        assert has_directive(["persist-tun"], "persist-tun")
        assert not has_directive(["persist-tun"], "persist")

    def test_directive_with_prefix(self):
        assert directive_with_prefix(["client", "tun-mtu 1500"], ("tun-", "tap-")) == "tun-mtu"
        assert directive_with_prefix(["client"], ("tun-",)) == ""


class TestCommands:
    def test_quoted_command_is_split(self):
        assert get_old_config_command(LINES, "up") == ["/etc/openvpn/up.sh", "--flag", "value"]

    def test_unquoted_command(self):
        assert get_old_config_command(["down /bin/down.sh"], "down") == ["/bin/down.sh"]

    def test_missing_command(self):
        assert get_old_config_command(LINES, "down") == []

    def test_down_root_plugin(self):
        assert get_down_root_command(LINES) == ["/etc/openvpn/down.sh", "arg"]

    def test_other_plugins_ignored(self):
        assert get_down_root_command(["plugin /lib/other.so arg"]) == []


class TestReferencedFiles:
    def test_relative_paths_resolve_against_config_dir(self, tmp_path: Path):
        lines = ["ca ca.crt", "cert /abs/client.crt", "auth-user-pass stdin", "key [inline]"]
        found = referenced_files(lines, tmp_path)
        assert found == [tmp_path / "ca.crt", Path("/abs/client.crt")]


class TestReadConfig:
    def test_reads_lines(self, tmp_path: Path):
        path = tmp_path / "c.conf"
        path.write_text("client\ndev tun\n")
        assert read_config(path) == ["client", "dev tun"]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            read_config(tmp_path / "missing.conf")
