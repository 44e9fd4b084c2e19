"""
Tests for the line-rewrite rule engine and the config/unit rule sets.
"""

from openvpn_unroot.core.config.rewrite import (
    HEADER_MARK,
    LineRule,
    SourceLine,
    apply_rules,
    config_rules,
    config_trailer,
    drop_directives,
    unit_rules,
)
from openvpn_unroot.core.models.identifiers import DerivedIdentifiers


def _ids(**overrides) -> DerivedIdentifiers:
    values = dict(
        user="openvpn",
        group="openvpn",
        device_kind="tun",
        device="tun0-unrooted",
        config="/etc/openvpn/client/work-unrooted.conf",
        base_name="work-unrooted",
        up="/etc/openvpn/up-unrooted.sh",
        down="/etc/openvpn/down-unrooted.sh",
        iproute="/etc/openvpn/iproute-unrooted",
    )
    values.update(overrides)
    return DerivedIdentifiers(**values)


# ── Engine ───────────────────────────────────────────────────────────


class TestSourceLine:
    def test_trailing_comment_split(self):
        line = SourceLine.parse("up /bin/up.sh # run on connect")
        assert line.code == "up /bin/up.sh"
        assert line.comment == "# run on connect"
        assert line.directive == "up"

    def test_comment_line_has_no_directive(self):
        assert SourceLine.parse("  ; dev tun").directive == ""

    def test_hash_inside_quotes_is_not_a_comment(self):
        line = SourceLine.parse('up "/bin/up.sh #1"')
        assert line.comment == ""

    def test_with_code_keeps_comment(self):
        line = SourceLine.parse("down /x ; old")
        assert line.with_code("down /y") == "down /y ; old"


class TestApplyRules:
    def test_first_matching_rule_wins(self):
        rules = [
            LineRule("a", lambda l: l.directive == "x", lambda l: ["first"]),
            LineRule("b", lambda l: l.directive == "x", lambda l: ["second"]),
        ]
        assert apply_rules("x 1\ny 2", rules) == "first\ny 2\n"

    def test_drop_and_trailer(self):
        out = apply_rules("keep\ndrop me\n", [drop_directives("drop")], trailer=["end"])
        assert out == "keep\nend\n"


# ── OpenVPN config ───────────────────────────────────────────────────


class TestConfigRules:
    OLD = "\n".join([
        "client",
        "dev tun0",
        "dev-type tun",
        "user nobody",
        "group nogroup",
        "persist-tun",
        "iproute /sbin/ip",
        "up /etc/openvpn/up.sh  # dns",
        "down /etc/openvpn/down.sh",
        "remote vpn.example.com 1194",
    ])

    def _rewrite(self, ids: DerivedIdentifiers) -> str:
        return apply_rules(self.OLD, config_rules(ids), trailer=config_trailer(ids))

    def test_privileged_directives_dropped(self):
        out = self._rewrite(_ids()).splitlines()
        for gone in ("user nobody", "group nogroup", "persist-tun", "iproute /sbin/ip", "dev tun0"):
            assert gone not in out

    def test_scripts_retargeted_keeping_comments(self):
        out = self._rewrite(_ids()).splitlines()
        assert "up /etc/openvpn/up-unrooted.sh # dns" in out
        assert "down /etc/openvpn/down-unrooted.sh" in out

    def test_trailer_appended(self):
        out = self._rewrite(_ids()).splitlines()
        assert out[-4:] == [
            HEADER_MARK,
            "dev-type tun",
            "dev tun0-unrooted",
            "iproute /etc/openvpn/iproute-unrooted",
        ]

    def test_other_lines_untouched(self):
        out = self._rewrite(_ids()).splitlines()
        assert out[0] == "client"
        assert "remote vpn.example.com 1194" in out

    def test_down_root_plugin_becomes_down(self):
        old = 'plugin /usr/lib/openvpn/openvpn-plugin-down-root.so "/etc/openvpn/down.sh"'
        out = apply_rules(old, config_rules(_ids()))
        assert out == "down /etc/openvpn/down-unrooted.sh\n"


# ── systemd unit ─────────────────────────────────────────────────────


class TestUnitRules:
    TEMPLATE = "\n".join([
        "[Unit]",
        "Description=OpenVPN tunnel for %I",
        "[Service]",
        "User=root",
        "RuntimeDirectory=openvpn-client",
        "ExecStart=/usr/sbin/openvpn --status %t/openvpn-client/status-%i.log --config %i.conf",
    ])

    def test_owner_and_runtime_directory_injected(self):
        out = apply_rules(self.TEMPLATE, unit_rules(_ids())).splitlines()
        start = out.index("[Service]")
        assert out[start + 1:start + 4] == [
            "User=openvpn",
            "Group=openvpn",
            "RuntimeDirectory=work-unrooted",
        ]
        assert "User=root" not in out
        assert "RuntimeDirectory=openvpn-client" not in out

    def test_exec_line_rewritten(self):
        out = apply_rules(self.TEMPLATE, unit_rules(_ids())).splitlines()
        exec_line = next(l for l in out if l.startswith("ExecStart="))
        assert "--config /etc/openvpn/client/work-unrooted.conf" in exec_line
        assert "%t/work-unrooted/status-work-unrooted.log" in exec_line
        assert "%i" not in exec_line

    def test_instance_specifier_replaced(self):
        out = apply_rules(self.TEMPLATE, unit_rules(_ids())).splitlines()
        assert "Description=OpenVPN tunnel for work-unrooted" in out

    def test_pid_file_follows_writepid(self):
        legacy = "\n".join([
            "[Service]",
            "Type=forking",
            "PIDFile=/run/openvpn/%i.pid",
            "ExecStart=/usr/sbin/openvpn --daemon --writepid /run/openvpn/%i.pid --config /etc/openvpn/%i.conf",
        ])
        out = apply_rules(legacy, unit_rules(_ids())).splitlines()
        pid_line = next(l for l in out if l.startswith("PIDFile="))
        exec_line = next(l for l in out if l.startswith("ExecStart="))
        assert pid_line == "PIDFile=%t/work-unrooted/work-unrooted.pid"
        assert "--writepid %t/work-unrooted/work-unrooted.pid" in exec_line
