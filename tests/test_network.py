"""Tests for vboxvm.network module."""

from __future__ import annotations

import pytest

from vboxvm.models import NatRule
from vboxvm.network import nat_rule_args, render_nat_rule


class TestRenderNatRule:
    @pytest.mark.parametrize("index", [0, 1, 7])
    def test_guest_and_host_positions(self, index):
        rendered = render_nat_rule(NatRule(guest_port="8080", host_port="9090"), index)
        name, proto, host_ip, host_port, guest_ip, guest_port = rendered.split(",")
        assert proto == "tcp"
        assert host_ip == ""
        assert host_port == "9090"
        assert guest_ip == ""
        assert guest_port == "8080"
        assert "8080" in name

    def test_is_pure(self):
        rule = NatRule(guest_port="22", host_port="2222")
        assert render_nat_rule(rule, 3) == render_nat_rule(rule, 3)
        assert rule == NatRule("22", "2222")

    def test_index_keeps_names_unique(self):
        rule = NatRule(guest_port="22", host_port="2222")
        assert render_nat_rule(rule, 0).split(",")[0] != render_nat_rule(rule, 1).split(",")[0]

    def test_malformed_ports_pass_through(self):
        rendered = render_nat_rule(NatRule(guest_port="ssh", host_port="-1"), 0)
        assert rendered.endswith(",tcp,,-1,,ssh")


class TestNatRuleArgs:
    def test_one_pair_per_rule_in_order(self):
        rules = [NatRule("22", "2222"), NatRule("80", "8080")]
        args = nat_rule_args(rules)
        assert args == [
            ["--natpf1", "guest22_0,tcp,,2222,,22"],
            ["--natpf1", "guest80_1,tcp,,8080,,80"],
        ]

    def test_no_rules(self):
        assert nat_rule_args([]) == []
