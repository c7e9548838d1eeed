"""NAT port-forward rule generation for vbox-vm-runner."""

from __future__ import annotations

from typing import Iterable, List

from vboxvm.models import NatRule


def render_nat_rule(rule: NatRule, index: int) -> str:
    """Render a `--natpf1` value: name,proto,hostip,hostport,guestip,guestport.

    Ports are passed through as given; validating them is up to the caller.
    """
    name = f"guest{rule.guest_port}_{index}"
    return f"{name},tcp,,{rule.host_port},,{rule.guest_port}"


def nat_rule_args(rules: Iterable[NatRule]) -> List[List[str]]:
    """One `--natpf1 <rule>` argument pair per rule, in the given order."""
    return [["--natpf1", render_nat_rule(rule, index)] for index, rule in enumerate(rules)]
