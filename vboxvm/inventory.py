"""Registered VM enumeration via `VBoxManage list vms`."""

from __future__ import annotations

from typing import Set

from vboxvm.constants import VM_LIST_LINE_RE
from vboxvm.executor import CommandExecutor


def parse_vm_list(output: str) -> Set[str]:
    """Collect the quoted VM name of each line; lines without one are skipped."""
    names: Set[str] = set()
    for line in output.splitlines():
        match = VM_LIST_LINE_RE.search(line)
        if match:
            names.add(match.group(1))
    return names


def list_vms(executor: CommandExecutor) -> Set[str]:
    return parse_vm_list(executor.run("list", "vms"))


def vm_exists(executor: CommandExecutor, name: str) -> bool:
    return name in list_vms(executor)
