"""Tests for vboxvm.inventory module."""

from __future__ import annotations

import pytest

from vboxvm.exceptions import CommandFailure
from vboxvm.inventory import list_vms, parse_vm_list, vm_exists

from conftest import RecordingExecutor

LIST_OUTPUT = (
    '"osv" {2b3c0d0e-1111-2222-3333-444455556666}\n'
    '"build box" {9a8b7c6d-1111-2222-3333-444455556666}\n'
)


class TestParseVmList:
    def test_skips_lines_without_quoted_name(self):
        assert parse_vm_list('"vm1" {uuid}\ngarbage line\n') == {"vm1"}

    def test_names_with_spaces(self):
        assert parse_vm_list(LIST_OUTPUT) == {"osv", "build box"}

    def test_empty_output(self):
        assert parse_vm_list("") == set()


class TestListVms:
    def test_invokes_list_vms(self):
        executor = RecordingExecutor(outputs={("list", "vms"): LIST_OUTPUT})
        assert list_vms(executor) == {"osv", "build box"}
        assert executor.calls == [["list", "vms"]]

    def test_failure_propagates(self):
        executor = RecordingExecutor(fail_when=lambda argv: True)
        with pytest.raises(CommandFailure):
            list_vms(executor)


class TestVmExists:
    def test_present(self):
        executor = RecordingExecutor(outputs={("list", "vms"): LIST_OUTPUT})
        assert vm_exists(executor, "osv") is True

    def test_absent(self):
        executor = RecordingExecutor(outputs={("list", "vms"): LIST_OUTPUT})
        assert vm_exists(executor, "other") is False
