"""Shared test fixtures: a recording VBoxManage stand-in and console fakes."""

from __future__ import annotations

import socket
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from vboxvm.console import ConsoleConnection
from vboxvm.exceptions import CommandFailure
from vboxvm.models import NatRule, VMConfig


class RecordingExecutor:
    """Records every argument vector instead of running anything."""

    def __init__(
        self,
        program: str = "VBoxManage",
        outputs: Optional[Dict[Tuple[str, ...], str]] = None,
        fail_when: Optional[Callable[[List[str]], bool]] = None,
    ) -> None:
        self.program = program
        self.calls: List[List[str]] = []
        self.started: List[List[str]] = []
        self.outputs = outputs or {}
        self.fail_when = fail_when
        self.process = MagicMock(spec=subprocess.Popen)

    def run(self, *args) -> str:
        argv = [str(arg) for arg in args]
        self.calls.append(argv)
        if self.fail_when is not None and self.fail_when(argv):
            raise CommandFailure([self.program, *argv], 1, "simulated failure")
        for prefix, output in self.outputs.items():
            if tuple(argv[: len(prefix)]) == prefix:
                return output
        return ""

    def start(self, *args) -> subprocess.Popen:
        self.started.append([str(arg) for arg in args])
        return self.process

    def subcommands(self) -> List[str]:
        return [call[0] for call in self.calls]


class FakePaths:
    """Console path strategy whose connect fails a set number of times first."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.attempts = 0
        self.peers: List[socket.socket] = []

    def console_path(self, cfg: VMConfig) -> str:
        return str(cfg.vm_dir / f"{cfg.name}.sock")

    def connect(self, path: str) -> ConsoleConnection:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise ConnectionRefusedError(f"nothing listening on {path}")
        ours, peer = socket.socketpair()
        self.peers.append(peer)
        return ConsoleConnection(sock=ours)

    def close(self) -> None:
        for peer in self.peers:
            peer.close()


@pytest.fixture
def default_vm_config(tmp_path) -> VMConfig:
    """Return a minimal VMConfig with two port forwards."""
    return VMConfig(
        name="test-vm",
        directory=tmp_path / "instances",
        source_image=tmp_path / "osv.vdi",
        memory_mb=512,
        cpus=2,
        nat_rules=(NatRule("22", "2222"), NatRule("8080", "9090")),
    )


@pytest.fixture
def recorder() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def fake_paths():
    paths = FakePaths()
    yield paths
    paths.close()


@pytest.fixture
def mock_env(monkeypatch):
    """Helper to set environment variables for tests."""

    def _set(**kwargs):
        for key, value in kwargs.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, str(value))

    return _set


# All environment variables that parse_env() reads; cleared for a clean slate.
_PARSE_ENV_VARS = [
    "VM_NAME",
    "VM_DIR",
    "VM_IMAGE",
    "MEMORY",
    "CPUS",
    "PORT_FWD",
    "NO_CONSOLE",
    "VBOXVM_CLEANUP_ON_FAILURE",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in _PARSE_ENV_VARS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def source_image(tmp_path) -> Path:
    image = tmp_path / "osv.vdi"
    image.write_bytes(b"\x00" * 16)
    return image
