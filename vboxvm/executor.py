"""External command invocation for vbox-vm-runner."""

from __future__ import annotations

import subprocess
from typing import List

from vboxvm.constants import VBOXHEADLESS, VBOXMANAGE
from vboxvm.exceptions import CommandFailure, InvocationError
from vboxvm.utils import log


class CommandExecutor:
    """Runs one external program with varying argument lists.

    ``run`` blocks until the program exits and returns its stdout. ``start``
    spawns it and hands back the process without waiting, for programs whose
    lifetime must outlive the caller.
    """

    def __init__(self, program: str) -> None:
        self.program = program

    def _argv(self, args) -> List[str]:
        return [self.program, *(str(arg) for arg in args)]

    def run(self, *args) -> str:
        argv = self._argv(args)
        log("DEBUG", f"Running: {' '.join(argv)}")
        try:
            result = subprocess.run(argv, capture_output=True, text=True, errors="replace", check=False)
        except OSError as exc:
            raise InvocationError(argv, exc) from exc
        if result.returncode != 0:
            raise CommandFailure(argv, result.returncode, result.stderr or "")
        return result.stdout or ""

    def start(self, *args) -> subprocess.Popen:
        argv = self._argv(args)
        log("DEBUG", f"Starting: {' '.join(argv)}")
        try:
            return subprocess.Popen(argv)
        except OSError as exc:
            raise InvocationError(argv, exc) from exc


def vboxmanage() -> CommandExecutor:
    return CommandExecutor(VBOXMANAGE)


def vboxheadless() -> CommandExecutor:
    return CommandExecutor(VBOXHEADLESS)
