"""Custom exceptions for vbox-vm-runner."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union


class ManagerError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""


class InvocationError(ManagerError):
    """The management program could not be started at all."""

    def __init__(self, argv: Sequence[str], reason: OSError) -> None:
        self.argv = list(argv)
        self.reason = reason
        super().__init__(f"Failed to run {' '.join(self.argv)}: {reason}")


class CommandFailure(ManagerError):
    """The management program ran but exited with a nonzero status."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        message = f"{' '.join(self.argv)} exited with status {returncode}"
        detail = stderr.strip()
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ProvisioningError(ManagerError):
    """A provisioning step failed; later steps were not attempted."""

    def __init__(self, step: str, cause: ManagerError) -> None:
        self.step = step
        self.cause = cause
        super().__init__(f"Provisioning step '{step}' failed: {cause}")


class ConnectionTimeout(ManagerError):
    """The VM console socket stayed unreachable for the whole retry budget."""

    def __init__(self, path: Union[Path, str], attempts: int, last_error: Optional[OSError]) -> None:
        self.path = str(path)
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Console at {self.path} unreachable after {attempts} attempts: {last_error}")
