"""Data models for vbox-vm-runner."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import NamedTuple, Tuple

from vboxvm.constants import DISK_FILENAME, VM_NAME_RE
from vboxvm.exceptions import ManagerError


class NatRule(NamedTuple):
    # Strings so symbolic forms pass through untouched
    guest_port: str
    host_port: str


@dataclass(frozen=True)
class VMConfig:
    name: str
    directory: Path
    source_image: Path
    memory_mb: int
    cpus: int
    nat_rules: Tuple[NatRule, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.name or not VM_NAME_RE.match(self.name) or self.name in {".", ".."}:
            raise ManagerError(
                f"Invalid VM name '{self.name}'. Use letters, digits, '.', '_' or '-' only."
            )
        if self.memory_mb < 0:
            raise ManagerError(f"memory_mb must be >= 0 (got {self.memory_mb})")
        if self.cpus < 1:
            raise ManagerError(f"cpus must be >= 1 (got {self.cpus})")
        object.__setattr__(self, "directory", Path(self.directory))
        object.__setattr__(self, "source_image", Path(self.source_image))
        object.__setattr__(self, "nat_rules", tuple(NatRule(*rule) for rule in self.nat_rules))

    @property
    def vm_dir(self) -> Path:
        return self.directory / self.name

    @property
    def settings_file(self) -> Path:
        """The .vbox file written by `createvm` under the base folder."""
        return self.vm_dir / f"{self.name}.vbox"

    @property
    def storage_path(self) -> Path:
        return self.vm_dir / DISK_FILENAME
