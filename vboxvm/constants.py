"""Global constants and path configuration for vbox-vm-runner."""

from __future__ import annotations

import os
import re
from pathlib import Path

VBOXMANAGE = os.environ.get("VBOXMANAGE", "VBoxManage")
VBOXHEADLESS = os.environ.get("VBOXHEADLESS", "VBoxHeadless")

DEFAULT_CONFIG_PATH = Path(os.environ.get("VBOXVM_CONFIG", "~/.vboxvm/vms.yaml")).expanduser()
DEFAULT_INSTANCES_DIR = Path.home() / ".vboxvm" / "instances"

OS_TYPE = "Linux26_64"
DISK_FORMAT = "vdi"
DISK_FILENAME = f"disk.{DISK_FORMAT}"
STORAGE_CONTROLLER = "SATA"
STORAGE_CONTROLLER_CHIPSET = "IntelAHCI"
NIC_TYPE = "virtio"
# COM1 at its legacy I/O port and IRQ
SERIAL_IO_BASE = "0x3f8"
SERIAL_IRQ = "4"

CONSOLE_CONNECT_ATTEMPTS = 5
CONSOLE_CONNECT_DELAY = 0.5
PIPE_NAMESPACE = "\\\\.\\pipe\\"

DEFAULT_MEMORY_MB = "1024"
DEFAULT_CPUS = "1"

TRUTHY = {"1", "true", "yes", "on"}
VM_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")
# First quoted token on a `VBoxManage list vms` line
VM_LIST_LINE_RE = re.compile(r'"(.*)"')

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY
