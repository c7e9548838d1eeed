"""vbox-vm-runner package."""

__all__ = [
    "cli",
    "config",
    "console",
    "constants",
    "exceptions",
    "executor",
    "inventory",
    "models",
    "network",
    "provision",
    "utils",
    "vm",
]
