"""VirtualBox VM definition: register, attach disk, network, serial port, resources."""

from __future__ import annotations

from typing import List, Sequence, Tuple

from vboxvm.constants import (
    NIC_TYPE,
    OS_TYPE,
    SERIAL_IO_BASE,
    SERIAL_IRQ,
    STORAGE_CONTROLLER,
    STORAGE_CONTROLLER_CHIPSET,
)
from vboxvm.exceptions import ManagerError, ProvisioningError
from vboxvm.executor import CommandExecutor
from vboxvm.models import VMConfig
from vboxvm.network import nat_rule_args
from vboxvm.utils import log

Step = Tuple[str, List[Sequence[str]]]


class VMProvisioner:
    """Creates a fresh VM from a VMConfig through `VBoxManage`.

    Steps run in a fixed order and the first failure stops the sequence.
    Whatever was applied before the failure stays in place unless
    ``cleanup_on_failure`` is requested.
    """

    def __init__(self, executor: CommandExecutor, paths) -> None:
        self.executor = executor
        self.paths = paths

    def steps(self, cfg: VMConfig) -> List[Step]:
        name = cfg.name
        disk = str(cfg.storage_path)
        return [
            ("createvm", [["createvm", "--name", name, "--basefolder", str(cfg.directory), "--ostype", OS_TYPE]]),
            ("registervm", [["registervm", str(cfg.settings_file)]]),
            ("clonehd", [["clonehd", str(cfg.source_image), disk]]),
            (
                "storagectl",
                [["storagectl", name, "--name", STORAGE_CONTROLLER, "--add", "sata",
                  "--controller", STORAGE_CONTROLLER_CHIPSET]],
            ),
            (
                "storageattach",
                [["storageattach", name, "--storagectl", STORAGE_CONTROLLER, "--port", "0",
                  "--type", "hdd", "--medium", disk]],
            ),
            ("nic", [["modifyvm", name, "--nic1", "nat", "--nictype1", NIC_TYPE]]),
            ("nat-rules", [["modifyvm", name, *pair] for pair in nat_rule_args(cfg.nat_rules)]),
            ("hpet", [["modifyvm", name, "--hpet", "on"]]),
            (
                "serial-port",
                [["modifyvm", name, "--uart1", SERIAL_IO_BASE, SERIAL_IRQ,
                  "--uartmode1", "server", self.paths.console_path(cfg)]],
            ),
            ("memory", [["modifyvm", name, "--memory", str(cfg.memory_mb)]]),
            ("cpus", [["modifyvm", name, "--cpus", str(cfg.cpus)]]),
        ]

    def provision(self, cfg: VMConfig, cleanup_on_failure: bool = False) -> None:
        log("INFO", f"Provisioning VM {cfg.name} in {cfg.vm_dir}")
        for step, commands in self.steps(cfg):
            for args in commands:
                try:
                    self.executor.run(*args)
                except ManagerError as exc:
                    if cleanup_on_failure:
                        self._cleanup(cfg)
                    raise ProvisioningError(step, exc) from exc
            log("DEBUG", f"Provisioning step {step} done")
        log("SUCCESS", f"VM {cfg.name} provisioned ({cfg.memory_mb} MiB, {cfg.cpus} CPUs)")

    def _cleanup(self, cfg: VMConfig) -> None:
        log("WARN", f"Removing partially provisioned VM {cfg.name}")
        try:
            self.executor.run("unregistervm", cfg.name, "--delete")
        except ManagerError as exc:
            # createvm/registervm may not have got far enough to register anything
            log("WARN", f"Cleanup of {cfg.name} failed: {exc}")
