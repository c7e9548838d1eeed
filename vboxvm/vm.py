"""VM lifecycle management for vbox-vm-runner."""

from __future__ import annotations

import subprocess
import time
from typing import BinaryIO, Callable, NamedTuple, Optional

from vboxvm.console import ConsoleBridge, connect_with_retry, select_path_strategy
from vboxvm.constants import CONSOLE_CONNECT_ATTEMPTS, CONSOLE_CONNECT_DELAY
from vboxvm.executor import CommandExecutor, vboxheadless, vboxmanage
from vboxvm.inventory import vm_exists
from vboxvm.models import VMConfig
from vboxvm.provision import VMProvisioner
from vboxvm.utils import log


class LaunchedVM(NamedTuple):
    process: subprocess.Popen
    bridge: Optional[ConsoleBridge]


class VMManager:
    def __init__(
        self,
        vm_config: VMConfig,
        manage: Optional[CommandExecutor] = None,
        headless: Optional[CommandExecutor] = None,
        paths=None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cfg = vm_config
        self.manage = manage or vboxmanage()
        self.headless = headless or vboxheadless()
        self.paths = paths or select_path_strategy()
        self._sleep = sleep
        self.provisioner = VMProvisioner(self.manage, self.paths)

    @property
    def console_path(self) -> str:
        return self.paths.console_path(self.cfg)

    def exists(self) -> bool:
        return vm_exists(self.manage, self.cfg.name)

    def launch(
        self,
        stdin: Optional[BinaryIO] = None,
        stdout: Optional[BinaryIO] = None,
        cleanup_on_failure: bool = False,
        attempts: int = CONSOLE_CONNECT_ATTEMPTS,
        delay: float = CONSOLE_CONNECT_DELAY,
        attach_console: bool = True,
    ) -> LaunchedVM:
        """Recreate the VM, start it headless and bridge its serial console.

        A registered VM with the same name is deleted first, files included.
        If the console never becomes reachable the error is raised but the
        headless process is left running. With ``attach_console`` off the
        console is never opened and the returned bridge is None.
        """
        if self.exists():
            log("WARN", f"VM {self.cfg.name} already registered; deleting it")
            self.delete()

        self.provisioner.provision(self.cfg, cleanup_on_failure=cleanup_on_failure)

        log("INFO", f"Starting VM {self.cfg.name} (headless)")
        process = self.headless.start("--startvm", self.cfg.name)

        if not attach_console:
            log("SUCCESS", f"VM {self.cfg.name} running (console not attached)")
            return LaunchedVM(process, None)

        conn = connect_with_retry(
            self.console_path,
            self.paths.connect,
            attempts=attempts,
            delay=delay,
            sleep=self._sleep,
        )
        bridge = ConsoleBridge(conn, stdin=stdin, stdout=stdout).start()
        log("SUCCESS", f"VM {self.cfg.name} running; console attached at {self.console_path}")
        return LaunchedVM(process, bridge)

    def delete(self) -> None:
        unregister_vm(self.cfg.name, executor=self.manage)

    def stop(self) -> None:
        stop_vm(self.cfg.name, executor=self.manage)


def launch_vm(cfg: VMConfig, **kwargs) -> LaunchedVM:
    return VMManager(cfg).launch(**kwargs)


def delete_vm(cfg: VMConfig) -> None:
    VMManager(cfg).delete()


def unregister_vm(name: str, executor: Optional[CommandExecutor] = None) -> None:
    """Unregister the VM and delete every file it owns, disk included."""
    log("INFO", f"Deleting VM {name}")
    (executor or vboxmanage()).run("unregistervm", name, "--delete")


def stop_vm(name: str, executor: Optional[CommandExecutor] = None) -> None:
    """Power the VM off immediately; there is no ACPI shutdown negotiation."""
    log("INFO", f"Powering off VM {name}")
    (executor or vboxmanage()).run("controlvm", name, "poweroff")
