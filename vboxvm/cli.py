"""CLI entry points for vbox-vm-runner."""

from __future__ import annotations

import argparse
import dataclasses
import signal
import traceback
from pathlib import Path
from typing import List, Optional

from vboxvm.config import parse_env
from vboxvm.exceptions import ManagerError
from vboxvm.executor import vboxmanage
from vboxvm.inventory import list_vms
from vboxvm.models import VMConfig
from vboxvm.utils import get_env, get_env_bool, has_controlling_tty, log
from vboxvm.vm import VMManager, stop_vm, unregister_vm


def show_config(cfg: VMConfig) -> None:
    """Print the resolved VM configuration."""
    for field in dataclasses.fields(cfg):
        value = getattr(cfg, field.name)
        if field.name == "nat_rules":
            print(f"  {field.name}:")
            for i, rule in enumerate(value):
                print(f"    [{i}]: host {rule.host_port} -> guest {rule.guest_port}")
        else:
            print(f"  {field.name}: {value}")


def print_startup_banner(cfg: VMConfig, console_path: str) -> None:
    lines: List[str] = []
    lines.append(f"  VM: {cfg.name}")
    lines.append(f"  Memory: {cfg.memory_mb} MiB | CPUs: {cfg.cpus}")
    lines.append(f"  Disk: {cfg.storage_path}")
    lines.append(f"  Console: {console_path}")
    if cfg.nat_rules:
        fwd_strs = [f"{rule.host_port}->{rule.guest_port}" for rule in cfg.nat_rules]
        lines.append(f"  Ports: {', '.join(fwd_strs)}")

    border_len = max(len(line) for line in lines) + 2
    banner_colour = "\033[0;36m"
    reset = "\033[0m"
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)
    for line in lines:
        print(f"{banner_colour}{line}{reset}", flush=True)
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)


def run_vm(cfg: VMConfig, cleanup_on_failure: bool = False, console: bool = True) -> int:
    """Launch the VM, stay attached until the headless process exits."""
    if console and not has_controlling_tty():
        log("INFO", "No TTY detected; console input will not be interactive.")
    vm_mgr = VMManager(cfg)
    process, bridge = vm_mgr.launch(cleanup_on_failure=cleanup_on_failure, attach_console=console)
    print_startup_banner(cfg, vm_mgr.console_path if console else "not attached")

    def _terminate_vm(signum, frame):
        process.terminate()

    prev_sigterm = signal.signal(signal.SIGTERM, _terminate_vm)
    try:
        return process.wait()
    except KeyboardInterrupt:
        log("INFO", f"Interrupted; powering off VM {cfg.name}")
        vm_mgr.stop()
        return process.wait()
    finally:
        signal.signal(signal.SIGTERM, prev_sigterm)
        if bridge is not None:
            bridge.stop()
            if not bridge.wait(timeout=1.0):
                log("DEBUG", "Console input loop still blocked on stdin; leaving it to exit with the process")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run lightweight VMs on VirtualBox")
    parser.add_argument("--config", type=Path, default=None, help="YAML file with VM definitions")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Create the VM from scratch, start it and attach the console")
    run_p.add_argument("name", nargs="?", default=None, help="VM name (default: $VM_NAME)")
    run_p.add_argument(
        "--cleanup-on-failure",
        action="store_true",
        help="Unregister and delete the VM if provisioning fails part way",
    )
    run_p.add_argument("--no-console", action="store_true", help="Start the VM without attaching its serial console")
    run_p.add_argument("--show-config", action="store_true", help="Show resolved VM configuration and exit")

    stop_p = sub.add_parser("stop", help="Power off a running VM")
    stop_p.add_argument("name")

    delete_p = sub.add_parser("delete", help="Unregister a VM and delete its files")
    delete_p.add_argument("name", nargs="?", default=None, help="VM name (default: $VM_NAME)")

    sub.add_parser("list", help="List registered VMs")

    args = parser.parse_args(argv)

    try:
        if args.command == "list":
            for name in sorted(list_vms(vboxmanage())):
                print(name)
            return 0
        if args.command == "stop":
            stop_vm(args.name)
            return 0

        if args.command == "delete":
            name = args.name or get_env("VM_NAME")
            if not name:
                raise ManagerError("No VM name given. Pass one on the command line or set VM_NAME.")
            unregister_vm(name)
            return 0

        cfg = parse_env(args.name, config_path=args.config)
        if args.show_config:
            show_config(cfg)
            return 0
        cleanup_on_failure = args.cleanup_on_failure or get_env_bool("VBOXVM_CLEANUP_ON_FAILURE", False)
        no_console = args.no_console or get_env_bool("NO_CONSOLE", False)
        retcode = run_vm(cfg, cleanup_on_failure=cleanup_on_failure, console=not no_console)
        if retcode != 0:
            log("WARN", f"VBoxHeadless exited with status {retcode}")
        return retcode
    except ManagerError as exc:
        log("ERROR", str(exc))
        return 1
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        traceback.print_exc()
        return 1
