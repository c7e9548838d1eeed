"""Configuration loading and environment variable parsing for vbox-vm-runner."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from vboxvm.constants import DEFAULT_CONFIG_PATH, DEFAULT_CPUS, DEFAULT_INSTANCES_DIR, DEFAULT_MEMORY_MB
from vboxvm.exceptions import ManagerError
from vboxvm.models import NatRule, VMConfig
from vboxvm.utils import get_env, log, parse_int, parse_int_env


def load_vm_definitions(config_path: Optional[Path] = None) -> Dict[str, dict]:
    """Read the `vms:` mapping from the YAML config; a missing file means no definitions."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    if not config_path.exists():
        log("DEBUG", f"No VM config at {config_path}")
        return {}
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ManagerError(f"VM config {config_path} contains invalid YAML: {exc}")
    if not isinstance(data, dict):
        raise ManagerError(f"VM config {config_path} must be a YAML mapping, got {type(data).__name__}")
    vms = data.get("vms") or {}
    if not isinstance(vms, dict):
        raise ManagerError(f"'vms' in {config_path} must be a mapping of VM name to settings")
    return vms


def load_vm_definition(name: str, config_path: Optional[Path] = None) -> dict:
    definition = load_vm_definitions(config_path).get(name) or {}
    if not isinstance(definition, dict):
        raise ManagerError(f"Settings for VM '{name}' must be a mapping")
    return definition


def parse_nat_rule(entry: str) -> NatRule:
    """Parse a `host_port:guest_port` forward."""
    parts = entry.strip().split(":")
    if len(parts) != 2:
        raise ManagerError(f"Invalid port forward '{entry}': expected format host_port:guest_port")
    host_raw, guest_raw = (part.strip() for part in parts)
    host_port = parse_int(f"Host port in '{entry}'", host_raw, min_val=1, max_val=65535)
    guest_port = parse_int(f"Guest port in '{entry}'", guest_raw, min_val=1, max_val=65535)
    return NatRule(guest_port=str(guest_port), host_port=str(host_port))


def parse_nat_rules(entries: Iterable) -> List[NatRule]:
    rules: List[NatRule] = []
    for entry in entries:
        if isinstance(entry, dict):
            entry = f"{entry.get('host', '')}:{entry.get('guest', '')}"
        entry = str(entry).strip()
        if not entry:
            continue
        rules.append(parse_nat_rule(entry))
    return rules


def parse_env(name: Optional[str] = None, config_path: Optional[Path] = None) -> VMConfig:
    """Build a VMConfig from the YAML definition overlaid with environment variables."""
    vm_name = (name or get_env("VM_NAME") or "").strip()
    if not vm_name:
        raise ManagerError("No VM name given. Pass one on the command line or set VM_NAME.")
    definition = load_vm_definition(vm_name, config_path)

    directory_raw = get_env("VM_DIR") or definition.get("directory")
    directory = Path(directory_raw).expanduser() if directory_raw else DEFAULT_INSTANCES_DIR

    image_raw = get_env("VM_IMAGE") or definition.get("image")
    if not image_raw:
        raise ManagerError(f"No source image for VM '{vm_name}'. Set VM_IMAGE or 'image' in the VM config.")
    source_image = Path(image_raw).expanduser()
    if not source_image.is_file():
        raise ManagerError(f"Source image not found: {source_image}")

    memory_mb = parse_int_env("MEMORY", str(definition.get("memory", DEFAULT_MEMORY_MB)), min_val=0)
    cpus = parse_int_env("CPUS", str(definition.get("cpus", DEFAULT_CPUS)), min_val=1)

    port_fwd_raw = get_env("PORT_FWD")
    if port_fwd_raw is not None:
        nat_rules = parse_nat_rules(port_fwd_raw.split(","))
    else:
        nat_entries = definition.get("nat") or []
        if not isinstance(nat_entries, list):
            raise ManagerError(f"'nat' for VM '{vm_name}' must be a list of host_port:guest_port entries")
        nat_rules = parse_nat_rules(nat_entries)

    seen: Dict[str, NatRule] = {}
    for rule in nat_rules:
        if rule.host_port in seen:
            raise ManagerError(
                f"Port conflict: host port {rule.host_port} forwarded to both guest "
                f"{seen[rule.host_port].guest_port} and {rule.guest_port}"
            )
        seen[rule.host_port] = rule

    return VMConfig(
        name=vm_name,
        directory=directory,
        source_image=source_image,
        memory_mb=memory_mb,
        cpus=cpus,
        nat_rules=tuple(nat_rules),
    )
