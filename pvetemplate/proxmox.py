"""Thin wrapper around the Proxmox ``qm`` and ``pvesm`` command line tools."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from pvetemplate.constants import REQUIRED_COMMANDS
from pvetemplate.exceptions import TemplateError
from pvetemplate.models import StoragePool, VMIDState
from pvetemplate.utils import command_available, host_name, log, mask_command, run

QmOption = Tuple[str, str]


def check_host() -> str:
    """Ensure qm/pvesm are available and return the host name."""
    for command in REQUIRED_COMMANDS:
        if not command_available(command):
            raise TemplateError(f"This script must be run on a Proxmox host ({command} not found)")
    name = host_name()
    log("INFO", f"Detected Proxmox host: {name}")
    return name


def parse_qm_config(output: str) -> Dict[str, str]:
    config: Dict[str, str] = {}
    for line in output.splitlines():
        if not line or line.startswith((" ", "#")) or ":" not in line:
            continue
        key, value = line.split(":", 1)
        config[key.strip()] = value.strip()
    return config


def _parse_kib(raw: str) -> Optional[int]:
    return int(raw) if raw.isdigit() else None


def parse_storage_status(output: str) -> List[StoragePool]:
    """Parse ``pvesm status`` (Name Type Status Total Used Available %)."""
    pools: List[StoragePool] = []
    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 3:
            continue
        extra = parts[3:6] + [""] * (3 - len(parts[3:6]))
        pools.append(
            StoragePool(
                name=parts[0],
                type=parts[1],
                status=parts[2],
                total_kib=_parse_kib(extra[0]),
                used_kib=_parse_kib(extra[1]),
                available_kib=_parse_kib(extra[2]),
            )
        )
    return pools


class ProxmoxHost:
    def __init__(self, qm: str = "qm", pvesm: str = "pvesm") -> None:
        self.qm = qm
        self.pvesm = pvesm

    def _query(self, cmd: List[str]) -> Optional[str]:
        """Run a read-only command; return stdout or None on failure."""
        result = run(cmd, check=False, capture_output=True)
        if result.returncode != 0:
            return None
        return result.stdout

    def _execute(self, cmd: List[str]) -> None:
        try:
            run(cmd)
        except FileNotFoundError as exc:
            raise TemplateError(f"Command not found: {cmd[0]}") from exc
        except subprocess.CalledProcessError as exc:
            shown = " ".join(mask_command(cmd))
            raise TemplateError(f"Command failed (exit {exc.returncode}): {shown}") from exc

    # ── queries ──────────────────────────────────────────────────────

    def exists(self, vmid: int) -> bool:
        return self._query([self.qm, "status", str(vmid)]) is not None

    def config(self, vmid: int) -> Dict[str, str]:
        output = self._query([self.qm, "config", str(vmid)])
        return parse_qm_config(output) if output else {}

    def vmid_state(self, vmid: int) -> VMIDState:
        if not self.exists(vmid):
            return VMIDState.FREE
        if self.config(vmid).get("template") == "1":
            return VMIDState.TEMPLATE
        return VMIDState.VM

    def vm_name(self, vmid: int) -> Optional[str]:
        return self.config(vmid).get("name") or None

    def storage_pools(self) -> List[StoragePool]:
        output = self._query([self.pvesm, "status"])
        return parse_storage_status(output) if output else []

    # ── mutations ────────────────────────────────────────────────────

    def create(self, vmid: int, options: Sequence[QmOption]) -> None:
        self._execute([self.qm, "create", str(vmid), *_flatten(options)])

    def set(self, vmid: int, options: Sequence[QmOption]) -> None:
        self._execute([self.qm, "set", str(vmid), *_flatten(options)])

    def import_disk(self, vmid: int, image: Path, storage: str) -> None:
        self._execute([self.qm, "importdisk", str(vmid), str(image), storage])

    def resize(self, vmid: int, disk: str, size: str) -> None:
        self._execute([self.qm, "resize", str(vmid), disk, size])

    def convert_to_template(self, vmid: int) -> None:
        self._execute([self.qm, "template", str(vmid)])

    def stop(self, vmid: int) -> None:
        """Stop a VM; failures (already stopped, locked) are ignored."""
        run([self.qm, "stop", str(vmid), "--skiplock"], check=False, capture_output=True)

    def destroy(self, vmid: int) -> None:
        self._execute([self.qm, "destroy", str(vmid), "--purge"])


def _flatten(options: Sequence[QmOption]) -> List[str]:
    args: List[str] = []
    for flag, value in options:
        args.extend([flag, value])
    return args
