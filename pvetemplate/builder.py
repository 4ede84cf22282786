"""Template creation on the Proxmox host."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from pvetemplate.constants import (
    BOOT_DISK,
    EFIDISK_OPTIONS,
    IPCONFIG_DHCP,
    MACHINE_TYPE,
    SCSI_CONTROLLER,
)
from pvetemplate.exceptions import TemplateError
from pvetemplate.images import customize_image
from pvetemplate.models import BuildPlan, TemplateConfig
from pvetemplate.proxmox import ProxmoxHost
from pvetemplate.utils import hash_password, log


class TemplateBuilder:
    def __init__(self, host: ProxmoxHost, cfg: TemplateConfig, plan: BuildPlan) -> None:
        self.host = host
        self.cfg = cfg
        self.plan = plan

    def build(self) -> None:
        if self.plan.already_exists:
            self.update()
        else:
            self.create()

    def update(self) -> None:
        """Refresh cloud-init credentials on an existing template."""
        vmid = self.plan.vmid
        log("INFO", f"Template {vmid} already exists - updating cloud-init credentials only")
        self._apply_credentials(verb="updated")
        log("SUCCESS", f"Existing template {vmid} updated successfully")

    def create(self) -> None:
        plan = self.plan
        if plan.storage is None or plan.image_path is None:
            raise TemplateError("Storage pool and image must be selected before creating a template")
        vmid = plan.vmid
        storage = plan.storage
        log("INFO", f"Creating VM template '{plan.name}' (ID: {vmid})...")

        customize_image(plan.image_path)

        self.host.create(
            vmid,
            [
                ("--name", plan.name),
                ("--memory", str(self.cfg.memory_mb)),
                ("--cores", str(self.cfg.cores)),
                ("--net0", f"virtio,bridge={self.cfg.bridge}"),
                ("--scsihw", SCSI_CONTROLLER),
            ],
        )
        self.host.import_disk(vmid, plan.image_path, storage)
        self.host.set(vmid, [("--scsi0", f"{storage}:vm-{vmid}-disk-0")])
        self.host.set(vmid, [("--ide2", f"{storage}:cloudinit")])
        self.host.set(vmid, [("--boot", "c"), ("--bootdisk", BOOT_DISK)])
        self.host.set(vmid, [("--serial0", "socket"), ("--vga", "serial0")])
        self.host.set(vmid, [("--agent", "enabled=1")])
        self.host.set(vmid, [("--machine", MACHINE_TYPE)])
        self.host.set(vmid, [("--bios", "ovmf"), ("--efidisk0", f"{storage}:1,{EFIDISK_OPTIONS}")])

        self._apply_credentials(verb="set")

        self.host.resize(vmid, BOOT_DISK, self.cfg.disk_size)
        self.host.convert_to_template(vmid)
        log("SUCCESS", f"Template '{plan.name}' (ID: {vmid}) created successfully on storage '{storage}'")

    def _apply_credentials(self, verb: str) -> None:
        vmid = self.plan.vmid
        creds = self.plan.credentials
        self.host.set(vmid, [("--ciuser", creds.user)])
        log("INFO", f"Cloud-init user set to '{creds.user}'")
        self.host.set(vmid, [("--ipconfig0", IPCONFIG_DHCP)])

        if creds.password:
            self.host.set(vmid, [("--cipassword", hash_password(creds.password))])
            log("INFO", f"Password {verb} for user '{creds.user}'")

        if creds.ssh_pubkey:
            self._set_ssh_key(creds.ssh_pubkey)
            log("INFO", f"SSH public key {verb} for user '{creds.user}'")

    def _set_ssh_key(self, key: str) -> None:
        # qm only accepts the key list as a file path.
        fd, name = tempfile.mkstemp(prefix="pve-sshkey-", suffix=".pub")
        key_file = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(key.rstrip("\n") + "\n")
            self.host.set(self.plan.vmid, [("--sshkeys", str(key_file))])
        finally:
            key_file.unlink(missing_ok=True)
