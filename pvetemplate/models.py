"""Data models for proxmox-cloud-template."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Optional

from pvetemplate.constants import DEFAULT_TEMPLATE_NAME, KIB_PER_GIB


class VMIDState(Enum):
    TEMPLATE = "template"
    VM = "vm"
    FREE = "free"


class UbuntuRelease(NamedTuple):
    key: str
    codename: str
    version: str
    name: str

    @property
    def label(self) -> str:
        return f"Ubuntu {self.version} LTS ({self.name})"

    @property
    def image_filename(self) -> str:
        return f"ubuntu-{self.version}-cloud.img"

    @property
    def template_name(self) -> str:
        return f"ubuntu-{self.version}-cloud"


@dataclass
class StoragePool:
    """One row of ``pvesm status``; sizes are in KiB as reported."""

    name: str
    type: str
    status: str
    total_kib: Optional[int] = None
    used_kib: Optional[int] = None
    available_kib: Optional[int] = None

    @property
    def active(self) -> bool:
        return self.status == "active"

    @property
    def size_display(self) -> str:
        if not self.total_kib:
            return "N/A"
        return f"{self.total_kib / KIB_PER_GIB:.1f} GiB"

    @property
    def used_display(self) -> str:
        if not self.total_kib or self.used_kib is None:
            return "N/A"
        return f"{self.used_kib / self.total_kib * 100:.0f}%"


@dataclass
class Credentials:
    user: str
    password: Optional[str] = None
    ssh_pubkey: Optional[str] = None

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    @property
    def has_ssh_key(self) -> bool:
        return bool(self.ssh_pubkey)


@dataclass
class TemplateConfig:
    vmid: int
    name: str
    bridge: str
    storage: Optional[str]
    image: Optional[Path]
    user: str
    password: Optional[str]
    sshkey_file: Optional[Path]
    release: Optional[str]
    memory_mb: int
    cores: int
    disk_size: str
    assume_yes: bool = False
    vmid_from_flag: bool = False
    user_explicit: bool = False
    download_retries: int = 3

    @property
    def name_is_default(self) -> bool:
        return self.name == DEFAULT_TEMPLATE_NAME


@dataclass
class BuildPlan:
    """Everything resolved interactively before the hypervisor is touched."""

    vmid: int
    name: str
    already_exists: bool = False
    storage: Optional[str] = None
    image_path: Optional[Path] = None
    release: Optional[UbuntuRelease] = None
    credentials: Credentials = field(default_factory=lambda: Credentials(user="ubuntu"))
