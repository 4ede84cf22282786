"""Global constants and path configuration for proxmox-cloud-template."""

from __future__ import annotations

import os
import re
from pathlib import Path

# Ubuntu cloud images are kept next to the ISO store of the "local" storage.
ISO_DIR = Path(os.environ.get("ISO_DIR", "/var/lib/vz/template/iso"))
DEFAULT_RELEASES_PATH = Path(__file__).resolve().parent / "releases.yaml"
RELEASES_CONFIG = Path(os.environ.get("RELEASES_CONFIG", str(DEFAULT_RELEASES_PATH)))
CLOUD_IMAGE_URL = "https://cloud-images.ubuntu.com/{codename}/current/{codename}-server-cloudimg-amd64.img"
USER_AGENT = "proxmox-cloud-template/1.0"

DEFAULT_VMID = "9000"
DEFAULT_TEMPLATE_NAME = "ubuntu-cloud"
DEFAULT_BRIDGE = "vmbr0"
DEFAULT_CI_USER = "ubuntu"
DEFAULT_MEMORY_MB = "2048"
DEFAULT_CORES = "2"
DEFAULT_DISK_SIZE = "20G"
DEFAULT_DOWNLOAD_RETRIES = "3"

# Proxmox reserves 0-99; the upper bound is what qm accepts.
VMID_MIN = 100
VMID_MAX = 999999999

REQUIRED_COMMANDS = ("qm", "pvesm")

IPCONFIG_DHCP = "ip=dhcp,ip6=dhcp"
SCSI_CONTROLLER = "virtio-scsi-pci"
MACHINE_TYPE = "q35"
BOOT_DISK = "scsi0"
EFIDISK_OPTIONS = "efitype=4m,pre-enrolled-keys=1"

# Applied with virt-customize before import: guest agent plus identity/state
# cleanup so every clone boots as a fresh instance.
GUEST_AGENT_PACKAGE = "qemu-guest-agent"
CUSTOMIZE_RUN_COMMANDS = (
    "systemctl enable qemu-guest-agent",
    "cloud-init clean --logs --seed || true",
    "truncate -s 0 /etc/machine-id",
    "rm -f /var/lib/dbus/machine-id",
    "rm -f /etc/netplan/50-cloud-init.yaml",
    "rm -f /var/lib/dhcp/*.leases",
    "rm -rf /var/lib/cloud/*",
)
LIBGUESTFS_PACKAGE = "libguestfs-tools"

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in {"1", "true", "yes", "on"}

DISK_SIZE_RE = re.compile(r"^\d+[KMGTkmgt]?$")
VMID_RE = re.compile(r"^[0-9]+$")

# qm options whose values must never be echoed.
_SENSITIVE_OPTIONS = {"--cipassword"}

KIB_PER_GIB = 1024 * 1024

# bcrypt only reads this many bytes of a password.
BCRYPT_MAX_PASSWORD_BYTES = 72
# qemu-server passes --cipassword through unhashed only for these crypt
# prefixes; bcrypt's $2b$ is re-hashed as plaintext.
PVE_BCRYPT_PREFIX = "$2y$"
