"""Command-line and environment variable parsing for proxmox-cloud-template."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from pvetemplate.constants import (
    DEFAULT_BRIDGE,
    DEFAULT_CI_USER,
    DEFAULT_CORES,
    DEFAULT_DISK_SIZE,
    DEFAULT_DOWNLOAD_RETRIES,
    DEFAULT_MEMORY_MB,
    DEFAULT_TEMPLATE_NAME,
    DEFAULT_VMID,
    RELEASES_CONFIG,
)
from pvetemplate.exceptions import TemplateError
from pvetemplate.models import TemplateConfig, UbuntuRelease
from pvetemplate.utils import (
    get_env,
    parse_int,
    parse_int_env,
    parse_vmid,
    validate_disk_size,
)

PROG = "pve-cloud-template"

ENVIRONMENT_HELP = """\
Environment variables:
  TEMPLATE_VMID       Same as --vmid (default offered by the picker)
  TEMPLATE_NAME       Same as --name
  NETWORK_BRIDGE      Same as --bridge
  STORAGE_POOL        Same as --storage
  CI_USER             Same as --user
  CI_PASSWORD         Same as --password
  SSH_PUBKEY_FILE     Same as --sshkey
  UBUNTU_RELEASE      Same as --release
  TEMPLATE_MEMORY     Same as --memory
  TEMPLATE_CORES      Same as --cores
  TEMPLATE_DISK_SIZE  Same as --disk-size
  DOWNLOAD_RETRIES    Download attempts for the cloud image (default: 3)
  ISO_DIR             Where cloud images are stored (default: /var/lib/vz/template/iso)
  LOG_VERBOSE         Print every executed command
"""

EXAMPLES_HELP = f"""\
Examples:
  {PROG}                          # Interactive mode
  {PROG} --storage local-lvm      # Skip storage picker
  {PROG} --vmid 9010 --name my-template --storage ceph-pool
  {PROG} --user admin --sshkey ~/.ssh/id_ed25519.pub
"""


def load_releases(config_path: Optional[Path] = None) -> List[UbuntuRelease]:
    """Load the Ubuntu release catalogue, preserving file order."""
    if config_path is None:
        config_path = RELEASES_CONFIG
    if not config_path.exists():
        raise TemplateError(f"Release catalogue missing: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise TemplateError(f"Release catalogue {config_path} contains invalid YAML: {exc}")
    entries = data.get("releases") or {}
    if not isinstance(entries, dict) or not entries:
        raise TemplateError(f"No releases defined in {config_path}")
    releases = []
    for key, info in entries.items():
        if not isinstance(info, dict):
            raise TemplateError(f"Release '{key}' in {config_path} must be a mapping")
        codename = str(info.get("codename") or key)
        version = info.get("version")
        if not version:
            raise TemplateError(f"Release '{key}' in {config_path} is missing 'version'")
        releases.append(
            UbuntuRelease(
                key=str(key),
                codename=codename,
                version=str(version),
                name=str(info.get("name") or codename.capitalize()),
            )
        )
    return releases


def find_release(releases: List[UbuntuRelease], key: str) -> UbuntuRelease:
    wanted = key.strip().lower()
    for release in releases:
        if wanted in {release.key.lower(), release.codename.lower(), release.version}:
            return release
    available = ", ".join(r.key for r in releases)
    raise TemplateError(f"Unknown release '{key}'. Available releases: {available}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Create a cloud-init VM template on a Proxmox host.",
        epilog=ENVIRONMENT_HELP + "\n" + EXAMPLES_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("--vmid", metavar="ID", help=f"VM ID for the template (default: {DEFAULT_VMID})")
    parser.add_argument("--name", metavar="NAME", help="Template name (default: auto-generated from image)")
    parser.add_argument("--bridge", metavar="BRIDGE", help=f"Network bridge (default: {DEFAULT_BRIDGE})")
    parser.add_argument("--storage", metavar="POOL", help="Storage pool (skips interactive picker)")
    parser.add_argument("--image", metavar="PATH", help="Path to an existing cloud image (skips download)")
    parser.add_argument("--release", metavar="KEY", help="Ubuntu release to download, e.g. noble (skips picker)")
    parser.add_argument("--user", metavar="USER", help=f"Default cloud-init username (default: {DEFAULT_CI_USER})")
    parser.add_argument("--password", metavar="PASS", help="Password for the default user (skips interactive prompt)")
    parser.add_argument("--sshkey", metavar="PATH", help="Path to SSH public key file (skips interactive prompt)")
    parser.add_argument("--memory", metavar="MiB", help=f"Template memory in MiB (default: {DEFAULT_MEMORY_MB})")
    parser.add_argument("--cores", metavar="N", help=f"Template CPU cores (default: {DEFAULT_CORES})")
    parser.add_argument("--disk-size", metavar="SIZE", help=f"Boot disk size (default: {DEFAULT_DISK_SIZE})")
    parser.add_argument("--list-releases", action="store_true", help="List available Ubuntu releases and exit")
    parser.add_argument("--yes", action="store_true", help="Skip confirmation and optional prompts")
    parser.add_argument("-h", "--help", action="store_true", help="Show this help message")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    args, unknown = parser.parse_known_args(argv)
    if unknown:
        raise TemplateError(f"Unknown option: {unknown[0]}")
    return args


def _pick(flag_value: Optional[str], env_name: str, default: Optional[str] = None) -> Optional[str]:
    if flag_value is not None:
        return flag_value
    env_value = get_env(env_name)
    if env_value is not None and env_value.strip():
        return env_value.strip()
    return default


def resolve_config(args: argparse.Namespace) -> TemplateConfig:
    """Merge flags, environment variables and defaults."""
    vmid_raw = _pick(args.vmid, "TEMPLATE_VMID", DEFAULT_VMID)
    assert vmid_raw is not None
    vmid = parse_vmid(vmid_raw)

    user_raw = _pick(args.user, "CI_USER")
    user = user_raw or DEFAULT_CI_USER

    memory_raw = _pick(args.memory, "TEMPLATE_MEMORY", DEFAULT_MEMORY_MB)
    cores_raw = _pick(args.cores, "TEMPLATE_CORES", DEFAULT_CORES)
    disk_raw = _pick(args.disk_size, "TEMPLATE_DISK_SIZE", DEFAULT_DISK_SIZE)
    assert memory_raw is not None and cores_raw is not None and disk_raw is not None

    image_raw = args.image
    sshkey_raw = _pick(args.sshkey, "SSH_PUBKEY_FILE")
    password = args.password if args.password is not None else get_env("CI_PASSWORD")

    return TemplateConfig(
        vmid=vmid,
        name=_pick(args.name, "TEMPLATE_NAME", DEFAULT_TEMPLATE_NAME) or DEFAULT_TEMPLATE_NAME,
        bridge=_pick(args.bridge, "NETWORK_BRIDGE", DEFAULT_BRIDGE) or DEFAULT_BRIDGE,
        storage=_pick(args.storage, "STORAGE_POOL"),
        image=Path(image_raw).expanduser() if image_raw else None,
        user=user,
        password=password or None,
        sshkey_file=Path(sshkey_raw).expanduser() if sshkey_raw else None,
        release=_pick(args.release, "UBUNTU_RELEASE"),
        memory_mb=parse_int("TEMPLATE_MEMORY", memory_raw, min_val=16),
        cores=parse_int("TEMPLATE_CORES", cores_raw, min_val=1),
        disk_size=validate_disk_size(disk_raw),
        assume_yes=bool(args.yes),
        vmid_from_flag=args.vmid is not None,
        user_explicit=user_raw is not None,
        download_retries=parse_int_env("DOWNLOAD_RETRIES", DEFAULT_DOWNLOAD_RETRIES),
    )
