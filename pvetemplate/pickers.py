"""Interactive and flag-driven selection of VMID, storage pool and image."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

from pvetemplate import prompts
from pvetemplate.config import find_release
from pvetemplate.constants import CLOUD_IMAGE_URL, ISO_DIR, VMID_MAX, VMID_MIN, VMID_RE
from pvetemplate.exceptions import TemplateError
from pvetemplate.models import StoragePool, TemplateConfig, UbuntuRelease, VMIDState
from pvetemplate.proxmox import ProxmoxHost
from pvetemplate.utils import log


# ── VMID ─────────────────────────────────────────────────────────────


def pick_vmid(host: ProxmoxHost, cfg: TemplateConfig) -> Tuple[int, bool]:
    """Resolve the template VMID.

    Returns ``(vmid, already_exists)`` where ``already_exists`` means the
    VMID holds a template that should only have its credentials refreshed.
    """
    if cfg.vmid_from_flag or cfg.assume_yes:
        return _check_fixed_vmid(host, cfg.vmid)

    prompts.heading("VM template ID:")
    while True:
        raw = prompts.ask(f"  Enter VMID (default: {cfg.vmid}): ", default=str(cfg.vmid), hint="--vmid")
        if not VMID_RE.match(raw):
            prompts.error_line("VMID must be a number.")
            continue
        vmid = int(raw)
        if vmid < VMID_MIN:
            prompts.error_line(f"VMID must be >= {VMID_MIN} (Proxmox reserves 0-99).")
            continue
        if vmid > VMID_MAX:
            prompts.error_line(f"VMID must be <= {VMID_MAX}.")
            continue

        state = host.vmid_state(vmid)
        if state is VMIDState.FREE:
            log("INFO", f"Using VMID: {vmid}")
            return vmid, False

        if state is VMIDState.TEMPLATE:
            log("WARN", f"VM ID {vmid} already exists as template '{host.vm_name(vmid) or ''}'")
            print("", flush=True)
            action = prompts.choose(
                "Select",
                [
                    "Keep it - skip creation (idempotent re-run)",
                    "Destroy and recreate",
                    "Pick a different VMID",
                ],
                default=1,
            )
            if action == 1:
                log("INFO", f"Will keep existing template {vmid}")
                return vmid, True
            if action == 2:
                _destroy(host, vmid, stop_first=False)
                return vmid, False
            continue

        log("WARN", f"VM ID {vmid} exists but is NOT a template (it's a regular VM)")
        print("", flush=True)
        action = prompts.choose(
            "Select",
            ["Pick a different VMID", "Destroy it and use this VMID"],
            default=1,
        )
        if action == 2:
            _destroy(host, vmid, stop_first=True)
            return vmid, False


def _check_fixed_vmid(host: ProxmoxHost, vmid: int) -> Tuple[int, bool]:
    state = host.vmid_state(vmid)
    already_exists = False
    if state is VMIDState.TEMPLATE:
        log("WARN", f"VM ID {vmid} already exists as template '{host.vm_name(vmid) or ''}'")
        log("INFO", "Re-running will update credentials and skip creation (idempotent)")
        already_exists = True
    elif state is VMIDState.VM:
        raise TemplateError(
            f"VM ID {vmid} exists but is NOT a template. Remove it first or pick a different ID."
        )
    log("INFO", f"Using VMID: {vmid}")
    return vmid, already_exists


def _destroy(host: ProxmoxHost, vmid: int, stop_first: bool) -> None:
    log("INFO", f"Will destroy VM {vmid} and recreate")
    if stop_first:
        host.stop(vmid)
    host.destroy(vmid)
    log("SUCCESS", f"VM {vmid} destroyed")


# ── Storage ──────────────────────────────────────────────────────────


def pick_storage(host: ProxmoxHost, cfg: TemplateConfig) -> str:
    pools = host.storage_pools()
    if cfg.storage:
        if cfg.storage not in {pool.name for pool in pools}:
            raise TemplateError(f"Storage '{cfg.storage}' not found on this host")
        log("INFO", f"Using storage: {cfg.storage}")
        return cfg.storage

    if cfg.assume_yes:
        raise TemplateError("A storage pool is required with --yes (use --storage or STORAGE_POOL)")
    if not pools:
        raise TemplateError("No storage pools found on this host")

    prompts.heading("Available storage pools:")
    print_storage_table(pools)
    print("", flush=True)

    count = len(pools)
    while True:
        raw = prompts.ask(f"Select storage pool [1-{count}]: ", hint="--storage")
        if raw.isdigit() and 1 <= int(raw) <= count:
            pool = pools[int(raw) - 1]
            break
        prompts.error_line(f"Invalid selection. Enter a number between 1 and {count}.")

    if not pool.active:
        log("WARN", f"Storage '{pool.name}' is not active - proceed with caution")
    log("INFO", f"Selected storage: {pool.name}")
    return pool.name


def print_storage_table(pools: List[StoragePool]) -> None:
    green, red, cyan, bold, reset = "\033[0;32m", "\033[0;31m", "\033[0;36m", "\033[1m", "\033[0m"
    print(f"  {bold}{'#':<4} {'NAME':<20} {'TYPE':<12} {'STATUS':<10} {'SIZE':<12} USED{reset}")
    print("  " + "─" * 65)
    for idx, pool in enumerate(pools, start=1):
        colour = green if pool.active else red
        print(
            f"  {cyan}{idx:<4}{reset} {pool.name:<20} {pool.type:<12} "
            f"{colour}{pool.status:<10}{reset} {pool.size_display:<12} {pool.used_display}",
            flush=True,
        )


# ── Image ────────────────────────────────────────────────────────────


def image_url(release: UbuntuRelease) -> str:
    return CLOUD_IMAGE_URL.format(codename=release.codename)


def select_image(
    cfg: TemplateConfig, releases: List[UbuntuRelease], iso_dir: Optional[Path] = None
) -> Tuple[Path, Optional[UbuntuRelease]]:
    """Return the image path and the release it will be downloaded from.

    A custom image is returned with ``None`` as release. Picking a release
    renames a template still carrying the default name.
    """
    if cfg.image is not None:
        if not cfg.image.is_file():
            raise TemplateError(f"Custom image not found: {cfg.image}")
        log("INFO", f"Using custom image: {cfg.image}")
        return cfg.image, None

    if cfg.release:
        release = find_release(releases, cfg.release)
    elif cfg.assume_yes:
        release = releases[0]
    else:
        prompts.heading("Available Ubuntu cloud images:")
        choice = prompts.choose("Select Ubuntu version", [r.label for r in releases], default=1, hint="--release")
        release = releases[choice - 1]

    if cfg.name_is_default:
        cfg.name = release.template_name

    target_dir = iso_dir if iso_dir is not None else ISO_DIR
    log("INFO", f"Selected Ubuntu {release.version} ({release.codename})")
    return target_dir / release.image_filename, release
