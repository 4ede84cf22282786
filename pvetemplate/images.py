"""Cloud image download and customization."""

from __future__ import annotations

from pathlib import Path
from typing import List

from pvetemplate import prompts
from pvetemplate.constants import CUSTOMIZE_RUN_COMMANDS, GUEST_AGENT_PACKAGE, LIBGUESTFS_PACKAGE
from pvetemplate.exceptions import TemplateError
from pvetemplate.models import UbuntuRelease
from pvetemplate.pickers import image_url
from pvetemplate.utils import command_available, download_file_with_retry, ensure_directory, log, run


def fetch_image(image_path: Path, release: UbuntuRelease, assume_yes: bool = False, retries: int = 3) -> None:
    """Download the release cloud image unless a copy is already present."""
    ensure_directory(image_path.parent)

    if image_path.exists():
        log("WARN", f"Image already exists: {image_path}")
        if assume_yes or not prompts.confirm("Re-download?"):
            log("INFO", f"Using cached image: {image_path}")
            return

    download_file_with_retry(
        image_url(release),
        image_path,
        label="Downloading cloud image",
        retries=retries,
    )
    log("SUCCESS", f"Download complete: {image_path}")


def customize_command(image_path: Path) -> List[str]:
    cmd = ["virt-customize", "-a", str(image_path), "--install", GUEST_AGENT_PACKAGE]
    for step in CUSTOMIZE_RUN_COMMANDS:
        cmd.extend(["--run-command", step])
    return cmd


def ensure_virt_customize() -> None:
    if command_available("virt-customize"):
        return
    log("INFO", f"Installing {LIBGUESTFS_PACKAGE} for image customization...")
    _run_checked(["apt-get", "update", "-qq"])
    _run_checked(["apt-get", "install", "-y", "-qq", LIBGUESTFS_PACKAGE])


def customize_image(image_path: Path) -> None:
    """Pre-install the guest agent and scrub per-instance state from the image."""
    ensure_virt_customize()
    log("INFO", "Customizing cloud image (installing qemu-guest-agent + template cleanup)...")
    _run_checked(customize_command(image_path))
    log("SUCCESS", "Cloud image customized")


def _run_checked(cmd: List[str]) -> None:
    try:
        result = run(cmd, check=False)
    except FileNotFoundError as exc:
        raise TemplateError(f"Command not found: {cmd[0]}") from exc
    if result.returncode != 0:
        raise TemplateError(f"Command failed (exit {result.returncode}): {' '.join(cmd)}")
