"""CLI entry point for proxmox-cloud-template."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pvetemplate import prompts
from pvetemplate.builder import TemplateBuilder
from pvetemplate.config import build_parser, load_releases, parse_args, resolve_config
from pvetemplate.credentials import configure_credentials
from pvetemplate.exceptions import Aborted, TemplateError
from pvetemplate.images import fetch_image
from pvetemplate.models import BuildPlan, TemplateConfig
from pvetemplate.pickers import pick_storage, pick_vmid, select_image
from pvetemplate.proxmox import ProxmoxHost, check_host
from pvetemplate.utils import log


def list_releases(config_path: Optional[Path] = None) -> None:
    """Print the release catalogue."""
    releases = load_releases(config_path)
    width = max(len(r.key) for r in releases)
    for idx, release in enumerate(releases):
        marker = "  (default)" if idx == 0 else ""
        print(f"  {release.key:<{width}}  {release.label}{marker}")


def print_confirmation(cfg: TemplateConfig, plan: BuildPlan) -> None:
    creds = plan.credentials
    title = "Ready to update existing template:" if plan.already_exists else "Ready to create template:"
    prompts.heading(title)
    print(f"  VMID:    {plan.vmid}")
    if not plan.already_exists:
        print(f"  Name:    {plan.name}")
        print(f"  Storage: {plan.storage}")
        print(f"  Bridge:  {cfg.bridge}")
        print(f"  Image:   {plan.image_path}")
    print(f"  User:    {creds.user}")
    print(f"  Password: {'****' if creds.has_password else '(none)'}")
    print(f"  SSH Key: {creds.ssh_pubkey[:40] + '...' if creds.ssh_pubkey else '(none)'}")
    print("", flush=True)


def print_summary(plan: BuildPlan, template_name: str, hostname: str) -> None:
    green, yellow, bold, reset = "\033[0;32m", "\033[1;33m", "\033[1m", "\033[0m"
    creds = plan.credentials
    action = "Updated" if plan.already_exists else "Created"
    rule = "═" * 40
    lines = [
        "",
        f"{green}{rule}{reset}",
        f"{bold}  Cloud-Init VM Template {action}{reset}",
        f"{green}{rule}{reset}",
        "",
        f"  Template ID:    {plan.vmid}",
        f"  Template Name:  {template_name}",
        f"  Default User:   {creds.user}",
        f"  Password Auth:  {'Yes' if creds.has_password else 'No'}",
        f"  SSH Key Auth:   {'Yes' if creds.has_ssh_key else 'No'}",
        f"  Proxmox Host:   {hostname}",
        "",
        f"{yellow}Clone example:{reset}",
        f"  qm clone {plan.vmid} <NEW_VMID> --name <VM_NAME> --full",
        "  qm set <NEW_VMID> --ipconfig0 ip=dhcp,ip6=dhcp --cores 4 --memory 4096",
        "  qm start <NEW_VMID>",
        "",
    ]
    for line in lines:
        print(line, flush=True)


def run_workflow(cfg: TemplateConfig, host: Optional[ProxmoxHost] = None) -> BuildPlan:
    hostname = check_host()
    host = host or ProxmoxHost()

    vmid, already_exists = pick_vmid(host, cfg)
    plan = BuildPlan(vmid=vmid, name=cfg.name, already_exists=already_exists)

    if already_exists and not cfg.storage:
        log("DEBUG", "Existing template: storage selection skipped")
    else:
        plan.storage = pick_storage(host, cfg)

    if not already_exists:
        releases = load_releases() if cfg.image is None else []
        plan.image_path, plan.release = select_image(cfg, releases)
        plan.name = cfg.name

    plan.credentials = configure_credentials(cfg)

    if not cfg.assume_yes:
        print_confirmation(cfg, plan)
        if not prompts.confirm("Continue?"):
            raise Aborted()

    if not already_exists and plan.release is not None and plan.image_path is not None:
        fetch_image(plan.image_path, plan.release, assume_yes=cfg.assume_yes, retries=cfg.download_retries)

    TemplateBuilder(host, cfg, plan).build()

    template_name = host.vm_name(plan.vmid) or plan.name
    print_summary(plan, template_name, hostname)
    return plan


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = parse_args(argv)
    except TemplateError as exc:
        log("ERROR", str(exc))
        return 1
    except SystemExit as exc:
        # argparse usage errors (e.g. a flag without its value)
        return exc.code if isinstance(exc.code, int) else 1

    if args.help:
        build_parser().print_help()
        return 0

    try:
        if args.list_releases:
            list_releases()
            return 0
        cfg = resolve_config(args)
        run_workflow(cfg)
        return 0
    except Aborted:
        print("Aborted.", flush=True)
        return 0
    except TemplateError as exc:
        log("ERROR", str(exc))
        return 1
    except KeyboardInterrupt:
        print("", flush=True)
        log("WARN", "Interrupted")
        return 130
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return 1
