"""Cloud-init default user configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pvetemplate import prompts
from pvetemplate.constants import BCRYPT_MAX_PASSWORD_BYTES
from pvetemplate.exceptions import Aborted, TemplateError
from pvetemplate.models import Credentials, TemplateConfig
from pvetemplate.utils import check_password, log

SSH_KEY_PREFIX = "ssh-"


def read_ssh_key(path: Path) -> str:
    if not path.is_file():
        raise TemplateError(f"SSH key file not found: {path}")
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise TemplateError(f"Cannot read SSH key file {path}: {exc}")


def configure_credentials(cfg: TemplateConfig) -> Credentials:
    """Gather username, optional password and optional SSH public key.

    Values given by flag or environment are used as-is. In ``--yes`` mode
    anything not given is left unset instead of prompted for.
    """
    interactive = not cfg.assume_yes
    if interactive:
        prompts.heading("Cloud-init default user configuration:")

    user = cfg.user
    if interactive and not cfg.user_explicit:
        print(f"  Default username: {prompts.CYAN}{user}{prompts.RESET}", flush=True)
        new_user = prompts.ask(
            f"  Change username? (enter new name, or press Enter to keep '{user}'): ", hint="--user"
        )
        if new_user:
            user = new_user
    log("INFO", f"Default user: {user}")

    if cfg.password:
        password: Optional[str] = check_password(cfg.password)
        log("INFO", "Password provided via --password flag")
    elif interactive:
        password = _prompt_password(user)
    else:
        password = None

    if cfg.sshkey_file is not None:
        ssh_pubkey: Optional[str] = read_ssh_key(cfg.sshkey_file)
        log("INFO", f"SSH key loaded from: {cfg.sshkey_file}")
    elif interactive:
        ssh_pubkey = _prompt_ssh_key(user)
    else:
        ssh_pubkey = None

    creds = Credentials(user=user, password=password, ssh_pubkey=ssh_pubkey or None)
    if not creds.has_password and not creds.has_ssh_key:
        print("", flush=True)
        log("WARN", "Neither password nor SSH key configured - VMs cloned from this template will be inaccessible!")
        if interactive and not prompts.confirm("Continue anyway?"):
            raise Aborted()
    return creds


def _prompt_password(user: str) -> Optional[str]:
    print("", flush=True)
    print(f"  Set a password for user {prompts.CYAN}{user}{prompts.RESET}.", flush=True)
    print(f"  {prompts.YELLOW}(Leave blank to skip - SSH key auth is recommended){prompts.RESET}", flush=True)
    while True:
        first = prompts.ask_secret("  Password: ", hint="--password")
        if not first:
            log("WARN", "No password set - VMs will require SSH key authentication")
            return None
        if len(first.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            prompts.error_line(f"Password too long (max {BCRYPT_MAX_PASSWORD_BYTES} bytes). Try again.")
            continue
        second = prompts.ask_secret("  Confirm password: ", hint="--password")
        if first == second:
            log("INFO", f"Password set for user '{user}'")
            return first
        prompts.error_line("Passwords do not match. Try again.")


def _prompt_ssh_key(user: str) -> Optional[str]:
    print("", flush=True)
    print(f"{prompts.BOLD}  SSH public key for user {user}:{prompts.RESET}", flush=True)
    options = ["Paste a public key", "Read from a file path", "Skip (no SSH key)"]
    while True:
        choice = prompts.choose("Select", options, default=3, hint="--sshkey")
        if choice == 1:
            key = prompts.ask("  Paste your public key: ", hint="--sshkey")
            if not key:
                log("WARN", "Empty key - skipping SSH key configuration")
                return None
            if not key.startswith(SSH_KEY_PREFIX):
                prompts.error_line("That doesn't look like a valid SSH public key (should start with ssh-).")
                continue
            log("INFO", "SSH public key accepted")
            return key
        if choice == 2:
            raw = prompts.ask("  Path to public key file: ", hint="--sshkey")
            path = Path(raw).expanduser()
            if not path.is_file():
                prompts.error_line(f"File not found: {path}")
                continue
            key = read_ssh_key(path)
            log("INFO", f"SSH key loaded from: {path}")
            return key
        log("WARN", "No SSH key configured")
        return None
