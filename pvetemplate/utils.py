"""Utility functions for proxmox-cloud-template."""

from __future__ import annotations

import http.client
import os
import shutil
import socket
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

try:
    import bcrypt  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("bcrypt is required but not installed") from exc

from pvetemplate.constants import (
    _LOG_VERBOSE,
    _SENSITIVE_OPTIONS,
    BCRYPT_MAX_PASSWORD_BYTES,
    DISK_SIZE_RE,
    PVE_BCRYPT_PREFIX,
    USER_AGENT,
    VMID_MAX,
    VMID_MIN,
    VMID_RE,
)
from pvetemplate.exceptions import TemplateError


def log(level: str, message: str) -> None:
    """Lightweight structured logging with a colour per level."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def parse_int(name: str, raw: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise TemplateError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise TemplateError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise TemplateError(f"{name} must be <= {max_val} (got {value})")
    return value


def parse_int_env(name: str, default: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    raw = get_env(name, default)
    assert raw is not None
    return parse_int(name, raw, min_val=min_val, max_val=max_val)


def parse_vmid(raw: str) -> int:
    """Validate a VMID given on the command line or in the environment."""
    raw = raw.strip()
    if not VMID_RE.match(raw):
        raise TemplateError(f"Invalid VMID '{raw}': must be a number")
    return parse_int("VMID", raw, min_val=VMID_MIN, max_val=VMID_MAX)


def validate_disk_size(raw: str) -> str:
    if not DISK_SIZE_RE.match(raw):
        raise TemplateError(
            f"Invalid disk size '{raw}'. Use a number with optional suffix: K, M, G, T (e.g. '20G')"
        )
    return raw


def download_file(url: str, destination: Path, label: str = "Downloading") -> None:
    """Download a file with a progress bar using Python urllib."""
    log("INFO", f"{label}: {url}")
    req = Request(url, headers={"User-Agent": USER_AGENT})
    try:
        response = urlopen(req, timeout=60)
    except HTTPError as exc:
        raise TemplateError(f"HTTP error downloading {url}: {exc.code} {exc.reason}")
    except URLError as exc:
        raise TemplateError(f"Failed to download {url}: {exc.reason}")

    with response, tempfile.NamedTemporaryFile(delete=False, dir=destination.parent) as tmp:
        total = response.headers.get("Content-Length")
        total_bytes = int(total) if total else None
        downloaded = 0
        start_time = time.time()
        tmp_path = Path(tmp.name)
        try:
            chunk_size = 1024 * 256  # 256 KiB
            while True:
                chunk = response.read(chunk_size)
                if not chunk:
                    break
                tmp.write(chunk)
                downloaded += len(chunk)

                elapsed = time.time() - start_time
                speed = downloaded / elapsed if elapsed > 0 else 0
                downloaded_mb = downloaded / (1024 * 1024)

                if total_bytes:
                    total_mb = total_bytes / (1024 * 1024)
                    pct = downloaded * 100 / total_bytes
                    remaining = (total_bytes - downloaded) / speed if speed > 0 else 0
                    eta_str = time.strftime("%M:%S", time.gmtime(remaining))
                    bar_len = 30
                    filled = int(bar_len * downloaded / total_bytes)
                    bar = "#" * filled + "-" * (bar_len - filled)
                    print(
                        f"\r  [{bar}] {pct:5.1f}% {downloaded_mb:.1f}/{total_mb:.1f} MiB "
                        f"({speed / (1024 * 1024):.1f} MiB/s, ETA {eta_str})",
                        end="", flush=True,
                    )
                else:
                    print(
                        f"\r  {downloaded_mb:.1f} MiB downloaded "
                        f"({speed / (1024 * 1024):.1f} MiB/s)",
                        end="", flush=True,
                    )
            print(flush=True)  # newline after progress
            tmp.flush()
            tmp_path.replace(destination)
            elapsed = time.time() - start_time
            final_mb = downloaded / (1024 * 1024)
            log("SUCCESS", f"Downloaded {final_mb:.1f} MiB in {elapsed:.1f}s")
        except (OSError, http.client.HTTPException) as exc:
            print(flush=True)
            tmp_path.unlink(missing_ok=True)
            raise TemplateError(f"Failed to download {url}: {exc!r}") from exc
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise


def download_file_with_retry(
    url: str, destination: Path, label: str = "Downloading", retries: int = 3, backoff: float = 5.0
) -> None:
    """Call download_file, retrying with a linear backoff on TemplateError."""
    attempts = max(1, retries)
    for attempt in range(1, attempts + 1):
        try:
            download_file(url, destination, label=label)
            return
        except TemplateError as exc:
            if attempt == attempts:
                raise
            log("WARN", f"Download attempt {attempt}/{attempts} failed: {exc}; retrying")
            time.sleep(backoff * attempt)


def has_controlling_tty() -> bool:
    """Return True if both stdin and stdout are attached to a TTY."""
    for stream in (sys.stdin, sys.stdout):
        try:
            if not stream.isatty():
                return False
        except (AttributeError, ValueError):
            return False
    return True


def command_available(name: str) -> bool:
    return shutil.which(name) is not None


def host_name() -> str:
    return socket.gethostname()


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def check_password(password: str) -> str:
    """Reject passwords bcrypt cannot hash in full."""
    size = len(password.encode("utf-8"))
    if size > BCRYPT_MAX_PASSWORD_BYTES:
        raise TemplateError(
            f"Password is {size} bytes long; at most {BCRYPT_MAX_PASSWORD_BYTES} bytes are supported"
        )
    return password


def hash_password(password: str) -> str:
    """Generate a bcrypt hash that qm accepts as pre-hashed.

    The ``$2b$`` and ``$2y$`` variants are the same algorithm; only the
    latter is recognised by Proxmox, anything else is hashed again as plain
    text.
    """
    check_password(password)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
    return PVE_BCRYPT_PREFIX + hashed[len(PVE_BCRYPT_PREFIX):]


def mask_command(cmd: List[str]) -> List[str]:
    """Return a copy of cmd with values of secret options replaced."""
    masked = list(cmd)
    for idx, arg in enumerate(masked[:-1]):
        if arg in _SENSITIVE_OPTIONS:
            masked[idx + 1] = "********"
    return masked


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging."""
    log("DEBUG", f"Running: {' '.join(mask_command(cmd))}")
    result = subprocess.run(cmd, check=check, text=True, **kwargs)
    return result
