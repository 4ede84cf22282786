"""Interactive operator prompts.

Every helper refuses to block when no terminal is attached and raises
``TemplateError`` instead, pointing at the flag that avoids the prompt.
"""

from __future__ import annotations

import getpass
from typing import Optional, Sequence

from pvetemplate.exceptions import TemplateError
from pvetemplate.utils import has_controlling_tty

RED = "\033[0;31m"
YELLOW = "\033[1;33m"
CYAN = "\033[0;36m"
BOLD = "\033[1m"
RESET = "\033[0m"


def _require_tty(hint: Optional[str]) -> None:
    if has_controlling_tty():
        return
    message = "Interactive input required but no terminal is attached"
    if hint:
        message += f" (use {hint})"
    raise TemplateError(message)


def ask(message: str, default: Optional[str] = None, hint: Optional[str] = None) -> str:
    """Read one line; an empty answer yields ``default`` when given."""
    _require_tty(hint)
    answer = input(message).strip()
    if not answer and default is not None:
        return default
    return answer


def ask_secret(message: str, hint: Optional[str] = None) -> str:
    _require_tty(hint)
    return getpass.getpass(message)


def confirm(message: str, hint: Optional[str] = "--yes") -> bool:
    """Ask a y/N question; anything but y/Y is a no."""
    answer = ask(f"{message} (y/N): ", default="n", hint=hint)
    return answer in {"y", "Y"}


def error_line(message: str) -> None:
    print(f"  {RED}{message}{RESET}", flush=True)


def heading(message: str) -> None:
    print("", flush=True)
    print(f"{BOLD}{message}{RESET}", flush=True)
    print("", flush=True)


def choose(message: str, options: Sequence[str], default: Optional[int] = None, hint: Optional[str] = None) -> int:
    """Print a numbered menu and return the 1-based index picked."""
    for idx, option in enumerate(options, start=1):
        print(f"  {idx}) {option}", flush=True)
    print("", flush=True)
    count = len(options)
    suffix = f" (default: {default})" if default is not None else ""
    while True:
        raw = ask(f"  {message} [1-{count}]{suffix}: ", default=str(default) if default else None, hint=hint)
        if raw.isdigit() and 1 <= int(raw) <= count:
            return int(raw)
        error_line("Invalid selection.")
