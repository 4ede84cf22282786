"""proxmox-cloud-template package."""

__all__ = [
    "builder",
    "cli",
    "config",
    "constants",
    "credentials",
    "exceptions",
    "images",
    "models",
    "pickers",
    "prompts",
    "proxmox",
    "utils",
]
