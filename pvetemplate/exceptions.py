"""Custom exceptions for proxmox-cloud-template."""


class TemplateError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""


class Aborted(Exception):
    """Raised when the operator declines to continue."""
