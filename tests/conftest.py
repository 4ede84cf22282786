"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable
from unittest.mock import MagicMock

import pytest

from pvetemplate.models import StoragePool, TemplateConfig, VMIDState
from pvetemplate.proxmox import ProxmoxHost


@pytest.fixture
def default_template_config() -> TemplateConfig:
    """Return a TemplateConfig as produced with no flags and no environment."""
    return TemplateConfig(
        vmid=9000,
        name="ubuntu-cloud",
        bridge="vmbr0",
        storage=None,
        image=None,
        user="ubuntu",
        password=None,
        sshkey_file=None,
        release=None,
        memory_mb=2048,
        cores=2,
        disk_size="20G",
    )


@pytest.fixture
def fake_host() -> MagicMock:
    """A ProxmoxHost double: VMID free, two storage pools."""
    host = MagicMock(spec=ProxmoxHost)
    host.vmid_state.return_value = VMIDState.FREE
    host.vm_name.return_value = None
    host.storage_pools.return_value = [
        StoragePool("local", "dir", "active", 98497780, 10485760, 88012020),
        StoragePool("local-lvm", "lvmthin", "active", 367001600, 36700160, 330301440),
    ]
    return host


@pytest.fixture
def tty(monkeypatch):
    """Pretend a terminal is attached."""
    monkeypatch.setattr("pvetemplate.prompts.has_controlling_tty", lambda: True)


@pytest.fixture
def answers(monkeypatch, tty):
    """Feed scripted answers to input(); returns the list of prompts seen."""
    seen = []

    def _feed(values: Iterable[str]):
        it = iter(values)

        def _input(prompt=""):
            seen.append(prompt)
            return next(it)

        monkeypatch.setattr("builtins.input", _input)
        return seen

    return _feed


@pytest.fixture
def passwords(monkeypatch, tty):
    """Feed scripted answers to getpass()."""

    def _feed(values: Iterable[str]):
        it = iter(values)
        monkeypatch.setattr("pvetemplate.prompts.getpass.getpass", lambda prompt="": next(it))

    return _feed


@pytest.fixture
def ssh_key_file(tmp_path) -> Path:
    path = tmp_path / "id_ed25519.pub"
    path.write_text("ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIExample admin@example\n", encoding="utf-8")
    return path


# All environment variables resolve_config() reads - used to ensure a clean slate.
_CONFIG_ENV_VARS = [
    "TEMPLATE_VMID",
    "TEMPLATE_NAME",
    "NETWORK_BRIDGE",
    "STORAGE_POOL",
    "CI_USER",
    "CI_PASSWORD",
    "SSH_PUBKEY_FILE",
    "UBUNTU_RELEASE",
    "TEMPLATE_MEMORY",
    "TEMPLATE_CORES",
    "TEMPLATE_DISK_SIZE",
    "DOWNLOAD_RETRIES",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Clear all environment variables that resolve_config() reads."""
    for key in _CONFIG_ENV_VARS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def mock_env(monkeypatch, clean_env):
    """Helper to set environment variables for tests."""

    def _set(**kwargs):
        for key, value in kwargs.items():
            if value is None:
                monkeypatch.delenv(key, raising=False)
            else:
                monkeypatch.setenv(key, str(value))

    return _set
