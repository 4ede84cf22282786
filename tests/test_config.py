"""Tests for pvetemplate.config module."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from pvetemplate.config import find_release, load_releases, parse_args, resolve_config
from pvetemplate.constants import DEFAULT_RELEASES_PATH
from pvetemplate.exceptions import TemplateError


@pytest.fixture
def releases_file(tmp_path):
    """Create a temporary releases.yaml file."""
    config = {
        "releases": {
            "noble": {"codename": "noble", "version": "24.04", "name": "Noble Numbat"},
            "jammy": {"codename": "jammy", "version": "22.04", "name": "Jammy Jellyfish"},
        }
    }
    path = tmp_path / "releases.yaml"
    path.write_text(yaml.dump(config, sort_keys=False))
    return path


class TestLoadReleases:
    def test_bundled_catalogue(self):
        releases = load_releases(DEFAULT_RELEASES_PATH)
        assert [r.key for r in releases] == ["noble", "jammy", "focal"]
        assert releases[0].version == "24.04"
        assert releases[0].label == "Ubuntu 24.04 LTS (Noble Numbat)"

    def test_preserves_file_order(self, releases_file):
        releases = load_releases(releases_file)
        assert [r.codename for r in releases] == ["noble", "jammy"]

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(TemplateError, match="Release catalogue missing"):
            load_releases(tmp_path / "nope.yaml")

    def test_empty_catalogue_raises(self, tmp_path):
        path = tmp_path / "releases.yaml"
        path.write_text("releases: {}\n")
        with pytest.raises(TemplateError, match="No releases defined"):
            load_releases(path)

    def test_missing_version_raises(self, tmp_path):
        path = tmp_path / "releases.yaml"
        path.write_text("releases:\n  noble:\n    codename: noble\n")
        with pytest.raises(TemplateError, match="missing 'version'"):
            load_releases(path)

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "releases.yaml"
        path.write_text("releases: [unclosed\n")
        with pytest.raises(TemplateError, match="invalid YAML"):
            load_releases(path)


class TestFindRelease:
    @pytest.mark.parametrize("key", ["jammy", "JAMMY", "22.04"])
    def test_lookup(self, releases_file, key):
        releases = load_releases(releases_file)
        assert find_release(releases, key).codename == "jammy"

    def test_unknown_lists_available(self, releases_file):
        releases = load_releases(releases_file)
        with pytest.raises(TemplateError, match="Available releases: noble, jammy"):
            find_release(releases, "bionic")


class TestParseArgs:
    def test_unknown_option(self):
        with pytest.raises(TemplateError, match="Unknown option: --invalid-option"):
            parse_args(["--invalid-option"])

    def test_abbreviations_rejected(self):
        with pytest.raises(TemplateError, match="Unknown option: --stor"):
            parse_args(["--stor", "local-lvm"])

    def test_stray_positional(self):
        with pytest.raises(TemplateError, match="Unknown option: extra"):
            parse_args(["extra"])

    def test_help_flag(self):
        assert parse_args(["-h"]).help is True
        assert parse_args(["--help"]).help is True


class TestResolveConfig:
    def test_defaults(self, clean_env):
        cfg = resolve_config(parse_args([]))
        assert cfg.vmid == 9000
        assert cfg.name == "ubuntu-cloud"
        assert cfg.bridge == "vmbr0"
        assert cfg.storage is None
        assert cfg.image is None
        assert cfg.user == "ubuntu"
        assert cfg.password is None
        assert cfg.sshkey_file is None
        assert cfg.memory_mb == 2048
        assert cfg.cores == 2
        assert cfg.disk_size == "20G"
        assert cfg.assume_yes is False
        assert cfg.vmid_from_flag is False
        assert cfg.user_explicit is False
        assert cfg.download_retries == 3

    def test_environment_overrides(self, mock_env):
        mock_env(
            TEMPLATE_VMID="9100",
            TEMPLATE_NAME="golden",
            NETWORK_BRIDGE="vmbr1",
            STORAGE_POOL="ceph-pool",
            CI_USER="admin",
            CI_PASSWORD="hunter2",
            UBUNTU_RELEASE="jammy",
        )
        cfg = resolve_config(parse_args([]))
        assert cfg.vmid == 9100
        assert cfg.vmid_from_flag is False
        assert cfg.name == "golden"
        assert cfg.bridge == "vmbr1"
        assert cfg.storage == "ceph-pool"
        assert cfg.user == "admin"
        assert cfg.user_explicit is True
        assert cfg.password == "hunter2"
        assert cfg.release == "jammy"

    def test_flags_win_over_environment(self, mock_env):
        mock_env(TEMPLATE_VMID="9100", STORAGE_POOL="ceph-pool", CI_USER="admin")
        cfg = resolve_config(
            parse_args(["--vmid", "9010", "--storage", "local-lvm", "--user", "ops", "--yes"])
        )
        assert cfg.vmid == 9010
        assert cfg.vmid_from_flag is True
        assert cfg.storage == "local-lvm"
        assert cfg.user == "ops"
        assert cfg.assume_yes is True

    def test_paths_expanded(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        cfg = resolve_config(parse_args(["--image", "~/img.img", "--sshkey", "~/.ssh/id.pub"]))
        assert cfg.image == tmp_path / "img.img"
        assert cfg.sshkey_file == tmp_path / ".ssh" / "id.pub"

    @pytest.mark.parametrize("vmid", ["abc", "42"])
    def test_invalid_vmid_flag(self, clean_env, vmid):
        with pytest.raises(TemplateError):
            resolve_config(parse_args(["--vmid", vmid]))

    def test_invalid_vmid_env(self, mock_env):
        mock_env(TEMPLATE_VMID="ninety")
        with pytest.raises(TemplateError, match="Invalid VMID"):
            resolve_config(parse_args([]))

    def test_hardware_flags(self, clean_env):
        cfg = resolve_config(parse_args(["--memory", "4096", "--cores", "4", "--disk-size", "32G"]))
        assert (cfg.memory_mb, cfg.cores, cfg.disk_size) == (4096, 4, "32G")

    def test_invalid_disk_size(self, clean_env):
        with pytest.raises(TemplateError, match="Invalid disk size"):
            resolve_config(parse_args(["--disk-size", "huge"]))

    def test_invalid_cores(self, clean_env):
        with pytest.raises(TemplateError, match="TEMPLATE_CORES must be >= 1"):
            resolve_config(parse_args(["--cores", "0"]))

    def test_empty_password_means_none(self, clean_env):
        cfg = resolve_config(parse_args(["--password", ""]))
        assert cfg.password is None

    def test_image_is_path(self, clean_env):
        cfg = resolve_config(parse_args(["--image", "/tmp/custom.img"]))
        assert cfg.image == Path("/tmp/custom.img")
