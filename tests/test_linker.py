"""
Tests for versioned installs and symlinks (dev_installers/linker.py).
"""

import io
import os
import tarfile
from unittest.mock import patch

import pytest

from dev_installers.artifacts import ArtifactDescriptor
from dev_installers.errors import InstallError
from dev_installers.linker import (
    LocalFilesystem,
    PrivilegedFilesystem,
    install_versioned,
    link_binaries,
    needs_sudo,
    select_filesystem,
)

from conftest import make_tarball


NODE_DESCRIPTOR = ArtifactDescriptor(
    "https://nodejs.org/download/release/v22.12.0",
    "node-v22.12.0-linux-x64.tar.xz",
    "tar.xz",
)


@pytest.fixture
def prefix(tmp_path):
    path = tmp_path / "prefix"
    path.mkdir()
    return str(path)


class TestNeedsSudo:
    """Tests for the writability check."""

    def test_writable_dir(self, tmp_path):
        assert needs_sudo(str(tmp_path)) is False

    def test_missing_path_uses_ancestor(self, tmp_path):
        assert needs_sudo(str(tmp_path / "a" / "b" / "c")) is False

    def test_unwritable(self, tmp_path):
        with patch("dev_installers.linker.os.access", return_value=False):
            assert needs_sudo(str(tmp_path)) is True


class TestSelectFilesystem:
    """Tests for strategy selection."""

    def test_writable_paths(self, tmp_path):
        with patch("dev_installers.linker.is_root", return_value=False):
            fs = select_filesystem([str(tmp_path / "lib"), str(tmp_path / "bin")])
        assert isinstance(fs, LocalFilesystem)

    def test_unwritable_paths(self, tmp_path):
        with patch("dev_installers.linker.is_root", return_value=False), \
             patch("dev_installers.linker.needs_sudo", return_value=True):
            fs = select_filesystem(["/usr/local/lib/nodejs"])
        assert isinstance(fs, PrivilegedFilesystem)

    def test_root_is_local(self):
        with patch("dev_installers.linker.is_root", return_value=True):
            assert isinstance(select_filesystem(["/usr/local"]), LocalFilesystem)


class TestLocalFilesystem:
    """Tests for LocalFilesystem operations."""

    def test_symlink_atomic_replaces(self, tmp_path):
        fs = LocalFilesystem()
        old = tmp_path / "old"
        new = tmp_path / "new"
        old.mkdir()
        new.mkdir()
        link = str(tmp_path / "current")
        fs.symlink_atomic(str(old), link)
        fs.symlink_atomic(str(new), link)
        assert os.readlink(link) == str(new)
        assert [p for p in os.listdir(tmp_path) if ".tmp-" in p] == []

    def test_remove_tree_missing(self, tmp_path):
        LocalFilesystem().remove_tree(str(tmp_path / "missing"))

    def test_rename_failure_is_install_error(self, tmp_path):
        with pytest.raises(InstallError, match="Cannot move .*staging") as exc_info:
            LocalFilesystem().rename(str(tmp_path / "staging"), str(tmp_path / "node-v22.12.0-linux-x64"))
        assert "sudo" in exc_info.value.remediation

    def test_symlink_failure_is_install_error(self, tmp_path):
        link = tmp_path / "missing-dir" / "node"
        with pytest.raises(InstallError, match="Cannot link"):
            LocalFilesystem().symlink_atomic(str(tmp_path), str(link))

    def test_makedirs_under_file(self, tmp_path):
        (tmp_path / "prefix").write_text("")
        with pytest.raises(InstallError, match="Cannot create"):
            LocalFilesystem().makedirs(str(tmp_path / "prefix" / "lib"))

    def test_extract_corrupt_archive(self, tmp_path):
        archive = tmp_path / "broken.tar.xz"
        archive.write_bytes(b"not an archive")
        with pytest.raises(InstallError, match="Failed to extract"):
            LocalFilesystem().extract(str(archive), "r:xz", str(tmp_path / "out"))

    def test_extract_rejects_traversal(self, tmp_path):
        archive = tmp_path / "evil.tar.gz"
        with tarfile.open(archive, "w:gz") as tf:
            data = b"owned"
            info = tarfile.TarInfo("../evil.txt")
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
        dest = tmp_path / "out"
        dest.mkdir()
        with pytest.raises(InstallError):
            LocalFilesystem().extract(str(archive), "r:gz", str(dest))
        assert not (tmp_path / "evil.txt").exists()


class TestPrivilegedFilesystem:
    """Tests for the sudo command strategy."""

    def test_commands(self, tmp_path):
        steps = []
        fs = PrivilegedFilesystem(runner=steps.append)
        existing = tmp_path / "stale"
        existing.mkdir()

        fs.makedirs("/usr/local/lib/nodejs")
        fs.remove_tree(str(existing))
        fs.remove_tree(str(tmp_path / "missing"))
        fs.extract("/tmp/x/node.tar.xz", "r:xz", "/usr/local/lib/nodejs/.staging")
        fs.extract("/tmp/x/go.tar.gz", "r:gz", "/usr/local/lib/golang/.staging")
        fs.rename("/a", "/b")
        fs.symlink_atomic("/usr/local/lib/nodejs/node-v22", "/usr/local/node")

        commands = [step.command for step in steps]
        assert commands[0] == ("mkdir", "-p", "/usr/local/lib/nodejs")
        assert commands[1] == ("rm", "-rf", str(existing))
        assert commands[2] == ("tar", "-C", "/usr/local/lib/nodejs/.staging", "-xJf", "/tmp/x/node.tar.xz")
        assert commands[3][3] == "-xzf"
        assert commands[4] == ("mv", "-T", "/a", "/b")
        assert commands[5][:2] == ("ln", "-sfn")
        assert commands[6][:2] == ("mv", "-Tf")
        assert commands[6][-1] == "/usr/local/node"
        assert all(step.requires_sudo for step in steps)
        assert all(step.on_failure == "fatal" for step in steps)


class TestInstallVersioned:
    """Tests for install_versioned."""

    def test_fresh_install(self, tmp_path, prefix, node_tarball):
        install_root = os.path.join(prefix, "lib", "nodejs")
        stable = os.path.join(prefix, "node")

        versioned = install_versioned(node_tarball, NODE_DESCRIPTOR, install_root, stable, LocalFilesystem())

        assert versioned == os.path.join(install_root, "node-v22.12.0-linux-x64")
        assert os.path.isfile(os.path.join(versioned, "bin", "node"))
        assert os.path.islink(stable)
        assert os.readlink(stable) == versioned
        # Staging directory is gone
        assert os.listdir(install_root) == ["node-v22.12.0-linux-x64"]

    def test_reinstall_replaces_stale_tree(self, prefix, node_tarball):
        install_root = os.path.join(prefix, "lib", "nodejs")
        stable = os.path.join(prefix, "node")
        versioned = os.path.join(install_root, "node-v22.12.0-linux-x64")
        os.makedirs(versioned)
        with open(os.path.join(versioned, "leftover"), "w") as f:
            f.write("x")

        install_versioned(node_tarball, NODE_DESCRIPTOR, install_root, stable, LocalFilesystem())

        assert not os.path.exists(os.path.join(versioned, "leftover"))
        assert os.path.isfile(os.path.join(versioned, "bin", "npm"))

    def test_upgrade_keeps_previous_version(self, tmp_path, prefix, node_tarball):
        install_root = os.path.join(prefix, "lib", "nodejs")
        stable = os.path.join(prefix, "node")
        previous = os.path.join(install_root, "node-v22.11.0-linux-x64")
        os.makedirs(previous)
        os.symlink(previous, stable)

        versioned = install_versioned(node_tarball, NODE_DESCRIPTOR, install_root, stable, LocalFilesystem())

        assert os.readlink(stable) == versioned
        assert os.path.isdir(previous)

    def test_replaces_real_directory_at_stable_path(self, prefix, node_tarball):
        """An old non-versioned install at <prefix>/node is removed."""
        install_root = os.path.join(prefix, "lib", "nodejs")
        stable = os.path.join(prefix, "node")
        os.makedirs(os.path.join(stable, "bin"))

        install_versioned(node_tarball, NODE_DESCRIPTOR, install_root, stable, LocalFilesystem())

        assert os.path.islink(stable)

    def test_go_style_top_directory(self, tmp_path, prefix):
        """Go archives unpack to go/, which is renamed to the versioned name."""
        archive = make_tarball(
            str(tmp_path / "go1.22.5.linux-amd64.tar.gz"),
            "go",
            {"bin/go": ("#!/bin/sh\n", 0o755), "bin/gofmt": ("#!/bin/sh\n", 0o755)},
            mode="w:gz",
        )
        descriptor = ArtifactDescriptor("https://go.dev/dl", "go1.22.5.linux-amd64.tar.gz", "tar.gz")
        install_root = os.path.join(prefix, "lib", "golang")
        versioned = install_versioned(archive, descriptor, install_root, os.path.join(prefix, "go"), LocalFilesystem())
        assert versioned.endswith("go1.22.5.linux-amd64")
        assert os.path.isfile(os.path.join(versioned, "bin", "gofmt"))

    def test_failed_extraction_keeps_stable_link(self, tmp_path, prefix):
        install_root = os.path.join(prefix, "lib", "nodejs")
        stable = os.path.join(prefix, "node")
        previous = os.path.join(install_root, "node-v22.11.0-linux-x64")
        os.makedirs(previous)
        os.symlink(previous, stable)
        broken = tmp_path / "node-v22.12.0-linux-x64.tar.xz"
        broken.write_bytes(b"garbage")

        with pytest.raises(InstallError):
            install_versioned(str(broken), NODE_DESCRIPTOR, install_root, stable, LocalFilesystem())

        assert os.readlink(stable) == previous


class TestLinkBinaries:
    """Tests for link_binaries."""

    def test_links_shipped_binaries(self, prefix, node_tarball):
        install_root = os.path.join(prefix, "lib", "nodejs")
        stable = os.path.join(prefix, "node")
        install_versioned(node_tarball, NODE_DESCRIPTOR, install_root, stable, LocalFilesystem())
        bin_dir = os.path.join(prefix, "bin")

        linked = link_binaries(stable, bin_dir, ("node", "npm", "npx", "corepack"), LocalFilesystem())

        assert linked == ["node", "npm", "npx"]
        assert os.readlink(os.path.join(bin_dir, "node")) == os.path.join(stable, "bin", "node")
        assert not os.path.lexists(os.path.join(bin_dir, "corepack"))

    def test_relink_is_idempotent(self, prefix, node_tarball):
        install_root = os.path.join(prefix, "lib", "nodejs")
        stable = os.path.join(prefix, "node")
        install_versioned(node_tarball, NODE_DESCRIPTOR, install_root, stable, LocalFilesystem())
        bin_dir = os.path.join(prefix, "bin")
        link_binaries(stable, bin_dir, ("node",), LocalFilesystem())
        assert link_binaries(stable, bin_dir, ("node",), LocalFilesystem()) == ["node"]
        assert sorted(os.listdir(bin_dir)) == ["node"]
