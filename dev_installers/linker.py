"""
Versioned installs and stable symlinks.

An archive is extracted into a staging directory inside the install root,
moved into place under its versioned name, and only then is the stable
symlink (e.g. /usr/local/node) swapped to it with a temporary link plus
rename. The stable path therefore never points at a partially extracted
tree.

Filesystem mutations go through one of two strategies with the same
interface: LocalFilesystem (plain os calls) and PrivilegedFilesystem
(commands run through sudo) for system directories the process cannot
write.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
import tarfile
from typing import Callable, Iterable

from .artifacts import ArtifactDescriptor
from .commands import run_step
from .common import is_root
from .errors import InstallError
from .install_plan import InstallStep

logger = logging.getLogger(__name__)


def _safe_extractall(tf: tarfile.TarFile, dest_dir: str) -> None:
    """Extract tarfile safely, using the 'data' filter on Python 3.12+."""
    if sys.version_info >= (3, 12):
        tf.extractall(dest_dir, filter="data")
    else:
        # On older Python, manually check for path traversal
        abs_dest = os.path.realpath(dest_dir)
        for member in tf.getmembers():
            abs_member = os.path.realpath(os.path.join(dest_dir, member.name))
            if not abs_member.startswith(abs_dest + os.sep) and abs_member != abs_dest:
                raise InstallError(f"Refusing to extract '{member.name}': path traversal detected")
        tf.extractall(dest_dir)


def needs_sudo(path: str) -> bool:
    """Check if writing to path requires elevated privileges."""
    path = os.path.abspath(os.path.expanduser(path))
    while not os.path.exists(path):
        parent = os.path.dirname(path)
        if parent == path:
            return True
        path = parent
    return not os.access(path, os.W_OK)


def _fs_error(action: str, what: str, e: OSError) -> InstallError:
    return InstallError(
        f"Cannot {action} {what}: {e.strerror or e}",
        remediation="Check ownership of the install root, or run with sudo.",
    )


class LocalFilesystem:
    """Filesystem mutations with the current process's privileges."""
    privileged = False

    def makedirs(self, path: str) -> None:
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise _fs_error("create", path, e) from e

    def remove_tree(self, path: str) -> None:
        """Remove a file, symlink or directory tree; missing paths are fine."""
        try:
            if os.path.islink(path) or os.path.isfile(path):
                os.unlink(path)
            elif os.path.isdir(path):
                shutil.rmtree(path)
        except OSError as e:
            raise _fs_error("remove", path, e) from e

    def extract(self, archive: str, mode: str, dest_dir: str) -> None:
        try:
            with tarfile.open(archive, mode) as tf:
                _safe_extractall(tf, dest_dir)
        except (tarfile.TarError, OSError) as e:
            raise InstallError(f"Failed to extract {os.path.basename(archive)}: {e}") from e

    def rename(self, src: str, dst: str) -> None:
        try:
            os.rename(src, dst)
        except OSError as e:
            raise _fs_error("move", f"{src} to {dst}", e) from e

    def symlink_atomic(self, target: str, link: str) -> None:
        """Point link at target, replacing whatever link was, in one rename."""
        tmp = f"{link}.tmp-{os.getpid()}"
        try:
            if os.path.lexists(tmp):
                os.unlink(tmp)
            os.symlink(target, tmp)
            os.replace(tmp, link)
        except OSError as e:
            raise _fs_error("link", f"{link} -> {target}", e) from e


class PrivilegedFilesystem:
    """
    Filesystem mutations run as root via sudo.

    Each operation is a fatal InstallStep executed through the shared
    command runner.
    """
    privileged = True

    def __init__(self, runner: Callable[[InstallStep], object] = run_step):
        self.runner = runner

    def _run(self, description: str, *command: str) -> None:
        self.runner(InstallStep(description, tuple(command), requires_sudo=True))

    def makedirs(self, path: str) -> None:
        self._run(f"Create {path}", "mkdir", "-p", path)

    def remove_tree(self, path: str) -> None:
        if os.path.lexists(path):
            self._run(f"Remove {path}", "rm", "-rf", path)

    def extract(self, archive: str, mode: str, dest_dir: str) -> None:
        flag = "-xJf" if mode == "r:xz" else "-xzf"
        self._run(f"Extract {os.path.basename(archive)}", "tar", "-C", dest_dir, flag, archive)

    def rename(self, src: str, dst: str) -> None:
        self._run(f"Move {src} to {dst}", "mv", "-T", src, dst)

    def symlink_atomic(self, target: str, link: str) -> None:
        tmp = f"{link}.tmp-{os.getpid()}"
        self._run(f"Create temporary link {tmp}", "ln", "-sfn", target, tmp)
        self._run(f"Link {link} -> {target}", "mv", "-Tf", tmp, link)


def select_filesystem(paths: Iterable[str], runner: Callable[[InstallStep], object] = run_step):
    """
    Choose the filesystem strategy for the given target paths.

    Root, or every path writable, means local operations; otherwise sudo.
    """
    if is_root() or not any(needs_sudo(p) for p in paths):
        return LocalFilesystem()
    logger.debug("Install location is not writable, escalating with sudo")
    return PrivilegedFilesystem(runner)


def install_versioned(
    archive: str,
    descriptor: ArtifactDescriptor,
    install_root: str,
    stable_link: str,
    fs,
) -> str:
    """
    Extract an archive into its versioned directory and repoint the stable link.

    Args:
        archive: Verified artifact on disk
        descriptor: Artifact descriptor (gives the versioned folder name)
        install_root: Directory holding versioned installs
        stable_link: Fixed path that should point at the active version
        fs: LocalFilesystem or PrivilegedFilesystem

    Returns:
        Path of the versioned directory
    """
    versioned_dir = os.path.join(install_root, descriptor.folder_name)
    staging_dir = os.path.join(install_root, f".staging-{descriptor.folder_name}")

    fs.makedirs(install_root)
    fs.remove_tree(staging_dir)
    fs.makedirs(staging_dir)

    logger.info(f"Extracting {descriptor.filename} to {install_root}")
    fs.extract(archive, descriptor.tar_mode, staging_dir)

    # Archives ship a single top-level directory (node-v22.12.0-linux-x64/, go/)
    entries = os.listdir(staging_dir)
    if len(entries) == 1 and os.path.isdir(os.path.join(staging_dir, entries[0])):
        extracted = os.path.join(staging_dir, entries[0])
    else:
        extracted = staging_dir

    if os.path.lexists(versioned_dir):
        logger.info(f"Removing stale install {versioned_dir}")
        fs.remove_tree(versioned_dir)
    fs.rename(extracted, versioned_dir)
    if extracted != staging_dir:
        fs.remove_tree(staging_dir)

    # A real directory at the stable path is a pre-versioning install
    if os.path.isdir(stable_link) and not os.path.islink(stable_link):
        logger.info(f"Removing old installation at {stable_link}")
        fs.remove_tree(stable_link)

    fs.makedirs(os.path.dirname(stable_link))
    fs.symlink_atomic(versioned_dir, stable_link)
    logger.info(f"Symlink: {stable_link} -> {versioned_dir}")
    return versioned_dir


def link_binaries(
    stable_link: str,
    bin_dir: str,
    names: Iterable[str],
    fs,
    bin_subdir: str = "bin",
) -> list[str]:
    """
    Create <bin_dir>/<name> -> <stable_link>/bin/<name> for each shipped binary.

    Binaries missing from the installed tree are skipped.

    Returns:
        Names that were linked
    """
    fs.makedirs(bin_dir)
    linked = []
    for name in names:
        source = os.path.join(stable_link, bin_subdir, name)
        if not os.path.exists(source):
            logger.debug(f"Skipping {name}: not shipped in this version")
            continue
        fs.symlink_atomic(source, os.path.join(bin_dir, name))
        linked.append(name)
    return linked
