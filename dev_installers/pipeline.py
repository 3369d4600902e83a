"""
The download → verify → install pipeline shared by the Go, Node.js and Python installers.

Stages run strictly in order:

    detect platform → resolve version → locate artifact → download
    → verify digest → install versioned dir + swap stable link → shell rc

Environment errors surface before any network access, and nothing under
the install root is touched until the digest has been checked.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable

from .artifacts import ArtifactSpec, LocatedArtifact, locate_artifact
from .config import Config
from .environment import Platform, detect_platform
from .fetcher import Fetcher
from .integrity import verify_artifact
from .linker import install_versioned, link_binaries, select_filesystem
from .logging_config import step, success
from .render import format_size
from .scratch import ScratchArea
from .shellrc import ensure_lines, select_rc_files
from .versions import ResolvedVersion, resolve_version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallResult:
    """
    Outcome of one installer run.

    Attributes:
        tool_name: Tool that was installed
        success: Whether installation succeeded
        installed_version: Version installed
        version_source: "explicit", "latest", "fallback" or "package"
        duration_seconds: Total installation time
        checksum_verified: Whether the artifact digest was checked
        dry_run: Nothing was changed
        install_dir: Versioned install directory
        stable_link: Stable symlink pointing at install_dir
        linked_binaries: Binaries linked into <prefix>/bin
        rc_files: Shell startup files that carry the tool's exports
        summary_rows: (label, value) rows for the final summary block
        notes: Follow-up hints printed after the summary
    """
    tool_name: str
    success: bool
    installed_version: str | None
    version_source: str = "explicit"
    duration_seconds: float = 0.0
    checksum_verified: bool = False
    dry_run: bool = False
    install_dir: str | None = None
    stable_link: str | None = None
    linked_binaries: tuple[str, ...] = ()
    rc_files: tuple[str, ...] = ()
    summary_rows: tuple[tuple[str, str], ...] = ()
    notes: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "tool_name": self.tool_name,
            "success": self.success,
            "installed_version": self.installed_version,
            "version_source": self.version_source,
            "duration_seconds": self.duration_seconds,
            "checksum_verified": self.checksum_verified,
            "dry_run": self.dry_run,
            "install_dir": self.install_dir,
            "stable_link": self.stable_link,
            "linked_binaries": list(self.linked_binaries),
            "rc_files": list(self.rc_files),
            "summary_rows": [list(row) for row in self.summary_rows],
            "notes": list(self.notes),
        }


@dataclass(frozen=True)
class PreparedArtifact:
    """Everything known before the first byte of the artifact is downloaded."""
    platform: Platform
    version: ResolvedVersion
    located: LocatedArtifact


class ArtifactPipeline:
    """
    Artifact installer for one tool.

    Args:
        config: Run configuration
        spec: Vendor artifact naming and checksum conventions
        vendor: Key into the platform ARCH_TABLES
        lookup: "latest" version query (called only without an explicit version)
        fetcher: HTTP access
        install_subdir: Default install root below the prefix, e.g. "lib/nodejs"
        stable_name: Stable symlink name below the prefix, e.g. "node"
        binaries: Executables to link into <prefix>/bin
        rc_lines: Shell startup lines to ensure
        pinned_digest: Operator-pinned SHA-256 for the primary artifact
        allow_version_fallback: Use the known-good version when "latest" cannot be fetched
        machine: CPU architecture override (default: host)
        kernel: Kernel name override (default: host)
        fs: Filesystem strategy override (default: chosen by writability)
    """

    def __init__(
        self,
        config: Config,
        spec: ArtifactSpec,
        vendor: str,
        lookup: Callable[[], str | None],
        fetcher: Fetcher | None = None,
        install_subdir: str = "",
        stable_name: str = "",
        binaries: tuple[str, ...] = (),
        rc_lines: tuple[str, ...] = (),
        pinned_digest: str | None = None,
        allow_version_fallback: bool = True,
        machine: str | None = None,
        kernel: str | None = None,
        fs=None,
    ):
        self.config = config
        self.spec = spec
        self.vendor = vendor
        self.lookup = lookup
        self.fetcher = fetcher or Fetcher(timeout=config.timeout_seconds)
        self.install_subdir = install_subdir
        self.stable_name = stable_name
        self.binaries = binaries
        self.rc_lines = rc_lines
        self.pinned_digest = pinned_digest
        self.allow_version_fallback = allow_version_fallback
        self.machine = machine
        self.kernel = kernel
        self.fs = fs

    @property
    def install_root(self) -> str:
        return self.config.resolve_install_root(self.install_subdir)

    @property
    def stable_link(self) -> str:
        return os.path.join(self.config.prefix, self.stable_name)

    def prepare(self) -> PreparedArtifact:
        """Detect the platform, resolve the version and locate the artifact."""
        platform = detect_platform(
            self.vendor, self.machine, self.kernel, verbose=self.config.verbose
        )
        logger.debug(f"Detected architecture: {platform.tag}")

        resolved = resolve_version(
            self.spec.tool,
            self.config.version,
            self.lookup,
            allow_fallback=self.allow_version_fallback,
        )
        logger.info(f"{self.spec.tool} version: {resolved}")

        step("Locating artifact")
        located = locate_artifact(
            self.spec,
            resolved.value,
            platform.tag,
            self.fetcher,
            checksum_policy=self.config.checksum_policy,
            pinned_digest=self.pinned_digest,
        )
        logger.info(f"Tarball: {located.descriptor.filename}")
        return PreparedArtifact(platform, resolved, located)

    def fetch_and_verify(self, scratch: ScratchArea, located: LocatedArtifact) -> tuple[str, str]:
        """
        Download the located artifact into the scratch area and check its digest.

        Returns:
            (path of the verified file, its SHA-256 digest)
        """
        descriptor = located.descriptor
        step("Downloading tarball")
        logger.debug(f"URL: {descriptor.url}")
        path = scratch.file(descriptor.filename)
        size = self.fetcher.download(descriptor.url, path)
        success(f"Download complete: {format_size(size)}")

        step("Verifying SHA256 checksum")
        digest = verify_artifact(path, descriptor.filename, located.manifest)
        return path, digest

    def configure_shell(self) -> list[str]:
        """Ensure the tool's rc lines in the user's startup files."""
        if not self.rc_lines:
            return []
        step("Setting up PATH")
        rc_files = select_rc_files(self.config.home, self.config.shell)
        ensure_lines(rc_files, self.rc_lines)
        success("PATH configured")
        return rc_files

    def dry_run_result(self, prepared: PreparedArtifact, start_time: float) -> InstallResult:
        descriptor = prepared.located.descriptor
        versioned_dir = os.path.join(self.install_root, descriptor.folder_name)
        logger.info(f"[dry-run] download {descriptor.url}")
        logger.info(f"[dry-run] extract to {versioned_dir}")
        if self.stable_name:
            logger.info(f"[dry-run] link {self.stable_link} -> {versioned_dir}")
        for name in self.binaries:
            logger.info(f"[dry-run] link {os.path.join(self.config.bin_dir, name)}")
        for line in self.rc_lines:
            logger.info(f"[dry-run] ensure shell line: {line}")
        return InstallResult(
            tool_name=self.spec.tool,
            success=True,
            installed_version=prepared.version.value,
            version_source=prepared.version.source,
            duration_seconds=time.time() - start_time,
            dry_run=True,
            install_dir=versioned_dir,
            stable_link=self.stable_link if self.stable_name else None,
        )

    def run(self) -> InstallResult:
        """
        Run every stage.

        Raises:
            InstallError: Any fatal condition; the scratch area is removed first
        """
        start_time = time.time()
        prepared = self.prepare()
        if self.config.dry_run:
            return self.dry_run_result(prepared, start_time)

        descriptor = prepared.located.descriptor
        with ScratchArea() as scratch:
            path, _ = self.fetch_and_verify(scratch, prepared.located)

            step(f"Extracting to {self.install_root}")
            fs = self.fs or select_filesystem([self.install_root, self.stable_link, self.config.bin_dir])
            versioned_dir = install_versioned(path, descriptor, self.install_root, self.stable_link, fs)
            success("Extraction complete")

            linked: list[str] = []
            if self.binaries:
                step(f"Symlink bin to {self.config.bin_dir}")
                linked = link_binaries(self.stable_link, self.config.bin_dir, self.binaries, fs)

        rc_files = self.configure_shell()

        return InstallResult(
            tool_name=self.spec.tool,
            success=True,
            installed_version=prepared.version.value,
            version_source=prepared.version.source,
            duration_seconds=time.time() - start_time,
            checksum_verified=prepared.located.verified,
            install_dir=versioned_dir,
            stable_link=self.stable_link,
            linked_binaries=tuple(linked),
            rc_files=tuple(rc_files),
        )
