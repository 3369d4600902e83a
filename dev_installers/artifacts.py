"""
Artifact location: which file to download, and which digest it must have.

Vendors publish checksums in one of two shapes:

* one manifest per release directory (``SHASUMS256.txt``) with
  ``<hex>  <filename>`` lines, checked per compression format in order;
* one ``<artifact>.sha256`` file per artifact holding the bare digest,
  fetched per compression format in order.

The first format whose filename has a checksum wins. No download happens
before a filename has been matched, and a filename is never guessed.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Mapping

from .errors import ArtifactNotFoundError, NetworkError
from .fetcher import Fetcher

logger = logging.getLogger(__name__)


# Compression suffix → tarfile read mode
COMPRESSION_FORMATS = {
    "tar.xz": "r:xz",
    "tar.gz": "r:gz",
    "tgz": "r:gz",
}

_HEX_DIGEST = re.compile(r"^[0-9a-fA-F]{64}$")


@dataclass(frozen=True)
class ArtifactDescriptor:
    """
    One downloadable artifact.

    Attributes:
        base_url: Release directory URL (no trailing slash)
        filename: Exact artifact filename including compression suffix
        compression_format: Key into COMPRESSION_FORMATS
    """
    base_url: str
    filename: str
    compression_format: str

    def __post_init__(self):
        if self.compression_format not in COMPRESSION_FORMATS:
            raise ValueError(f"Unsupported compression format: {self.compression_format}")
        if not self.filename.endswith("." + self.compression_format):
            raise ValueError(
                f"Filename {self.filename} does not end with .{self.compression_format}"
            )

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.filename}"

    @property
    def folder_name(self) -> str:
        """Versioned directory name: the filename without its compression suffix."""
        return self.filename[: -(len(self.compression_format) + 1)]

    @property
    def tar_mode(self) -> str:
        return COMPRESSION_FORMATS[self.compression_format]


@dataclass(frozen=True)
class ChecksumManifest:
    """
    Filename → expected SHA-256 digest for one release.

    Attributes:
        entries: Mapping of exact filename to lowercase hex digest
        source: Where the manifest came from (URL or "PYTHON_SHA256")
    """
    entries: Mapping[str, str] = field(default_factory=dict)
    source: str = ""

    def __contains__(self, filename: str) -> bool:
        return filename in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def digest_for(self, filename: str) -> str | None:
        return self.entries.get(filename)

    @classmethod
    def parse(cls, text: str, source: str = "") -> ChecksumManifest:
        """
        Parse ``<hex>  <filename>`` lines (sha256sum output).

        A leading ``*`` on the filename (binary mode marker) is dropped.
        Lines that are not a 64-character hex digest followed by a filename
        are ignored.
        """
        entries: dict[str, str] = {}
        for line in text.splitlines():
            parts = line.strip().split(None, 1)
            if len(parts) != 2 or not _HEX_DIGEST.match(parts[0]):
                continue
            filename = parts[1].strip().lstrip("*")
            entries[filename] = parts[0].lower()
        return cls(entries=entries, source=source)

    @classmethod
    def from_digest_file(cls, filename: str, text: str, source: str = "") -> ChecksumManifest:
        """
        Parse a per-artifact checksum file (bare digest, optionally followed by a filename).

        Returns an empty manifest when the content is not a digest, e.g. an
        HTML error page served with status 200.
        """
        tokens = text.split()
        if not tokens or not _HEX_DIGEST.match(tokens[0]):
            return cls(entries={}, source=source)
        if len(tokens) > 1 and tokens[1].lstrip("*") != filename:
            return cls(entries={}, source=source)
        return cls(entries={filename: tokens[0].lower()}, source=source)

    @classmethod
    def pinned(cls, filename: str, digest: str, source: str = "operator-pinned digest") -> ChecksumManifest:
        return cls(entries={filename: digest.lower()}, source=source)


@dataclass(frozen=True)
class ArtifactSpec:
    """
    How a vendor names and publishes release artifacts.

    Templates may use {version}, {arch} and {ext}.

    Attributes:
        tool: Tool name for diagnostics
        base_url: Release directory URL template
        filename: Artifact filename template
        formats: Compression formats, preferred first
        manifest_name: Name of a per-release manifest in base_url
        checksum_suffix: Suffix of per-artifact checksum files
        remediation: Hint shown when no checksum can be found
    """
    tool: str
    base_url: str
    filename: str
    formats: tuple[str, ...]
    manifest_name: str | None = None
    checksum_suffix: str | None = None
    remediation: str | None = None

    def __post_init__(self):
        if not self.formats:
            raise ValueError(f"{self.tool}: at least one compression format is required")
        if (self.manifest_name is None) == (self.checksum_suffix is None):
            raise ValueError(f"{self.tool}: exactly one of manifest_name or checksum_suffix must be set")

    def descriptor(self, version: str, arch: str, fmt: str) -> ArtifactDescriptor:
        values = {"version": version, "arch": arch, "ext": fmt}
        return ArtifactDescriptor(
            base_url=self.base_url.format(**values).rstrip("/"),
            filename=self.filename.format(**values),
            compression_format=fmt,
        )

    def candidates(self, version: str, arch: str) -> list[ArtifactDescriptor]:
        return [self.descriptor(version, arch, fmt) for fmt in self.formats]


@dataclass(frozen=True)
class LocatedArtifact:
    """
    Result of locating an artifact.

    Attributes:
        descriptor: The artifact to download
        manifest: Checksums covering descriptor.filename, or None when the
            run proceeds unverified (checksum policy 'warn')
    """
    descriptor: ArtifactDescriptor
    manifest: ChecksumManifest | None

    @property
    def verified(self) -> bool:
        return self.manifest is not None


def locate_artifact(
    spec: ArtifactSpec,
    version: str,
    arch: str,
    fetcher: Fetcher,
    checksum_policy: str = "strict",
    pinned_digest: str | None = None,
) -> LocatedArtifact:
    """
    Pick the artifact to download and fetch the checksums that cover it.

    Args:
        spec: Vendor publishing conventions
        version: Resolved version
        arch: Vendor platform tag
        fetcher: HTTP access
        checksum_policy: 'strict' or 'warn' (see below)
        pinned_digest: Operator-supplied digest for the primary artifact

    Returns:
        LocatedArtifact

    Raises:
        ArtifactNotFoundError: No format has a checksum entry
        NetworkError: Manifest unreachable under the 'strict' policy

    Under 'warn', an unreachable manifest (or no per-file checksum at all)
    logs a warning and returns the primary artifact with manifest=None.
    A reachable manifest that lacks every candidate is fatal under both
    policies, since the filename itself would be a guess.
    """
    candidates = spec.candidates(version, arch)
    patterns = [d.filename for d in candidates]

    if pinned_digest:
        primary = candidates[0]
        logger.info(f"Using pinned SHA256 for {primary.filename}")
        return LocatedArtifact(primary, ChecksumManifest.pinned(primary.filename, pinned_digest))

    if spec.manifest_name:
        manifest_url = f"{candidates[0].base_url}/{spec.manifest_name}"
        try:
            manifest = ChecksumManifest.parse(fetcher.fetch_text(manifest_url), source=manifest_url)
        except NetworkError as e:
            if checksum_policy != "warn":
                raise
            logger.warning(f"Could not download {spec.manifest_name} ({e.reason}). Proceeding without verification...")
            return LocatedArtifact(candidates[0], None)

        for descriptor in candidates:
            if descriptor.filename in manifest:
                if descriptor is not candidates[0]:
                    logger.info(f"{candidates[0].filename} not published, using {descriptor.filename}")
                return LocatedArtifact(descriptor, manifest)
        raise ArtifactNotFoundError(patterns, manifest_url, remediation=spec.remediation)

    # Per-artifact checksum files
    tried = []
    for descriptor in candidates:
        checksum_url = descriptor.url + spec.checksum_suffix
        tried.append(checksum_url)
        try:
            text = fetcher.fetch_text(checksum_url)
        except NetworkError as e:
            logger.debug(f"No checksum at {checksum_url}: {e.reason}")
            continue
        manifest = ChecksumManifest.from_digest_file(descriptor.filename, text, source=checksum_url)
        if descriptor.filename in manifest:
            if descriptor is not candidates[0]:
                logger.info(f"{candidates[0].filename} not published, using {descriptor.filename}")
            return LocatedArtifact(descriptor, manifest)

    if checksum_policy == "warn":
        logger.warning(
            f"Could not download checksum file for {candidates[0].filename}. "
            "Proceeding without verification..."
        )
        return LocatedArtifact(candidates[0], None)
    raise ArtifactNotFoundError(patterns, " or ".join(tried), remediation=spec.remediation)
