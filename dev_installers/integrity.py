"""
SHA-256 verification of downloaded artifacts.
"""

from __future__ import annotations

import hashlib
import logging

from .artifacts import ChecksumManifest
from .errors import ArtifactNotFoundError, IntegrityError
from .logging_config import success

logger = logging.getLogger(__name__)


def sha256_file(file_path: str, chunk_size: int = 8192) -> str:
    """
    Compute the SHA-256 hex digest of a file.

    Args:
        file_path: File to hash
        chunk_size: Read size in bytes

    Returns:
        Lowercase hex digest
    """
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def verify_artifact(file_path: str, filename: str, manifest: ChecksumManifest | None) -> str:
    """
    Verify a downloaded artifact against the manifest entry for its exact filename.

    Args:
        file_path: Downloaded file
        filename: Artifact filename as published (the manifest key)
        manifest: Checksums, or None when the run proceeds unverified

    Returns:
        The actual digest of the file

    Raises:
        ArtifactNotFoundError: The manifest has no line for filename
        IntegrityError: Digest mismatch (never bypassed)
    """
    actual = sha256_file(file_path)

    if manifest is None:
        logger.warning(f"Installing {filename} without checksum verification (sha256 {actual})")
        return actual

    expected = manifest.digest_for(filename)
    if expected is None:
        raise ArtifactNotFoundError([filename], manifest.source)

    logger.debug(f"Expected: {expected}")
    logger.debug(f"Actual:   {actual}")

    if actual.lower() != expected.lower():
        raise IntegrityError(filename, expected, actual)

    success("SHA256 checksum verified")
    return actual
