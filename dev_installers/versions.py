"""
Version resolution: explicit input, vendor "latest" lookup, or a known-good fallback.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Callable

from packaging import version as pkg_version

from .errors import InstallError, NetworkError
from .fetcher import Fetcher

logger = logging.getLogger(__name__)


# Last known good versions, used when the "latest" lookup fails
FALLBACK_VERSIONS = {
    "go": "1.22.5",
    "node": "22.12.0",
    "python": "3.12.4",
}

GO_VERSION_URL = "https://go.dev/VERSION?m=text"
NODE_RELEASE_URL = "https://nodejs.org/download/release"
PYTHON_EOL_URL = "https://endoflife.date/api/python.json"
PYTHON_FTP_URL = "https://www.python.org/ftp/python"

_RELEASE_VERSION = re.compile(r"^\d+\.\d+(?:\.\d+)?$")


@dataclass(frozen=True)
class ResolvedVersion:
    """
    The version a run installs.

    Attributes:
        value: Version string, e.g. "22.12.0"
        source: "explicit", "latest" or "fallback"
    """
    value: str
    source: str

    def __str__(self) -> str:
        return self.value


def resolve_version(
    tool: str,
    explicit: str | None,
    lookup: Callable[[], str | None],
    fallback: str | None = None,
    allow_fallback: bool = True,
) -> ResolvedVersion:
    """
    Determine the version to install.

    Args:
        tool: Tool name for messages and the default fallback
        explicit: Operator-supplied version; returned unchanged, no network call
        lookup: Vendor "latest" query; may raise NetworkError or return None
        fallback: Version used when lookup fails (default FALLBACK_VERSIONS[tool])
        allow_fallback: When False a failed lookup is fatal

    Returns:
        ResolvedVersion

    Raises:
        NetworkError: Lookup failed and no fallback is allowed
        InstallError: Lookup returned nothing and no fallback is allowed
    """
    if explicit:
        return ResolvedVersion(explicit, "explicit")

    fallback = fallback or FALLBACK_VERSIONS.get(tool)
    try:
        latest = lookup()
    except NetworkError as e:
        if not allow_fallback or not fallback:
            raise
        logger.warning(f"Could not fetch latest {tool} version ({e.reason}), using fallback: {fallback}")
        return ResolvedVersion(fallback, "fallback")

    if not latest:
        if not allow_fallback or not fallback:
            raise InstallError(f"Failed to fetch latest {tool} version")
        logger.warning(f"Could not fetch latest {tool} version, using fallback: {fallback}")
        return ResolvedVersion(fallback, "fallback")

    logger.debug(f"Latest {tool} version: {latest}")
    return ResolvedVersion(latest, "latest")


def latest_go_version(fetcher: Fetcher) -> str | None:
    """First line of go.dev/VERSION, without the "go" prefix."""
    text = fetcher.fetch_text(GO_VERSION_URL)
    lines = text.strip().splitlines()
    if not lines:
        return None
    candidate = lines[0].strip()
    if candidate.startswith("go"):
        candidate = candidate[2:]
    return candidate if _RELEASE_VERSION.match(candidate) else None


def latest_node_version(fetcher: Fetcher, channel: str) -> str | None:
    """
    Latest release on a Node.js channel (e.g. latest-v22.x).

    Read from the channel's SHASUMS256.txt, whose artifact names carry the
    version (node-v22.12.0-linux-x64.tar.xz).
    """
    text = fetcher.fetch_text(f"{NODE_RELEASE_URL}/{channel}/SHASUMS256.txt")
    match = re.search(r"node-v(\d+\.\d+\.\d+)-linux-", text)
    return match.group(1) if match else None


def _python_from_endoflife(text: str) -> str | None:
    try:
        cycles = json.loads(text)
    except ValueError:
        return None
    if not isinstance(cycles, list):
        return None
    for cycle in cycles:
        latest = cycle.get("latest") if isinstance(cycle, dict) else None
        if isinstance(latest, str) and _RELEASE_VERSION.match(latest):
            return latest
    return None


def _python_from_listing(text: str) -> str | None:
    found = set(re.findall(r'href="(3\.\d+\.\d+)/"', text))
    if not found:
        return None
    return max(found, key=pkg_version.parse)


def latest_python_version(fetcher: Fetcher) -> str | None:
    """
    Latest stable CPython release.

    endoflife.date first (newest cycle's "latest"), then the highest
    3.x.y directory in the python.org download listing.
    """
    try:
        latest = _python_from_endoflife(fetcher.fetch_text(PYTHON_EOL_URL))
    except NetworkError as e:
        logger.debug(f"endoflife.date lookup failed: {e.reason}")
        latest = None
    if latest:
        return latest
    return _python_from_listing(fetcher.fetch_text(f"{PYTHON_FTP_URL}/"))


def major_minor(value: str) -> str:
    """'3.12.4' -> '3.12'"""
    parsed = pkg_version.parse(value)
    return f"{parsed.major}.{parsed.minor}"
