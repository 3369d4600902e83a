"""
Sequential HTTP downloads.

Plain GET with redirect-following (urllib's default). No resume, no
retries: any failure is a NetworkError and the caller decides what it
means for the run.
"""

from __future__ import annotations

import http.client
import logging
import os
import shutil
import urllib.error
import urllib.request

from . import __version__
from .errors import NetworkError

logger = logging.getLogger(__name__)

USER_AGENT = f"dev-installers/{__version__}"
DEFAULT_TIMEOUT = 30
CHUNK_SIZE = 64 * 1024


def _open(url: str, timeout: int, headers: dict[str, str] | None = None):
    default_headers = {"User-Agent": USER_AGENT}
    if headers:
        default_headers.update(headers)
    req = urllib.request.Request(url, headers=default_headers)
    return urllib.request.urlopen(req, timeout=timeout)


def _reason(e: Exception) -> str:
    if isinstance(e, urllib.error.HTTPError):
        return f"HTTP {e.code} {e.reason}"
    if isinstance(e, urllib.error.URLError):
        return str(e.reason)
    if isinstance(e, http.client.IncompleteRead):
        return f"connection closed with {e.expected} bytes still expected"
    return str(e) or type(e).__name__


def http_get(url: str, timeout: int = DEFAULT_TIMEOUT, headers: dict[str, str] | None = None) -> bytes:
    """
    Perform HTTP GET request.

    Args:
        url: URL to fetch
        timeout: Timeout in seconds
        headers: Optional HTTP headers

    Returns:
        Response body as bytes

    Raises:
        NetworkError: If request fails
    """
    try:
        with _open(url, timeout, headers) as response:
            return response.read()
    except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
        raise NetworkError(url, _reason(e)) from e


def fetch_text(url: str, timeout: int = DEFAULT_TIMEOUT) -> str:
    """GET a small text resource (manifest, version file, listing)."""
    return http_get(url, timeout=timeout).decode("utf-8", errors="replace")


def download_file(url: str, dest: str, timeout: int = DEFAULT_TIMEOUT) -> int:
    """
    Stream a URL to a file.

    Args:
        url: Artifact URL
        dest: Destination path (overwritten)
        timeout: Socket timeout in seconds

    Returns:
        Number of bytes written

    Raises:
        NetworkError: On any HTTP or network failure; a partial file is removed
    """
    try:
        with _open(url, timeout) as response, open(dest, "wb") as out:
            shutil.copyfileobj(response, out, CHUNK_SIZE)
            declared = response.headers.get("Content-Length", "")
            written = out.tell()
        if declared.isdigit() and written < int(declared):
            raise http.client.IncompleteRead(b"", int(declared) - written)
    except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
        if os.path.exists(dest):
            os.unlink(dest)
        raise NetworkError(url, _reason(e)) from e
    return os.path.getsize(dest)


class Fetcher:
    """
    HTTP access used by the pipeline and version lookups.

    Holds the run's timeout; tests substitute a subclass that serves
    canned responses.
    """

    def __init__(self, timeout: int = DEFAULT_TIMEOUT):
        self.timeout = timeout

    def fetch_text(self, url: str) -> str:
        logger.debug(f"GET {url}")
        return fetch_text(url, timeout=self.timeout)

    def download(self, url: str, dest: str) -> int:
        logger.debug(f"GET {url} → {dest}")
        return download_file(url, dest, timeout=self.timeout)
