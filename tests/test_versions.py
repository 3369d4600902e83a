"""
Tests for version resolution (dev_installers/versions.py).
"""

import json
import logging

import pytest

from dev_installers.errors import InstallError, NetworkError
from dev_installers.versions import (
    FALLBACK_VERSIONS,
    GO_VERSION_URL,
    NODE_RELEASE_URL,
    PYTHON_EOL_URL,
    PYTHON_FTP_URL,
    latest_go_version,
    latest_node_version,
    latest_python_version,
    major_minor,
    resolve_version,
)

from conftest import FakeFetcher


def failing_lookup():
    raise NetworkError("https://go.dev/VERSION?m=text", "timed out")


class TestResolveVersion:
    """Tests for resolve_version."""

    def test_explicit_skips_lookup(self):
        def lookup():
            raise AssertionError("lookup must not be called")

        resolved = resolve_version("go", "1.21.3", lookup)
        assert resolved.value == "1.21.3"
        assert resolved.source == "explicit"

    def test_latest(self):
        resolved = resolve_version("go", None, lambda: "1.23.1")
        assert str(resolved) == "1.23.1"
        assert resolved.source == "latest"

    def test_fallback_on_network_error(self, caplog):
        with caplog.at_level(logging.WARNING):
            resolved = resolve_version("go", None, failing_lookup)
        assert resolved.value == FALLBACK_VERSIONS["go"]
        assert resolved.source == "fallback"
        assert "fallback" in caplog.text

    def test_fallback_on_empty_result(self):
        resolved = resolve_version("python", None, lambda: None)
        assert resolved.value == "3.12.4"

    def test_custom_fallback(self):
        assert resolve_version("go", None, failing_lookup, fallback="1.20.0").value == "1.20.0"

    def test_fallback_disallowed(self):
        with pytest.raises(NetworkError):
            resolve_version("node", None, failing_lookup, allow_fallback=False)
        with pytest.raises(InstallError):
            resolve_version("node", None, lambda: None, allow_fallback=False)

    def test_no_fallback_known(self):
        with pytest.raises(NetworkError):
            resolve_version("zig", None, failing_lookup)


class TestLatestGoVersion:
    """Tests for the go.dev VERSION lookup."""

    def test_strips_prefix(self):
        fetcher = FakeFetcher(texts={GO_VERSION_URL: "go1.23.1\ntime 2024-09-04T21:45:34Z\n"})
        assert latest_go_version(fetcher) == "1.23.1"

    def test_garbage(self):
        fetcher = FakeFetcher(texts={GO_VERSION_URL: "<html>oops</html>"})
        assert latest_go_version(fetcher) is None

    def test_empty(self):
        assert latest_go_version(FakeFetcher(texts={GO_VERSION_URL: ""})) is None


class TestLatestNodeVersion:
    """Tests for the Node.js channel lookup."""

    def test_reads_channel_manifest(self):
        url = f"{NODE_RELEASE_URL}/latest-v22.x/SHASUMS256.txt"
        text = (
            f"{'a' * 64}  node-v22.12.0-darwin-arm64.tar.gz\n"
            f"{'b' * 64}  node-v22.12.0-linux-x64.tar.xz\n"
        )
        fetcher = FakeFetcher(texts={url: text})
        assert latest_node_version(fetcher, "latest-v22.x") == "22.12.0"

    def test_no_linux_artifacts(self):
        url = f"{NODE_RELEASE_URL}/latest-v22.x/SHASUMS256.txt"
        fetcher = FakeFetcher(texts={url: "nothing here"})
        assert latest_node_version(fetcher, "latest-v22.x") is None

    def test_network_error_propagates(self):
        with pytest.raises(NetworkError):
            latest_node_version(FakeFetcher(), "latest-v22.x")


class TestLatestPythonVersion:
    """Tests for the CPython lookup."""

    def test_endoflife(self):
        cycles = [{"cycle": "3.13", "latest": "3.13.0"}, {"cycle": "3.12", "latest": "3.12.7"}]
        fetcher = FakeFetcher(texts={PYTHON_EOL_URL: json.dumps(cycles)})
        assert latest_python_version(fetcher) == "3.13.0"

    def test_listing_fallback(self):
        listing = (
            '<a href="3.9.20/">3.9.20/</a>\n'
            '<a href="3.13.0/">3.13.0/</a>\n'
            '<a href="3.12.7/">3.12.7/</a>\n'
            '<a href="3.14.0a1/">3.14.0a1/</a>\n'
        )
        fetcher = FakeFetcher(texts={f"{PYTHON_FTP_URL}/": listing})
        assert latest_python_version(fetcher) == "3.13.0"

    def test_invalid_json_uses_listing(self):
        fetcher = FakeFetcher(texts={
            PYTHON_EOL_URL: "not json",
            f"{PYTHON_FTP_URL}/": '<a href="3.12.7/">3.12.7/</a>',
        })
        assert latest_python_version(fetcher) == "3.12.7"


class TestMajorMinor:
    def test_major_minor(self):
        assert major_minor("3.12.4") == "3.12"
        assert major_minor("3.13.0") == "3.13"
