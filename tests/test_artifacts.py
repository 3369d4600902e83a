"""
Tests for artifact location (dev_installers/artifacts.py).
"""

import logging

import pytest

from dev_installers.artifacts import (
    ArtifactDescriptor,
    ArtifactSpec,
    ChecksumManifest,
    LocatedArtifact,
    locate_artifact,
)
from dev_installers.errors import ArtifactNotFoundError, NetworkError

from conftest import FakeFetcher


DIGEST_A = "a" * 64
DIGEST_B = "b" * 64

NODE_SPEC = ArtifactSpec(
    tool="node",
    base_url="https://nodejs.org/download/release/v{version}",
    filename="node-v{version}-linux-{arch}.{ext}",
    formats=("tar.xz", "tar.gz"),
    manifest_name="SHASUMS256.txt",
)
NODE_MANIFEST_URL = "https://nodejs.org/download/release/v22.12.0/SHASUMS256.txt"

GO_SPEC = ArtifactSpec(
    tool="go",
    base_url="https://go.dev/dl",
    filename="go{version}.linux-{arch}.{ext}",
    formats=("tar.gz",),
    checksum_suffix=".sha256",
)

PY_SPEC = ArtifactSpec(
    tool="python",
    base_url="https://www.python.org/ftp/python/{version}",
    filename="Python-{version}.{ext}",
    formats=("tar.xz", "tgz"),
    checksum_suffix=".sha256",
)


class TestArtifactDescriptor:
    """Tests for ArtifactDescriptor."""

    def test_properties(self):
        d = ArtifactDescriptor("https://go.dev/dl", "go1.22.5.linux-amd64.tar.gz", "tar.gz")
        assert d.url == "https://go.dev/dl/go1.22.5.linux-amd64.tar.gz"
        assert d.folder_name == "go1.22.5.linux-amd64"
        assert d.tar_mode == "r:gz"

    def test_tgz_folder_name(self):
        d = ArtifactDescriptor("https://www.python.org/ftp/python/3.12.4", "Python-3.12.4.tgz", "tgz")
        assert d.folder_name == "Python-3.12.4"

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            ArtifactDescriptor("https://x", "tool.zip", "zip")

    def test_suffix_mismatch(self):
        with pytest.raises(ValueError):
            ArtifactDescriptor("https://x", "tool.tar.gz", "tar.xz")


class TestChecksumManifest:
    """Tests for manifest parsing."""

    def test_parse_sha256sum_lines(self):
        text = (
            f"{DIGEST_A}  node-v22.12.0-linux-x64.tar.xz\n"
            f"{DIGEST_B.upper()} *node-v22.12.0-linux-x64.tar.gz\n"
            "not a checksum line\n"
            "\n"
        )
        manifest = ChecksumManifest.parse(text, source="SHASUMS256.txt")
        assert len(manifest) == 2
        assert manifest.digest_for("node-v22.12.0-linux-x64.tar.xz") == DIGEST_A
        assert manifest.digest_for("node-v22.12.0-linux-x64.tar.gz") == DIGEST_B
        assert "node-v22.12.0-linux-arm64.tar.xz" not in manifest

    def test_exact_filename_match(self):
        """A line for a different file never covers ours."""
        manifest = ChecksumManifest.parse(f"{DIGEST_A}  node-v22.12.0-linux-x64.tar.xz.asc\n")
        assert "node-v22.12.0-linux-x64.tar.xz" not in manifest

    def test_digest_file_bare(self):
        manifest = ChecksumManifest.from_digest_file("go1.22.5.linux-amd64.tar.gz", DIGEST_A + "\n")
        assert manifest.digest_for("go1.22.5.linux-amd64.tar.gz") == DIGEST_A

    def test_digest_file_with_name(self):
        manifest = ChecksumManifest.from_digest_file("Python-3.12.4.tar.xz", f"{DIGEST_A}  Python-3.12.4.tar.xz\n")
        assert "Python-3.12.4.tar.xz" in manifest

    def test_digest_file_names_other_file(self):
        manifest = ChecksumManifest.from_digest_file("Python-3.12.4.tar.xz", f"{DIGEST_A}  Python-3.12.4.tgz\n")
        assert len(manifest) == 0

    def test_digest_file_html(self):
        manifest = ChecksumManifest.from_digest_file("go.tar.gz", "<html>Not Found</html>")
        assert len(manifest) == 0

    def test_pinned(self):
        manifest = ChecksumManifest.pinned("Python-3.12.4.tar.xz", DIGEST_A.upper())
        assert manifest.digest_for("Python-3.12.4.tar.xz") == DIGEST_A


class TestArtifactSpec:
    """Tests for ArtifactSpec."""

    def test_candidates_in_format_order(self):
        names = [d.filename for d in NODE_SPEC.candidates("22.12.0", "x64")]
        assert names == ["node-v22.12.0-linux-x64.tar.xz", "node-v22.12.0-linux-x64.tar.gz"]

    def test_base_url_expanded(self):
        d = NODE_SPEC.descriptor("22.12.0", "arm64", "tar.xz")
        assert d.url == "https://nodejs.org/download/release/v22.12.0/node-v22.12.0-linux-arm64.tar.xz"

    def test_requires_one_checksum_source(self):
        with pytest.raises(ValueError):
            ArtifactSpec(tool="x", base_url="u", filename="f.{ext}", formats=("tar.gz",))
        with pytest.raises(ValueError):
            ArtifactSpec(
                tool="x", base_url="u", filename="f.{ext}", formats=("tar.gz",),
                manifest_name="SHASUMS256.txt", checksum_suffix=".sha256",
            )

    def test_requires_formats(self):
        with pytest.raises(ValueError):
            ArtifactSpec(tool="x", base_url="u", filename="f", formats=(), manifest_name="SUMS")


class TestLocateArtifactManifest:
    """Tests for manifest-style sources (Node.js)."""

    def test_preferred_format(self):
        fetcher = FakeFetcher(texts={NODE_MANIFEST_URL: (
            f"{DIGEST_A}  node-v22.12.0-linux-x64.tar.xz\n"
            f"{DIGEST_B}  node-v22.12.0-linux-x64.tar.gz\n"
        )})
        located = locate_artifact(NODE_SPEC, "22.12.0", "x64", fetcher)
        assert located.descriptor.filename == "node-v22.12.0-linux-x64.tar.xz"
        assert located.verified
        assert fetcher.requests == [NODE_MANIFEST_URL]

    def test_falls_back_to_gz(self):
        fetcher = FakeFetcher(texts={NODE_MANIFEST_URL: f"{DIGEST_B}  node-v22.12.0-linux-x64.tar.gz\n"})
        located = locate_artifact(NODE_SPEC, "22.12.0", "x64", fetcher)
        assert located.descriptor.compression_format == "tar.gz"
        assert located.manifest.digest_for(located.descriptor.filename) == DIGEST_B

    def test_no_matching_line(self):
        """The manifest was reachable but lists neither format: never guess."""
        fetcher = FakeFetcher(texts={NODE_MANIFEST_URL: f"{DIGEST_A}  node-v22.12.0-linux-arm64.tar.xz\n"})
        for policy in ("strict", "warn"):
            with pytest.raises(ArtifactNotFoundError) as exc_info:
                locate_artifact(NODE_SPEC, "22.12.0", "x64", fetcher, checksum_policy=policy)
            assert exc_info.value.patterns == [
                "node-v22.12.0-linux-x64.tar.xz",
                "node-v22.12.0-linux-x64.tar.gz",
            ]

    def test_unreachable_manifest_strict(self):
        with pytest.raises(NetworkError):
            locate_artifact(NODE_SPEC, "22.12.0", "x64", FakeFetcher())

    def test_unreachable_manifest_warn(self, caplog):
        with caplog.at_level(logging.WARNING):
            located = locate_artifact(NODE_SPEC, "22.12.0", "x64", FakeFetcher(), checksum_policy="warn")
        assert located.manifest is None
        assert not located.verified
        assert located.descriptor.filename == "node-v22.12.0-linux-x64.tar.xz"
        assert "without verification" in caplog.text


class TestLocateArtifactPerFile:
    """Tests for per-artifact checksum files (Go, Python)."""

    def test_go(self):
        url = "https://go.dev/dl/go1.22.5.linux-amd64.tar.gz.sha256"
        fetcher = FakeFetcher(texts={url: DIGEST_A})
        located = locate_artifact(GO_SPEC, "1.22.5", "amd64", fetcher)
        assert located.descriptor.url == "https://go.dev/dl/go1.22.5.linux-amd64.tar.gz"
        assert located.manifest.source == url

    def test_second_format(self):
        url = "https://www.python.org/ftp/python/3.12.4/Python-3.12.4.tgz.sha256"
        fetcher = FakeFetcher(texts={url: DIGEST_B})
        located = locate_artifact(PY_SPEC, "3.12.4", "x86_64", fetcher)
        assert located.descriptor.filename == "Python-3.12.4.tgz"
        assert len(fetcher.requests) == 2

    def test_none_found_strict(self):
        with pytest.raises(ArtifactNotFoundError) as exc_info:
            locate_artifact(PY_SPEC, "3.12.4", "x86_64", FakeFetcher())
        assert "Python-3.12.4.tar.xz.sha256" in exc_info.value.source

    def test_none_found_warn(self):
        located = locate_artifact(PY_SPEC, "3.12.4", "x86_64", FakeFetcher(), checksum_policy="warn")
        assert located == LocatedArtifact(PY_SPEC.descriptor("3.12.4", "x86_64", "tar.xz"), None)

    def test_pinned_digest_skips_network(self):
        fetcher = FakeFetcher()
        located = locate_artifact(PY_SPEC, "3.12.4", "x86_64", fetcher, pinned_digest=DIGEST_A)
        assert fetcher.requests == []
        assert located.descriptor.filename == "Python-3.12.4.tar.xz"
        assert located.manifest.digest_for("Python-3.12.4.tar.xz") == DIGEST_A

    def test_remediation_from_spec(self):
        spec = ArtifactSpec(
            tool="python", base_url="https://x/{version}", filename="P-{version}.{ext}",
            formats=("tgz",), checksum_suffix=".sha256", remediation="Set PYTHON_SHA256",
        )
        with pytest.raises(ArtifactNotFoundError) as exc_info:
            locate_artifact(spec, "3.12.4", "x86_64", FakeFetcher())
        assert exc_info.value.remediation == "Set PYTHON_SHA256"
