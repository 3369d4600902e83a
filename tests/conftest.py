"""
Shared fixtures for dev_installers tests.
"""

import hashlib
import io
import logging
import os
import tarfile

import pytest

from dev_installers import logging_config
from dev_installers.errors import NetworkError
from dev_installers.fetcher import Fetcher


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() so caplog sees records through propagation."""
    yield
    logger = logging.getLogger(logging_config.LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    logging_config._logger = None


def make_tarball(path, top_dir, files, mode="w:xz"):
    """
    Write a tar archive with files under a single top-level directory.

    Args:
        path: Archive path
        top_dir: Name of the top-level directory
        files: Mapping of relative path to (content, file mode)
    """
    with tarfile.open(path, mode) as tf:
        info = tarfile.TarInfo(top_dir)
        info.type = tarfile.DIRTYPE
        info.mode = 0o755
        tf.addfile(info)
        for rel, (content, file_mode) in files.items():
            data = content.encode()
            info = tarfile.TarInfo(f"{top_dir}/{rel}")
            info.size = len(data)
            info.mode = file_mode
            tf.addfile(info, io.BytesIO(data))
    return path


def sha256_of(path):
    with open(path, "rb") as f:
        return hashlib.sha256(f.read()).hexdigest()


class FakeFetcher(Fetcher):
    """Serves canned text responses and local files; records every request."""

    def __init__(self, texts=None, files=None):
        super().__init__(timeout=5)
        self.texts = dict(texts or {})
        self.files = dict(files or {})
        self.requests = []

    def fetch_text(self, url):
        self.requests.append(url)
        if url not in self.texts:
            raise NetworkError(url, "HTTP 404 Not Found")
        return self.texts[url]

    def download(self, url, dest):
        self.requests.append(url)
        if url not in self.files:
            raise NetworkError(url, "HTTP 404 Not Found")
        with open(self.files[url], "rb") as src, open(dest, "wb") as out:
            out.write(src.read())
        return os.path.getsize(dest)


NODE_BIN_FILES = {
    "bin/node": ("#!/bin/sh\necho v22.12.0\n", 0o755),
    "bin/npm": ("#!/bin/sh\necho 10.9.0\n", 0o755),
    "bin/npx": ("#!/bin/sh\n", 0o755),
    "README.md": ("node\n", 0o644),
}


@pytest.fixture
def node_tarball(tmp_path):
    """A minimal node-v22.12.0-linux-x64.tar.xz (no corepack)."""
    archive = tmp_path / "dist" / "node-v22.12.0-linux-x64.tar.xz"
    archive.parent.mkdir()
    return str(make_tarball(str(archive), "node-v22.12.0-linux-x64", NODE_BIN_FILES))
