"""
Run-scoped scratch directory.

The directory is removed on every exit path: normal exit of the ``with``
block, exceptions, SIGINT/SIGTERM and interpreter shutdown (atexit).
"""

from __future__ import annotations

import atexit
import logging
import os
import shutil
import signal
import sys
import tempfile

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ScratchArea:
    """
    Uniquely named temporary directory owning all downloads of one run.

    Usage:
        with ScratchArea() as scratch:
            path = scratch.file("SHASUMS256.txt")
    """

    def __init__(self, prefix: str = "dev-install-", base_dir: str | None = None):
        self.prefix = prefix
        self.base_dir = base_dir
        self.path: str | None = None
        self._previous_handlers: dict[int, object] = {}

    def __enter__(self) -> ScratchArea:
        self.path = tempfile.mkdtemp(prefix=self.prefix, dir=self.base_dir)
        logger.debug(f"Temp directory: {self.path}")
        atexit.register(self.cleanup)
        self._install_handlers()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.cleanup()
        self._restore_handlers()
        atexit.unregister(self.cleanup)
        return False

    def file(self, name: str) -> str:
        """Path of a file inside the scratch area."""
        if self.path is None:
            raise RuntimeError("ScratchArea used outside its with-block")
        return os.path.join(self.path, name)

    def cleanup(self) -> None:
        if self.path and os.path.exists(self.path):
            shutil.rmtree(self.path, ignore_errors=True)
            logger.debug(f"Removed temp directory: {self.path}")

    def _install_handlers(self) -> None:
        for signum in HANDLED_SIGNALS:
            try:
                self._previous_handlers[signum] = signal.signal(signum, self._on_signal)
            except ValueError:
                # signal() only works in the main thread; atexit still covers us
                pass

    def _restore_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def _on_signal(self, signum, frame) -> None:
        self.cleanup()
        previous = self._previous_handlers.get(signum)
        self._restore_handlers()
        if callable(previous):
            previous(signum, frame)
        if signum == signal.SIGINT:
            raise KeyboardInterrupt
        sys.exit(128 + signum)
