"""
Tests for the run-scoped scratch directory (dev_installers/scratch.py).
"""

import os
import signal
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest

from dev_installers.scratch import ScratchArea


PACKAGE_ROOT = str(Path(__file__).resolve().parent.parent)


class TestScratchArea:
    """Tests for ScratchArea cleanup on every exit path."""

    def test_created_and_removed(self, tmp_path):
        with ScratchArea(base_dir=str(tmp_path)) as scratch:
            assert os.path.isdir(scratch.path)
            path = scratch.file("SHASUMS256.txt")
            Path(path).write_text("data")
            assert os.path.dirname(path) == scratch.path
        assert not os.path.exists(scratch.path)

    def test_unique_names(self, tmp_path):
        with ScratchArea(base_dir=str(tmp_path)) as a, ScratchArea(base_dir=str(tmp_path)) as b:
            assert a.path != b.path

    def test_removed_on_exception(self, tmp_path):
        with pytest.raises(RuntimeError):
            with ScratchArea(base_dir=str(tmp_path)) as scratch:
                Path(scratch.file("partial.tar.xz")).write_bytes(b"xx")
                raise RuntimeError("download failed")
        assert not os.path.exists(scratch.path)

    def test_file_outside_block(self):
        with pytest.raises(RuntimeError):
            ScratchArea().file("x")

    def test_signal_handlers_restored(self, tmp_path):
        before = signal.getsignal(signal.SIGTERM)
        with ScratchArea(base_dir=str(tmp_path)):
            assert signal.getsignal(signal.SIGTERM) != before
        assert signal.getsignal(signal.SIGTERM) == before

    def test_cleanup_idempotent(self, tmp_path):
        with ScratchArea(base_dir=str(tmp_path)) as scratch:
            scratch.cleanup()
            scratch.cleanup()
        assert not os.path.exists(scratch.path)

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    def test_removed_on_sigterm(self, tmp_path):
        """A terminated run leaves no scratch directory behind."""
        script = textwrap.dedent(f"""
            import os, signal
            from dev_installers.scratch import ScratchArea
            with ScratchArea(base_dir={str(tmp_path)!r}) as scratch:
                print(scratch.path, flush=True)
                os.kill(os.getpid(), signal.SIGTERM)
        """)
        env = dict(os.environ, PYTHONPATH=PACKAGE_ROOT)
        result = subprocess.run(
            [sys.executable, "-c", script],
            capture_output=True,
            text=True,
            env=env,
            timeout=60,
        )
        path = result.stdout.strip()
        assert path
        assert result.returncode == 128 + signal.SIGTERM
        assert not os.path.exists(path)
