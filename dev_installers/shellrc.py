"""
Idempotent edits to shell startup files.

Lines are only ever appended, and only when no existing line in the file
is identical to them, so repeated runs (and runs of different tools in any
order) leave each line present exactly once.
"""

from __future__ import annotations

import logging
import os
import shutil
from typing import Iterable

from .errors import InstallError

logger = logging.getLogger(__name__)

ZSH_SHELLS = ("/bin/zsh", "/usr/bin/zsh")


def select_rc_files(home: str, shell: str = "", zsh_available: bool | None = None) -> list[str]:
    """
    Choose the startup files to edit.

    Args:
        home: Home directory
        shell: Login shell path ($SHELL)
        zsh_available: Whether zsh is installed (default: look it up on PATH)

    Returns:
        zsh users get ~/.zprofile and ~/.zshrc; everyone else gets
        ~/.profile plus ~/.bashrc when it exists
    """
    if zsh_available is None:
        zsh_available = shutil.which("zsh") is not None

    if shell in ZSH_SHELLS or zsh_available:
        return [os.path.join(home, ".zprofile"), os.path.join(home, ".zshrc")]

    files = [os.path.join(home, ".profile")]
    bashrc = os.path.join(home, ".bashrc")
    if os.path.isfile(bashrc):
        files.append(bashrc)
    return files


def append_once(file_path: str, line: str) -> bool:
    """
    Append line to file unless an identical line is already present.

    Creates the file (and its directory) if needed. If the file does not
    end with a newline, one is added before the new line.

    Returns:
        True if the line was appended
    """
    if "\n" in line:
        raise ValueError("Shell rc entries must be single lines")

    existing = ""
    try:
        if os.path.exists(file_path):
            with open(file_path, "r", encoding="utf-8", errors="surrogateescape") as f:
                existing = f.read()
    except OSError as e:
        raise InstallError(f"Cannot read {file_path}: {e.strerror or e}") from e

    if line in existing.split("\n"):
        logger.debug(f"Already exists in {file_path}: {line}")
        return False

    parent = os.path.dirname(file_path)
    try:
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(file_path, "a", encoding="utf-8", errors="surrogateescape") as f:
            if existing and not existing.endswith("\n"):
                f.write("\n")
            f.write(line + "\n")
    except OSError as e:
        raise InstallError(
            f"Cannot update {file_path}: {e.strerror or e}",
            remediation=f"Add this line manually: {line}",
        ) from e
    logger.debug(f"Added to {file_path}: {line}")
    return True


def ensure_lines(files: Iterable[str], lines: Iterable[str]) -> dict[str, list[str]]:
    """
    Ensure every line is present in every file.

    Returns:
        Mapping of file path to the lines that had to be appended
    """
    lines = list(lines)
    added: dict[str, list[str]] = {}
    for file_path in files:
        added[file_path] = [line for line in lines if append_once(file_path, line)]
    return added


def display_path(path: str, home: str) -> str:
    """Shorten a path under home to ~/... for user-facing hints."""
    home = home.rstrip("/")
    if home and path.startswith(home + "/"):
        return "~" + path[len(home):]
    return path
