"""
Common utilities shared across dev_installers modules.
"""

from __future__ import annotations

import os
import sys


TRUTHY_VALUES = {"1", "true", "yes", "on"}


def is_truthy(value: str | bool | int | None) -> bool:
    """
    Interpret an environment-style flag value.

    Args:
        value: Raw value ("1", "true", "yes", "on" are truthy; case-insensitive)

    Returns:
        True if the value enables the flag
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY_VALUES


def is_root() -> bool:
    """Return True when running with an effective uid of 0."""
    return os.geteuid() == 0


def invoking_user() -> str:
    """
    Best guess of the human user behind this run.

    Prefers SUDO_USER so that `sudo dev-install ...` still configures the
    caller's account rather than root's.
    """
    return os.environ.get("SUDO_USER") or os.environ.get("USER") or ""


def vlog(msg: str, verbose: bool = False) -> None:
    """
    Log verbose message using structured logging.

    Args:
        msg: Message to log
        verbose: Whether verbose mode is enabled
    """
    if verbose or os.environ.get("DEV_INSTALL_DEBUG", "0") == "1":
        try:
            from .logging_config import get_logger
            get_logger().debug(msg)
        except Exception:
            print(f"[dev_installers] {msg}", file=sys.stderr)
