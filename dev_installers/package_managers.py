"""
System package manager registry.

Each PackageManager knows how to refresh its index, install and remove
packages. Commands are returned as InstallSteps so callers decide the
failure policy per call site.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from typing import Sequence

from .common import vlog
from .errors import UnsupportedEnvironmentError
from .install_plan import InstallStep


@dataclass(frozen=True)
class PackageManager:
    """
    Package manager definition.

    Attributes:
        name: Package manager identifier (e.g., "apt", "dnf")
        display_name: Human-readable name
        binary: Executable whose presence marks the manager as available
        install_command: Command prefix to install packages
        update_command: Command to refresh the package index
        remove_command: Command prefix to remove packages
    """
    name: str
    display_name: str
    binary: str
    install_command: tuple[str, ...]
    update_command: tuple[str, ...]
    remove_command: tuple[str, ...]

    def is_available(self) -> bool:
        """Check if this package manager is installed and on PATH."""
        return shutil.which(self.binary) is not None

    def install_step(
        self,
        packages: Sequence[str],
        description: str | None = None,
        on_failure: str = "fatal",
    ) -> InstallStep:
        """
        Build the step that installs packages.

        Args:
            packages: Package names
            description: Step description (default lists the packages)
            on_failure: Failure policy for the step

        Returns:
            InstallStep running with administrative privileges
        """
        return InstallStep(
            description=description or f"Install {' '.join(packages)}",
            command=self.install_command + tuple(packages),
            requires_sudo=True,
            on_failure=on_failure,
        )

    def remove_step(self, packages: Sequence[str], on_failure: str = "ignore") -> InstallStep:
        return InstallStep(
            description=f"Remove {' '.join(packages)}",
            command=self.remove_command + tuple(packages),
            requires_sudo=True,
            on_failure=on_failure,
        )

    def update_step(self, on_failure: str = "warn") -> InstallStep:
        return InstallStep(
            description=f"Refresh {self.display_name} package index",
            command=self.update_command,
            requires_sudo=True,
            on_failure=on_failure,
        )


# Package Manager Registry
# Ordered by detection preference (dnf before yum on hosts that have both)

PACKAGE_MANAGERS = (
    PackageManager(
        name="apt",
        display_name="apt",
        binary="apt-get",
        install_command=("env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "install", "-y"),
        update_command=("apt-get", "update"),
        remove_command=("env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "remove", "-y"),
    ),
    PackageManager(
        name="dnf",
        display_name="dnf",
        binary="dnf",
        install_command=("dnf", "install", "-y"),
        update_command=("dnf", "makecache"),
        remove_command=("dnf", "remove", "-y"),
    ),
    PackageManager(
        name="yum",
        display_name="yum",
        binary="yum",
        install_command=("yum", "install", "-y"),
        update_command=("yum", "makecache"),
        remove_command=("yum", "remove", "-y"),
    ),
    PackageManager(
        name="pacman",
        display_name="pacman",
        binary="pacman",
        install_command=("pacman", "-S", "--noconfirm", "--needed"),
        update_command=("pacman", "-Sy"),
        remove_command=("pacman", "-R", "--noconfirm"),
    ),
    PackageManager(
        name="apk",
        display_name="apk",
        binary="apk",
        install_command=("apk", "add", "--no-cache"),
        update_command=("apk", "update"),
        remove_command=("apk", "del"),
    ),
    PackageManager(
        name="zypper",
        display_name="zypper",
        binary="zypper",
        install_command=("zypper", "--non-interactive", "install"),
        update_command=("zypper", "--non-interactive", "refresh"),
        remove_command=("zypper", "--non-interactive", "remove"),
    ),
)


# Package manager lookup by name
_PM_BY_NAME = {pm.name: pm for pm in PACKAGE_MANAGERS}


def get_package_manager(name: str) -> PackageManager | None:
    """
    Get package manager by name.

    Args:
        name: Package manager name

    Returns:
        PackageManager or None if not found
    """
    return _PM_BY_NAME.get(name)


def detect_package_manager(verbose: bool = False) -> PackageManager:
    """
    Find the first available system package manager.

    Raises:
        UnsupportedEnvironmentError: If none of the known managers is present
    """
    for pm in PACKAGE_MANAGERS:
        if pm.is_available():
            vlog(f"Using package manager: {pm.display_name}", verbose)
            return pm

    names = ", ".join(pm.name for pm in PACKAGE_MANAGERS)
    raise UnsupportedEnvironmentError(
        "No supported package manager found",
        remediation=f"Supported package managers: {names}",
    )
