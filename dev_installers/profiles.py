"""
Linux distribution profiles.

A DistroProfile is selected once per run from /etc/os-release and then
answers every distro-specific question (which package manager, which init
system) by producing InstallSteps. Tool installers never branch on the
distro id themselves; they look up their per-family recipe by
``profile.family``.
"""

from __future__ import annotations

from typing import Sequence

from .common import vlog
from .environment import OsRelease, read_os_release
from .errors import UnsupportedEnvironmentError
from .install_plan import InstallStep
from .package_managers import PackageManager, get_package_manager


class DistroProfile:
    """
    Base class for distribution profiles.

    Attributes:
        family: Family key used by tool recipes ("debian", "ubuntu", "rhel", ...)
        display_name: Human-readable family name
        package_managers: Preferred package managers, best first
        init_system: "systemd" or "openrc"
    """
    family = ""
    display_name = ""
    package_managers: tuple[str, ...] = ()
    init_system = "systemd"

    def __init__(self, os_release: OsRelease, package_manager: PackageManager | None = None):
        self.os_release = os_release
        self.package_manager = package_manager or self._pick_package_manager()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.os_release.id!r}, pm={self.package_manager.name!r})"

    def _pick_package_manager(self) -> PackageManager:
        candidates = [get_package_manager(name) for name in self.package_managers]
        for pm in candidates:
            if pm is not None and pm.is_available():
                return pm
        # Nothing on PATH (dry run on another host): plan with the preferred one
        return candidates[0]

    @property
    def codename(self) -> str:
        return self.os_release.codename

    @property
    def major_version(self) -> str:
        return self.os_release.major_version

    # Packages

    def install_packages(
        self,
        packages: Sequence[str],
        description: str | None = None,
        on_failure: str = "fatal",
    ) -> InstallStep:
        return self.package_manager.install_step(packages, description, on_failure)

    def remove_packages(self, packages: Sequence[str]) -> InstallStep:
        """Remove packages; a package that is not installed is not an error."""
        return self.package_manager.remove_step(packages, on_failure="ignore")

    def update_index(self) -> InstallStep:
        return self.package_manager.update_step()

    # Services

    def enable_service(self, name: str, on_failure: str = "fatal") -> InstallStep:
        if self.init_system == "openrc":
            command: tuple[str, ...] = ("rc-update", "add", name, "default")
        else:
            command = ("systemctl", "enable", name)
        return InstallStep(f"Enable {name} service", command, requires_sudo=True, on_failure=on_failure)

    def start_service(self, name: str, on_failure: str = "fatal") -> InstallStep:
        return self._service_action(name, "start", on_failure)

    def restart_service(self, name: str, on_failure: str = "fatal") -> InstallStep:
        return self._service_action(name, "restart", on_failure)

    def service_status_command(self, name: str) -> tuple[str, ...]:
        if self.init_system == "openrc":
            return ("rc-service", name, "status")
        return ("systemctl", "is-active", name)

    def _service_action(self, name: str, action: str, on_failure: str) -> InstallStep:
        if self.init_system == "openrc":
            command: tuple[str, ...] = ("rc-service", name, action)
        else:
            command = ("systemctl", action, name)
        return InstallStep(
            f"{action.capitalize()} {name} service",
            command,
            requires_sudo=True,
            on_failure=on_failure,
        )


class DebianProfile(DistroProfile):
    family = "debian"
    display_name = "Debian"
    package_managers = ("apt",)


class UbuntuProfile(DebianProfile):
    family = "ubuntu"
    display_name = "Ubuntu"


class RhelProfile(DistroProfile):
    """RHEL, CentOS, Rocky, AlmaLinux, Oracle Linux."""
    family = "rhel"
    display_name = "RHEL/Rocky/AlmaLinux"
    package_managers = ("dnf", "yum")


class FedoraProfile(DistroProfile):
    family = "fedora"
    display_name = "Fedora"
    package_managers = ("dnf",)


class ArchProfile(DistroProfile):
    family = "arch"
    display_name = "Arch Linux"
    package_managers = ("pacman",)


class AlpineProfile(DistroProfile):
    family = "alpine"
    display_name = "Alpine Linux"
    package_managers = ("apk",)
    init_system = "openrc"


class SuseProfile(DistroProfile):
    family = "suse"
    display_name = "openSUSE/SLES"
    package_managers = ("zypper",)


# Distribution id → profile; ID_LIKE is consulted when ID is not listed
PROFILES_BY_ID: dict[str, type[DistroProfile]] = {
    "ubuntu": UbuntuProfile,
    "pop": UbuntuProfile,
    "linuxmint": UbuntuProfile,
    "debian": DebianProfile,
    "rhel": RhelProfile,
    "centos": RhelProfile,
    "rocky": RhelProfile,
    "almalinux": RhelProfile,
    "ol": RhelProfile,
    "fedora": FedoraProfile,
    "arch": ArchProfile,
    "manjaro": ArchProfile,
    "alpine": AlpineProfile,
    "opensuse": SuseProfile,
    "opensuse-leap": SuseProfile,
    "opensuse-tumbleweed": SuseProfile,
    "sles": SuseProfile,
}


def select_profile(os_release: OsRelease | None = None, verbose: bool = False) -> DistroProfile:
    """
    Select the distribution profile for this host.

    Args:
        os_release: Parsed os-release (default: read /etc/os-release)
        verbose: Enable verbose logging

    Returns:
        DistroProfile instance

    Raises:
        UnsupportedEnvironmentError: If the distribution is not recognised
    """
    if os_release is None:
        os_release = read_os_release()

    profile_cls = PROFILES_BY_ID.get(os_release.id)
    if profile_cls is None and os_release.id.startswith("opensuse"):
        profile_cls = SuseProfile
    if profile_cls is None:
        for like in os_release.id_like:
            if like in PROFILES_BY_ID:
                profile_cls = PROFILES_BY_ID[like]
                break

    if profile_cls is None:
        raise UnsupportedEnvironmentError(
            f"Unsupported Linux distribution: {os_release.pretty_name or os_release.id}",
            remediation="Install the tool manually using your distribution's documentation.",
        )

    profile = profile_cls(os_release)
    vlog(f"Distribution profile: {profile!r}", verbose)
    return profile
