"""
Host detection: CPU architecture → vendor platform tag, and /etc/os-release.

Every vendor names its artifacts differently (Go says amd64, Node says x64),
so each vendor has its own closed translation table. Anything not in the
table is a hard failure; the detector never guesses.
"""

from __future__ import annotations

import platform
import shlex
from dataclasses import dataclass

from .common import vlog
from .errors import UnsupportedEnvironmentError


SUPPORTED_KERNEL = "Linux"

# uname -m → vendor artifact naming, per vendor
ARCH_TABLES: dict[str, dict[str, str]] = {
    "go": {
        "x86_64": "amd64",
        "amd64": "amd64",
        "aarch64": "arm64",
        "arm64": "arm64",
        "i386": "386",
        "i686": "386",
        "armv6l": "armv6l",
        "armv7l": "armv6l",  # Go only publishes armv6l; it runs on v7
    },
    "node": {
        "x86_64": "x64",
        "amd64": "x64",
        "aarch64": "arm64",
        "arm64": "arm64",
        "armv7l": "armv7l",
        "ppc64le": "ppc64le",
        "s390x": "s390x",
        "riscv64": "riscv64",
    },
    "python": {
        "x86_64": "x86_64",
        "amd64": "x86_64",
        "aarch64": "aarch64",
        "arm64": "aarch64",
        "armv7l": "armv7l",
        "i386": "i686",
        "i686": "i686",
    },
    "docker": {
        "x86_64": "amd64",
        "amd64": "amd64",
        "aarch64": "arm64",
        "arm64": "arm64",
        "armv7l": "armhf",
    },
}

PLATFORM_TAGS: dict[str, frozenset[str]] = {
    vendor: frozenset(table.values()) for vendor, table in ARCH_TABLES.items()
}


@dataclass(frozen=True)
class Platform:
    """
    Normalized host platform for one vendor.

    Attributes:
        vendor: Artifact vendor the tag belongs to ("go", "node", ...)
        kernel: Raw kernel name (always "Linux" once detected)
        machine: Raw CPU architecture as reported by the host
        tag: Vendor artifact architecture name
    """
    vendor: str
    kernel: str
    machine: str
    tag: str

    def __str__(self) -> str:
        return f"linux-{self.tag}"


def detect_platform(
    vendor: str,
    machine: str | None = None,
    kernel: str | None = None,
    verbose: bool = False,
) -> Platform:
    """
    Map the host's CPU architecture and kernel to a vendor platform tag.

    Args:
        vendor: Key into ARCH_TABLES
        machine: CPU architecture (default: platform.machine())
        kernel: Kernel name (default: platform.system())
        verbose: Enable verbose logging

    Returns:
        Platform with the vendor's architecture tag

    Raises:
        UnsupportedEnvironmentError: Non-Linux kernel or unknown architecture
    """
    if vendor not in ARCH_TABLES:
        raise ValueError(f"Unknown artifact vendor: {vendor}")

    kernel = platform.system() if kernel is None else kernel
    machine = platform.machine() if machine is None else machine

    if kernel != SUPPORTED_KERNEL:
        raise UnsupportedEnvironmentError(
            f"Unsupported operating system: {kernel or 'unknown'}",
            remediation="These installers support Linux only.",
        )

    tag = ARCH_TABLES[vendor].get(machine)
    if tag is None:
        supported = ", ".join(sorted(ARCH_TABLES[vendor]))
        raise UnsupportedEnvironmentError(
            f"Unsupported architecture: {machine or 'unknown'}",
            remediation=f"Supported architectures for {vendor}: {supported}",
        )

    vlog(f"Platform: {machine} → {vendor} {tag}", verbose)
    return Platform(vendor=vendor, kernel=kernel, machine=machine, tag=tag)


@dataclass(frozen=True)
class OsRelease:
    """
    Parsed /etc/os-release.

    Attributes:
        id: Distribution id ("ubuntu", "fedora", ...)
        id_like: Parent distribution ids
        version_id: Distribution version ("24.04", "9.4", ...)
        codename: Release codename (UBUNTU_CODENAME, which derivatives such as
            Mint set to their Ubuntu base, else VERSION_CODENAME)
        pretty_name: Human-readable name
    """
    id: str
    id_like: tuple[str, ...] = ()
    version_id: str = ""
    codename: str = ""
    pretty_name: str = ""

    @property
    def major_version(self) -> str:
        return self.version_id.split(".", 1)[0]

    def matches(self, *ids: str) -> bool:
        """True if this distro or one it is derived from is in ids."""
        return self.id in ids or any(like in ids for like in self.id_like)


def parse_os_release(text: str) -> OsRelease:
    """
    Parse os-release content (KEY=value lines, shell quoting).

    Raises:
        UnsupportedEnvironmentError: If no ID line is present
    """
    fields: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw = line.partition("=")
        try:
            parts = shlex.split(raw)
        except ValueError:
            parts = [raw.strip("\"'")]
        fields[key.strip()] = " ".join(parts)

    distro_id = fields.get("ID", "").lower()
    if not distro_id:
        raise UnsupportedEnvironmentError(
            "Cannot detect Linux distribution (no ID in os-release)"
        )

    return OsRelease(
        id=distro_id,
        id_like=tuple(fields.get("ID_LIKE", "").lower().split()),
        version_id=fields.get("VERSION_ID", ""),
        codename=fields.get("UBUNTU_CODENAME") or fields.get("VERSION_CODENAME", ""),
        pretty_name=fields.get("PRETTY_NAME", distro_id),
    )


def read_os_release(path: str = "/etc/os-release") -> OsRelease:
    """
    Read and parse the host's os-release file.

    Raises:
        UnsupportedEnvironmentError: If the file is missing or has no ID
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise UnsupportedEnvironmentError(
            f"Cannot detect Linux distribution: {path} not readable ({e.strerror})"
        ) from e
    return parse_os_release(text)
