"""
dev-installers - Linux installers for common development tools.

Core Modules:
- Foundation: configuration, logging, errors, external commands, distro profiles
- Artifact pipeline: platform detection, version resolution, artifact
  location, download, SHA-256 verification, versioned install and linking,
  shell startup files
- Tool installers: Go, Node.js, Python, PostgreSQL, Docker, Zsh
"""

__version__ = "1.0.0"

# Version info for backward compatibility
VERSION = __version__

# Foundation
from .config import Config, load_config
from .errors import (
    InstallError,
    UnsupportedEnvironmentError,
    MissingCommandError,
    NetworkError,
    ArtifactNotFoundError,
    IntegrityError,
    CommandError,
)
from .install_plan import InstallPlan, InstallStep
from .commands import StepResult, execute_step, run_plan
from .profiles import DistroProfile, select_profile
from .package_managers import PackageManager, detect_package_manager

# Artifact pipeline
from .environment import Platform, detect_platform
from .versions import ResolvedVersion, resolve_version
from .artifacts import ArtifactDescriptor, ArtifactSpec, ChecksumManifest, locate_artifact
from .fetcher import Fetcher
from .integrity import sha256_file, verify_artifact
from .scratch import ScratchArea
from .linker import install_versioned, link_binaries
from .shellrc import append_once, ensure_lines
from .pipeline import ArtifactPipeline, InstallResult

# Tool installers
from .tools import TOOLS, get_installer

__all__ = [
    "__version__",
    "VERSION",
    "Config",
    "load_config",
    "InstallError",
    "UnsupportedEnvironmentError",
    "MissingCommandError",
    "NetworkError",
    "ArtifactNotFoundError",
    "IntegrityError",
    "CommandError",
    "InstallPlan",
    "InstallStep",
    "StepResult",
    "execute_step",
    "run_plan",
    "DistroProfile",
    "select_profile",
    "PackageManager",
    "detect_package_manager",
    "Platform",
    "detect_platform",
    "ResolvedVersion",
    "resolve_version",
    "ArtifactDescriptor",
    "ArtifactSpec",
    "ChecksumManifest",
    "locate_artifact",
    "Fetcher",
    "sha256_file",
    "verify_artifact",
    "ScratchArea",
    "install_versioned",
    "link_binaries",
    "append_once",
    "ensure_lines",
    "ArtifactPipeline",
    "InstallResult",
    "TOOLS",
    "get_installer",
]
