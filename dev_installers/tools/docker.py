"""
Docker Engine from the official Docker repositories.
"""

from __future__ import annotations

import grp
import logging
import time

from ..commands import execute_step
from ..config import Config, DockerSettings
from ..environment import detect_platform
from ..errors import UnsupportedEnvironmentError
from ..install_plan import InstallStep
from ..logging_config import step, success
from ..pipeline import InstallResult
from ..profiles import DistroProfile, select_profile
from .base import Installer

logger = logging.getLogger(__name__)


DOCKER_DOWNLOAD = "https://download.docker.com/linux"
DOCKER_KEYRING = "/etc/apt/keyrings/docker.asc"
DOCKER_APT_SOURCES = "/etc/apt/sources.list.d/docker.sources"

# Packages that clash with docker-ce, per package manager
CONFLICTING_PACKAGES = {
    "apt": ("docker.io", "docker-compose", "docker-compose-v2", "docker-doc", "podman-docker", "containerd", "runc"),
    "dnf": (
        "docker", "docker-client", "docker-client-latest", "docker-common", "docker-latest",
        "docker-latest-logrotate", "docker-logrotate", "docker-engine", "podman", "runc",
    ),
}
CONFLICTING_PACKAGES["yum"] = CONFLICTING_PACKAGES["dnf"]

ENGINE_PACKAGES = ("docker-ce", "docker-ce-cli", "containerd.io", "docker-buildx-plugin")

# family → (repository path segment, engine packages, compose package)
DOCKER_RECIPES = {
    "ubuntu": ("ubuntu", ENGINE_PACKAGES, "docker-compose-plugin"),
    "debian": ("debian", ENGINE_PACKAGES, "docker-compose-plugin"),
    "rhel": ("centos", ENGINE_PACKAGES, "docker-compose-plugin"),
    "fedora": ("fedora", ENGINE_PACKAGES, "docker-compose-plugin"),
    "arch": (None, ("docker", "docker-buildx"), "docker-compose"),
    "alpine": (None, ("docker", "docker-cli"), "docker-compose"),
}

READY_ATTEMPTS = 5


def docker_packages(family: str, skip_compose: bool = False) -> tuple[str, ...]:
    """
    Raises:
        UnsupportedEnvironmentError: For families without a Docker recipe
    """
    if family not in DOCKER_RECIPES:
        raise UnsupportedEnvironmentError(
            f"Unsupported distribution for Docker: {family}",
            remediation="See https://docs.docker.com/engine/install/ for manual instructions.",
        )
    _, packages, compose = DOCKER_RECIPES[family]
    return packages if skip_compose else packages + (compose,)


def apt_sources(repo: str, codename: str, arch: str) -> str:
    """deb822 source entry for the Docker APT repository."""
    return (
        "Types: deb\n"
        f"URIs: {DOCKER_DOWNLOAD}/{repo}\n"
        f"Architectures: {arch}\n"
        f"Suites: {codename}\n"
        "Components: stable\n"
        f"Signed-By: {DOCKER_KEYRING}\n"
    )


def removal_steps(profile: DistroProfile) -> list[InstallStep]:
    packages = CONFLICTING_PACKAGES.get(profile.package_manager.name, ())
    return [profile.remove_packages((package,)) for package in packages]


def repository_steps(profile: DistroProfile, arch: str) -> list[InstallStep]:
    """
    Steps that register the Docker repository (dnf-style repositories are
    added separately because dnf4 and dnf5 disagree on the syntax).
    """
    repo = DOCKER_RECIPES[profile.family][0]
    pm = profile.package_manager.name
    if repo is None or pm != "apt":
        return []
    return [
        profile.update_index(),
        profile.install_packages(("ca-certificates", "curl"), "Install prerequisites"),
        InstallStep("Create keyring directory", ("install", "-m", "0755", "-d", "/etc/apt/keyrings"), requires_sudo=True),
        InstallStep(
            "Download Docker GPG key",
            ("curl", "-fsSL", f"{DOCKER_DOWNLOAD}/{repo}/gpg", "-o", DOCKER_KEYRING),
            requires_sudo=True,
        ),
        InstallStep("Make Docker GPG key readable", ("chmod", "a+r", DOCKER_KEYRING), requires_sudo=True),
        InstallStep(
            "Add Docker repository",
            ("tee", DOCKER_APT_SOURCES),
            requires_sudo=True,
            stdin=apt_sources(repo, profile.codename, arch),
        ),
        profile.update_index(),
    ]


def rpm_repo_alternatives(profile: DistroProfile) -> tuple[InstallStep, ...]:
    """dnf4 `config-manager --add-repo`, then the dnf5 spelling; yum uses yum-config-manager."""
    repo_url = f"{DOCKER_DOWNLOAD}/{DOCKER_RECIPES[profile.family][0]}/docker-ce.repo"
    if profile.package_manager.name == "yum":
        return (InstallStep("Add Docker repository", ("yum-config-manager", "--add-repo", repo_url), requires_sudo=True),)
    return (
        InstallStep("Add Docker repository", ("dnf", "config-manager", "--add-repo", repo_url), requires_sudo=True),
        InstallStep(
            "Add Docker repository (dnf5)",
            ("dnf", "config-manager", "addrepo", f"--from-repofile={repo_url}"),
            requires_sudo=True,
        ),
    )


def group_exists(name: str) -> bool:
    try:
        grp.getgrnam(name)
    except KeyError:
        return False
    return True


class DockerInstaller(Installer):
    name = "docker"
    title = "Docker Engine Installer for Linux"
    summary_title = "Docker Installation Summary"
    required_commands = ("curl",)

    def __init__(self, *args, profile: DistroProfile | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.profile = profile

    def install(self, config: Config) -> InstallResult:
        settings = config.docker
        arch = detect_platform("docker", self.machine, self.kernel, config.verbose).tag
        profile = self.profile or select_profile(verbose=config.verbose)
        packages = docker_packages(profile.family, settings.skip_compose)

        logger.info(f"Distribution: {profile.display_name} ({arch})")
        if settings.user:
            logger.info(f"Docker user: {settings.user}")

        step("Removing old Docker installations (if any)")
        self.execute(config, self.plan(config, removal_steps(profile)))

        step(f"Installing Docker on {profile.display_name}")
        self.execute(config, self.plan(config, repository_steps(profile, arch)))
        if profile.family in ("rhel", "fedora"):
            plugins = "yum-utils" if profile.package_manager.name == "yum" else "dnf-plugins-core"
            self.execute_step(config, profile.install_packages((plugins,), "Install repository tooling"))
            self.execute_first(config, *rpm_repo_alternatives(profile))
        self.execute_step(config, profile.install_packages(packages, "Install Docker packages"))
        if not config.dry_run:
            success(f"Docker installed on {profile.display_name}")

        self.start_service(config, profile)
        self.add_user_to_group(config, settings)
        self.smoke_test(config, settings)

        if config.dry_run:
            return InstallResult(tool_name=self.name, success=True, installed_version=None,
                                 version_source="package", dry_run=True)

        docker_version = self.first_line(("docker", "--version"))
        rows = [
            ("Docker", docker_version or "NOT INSTALLED"),
            ("Compose", self.first_line(("docker", "compose", "version")) or "NOT INSTALLED"),
        ]
        containerd = self.first_line(("containerd", "--version"), sudo=False)
        if containerd:
            rows.append(("containerd", containerd))
        rows.append(("Status", self.first_line(profile.service_status_command("docker")) or "unknown"))

        success("Docker installed successfully!")
        return InstallResult(
            tool_name=self.name,
            success=True,
            installed_version=docker_version,
            version_source="package",
            summary_rows=tuple(rows),
            notes=(
                "Quick commands:",
                "  docker --version          # Check Docker version",
                "  docker compose version    # Check Compose version",
                "  docker run hello-world    # Test Docker",
                "  docker ps                 # List running containers",
            ),
        )

    def start_service(self, config: Config, profile: DistroProfile) -> None:
        step("Enabling and starting Docker service")
        # OpenRC inside containers often cannot start services
        policy = "ignore" if profile.init_system == "openrc" else "fatal"
        self.execute(config, self.plan(config, [
            profile.enable_service("docker", on_failure=policy),
            profile.start_service("docker", on_failure=policy),
        ]))
        if config.dry_run:
            return

        logger.info("Waiting for Docker to start...")
        probe = InstallStep("Check Docker daemon", ("docker", "info"), requires_sudo=True, on_failure="ignore")
        for attempt in range(READY_ATTEMPTS):
            if execute_step(probe, timeout=30, verbose=config.verbose).success:
                success("Docker service is running")
                return
            if attempt < READY_ATTEMPTS - 1:
                time.sleep(1)
        logger.warning("Docker may not be running properly")

    def add_user_to_group(self, config: Config, settings: DockerSettings) -> None:
        if settings.skip_group:
            logger.info("Skipping docker group setup")
            return
        if not settings.user:
            logger.warning("No user specified, skipping docker group")
            return

        step(f"Adding '{settings.user}' to docker group")
        steps = []
        if not group_exists("docker"):
            steps.append(InstallStep("Create docker group", ("groupadd", "docker"), requires_sudo=True))
        steps.append(InstallStep(
            f"Add {settings.user} to docker group",
            ("usermod", "-aG", "docker", settings.user),
            requires_sudo=True,
        ))
        self.execute(config, self.plan(config, steps))
        if not config.dry_run:
            success(f"User '{settings.user}' added to docker group")
            logger.warning("Log out and back in for group changes to take effect")

    def smoke_test(self, config: Config, settings: DockerSettings) -> None:
        if settings.skip_test:
            logger.info("Skipping Docker test")
            return
        step("Testing Docker installation")
        result = self.execute_step(config, InstallStep(
            "Run hello-world container",
            ("docker", "run", "--rm", "hello-world"),
            requires_sudo=True,
            on_failure="warn",
            warning="Docker test failed. Try running: sudo docker run hello-world",
        ))
        if result is not None and result.success:
            success("Docker is working correctly!")

    def first_line(self, command: tuple[str, ...], sudo: bool = True) -> str | None:
        result = execute_step(InstallStep(f"Run {command[0]}", command, requires_sudo=sudo, on_failure="ignore"), timeout=30)
        if not result.success:
            return None
        lines = result.stdout.strip().splitlines()
        return lines[0] if lines else None
