"""
Tests for package manager registry and step construction.
"""

from unittest.mock import patch

import pytest

from dev_installers.errors import UnsupportedEnvironmentError
from dev_installers.package_managers import (
    PACKAGE_MANAGERS,
    detect_package_manager,
    get_package_manager,
)


class TestRegistry:
    """Tests for the package manager registry."""

    def test_known_names(self):
        names = [pm.name for pm in PACKAGE_MANAGERS]
        assert names == ["apt", "dnf", "yum", "pacman", "apk", "zypper"]

    def test_lookup(self):
        assert get_package_manager("pacman").binary == "pacman"
        assert get_package_manager("brew") is None


class TestSteps:
    """Tests for install/remove/update steps."""

    def test_apt_install_is_noninteractive(self):
        step = get_package_manager("apt").install_step(["zsh", "git"])
        assert step.command == ("env", "DEBIAN_FRONTEND=noninteractive", "apt-get", "install", "-y", "zsh", "git")
        assert step.requires_sudo is True
        assert step.on_failure == "fatal"
        assert step.description == "Install zsh git"

    def test_custom_description_and_policy(self):
        step = get_package_manager("apk").install_step(["docker"], "Install Docker", on_failure="warn")
        assert step.description == "Install Docker"
        assert step.command == ("apk", "add", "--no-cache", "docker")
        assert step.on_failure == "warn"

    def test_pacman_needed(self):
        step = get_package_manager("pacman").install_step(["postgresql"])
        assert "--needed" in step.command

    def test_remove_ignores_failures(self):
        step = get_package_manager("dnf").remove_step(["podman-docker"])
        assert step.command == ("dnf", "remove", "-y", "podman-docker")
        assert step.on_failure == "ignore"

    def test_update_warns(self):
        step = get_package_manager("zypper").update_step()
        assert step.command == ("zypper", "--non-interactive", "refresh")
        assert step.on_failure == "warn"
        assert step.description == "Refresh zypper package index"


class TestDetection:
    """Tests for detect_package_manager."""

    def test_prefers_dnf_over_yum(self):
        available = {"dnf", "yum"}
        with patch("dev_installers.package_managers.shutil.which",
                   side_effect=lambda name: f"/usr/bin/{name}" if name in available else None):
            assert detect_package_manager().name == "dnf"

    def test_apt(self):
        with patch("dev_installers.package_managers.shutil.which",
                   side_effect=lambda name: "/usr/bin/apt-get" if name == "apt-get" else None):
            assert detect_package_manager().name == "apt"

    def test_none_available(self):
        with patch("dev_installers.package_managers.shutil.which", return_value=None):
            with pytest.raises(UnsupportedEnvironmentError) as exc_info:
                detect_package_manager()
        assert "apt, dnf, yum, pacman, apk, zypper" in exc_info.value.remediation
