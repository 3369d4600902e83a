"""
CPython built from the python.org source tarball, or installed through pyenv.
"""

from __future__ import annotations

import logging
import os
import shutil

from packaging.version import InvalidVersion

from ..artifacts import ArtifactSpec
from ..commands import probe_version, require_commands
from ..config import Config
from ..environment import detect_platform
from ..errors import InstallError
from ..install_plan import InstallStep
from ..linker import LocalFilesystem, needs_sudo
from ..logging_config import step, success
from ..package_managers import detect_package_manager
from ..pipeline import ArtifactPipeline, InstallResult
from ..scratch import ScratchArea
from ..shellrc import ensure_lines, select_rc_files
from ..versions import latest_python_version, major_minor, resolve_version
from .base import Installer

logger = logging.getLogger(__name__)


PYTHON_SPEC = ArtifactSpec(
    tool="python",
    base_url="https://www.python.org/ftp/python/{version}",
    filename="Python-{version}.{ext}",
    formats=("tar.xz", "tgz"),
    checksum_suffix=".sha256",
    remediation=(
        "Set PYTHON_SHA256 to the published digest of the tarball, "
        "or CHECKSUM_POLICY=warn to install without verification."
    ),
)

PYENV_INSTALLER_URL = "https://pyenv.run"

# Package manager → (group install command, packages)
BUILD_DEPENDENCIES: dict[str, tuple[tuple[str, ...] | None, tuple[str, ...]]] = {
    "apt": (None, (
        "build-essential", "libssl-dev", "zlib1g-dev", "libbz2-dev", "libreadline-dev",
        "libsqlite3-dev", "wget", "curl", "llvm", "libncurses5-dev", "libncursesw5-dev",
        "xz-utils", "tk-dev", "libffi-dev", "liblzma-dev", "git", "libgdbm-dev",
        "libnss3-dev", "libxml2-dev", "libxmlsec1-dev",
    )),
    "dnf": (("dnf", "groupinstall", "-y", "Development Tools"), (
        "openssl-devel", "bzip2-devel", "libffi-devel", "zlib-devel", "readline-devel",
        "sqlite-devel", "ncurses-devel", "xz-devel", "tk-devel", "gdbm-devel", "libuuid-devel",
    )),
    "yum": (("yum", "groupinstall", "-y", "Development Tools"), (
        "openssl-devel", "bzip2-devel", "libffi-devel", "zlib-devel", "readline-devel",
        "sqlite-devel", "ncurses-devel", "xz-devel", "tk-devel", "gdbm-devel",
    )),
    "pacman": (None, (
        "base-devel", "openssl", "zlib", "bzip2", "readline", "sqlite", "ncurses", "xz", "tk", "libffi",
    )),
    "apk": (None, (
        "build-base", "openssl-dev", "zlib-dev", "bzip2-dev", "readline-dev", "sqlite-dev",
        "ncurses-dev", "xz-dev", "tk-dev", "libffi-dev", "linux-headers",
    )),
    "zypper": (("zypper", "--non-interactive", "install", "-t", "pattern", "devel_basis"), (
        "libopenssl-devel", "zlib-devel", "libbz2-devel", "readline-devel", "sqlite3-devel",
        "ncurses-devel", "xz-devel", "tk-devel", "libffi-devel",
    )),
}

PIP_TOOLS = ("setuptools", "wheel", "virtualenv")


def python_rc_lines(prefix: str) -> tuple[str, ...]:
    return (
        f'export PATH="{prefix}/bin:$PATH"',
        f'export LD_LIBRARY_PATH="{prefix}/lib:$LD_LIBRARY_PATH"',
    )


PYENV_RC_LINES = (
    'export PYENV_ROOT="$HOME/.pyenv"',
    'export PATH="$PYENV_ROOT/bin:$PATH"',
    'eval "$(pyenv init -)"',
)


def configure_args(prefix: str, optimize: bool) -> tuple[str, ...]:
    args = (f"--prefix={prefix}", "--enable-shared", "--with-system-ffi")
    if optimize:
        args += ("--enable-optimizations", "--with-lto")
    return args


def build_steps(config: Config, src_dir: str, version: str) -> list[InstallStep]:
    """
    configure / make / make altinstall, then the unversioned links and ldconfig.

    Args:
        config: Run configuration
        src_dir: Extracted source tree
        version: Full version, e.g. "3.12.4"
    """
    prefix = config.prefix
    mm = major_minor(version)
    privileged = needs_sudo(prefix)
    bin_dir = config.bin_dir
    jobs = str(os.cpu_count() or 2)

    steps = [
        InstallStep(
            "Configure",
            ("./configure",) + configure_args(prefix, config.python.enable_optimizations),
            cwd=src_dir,
        ),
        InstallStep(f"Build with {jobs} parallel jobs", ("make", f"-j{jobs}"), cwd=src_dir),
        InstallStep("Install (make altinstall)", ("make", "altinstall"), requires_sudo=privileged, cwd=src_dir),
    ]
    for link, target in (
        ("python3", f"python{mm}"),
        ("python", f"python{mm}"),
        ("pip3", f"pip{mm}"),
        ("pip", f"pip{mm}"),
    ):
        steps.append(InstallStep(
            f"Link {link} -> {target}",
            ("ln", "-sf", os.path.join(bin_dir, target), os.path.join(bin_dir, link)),
            requires_sudo=privileged,
        ))

    if os.path.exists("/etc/ld.so.conf"):
        steps.append(InstallStep(
            "Register shared library path",
            ("tee", "/etc/ld.so.conf.d/python.conf"),
            requires_sudo=True,
            stdin=f"{prefix}/lib\n",
        ))
        steps.append(InstallStep("Update shared library cache", ("ldconfig",), requires_sudo=True))
    return steps


class PythonInstaller(Installer):
    name = "python"
    title = "Python Installer for Linux"
    summary_title = "Python Installation Summary"

    def install(self, config: Config) -> InstallResult:
        if config.python.method == "pyenv":
            return self.install_pyenv(config)
        return self.install_source(config)

    def install_build_deps(self, config: Config) -> None:
        if config.skip_deps:
            logger.debug("Skipping dependency installation")
            return

        pm = detect_package_manager(config.verbose)
        group_command, packages = BUILD_DEPENDENCIES[pm.name]
        step(f"Installing build dependencies via {pm.name}")
        steps = [pm.update_step()]
        if group_command:
            steps.append(InstallStep("Install development tools group", group_command, requires_sudo=True))
        steps.append(pm.install_step(packages, description="Install build dependencies"))
        self.execute(config, self.plan(config, steps))
        if not config.dry_run:
            success("Build dependencies installed")

    def upgrade_pip_tools(self, config: Config, python_bin: str, privileged: bool) -> None:
        step("Setting up pip and tools")
        self.execute(config, self.plan(config, [
            InstallStep(
                "Upgrade pip",
                (python_bin, "-m", "pip", "install", "--upgrade", "pip"),
                requires_sudo=privileged,
                on_failure="warn",
                warning="pip upgrade failed, continuing",
            ),
            InstallStep(
                f"Install {', '.join(PIP_TOOLS)}",
                (python_bin, "-m", "pip", "install", "--upgrade") + PIP_TOOLS,
                requires_sudo=privileged,
                on_failure="warn",
                warning=f"Could not install {', '.join(PIP_TOOLS)}, continuing",
            ),
        ]))

    def install_source(self, config: Config) -> InstallResult:
        fetcher = self.get_fetcher(config)
        pipeline = ArtifactPipeline(
            config,
            PYTHON_SPEC,
            vendor="python",
            lookup=lambda: latest_python_version(fetcher),
            fetcher=fetcher,
            pinned_digest=config.python.sha256,
            machine=self.machine,
            kernel=self.kernel,
        )
        prepared = pipeline.prepare()
        version = prepared.version.value
        try:
            major_minor(version)
        except InvalidVersion as e:
            raise InstallError(f"Invalid Python version: {version}") from e

        logger.info("Install method: source")
        logger.info(f"Install prefix: {config.prefix}")

        self.install_build_deps(config)

        descriptor = prepared.located.descriptor
        if config.dry_run:
            logger.info(f"[dry-run] download {descriptor.url}")
            src_dir = os.path.join("<scratch>", descriptor.folder_name)
            self.execute(config, self.plan(config, build_steps(config, src_dir, version)))
            return InstallResult(
                tool_name=self.name,
                success=True,
                installed_version=version,
                version_source=prepared.version.source,
                dry_run=True,
            )

        require_commands(("make",))
        with ScratchArea() as scratch:
            path, _ = pipeline.fetch_and_verify(scratch, prepared.located)

            step("Extracting source")
            LocalFilesystem().extract(path, descriptor.tar_mode, scratch.path)
            src_dir = scratch.file(descriptor.folder_name)

            step(f"Building Python {version} (this may take a while)")
            steps = build_steps(config, src_dir, version)
            if any(s.requires_sudo and s.cwd == src_dir for s in steps):
                # make altinstall as root leaves root-owned files in the build tree
                steps.append(InstallStep(
                    "Remove build tree", ("rm", "-rf", src_dir), requires_sudo=True, on_failure="ignore",
                ))
            self.execute(config, self.plan(config, steps))
            success(f"Python {version} installed from source")

        python_bin = os.path.join(config.bin_dir, "python3")
        self.upgrade_pip_tools(config, python_bin, needs_sudo(config.prefix))

        step("Setting up PATH")
        rc_files = select_rc_files(config.home, config.shell)
        ensure_lines(rc_files, python_rc_lines(config.prefix))
        success("PATH configured")

        result = InstallResult(
            tool_name=self.name,
            success=True,
            installed_version=version,
            version_source=prepared.version.source,
            checksum_verified=prepared.located.verified,
            install_dir=config.prefix,
            rc_files=tuple(rc_files),
            summary_rows=self.summary_rows(python_bin, os.path.join(config.bin_dir, "pip3")),
        )
        success(f"Python {version} installed successfully!")
        return self.with_activation_hint(result, config)

    def install_pyenv(self, config: Config) -> InstallResult:
        detect_platform("python", self.machine, self.kernel, verbose=config.verbose)
        fetcher = self.get_fetcher(config)
        resolved = resolve_version("python", config.version, lambda: latest_python_version(fetcher))
        logger.info(f"Python version: {resolved}")
        logger.info("Install method: pyenv")

        self.install_build_deps(config)

        step("Installing Python via pyenv")
        pyenv_root = os.path.join(config.home, ".pyenv")
        pyenv = os.path.join(pyenv_root, "bin", "pyenv")
        steps = []
        if shutil.which("pyenv") is None and not os.path.exists(pyenv):
            if not config.dry_run:
                require_commands(("curl",))
            steps.append(InstallStep(
                "Install pyenv",
                ("sh", "-c", f"curl -fsSL {PYENV_INSTALLER_URL} | sh"),
            ))
        elif not os.path.exists(pyenv):
            pyenv = shutil.which("pyenv")
        steps.append(InstallStep(f"Install Python {resolved}", (pyenv, "install", "-s", resolved.value)))
        steps.append(InstallStep(f"Set global Python {resolved}", (pyenv, "global", resolved.value)))
        self.execute(config, self.plan(config, steps))

        if config.dry_run:
            return InstallResult(
                tool_name=self.name,
                success=True,
                installed_version=resolved.value,
                version_source=resolved.source,
                dry_run=True,
            )
        success(f"Python {resolved} installed via pyenv")

        shims = os.path.join(pyenv_root, "shims")
        self.upgrade_pip_tools(config, os.path.join(shims, "python"), privileged=False)

        # pyenv's init lines belong in the interactive rc file only
        zsh_files = select_rc_files(config.home, config.shell)
        if zsh_files[-1].endswith("/.zshrc"):
            rc_files = [zsh_files[-1]]
        else:
            rc_files = [os.path.join(config.home, ".bashrc")]
        ensure_lines(rc_files, PYENV_RC_LINES)

        result = InstallResult(
            tool_name=self.name,
            success=True,
            installed_version=resolved.value,
            version_source=resolved.source,
            install_dir=os.path.join(pyenv_root, "versions", resolved.value),
            rc_files=tuple(rc_files),
            summary_rows=self.summary_rows(os.path.join(shims, "python"), os.path.join(shims, "pip")),
        )
        success(f"Python {resolved} installed successfully!")
        return self.with_activation_hint(result, config)

    def summary_rows(self, python_bin: str, pip_bin: str) -> tuple[tuple[str, str], ...]:
        python_version = probe_version(python_bin)
        pip_version = probe_version(pip_bin)
        return (
            ("Python", f"Python {python_version}" if python_version else "unknown"),
            ("pip", pip_version or "unknown"),
            ("Path", python_bin),
        )
