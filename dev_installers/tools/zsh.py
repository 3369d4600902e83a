"""
Zsh environment: zsh itself, command-line helpers, Nerd fonts, a .zshrc
template (zinit + powerlevel10k), NVM integration and the login shell.
"""

from __future__ import annotations

import logging
import os
import pwd
import re
import shutil
import time
from urllib.parse import quote

from ..commands import probe_version
from ..common import is_root
from ..config import Config, ZshSettings
from ..errors import InstallError, NetworkError
from ..install_plan import InstallStep
from ..logging_config import step, success
from ..package_managers import PackageManager, detect_package_manager
from ..pipeline import InstallResult
from ..scratch import ScratchArea
from ..shellrc import display_path
from .base import Installer

logger = logging.getLogger(__name__)


ZSH_DEPENDENCIES = {
    "apt": ("git", "curl", "wget", "fzf", "fd-find", "eza", "unzip", "fontconfig"),
    "dnf": ("git", "curl", "wget", "fzf", "fd-find", "eza", "unzip", "fontconfig"),
    # fzf and eza are not packaged for older yum-based releases
    "yum": ("git", "curl", "wget", "unzip", "fontconfig"),
    "pacman": ("git", "curl", "wget", "fzf", "fd", "eza", "unzip", "ttf-meslo-nerd"),
    "apk": ("git", "curl", "wget", "fzf", "fd", "eza", "unzip", "font-noto"),
    "zypper": ("git", "curl", "wget", "fzf", "fd", "eza", "unzip"),
}
SUMMARY_COMMANDS = ("git", "fzf", "fd", "eza", "curl")

FONT_BASE_URL = "https://github.com/romkatv/powerlevel10k-media/raw/master"
MESLO_FONTS = (
    "MesloLGS NF Regular.ttf",
    "MesloLGS NF Bold.ttf",
    "MesloLGS NF Italic.ttf",
    "MesloLGS NF Bold Italic.ttf",
)

ZSH_DIRECTORIES = (".cache", ".local/share/zinit", ".local/bin")

P10K_CONFIG = """\
# Powerlevel10k configuration
# Run 'p10k configure' for interactive setup

# Instant prompt mode
typeset -g POWERLEVEL9K_INSTANT_PROMPT=quiet

# Basic prompt elements
typeset -g POWERLEVEL9K_LEFT_PROMPT_ELEMENTS=(
  os_icon dir vcs newline prompt_char
)
typeset -g POWERLEVEL9K_RIGHT_PROMPT_ELEMENTS=(
  status command_execution_time background_jobs time
)

# Directory
typeset -g POWERLEVEL9K_SHORTEN_STRATEGY=truncate_to_last
typeset -g POWERLEVEL9K_DIR_MAX_LENGTH=30

# Colors
typeset -g POWERLEVEL9K_OS_ICON_FOREGROUND=255
typeset -g POWERLEVEL9K_DIR_FOREGROUND=31
typeset -g POWERLEVEL9K_VCS_CLEAN_FOREGROUND=76
typeset -g POWERLEVEL9K_VCS_MODIFIED_FOREGROUND=178
typeset -g POWERLEVEL9K_VCS_UNTRACKED_FOREGROUND=178

# Prompt character
typeset -g POWERLEVEL9K_PROMPT_CHAR_OK_{VIINS,VICMD,VIVIS,VIOWR}_FOREGROUND=76
typeset -g POWERLEVEL9K_PROMPT_CHAR_ERROR_{VIINS,VICMD,VIVIS,VIOWR}_FOREGROUND=196

# Transient prompt
typeset -g POWERLEVEL9K_TRANSIENT_PROMPT=off
"""

NVM_BLOCK = """
# NVM (Node Version Manager)
export NVM_DIR="$HOME/.nvm"
[ -s "$NVM_DIR/nvm.sh" ] && . "$NVM_DIR/nvm.sh"
[ -s "$NVM_DIR/bash_completion" ] && . "$NVM_DIR/bash_completion"
"""
NVM_CONFIGURED = re.compile(r"NVM_DIR=.*\.nvm")


def backup_name(path: str, now: float | None = None) -> str:
    """<path>.backup.<YYYYmmddHHMMSS>"""
    return f"{path}.backup.{time.strftime('%Y%m%d%H%M%S', time.localtime(now))}"


def append_nvm_block(zshrc: str) -> bool:
    """
    Append the NVM loader to a .zshrc unless an NVM_DIR line already points at ~/.nvm.

    Returns:
        True if the block was appended
    """
    content = ""
    if os.path.exists(zshrc):
        with open(zshrc, "r", encoding="utf-8") as f:
            content = f.read()
    if NVM_CONFIGURED.search(content):
        return False
    with open(zshrc, "a", encoding="utf-8") as f:
        if content and not content.endswith("\n"):
            f.write("\n")
        f.write(NVM_BLOCK)
    return True


def write_p10k_config(path: str) -> bool:
    """Create a minimal .p10k.zsh; an existing file is left alone."""
    if os.path.exists(path):
        return False
    with open(path, "w", encoding="utf-8") as f:
        f.write(P10K_CONFIG)
    return True


def login_shell(user: str) -> str | None:
    try:
        return pwd.getpwnam(user).pw_shell
    except KeyError:
        return None


def listed_in_shells(binary: str, shells_file: str = "/etc/shells") -> bool:
    try:
        with open(shells_file, "r", encoding="utf-8") as f:
            return any(line.strip() == binary for line in f)
    except OSError:
        return False


class ZshInstaller(Installer):
    name = "zsh"
    title = "Zsh Environment Installer for Linux"
    summary_title = "Zsh Environment Installation Summary"
    required_commands = ("curl",)

    def __init__(self, *args, package_manager: PackageManager | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.package_manager = package_manager

    def install(self, config: Config) -> InstallResult:
        settings = config.zsh
        logger.info(f"User: {settings.user}")
        logger.info(f"Home: {settings.home}")
        if not os.path.isdir(settings.home):
            raise InstallError(
                f"Home directory {settings.home} does not exist",
                remediation="Set ZSH_USER or ZSH_HOME to an existing account.",
            )

        pm = self.package_manager or detect_package_manager(config.verbose)
        self.install_zsh(config, pm)
        self.install_dependencies(config, pm)
        self.install_fonts(config, settings)
        self.create_directories(config, settings)
        self.install_zshrc(config, settings)
        self.create_p10k_config(config, settings)
        self.setup_nvm(config, settings)
        self.set_default_shell(config, settings)
        self.precompile(config, settings)

        if config.dry_run:
            return InstallResult(tool_name=self.name, success=True, installed_version=None,
                                 version_source="package", dry_run=True)

        zsh_version = probe_version("zsh")
        rows = [
            ("Zsh", f"zsh {zsh_version}" if zsh_version else "NOT INSTALLED"),
            (".zshrc", "EXISTS" if os.path.isfile(os.path.join(settings.home, ".zshrc")) else "MISSING"),
            (".p10k.zsh", "EXISTS" if os.path.isfile(os.path.join(settings.home, ".p10k.zsh")) else "MISSING"),
            ("Default shell", login_shell(settings.user) or "unknown"),
        ]
        rows += [(command, "✓" if shutil.which(command) else "✗") for command in SUMMARY_COMMANDS]

        success("Zsh environment installed successfully!")
        return InstallResult(
            tool_name=self.name,
            success=True,
            installed_version=zsh_version,
            version_source="package",
            rc_files=(os.path.join(settings.home, ".zshrc"),),
            summary_rows=tuple(rows),
            notes=(
                "First launch will install Zinit plugins automatically.",
                "Run 'p10k configure' to customize Powerlevel10k theme.",
                "To start using Zsh now run 'zsh', or log out and back in.",
            ),
        )

    # Phases

    def install_zsh(self, config: Config, pm: PackageManager) -> None:
        step("Installing Zsh")
        if shutil.which("zsh"):
            logger.info(f"Zsh already installed: {probe_version('zsh') or 'unknown version'}")
            return
        steps = [pm.update_step()] if pm.name == "apt" else []
        steps.append(pm.install_step(("zsh",), "Install zsh"))
        self.execute(config, self.plan(config, steps))
        if not config.dry_run:
            success(f"Zsh installed: {probe_version('zsh') or 'unknown version'}")

    def install_dependencies(self, config: Config, pm: PackageManager) -> None:
        if config.skip_deps:
            logger.info("Skipping dependency installation")
            return
        step("Installing dependencies")
        steps = [pm.update_step()] if pm.name == "apt" else []
        steps.append(pm.install_step(ZSH_DEPENDENCIES[pm.name], "Install shell tools"))
        # Debian and Ubuntu ship fd as fdfind
        if pm.name == "apt" and not os.path.exists("/usr/bin/fd"):
            steps.append(InstallStep(
                "Link fdfind to fd",
                ("sh", "-c", "[ -x /usr/bin/fdfind ] && ln -sf /usr/bin/fdfind /usr/bin/fd || true"),
                requires_sudo=True,
                on_failure="ignore",
            ))
        self.execute(config, self.plan(config, steps))
        if not config.dry_run:
            success("Dependencies installed")

    def install_fonts(self, config: Config, settings: ZshSettings) -> None:
        step("Installing Nerd Fonts (MesloLGS NF)")
        font_dir = os.path.join(settings.home, ".local", "share", "fonts")
        if config.dry_run:
            logger.info(f"[dry-run] download {len(MESLO_FONTS)} fonts into {font_dir}")
            return

        os.makedirs(font_dir, exist_ok=True)
        fetcher = self.get_fetcher(config)
        for font in MESLO_FONTS:
            dest = os.path.join(font_dir, font)
            if os.path.exists(dest):
                continue
            try:
                fetcher.download(f"{FONT_BASE_URL}/{quote(font)}", dest)
            except NetworkError as e:
                logger.warning(f"Could not download {font}: {e.reason}")

        if shutil.which("fc-cache"):
            self.execute_step(config, InstallStep("Refresh font cache", ("fc-cache", "-f", font_dir), on_failure="ignore"))
        self.chown(config, settings, font_dir, recursive=True)
        success("Nerd fonts installed")

    def create_directories(self, config: Config, settings: ZshSettings) -> None:
        step("Creating Zsh directories")
        if config.dry_run:
            for sub in ZSH_DIRECTORIES:
                logger.info(f"[dry-run] mkdir -p {os.path.join(settings.home, sub)}")
            return
        for sub in ZSH_DIRECTORIES:
            os.makedirs(os.path.join(settings.home, sub), exist_ok=True)
        self.chown(config, settings, os.path.join(settings.home, ".cache"), recursive=True)
        self.chown(config, settings, os.path.join(settings.home, ".local"), recursive=True)
        success("Directories created")

    def install_zshrc(self, config: Config, settings: ZshSettings) -> None:
        """
        Replace ~/.zshrc with the template, keeping a timestamped backup.

        Raises:
            NetworkError: If the template cannot be downloaded (the existing
                file is left in place)
        """
        step("Downloading .zshrc configuration")
        zshrc = os.path.join(settings.home, ".zshrc")
        if config.dry_run:
            logger.info(f"[dry-run] download {settings.zshrc_url} to {zshrc}")
            return

        logger.info(f"Downloading from: {settings.zshrc_url}")
        with ScratchArea() as scratch:
            staged = scratch.file("zshrc")
            self.get_fetcher(config).download(settings.zshrc_url, staged)
            if os.path.exists(zshrc):
                backup = backup_name(zshrc)
                logger.info(f"Backing up existing .zshrc to {display_path(backup, settings.home)}")
                shutil.copy2(zshrc, backup)
            shutil.copyfile(staged, zshrc)
        self.chown(config, settings, zshrc)
        success(".zshrc downloaded")

    def create_p10k_config(self, config: Config, settings: ZshSettings) -> None:
        step("Creating Powerlevel10k configuration")
        p10k = os.path.join(settings.home, ".p10k.zsh")
        if config.dry_run:
            logger.info(f"[dry-run] create {p10k} if missing")
            return
        if not write_p10k_config(p10k):
            logger.info("p10k.zsh already exists")
            return
        self.chown(config, settings, p10k)
        success("p10k.zsh created")

    def setup_nvm(self, config: Config, settings: ZshSettings) -> None:
        step("Setting up NVM integration")
        zshrc = os.path.join(settings.home, ".zshrc")
        if config.dry_run:
            logger.info(f"[dry-run] append NVM loader to {zshrc} if missing")
            return
        if not append_nvm_block(zshrc):
            logger.info("NVM already configured in .zshrc")
            return
        self.chown(config, settings, zshrc)
        success("NVM integration added")

    def set_default_shell(self, config: Config, settings: ZshSettings) -> None:
        if settings.skip_shell:
            logger.info("Skipping default shell change")
            return

        step(f"Setting Zsh as default shell for {settings.user}")
        zsh_bin = shutil.which("zsh")
        if not zsh_bin and not config.dry_run:
            logger.warning("Zsh not found, skipping shell change")
            return
        zsh_bin = zsh_bin or "/usr/bin/zsh"

        if login_shell(settings.user) == zsh_bin:
            logger.info(f"Zsh already default shell for {settings.user}")
            return

        steps = []
        if not listed_in_shells(zsh_bin):
            steps.append(InstallStep(
                "Register zsh in /etc/shells",
                ("tee", "-a", "/etc/shells"),
                requires_sudo=True,
                stdin=zsh_bin + "\n",
            ))
        steps.append(InstallStep(
            "Change login shell",
            ("chsh", "-s", zsh_bin, settings.user),
            requires_sudo=True,
            on_failure="warn",
            warning="chsh failed (non-fatal)",
        ))
        self.execute(config, self.plan(config, steps))
        if not config.dry_run:
            success("Default shell set to Zsh")

    def precompile(self, config: Config, settings: ZshSettings) -> None:
        step("Precompiling Zsh configuration")
        if not shutil.which("zsh") and not config.dry_run:
            logger.warning("Zsh not found, skipping precompile")
            return
        run_as = settings.user if is_root() and settings.user != "root" else None
        for name in (".zshrc", ".p10k.zsh"):
            target = os.path.join(settings.home, name)
            self.execute_step(config, InstallStep(
                f"Compile {name}",
                ("zsh", "-c", f'[ -f "{target}" ] && zcompile "{target}" || true'),
                run_as=run_as,
                on_failure="ignore",
            ))
        if not config.dry_run:
            success("Precompilation complete")

    def chown(self, config: Config, settings: ZshSettings, path: str, recursive: bool = False) -> None:
        """Hand files created by a root run back to the configured user."""
        if not is_root() or settings.user == "root":
            return
        command = ("chown", "-R") if recursive else ("chown",)
        self.execute_step(config, InstallStep(
            f"Set owner of {path}",
            command + (f"{settings.user}:{settings.user}", path),
            on_failure="ignore",
        ))
