"""
Common installer behaviour: preflight checks, plan execution and summaries.
"""

from __future__ import annotations

import logging
import platform
from dataclasses import replace

from ..commands import require_commands, run_alternatives, run_plan, run_step
from ..config import Config
from ..errors import UnsupportedEnvironmentError
from ..fetcher import Fetcher
from ..install_plan import InstallPlan, InstallStep
from ..pipeline import InstallResult
from ..render import activation_hint, print_banner, print_summary
from ..shellrc import display_path

logger = logging.getLogger(__name__)


class Installer:
    """
    Base class for tool installers.

    Subclasses set ``name``, ``title`` and ``required_commands`` and
    implement ``install``.
    """
    name = ""
    title = ""
    summary_title = ""
    required_commands: tuple[str, ...] = ()

    def __init__(self, fetcher: Fetcher | None = None, kernel: str | None = None, machine: str | None = None):
        self.fetcher = fetcher
        self.kernel = kernel
        self.machine = machine

    def get_fetcher(self, config: Config) -> Fetcher:
        if self.fetcher is None:
            self.fetcher = Fetcher(timeout=config.timeout_seconds)
        return self.fetcher

    def preflight(self, config: Config) -> None:
        """
        Fail before any change if the host cannot run this installer.

        Raises:
            UnsupportedEnvironmentError: Non-Linux host
            MissingCommandError: A required command is absent
        """
        kernel = platform.system() if self.kernel is None else self.kernel
        if kernel != "Linux":
            raise UnsupportedEnvironmentError(
                f"This installer is for Linux only. Detected OS: {kernel.lower() or 'unknown'}"
            )
        require_commands(self.required_commands)

    def run(self, config: Config) -> InstallResult:
        """Preflight, install, then print the summary block."""
        print_banner(self.title)
        self.preflight(config)
        result = self.install(config)
        if result.summary_rows and not result.dry_run:
            print_summary(self.summary_title, result.summary_rows, result.notes)
        return result

    def install(self, config: Config) -> InstallResult:
        raise NotImplementedError

    # Command execution

    def execute(self, config: Config, plan: InstallPlan) -> None:
        run_plan(plan, dry_run=config.dry_run, verbose=config.verbose)

    def execute_step(self, config: Config, step: InstallStep):
        return run_step(step, dry_run=config.dry_run, verbose=config.verbose)

    def execute_first(self, config: Config, *steps: InstallStep):
        return run_alternatives(steps, dry_run=config.dry_run, verbose=config.verbose)

    def plan(self, config: Config, steps, warnings=()) -> InstallPlan:
        return InstallPlan(
            tool_name=self.name,
            target_version=config.version or "latest",
            steps=tuple(steps),
            warnings=tuple(warnings),
        )

    # Output

    def with_activation_hint(self, result: InstallResult, config: Config) -> InstallResult:
        if not result.rc_files:
            return result
        zshrc = [path for path in result.rc_files if path.endswith("/.zshrc")]
        rc_file = zshrc[0] if zshrc else result.rc_files[0]
        hint = activation_hint(display_path(rc_file, config.home))
        return replace(result, notes=result.notes + tuple(hint))
