"""
External command execution.

Runs InstallSteps with privilege escalation, turns each outcome into an
explicit StepResult, and applies the step's failure policy.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass, replace
from typing import Iterable, Sequence

from .common import is_root, vlog
from .errors import CommandError, MissingCommandError
from .install_plan import InstallPlan, InstallStep

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepResult:
    """
    Result of executing a single installation step.

    Attributes:
        step: The installation step that was executed
        success: Whether the step succeeded
        stdout: Standard output from command execution
        stderr: Standard error from command execution
        exit_code: Process exit code
        duration_seconds: Time taken to execute step
        error_message: Human-readable error message if failed
    """
    step: InstallStep
    success: bool
    stdout: str
    stderr: str
    exit_code: int
    duration_seconds: float
    error_message: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "step": self.step.to_dict(),
            "success": self.success,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
        }


def require_commands(names: Iterable[str]) -> None:
    """
    Ensure every named command is on PATH.

    Raises:
        MissingCommandError: For the first command that is missing
    """
    for name in names:
        if shutil.which(name) is None:
            raise MissingCommandError(name)


def build_command(step: InstallStep) -> list[str]:
    """
    Build the argv for a step, adding sudo/su as needed.

    Raises:
        MissingCommandError: If escalation is needed but sudo is missing
    """
    command = list(step.command)
    if step.run_as:
        if is_root():
            return ["su", "-", step.run_as, "-c", shlex.join(command)]
        if shutil.which("sudo") is None:
            raise MissingCommandError("sudo")
        return ["sudo", "-u", step.run_as] + command
    if step.requires_sudo and not is_root():
        if shutil.which("sudo") is None:
            raise MissingCommandError("sudo")
        return ["sudo"] + command
    return command


def execute_step(
    step: InstallStep,
    timeout: int | None = None,
    verbose: bool = False,
) -> StepResult:
    """
    Execute a single installation step.

    Args:
        step: Installation step to execute
        timeout: Command timeout in seconds
        verbose: Enable verbose logging

    Returns:
        StepResult with execution outcome
    """
    start_time = time.time()
    command = build_command(step)

    vlog(f"Executing: {shlex.join(command)}", verbose)

    try:
        result = subprocess.run(
            command,
            input=step.stdin,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=step.cwd,
            check=False,
        )

        duration = time.time() - start_time
        success = result.returncode == 0

        error_msg = None
        if not success:
            error_msg = f"Command failed with exit code {result.returncode}"
            if result.stderr:
                error_msg += f": {result.stderr.strip()[:200]}"

        return StepResult(
            step=step,
            success=success,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.returncode,
            duration_seconds=duration,
            error_message=error_msg,
        )

    except subprocess.TimeoutExpired as e:
        duration = time.time() - start_time
        return StepResult(
            step=step,
            success=False,
            stdout=e.stdout.decode() if isinstance(e.stdout, bytes) else (e.stdout or ""),
            stderr=e.stderr.decode() if isinstance(e.stderr, bytes) else (e.stderr or ""),
            exit_code=-1,
            duration_seconds=duration,
            error_message=f"Command timed out after {timeout}s",
        )
    except FileNotFoundError:
        duration = time.time() - start_time
        return StepResult(
            step=step,
            success=False,
            stdout="",
            stderr="",
            exit_code=127,
            duration_seconds=duration,
            error_message=f"Command not found: {command[0]}",
        )


def run_step(
    step: InstallStep,
    dry_run: bool = False,
    timeout: int | None = None,
    verbose: bool = False,
) -> StepResult | None:
    """
    Execute a step and apply its failure policy.

    Returns:
        The StepResult, or None in dry-run mode

    Raises:
        CommandError: If a 'fatal' step fails
    """
    if dry_run:
        logger.info(f"[dry-run] {step.shell_line()}")
        return None

    logger.debug(f"{step.description}")
    result = execute_step(step, timeout=timeout, verbose=verbose)

    if result.success:
        if verbose and result.stdout.strip():
            logger.debug(result.stdout.strip())
        return result

    if step.on_failure == "fatal":
        raise CommandError(result)
    if step.on_failure == "warn":
        logger.warning(step.warning or f"{step.description} failed ({result.error_message})")
    else:
        vlog(f"Ignored failure: {step.description} ({result.error_message})", verbose)
    return result


def run_plan(
    plan: InstallPlan,
    dry_run: bool = False,
    timeout: int | None = None,
    verbose: bool = False,
) -> list[StepResult]:
    """
    Execute every step of a plan in order.

    Returns:
        Results of the steps that ran (empty in dry-run mode)

    Raises:
        CommandError: At the first failing 'fatal' step
    """
    if dry_run:
        for line in plan.to_table().splitlines():
            logger.info(line)
        return []

    results = []
    for step in plan.steps:
        result = run_step(step, timeout=timeout, verbose=verbose)
        if result is not None:
            results.append(result)
    return results


def run_alternatives(
    steps: Sequence[InstallStep],
    dry_run: bool = False,
    timeout: int | None = None,
    verbose: bool = False,
) -> StepResult | None:
    """
    Run steps in order until one succeeds.

    Every step but the last is attempted with failures ignored; the last
    one applies its own failure policy.

    Returns:
        Result of the last step that ran (None in dry-run mode)
    """
    if dry_run:
        logger.info("[dry-run] " + " || ".join(step.shell_line() for step in steps))
        return None

    result = None
    for i, step in enumerate(steps):
        if i < len(steps) - 1:
            step = replace(step, on_failure="ignore")
        result = run_step(step, timeout=timeout, verbose=verbose)
        if result is not None and result.success:
            return result
    return result


def path_exists(path: str, verbose: bool = False) -> bool:
    """
    Check for a path, asking sudo when the current user cannot see it.

    Directories such as /var/lib/pgsql/<ver>/data are mode 0700, so a
    plain stat from an unprivileged process reports them as missing.
    """
    if os.path.lexists(path):
        return True
    if is_root() or shutil.which("sudo") is None:
        return False
    probe = InstallStep(f"Check {path}", ("test", "-e", path), requires_sudo=True, on_failure="ignore")
    return execute_step(probe, timeout=30, verbose=verbose).success


def probe_version(
    binary: str,
    args: tuple[str, ...] = ("--version",),
    timeout: int = 10,
) -> str | None:
    """
    Run a binary's version command and return the first version-like token.

    Args:
        binary: Path or name of the binary
        args: Arguments that make it print its version

    Returns:
        Version string, or None if the binary could not be run
    """
    try:
        result = subprocess.run(
            [binary, *args],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None

    if result.returncode != 0:
        return None

    output = result.stdout or result.stderr
    match = re.search(r'\d+\.\d+(?:\.\d+)?(?:[-+][\w.]+)?', output)
    if match:
        return match.group(0)
    first_line = output.strip().splitlines()
    return first_line[0] if first_line else None
