"""
Installation steps and plans.

An InstallStep is one external command plus the policy that decides what a
failure means for the run. An InstallPlan is the ordered list of steps a
package-manager based installer intends to run; in dry-run mode the plan is
rendered instead of executed.
"""

from __future__ import annotations

import json
import shlex
from dataclasses import dataclass


FAILURE_POLICIES = {"fatal", "warn", "ignore"}


@dataclass(frozen=True)
class InstallStep:
    """
    Single step in an installation plan.

    Attributes:
        description: Human-readable description of the step
        command: Command tuple to execute
        requires_sudo: Whether this step requires root privileges
        on_failure: 'fatal' aborts the run, 'warn' logs and continues,
            'ignore' continues silently (expected failures such as
            "already exists")
        run_as: Run the command as this user instead (e.g. "postgres")
        stdin: Text fed to the command's standard input
        cwd: Working directory for the command
        warning: Message logged when a 'warn' step fails
    """
    description: str
    command: tuple[str, ...]
    requires_sudo: bool = False
    on_failure: str = "fatal"
    run_as: str | None = None
    stdin: str | None = None
    cwd: str | None = None
    warning: str | None = None

    def __post_init__(self):
        if self.on_failure not in FAILURE_POLICIES:
            raise ValueError(
                f"Invalid on_failure policy: {self.on_failure}. "
                f"Must be one of: {', '.join(sorted(FAILURE_POLICIES))}"
            )
        if not self.command:
            raise ValueError(f"Step '{self.description}' has an empty command")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "description": self.description,
            "command": list(self.command),
            "requires_sudo": self.requires_sudo,
            "on_failure": self.on_failure,
            "run_as": self.run_as,
            "cwd": self.cwd,
        }

    def shell_line(self) -> str:
        """Render the step as one line of POSIX shell."""
        line = shlex.join(self.command)
        if self.run_as:
            line = f"sudo -u {self.run_as} {line}"
        elif self.requires_sudo:
            line = f"sudo {line}"
        if self.cwd:
            line = f"(cd {shlex.quote(self.cwd)} && {line})"
        if self.stdin is not None:
            line = f"printf '%s\\n' {shlex.quote(self.stdin.rstrip(chr(10)))} | {line}"
        if self.on_failure != "fatal":
            line += " || true"
        return line


@dataclass(frozen=True)
class InstallPlan:
    """
    Complete installation plan for a tool.

    Attributes:
        tool_name: Name of the tool to install
        target_version: Target version to install
        steps: Sequence of installation steps
        warnings: List of warning messages
    """
    tool_name: str
    target_version: str
    steps: tuple[InstallStep, ...] = ()
    warnings: tuple[str, ...] = ()

    def __add__(self, other: InstallPlan) -> InstallPlan:
        return InstallPlan(
            tool_name=self.tool_name,
            target_version=self.target_version,
            steps=self.steps + other.steps,
            warnings=self.warnings + other.warnings,
        )

    @property
    def requires_sudo(self) -> bool:
        return any(step.requires_sudo or step.run_as for step in self.steps)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "tool_name": self.tool_name,
            "target_version": self.target_version,
            "steps": [step.to_dict() for step in self.steps],
            "warnings": list(self.warnings),
        }

    def to_json(self, indent: int = 2) -> str:
        """
        Serialize to JSON string.

        Args:
            indent: JSON indentation level

        Returns:
            JSON string representation
        """
        return json.dumps(self.to_dict(), indent=indent)

    def to_script(self) -> str:
        """
        Generate an equivalent POSIX shell script.

        Returns:
            Shell script as string
        """
        lines = ["#!/bin/sh", "set -eu", ""]
        lines.append(f"# Installation script for {self.tool_name}")
        lines.append(f"# Target version: {self.target_version}")
        lines.append("")

        if self.warnings:
            lines.append("# Warnings:")
            for warning in self.warnings:
                lines.append(f"#   - {warning}")
            lines.append("")

        for i, step in enumerate(self.steps, 1):
            lines.append(f"# Step {i}: {step.description}")
            lines.append(step.shell_line())
            lines.append("")

        return "\n".join(lines)

    def to_table(self, width: int = 72) -> str:
        """
        Generate human-readable representation for dry runs.

        Args:
            width: Rule width

        Returns:
            Formatted plan string
        """
        lines = []
        lines.append("=" * width)
        lines.append(f"Installation Plan for {self.tool_name} {self.target_version}")
        lines.append("=" * width)

        if self.warnings:
            lines.append("Warnings:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")
            lines.append("")

        for i, step in enumerate(self.steps, 1):
            markers = []
            if step.requires_sudo:
                markers.append("SUDO")
            if step.run_as:
                markers.append(f"AS {step.run_as}")
            if step.on_failure != "fatal":
                markers.append(step.on_failure.upper())
            marker = f" [{', '.join(markers)}]" if markers else ""
            lines.append(f"{i}. {step.description}{marker}")
            lines.append(f"   Command: {shlex.join(step.command)}")

        lines.append("-" * width)
        lines.append("This is a dry-run. No changes will be made.")
        return "\n".join(lines)
