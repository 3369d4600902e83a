"""
Exception hierarchy for installer runs.

Every fatal condition is an InstallError subclass; the CLI turns any of
them into a single tagged diagnostic and a non-zero exit status.
Idempotence conflicts (user already exists, line already present) are
never raised, they are reported as warnings by the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .commands import StepResult


class InstallError(Exception):
    """
    Base exception for installation errors.

    Attributes:
        message: Human-readable error message
        remediation: Suggested fix for the error
    """
    category = "install"

    def __init__(self, message: str, remediation: str | None = None):
        self.message = message
        self.remediation = remediation
        super().__init__(message)


class UnsupportedEnvironmentError(InstallError):
    """Unsupported OS, CPU architecture or Linux distribution."""
    category = "environment"


class MissingCommandError(UnsupportedEnvironmentError):
    """A required external command is not on PATH."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(
            f"Required command '{command}' not found. Please install it first.",
        )


class NetworkError(InstallError):
    """Raised when an HTTP fetch fails."""
    category = "network"

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class ArtifactNotFoundError(InstallError):
    """No checksum manifest entry exists for any supported artifact format."""
    category = "network"

    def __init__(self, patterns: list[str], source: str, remediation: str | None = None):
        self.patterns = patterns
        self.source = source
        super().__init__(
            f"No artifact matching {' or '.join(patterns)} listed in {source}",
            remediation=remediation
            or "Check the version and architecture, or browse the release directory manually.",
        )


class IntegrityError(InstallError):
    """Downloaded artifact digest does not match the manifest."""
    category = "integrity"

    def __init__(self, filename: str, expected: str, actual: str):
        self.filename = filename
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"SHA256 checksum mismatch for {filename}! Expected: {expected}, Got: {actual}"
        )


class CommandError(InstallError):
    """A fatal external command failed."""
    category = "command"

    def __init__(self, result: StepResult):
        self.result = result
        message = f"{result.step.description} failed"
        if result.error_message:
            message += f": {result.error_message}"
        super().__init__(message)
