"""
Installer registry: one Installer class per supported tool.
"""

from __future__ import annotations

from .base import Installer
from .docker import DockerInstaller
from .go import GoInstaller
from .node import NodeInstaller
from .postgresql import PostgresInstaller
from .python import PythonInstaller
from .zsh import ZshInstaller


TOOLS: dict[str, type[Installer]] = {
    "go": GoInstaller,
    "node": NodeInstaller,
    "python": PythonInstaller,
    "postgresql": PostgresInstaller,
    "docker": DockerInstaller,
    "zsh": ZshInstaller,
}

# Accepted spellings on the command line
ALIASES = {
    "golang": "go",
    "nodejs": "node",
    "node22": "node",
    "python3": "python",
    "postgres": "postgresql",
    "pg": "postgresql",
}


def canonical_name(name: str) -> str:
    lowered = name.strip().lower()
    return ALIASES.get(lowered, lowered)


def get_installer(name: str, **kwargs) -> Installer:
    """
    Instantiate the installer for a tool.

    Args:
        name: Tool name or alias
        **kwargs: Passed to the installer constructor

    Raises:
        KeyError: If the tool is unknown
    """
    key = canonical_name(name)
    if key not in TOOLS:
        raise KeyError(f"Unknown tool: {name}. Available: {', '.join(TOOLS)}")
    return TOOLS[key](**kwargs)


__all__ = [
    "Installer",
    "TOOLS",
    "ALIASES",
    "canonical_name",
    "get_installer",
]
