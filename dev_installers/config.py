"""
Configuration loading and the run-wide Config value.

A Config is built once at startup and passed explicitly to every component.
Sources, highest priority first:
1. Command-line arguments
2. Environment variables (PREFIX, VERBOSE, GO_VERSION, PG_USER, ...)
3. YAML configuration files (project → user → system)
4. Defaults
"""

from __future__ import annotations

import os
import pwd
import re
from dataclasses import dataclass, field
from typing import Any, Mapping

import yaml

from .common import invoking_user, is_truthy, vlog


# Configuration file locations (in priority order)
CONFIG_LOCATIONS = [
    ".dev-install.yml",                                      # Project root (highest priority)
    ".dev-install.yaml",
    os.path.expanduser("~/.config/dev-install/config.yml"),  # User global
    os.path.expanduser("~/.config/dev-install/config.yaml"),
    "/etc/dev-install/config.yml",                           # System global
    "/etc/dev-install/config.yaml",
]

TOOL_NAMES = ("go", "node", "python", "postgresql", "docker", "zsh")
CHECKSUM_POLICIES = {"strict", "warn"}
PYTHON_METHODS = {"source", "pyenv"}

DEFAULT_ZSHRC_URL = "https://github.com/Productions-code/Install/releases/download/0.0.1/default.zshrc"

# Environment variable → top-level config key
GENERAL_ENV_VARS = {
    "PREFIX": "prefix",
    "INSTALL_ROOT": "install_root",
    "VERBOSE": "verbose",
    "DRY_RUN": "dry_run",
    "SKIP_DEPS": "skip_deps",
    "CHECKSUM_POLICY": "checksum_policy",
    "DEV_INSTALL_TIMEOUT": "timeout_seconds",
    "LOG_FILE": "log_file",
    "HOME": "home",
    "SHELL": "shell",
}

# Environment variable → tools.<tool>.<key>
TOOL_ENV_VARS = {
    "go": {
        "GO_VERSION": "version",
    },
    "node": {
        "NODE_VERSION": "version",
        "NODE_MAJOR": "major",
        "CHANNEL": "channel",
        "FORCE_GZ": "force_gz",
    },
    "python": {
        "PYTHON_VERSION": "version",
        "INSTALL_METHOD": "method",
        "ENABLE_OPTIMIZATIONS": "enable_optimizations",
        "PYTHON_SHA256": "sha256",
    },
    "postgresql": {
        "PG_VERSION": "version",
        "PG_USER": "user",
        "PG_PASSWORD": "password",
        "PG_DATABASE": "database",
        "PG_PORT": "port",
        "PG_DATA": "data_dir",
        "SKIP_USER": "skip_user",
    },
    "docker": {
        "DOCKER_USER": "user",
        "SKIP_COMPOSE": "skip_compose",
        "SKIP_GROUP": "skip_group",
        "SKIP_TEST": "skip_test",
    },
    "zsh": {
        "ZSH_USER": "user",
        "ZSH_HOME": "home",
        "SKIP_SHELL": "skip_shell",
        "ZSHRC_URL": "zshrc_url",
    },
}

_SQL_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_SHA256_HEX = re.compile(r"^[0-9a-fA-F]{64}$")


def _home_of(user: str) -> str:
    try:
        return pwd.getpwnam(user).pw_dir
    except KeyError:
        return f"/home/{user}"


@dataclass(frozen=True)
class NodeSettings:
    """
    Node.js options.

    Attributes:
        major: Major release line used when no exact version is given
        channel: Release channel directory (default latest-v<major>.x)
        force_gz: Prefer .tar.gz over .tar.xz artifacts
    """
    major: str = "22"
    channel: str | None = None
    force_gz: bool = False

    def __post_init__(self):
        if not str(self.major).isdigit():
            raise ValueError(f"Invalid Node.js major version: {self.major}")

    @property
    def effective_channel(self) -> str:
        return self.channel or f"latest-v{self.major}.x"

    @staticmethod
    def from_dict(data: dict[str, Any]) -> NodeSettings:
        return NodeSettings(
            major=str(data.get("major", "22")),
            channel=data.get("channel") or None,
            force_gz=is_truthy(data.get("force_gz", False)),
        )


@dataclass(frozen=True)
class PythonSettings:
    """
    Python options.

    Attributes:
        method: 'source' (build from python.org tarball) or 'pyenv'
        enable_optimizations: Build with PGO and LTO
        sha256: Operator-pinned digest of the source tarball
    """
    method: str = "source"
    enable_optimizations: bool = True
    sha256: str | None = None

    def __post_init__(self):
        if self.method not in PYTHON_METHODS:
            raise ValueError(
                f"Invalid install method: {self.method}. "
                f"Must be one of: {', '.join(sorted(PYTHON_METHODS))}"
            )
        if self.sha256 is not None and not _SHA256_HEX.match(self.sha256):
            raise ValueError("PYTHON_SHA256 must be a 64 character hex digest")

    @staticmethod
    def from_dict(data: dict[str, Any]) -> PythonSettings:
        return PythonSettings(
            method=data.get("method", "source"),
            enable_optimizations=is_truthy(data.get("enable_optimizations", True)),
            sha256=data.get("sha256") or None,
        )


@dataclass(frozen=True)
class PostgresSettings:
    """
    PostgreSQL options.

    Attributes:
        user: Database role to create
        password: Password for the role
        database: Database to create (owned by user)
        port: Server port shown in the summary
        data_dir: Data directory override (Arch/Alpine)
        skip_user: Do not create role and database
    """
    user: str = "postgres"
    password: str = ""
    database: str = ""
    port: int = 5432
    data_dir: str | None = None
    skip_user: bool = False

    def __post_init__(self):
        if not _SQL_IDENTIFIER.match(self.user):
            raise ValueError(f"Invalid PostgreSQL user name: {self.user!r}")
        if self.database and not _SQL_IDENTIFIER.match(self.database):
            raise ValueError(f"Invalid PostgreSQL database name: {self.database!r}")
        if "'" in self.password:
            raise ValueError("PostgreSQL password must not contain single quotes")
        if self.port < 1 or self.port > 65535:
            raise ValueError(f"Invalid PostgreSQL port: {self.port}. Must be between 1 and 65535")

    @staticmethod
    def from_dict(data: dict[str, Any]) -> PostgresSettings:
        user = data.get("user") or invoking_user() or "postgres"
        return PostgresSettings(
            user=user,
            password=str(data.get("password") or user),
            database=data.get("database") or user,
            port=int(data.get("port", 5432)),
            data_dir=data.get("data_dir") or None,
            skip_user=is_truthy(data.get("skip_user", False)),
        )


@dataclass(frozen=True)
class DockerSettings:
    """
    Docker options.

    Attributes:
        user: Account added to the docker group
        skip_compose: Do not install the compose plugin
        skip_group: Do not touch docker group membership
        skip_test: Do not run the hello-world smoke test
    """
    user: str = ""
    skip_compose: bool = False
    skip_group: bool = False
    skip_test: bool = False

    @staticmethod
    def from_dict(data: dict[str, Any]) -> DockerSettings:
        return DockerSettings(
            user=data.get("user") or invoking_user(),
            skip_compose=is_truthy(data.get("skip_compose", False)),
            skip_group=is_truthy(data.get("skip_group", False)),
            skip_test=is_truthy(data.get("skip_test", False)),
        )


@dataclass(frozen=True)
class ZshSettings:
    """
    Zsh environment options.

    Attributes:
        user: Account whose shell environment is configured
        home: That account's home directory
        skip_shell: Do not change the login shell
        zshrc_url: Location of the .zshrc template
    """
    user: str = ""
    home: str = ""
    skip_shell: bool = False
    zshrc_url: str = DEFAULT_ZSHRC_URL

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ZshSettings:
        user = data.get("user") or invoking_user() or "root"
        return ZshSettings(
            user=user,
            home=data.get("home") or _home_of(user),
            skip_shell=is_truthy(data.get("skip_shell", False)),
            zshrc_url=data.get("zshrc_url") or DEFAULT_ZSHRC_URL,
        )


@dataclass(frozen=True)
class Config:
    """
    Complete configuration for one installer run.

    Attributes:
        tool: Tool being installed
        version: Explicit target version (None means resolve "latest")
        prefix: Installation prefix
        install_root: Versioned install directory root (None = tool default)
        verbose: Enable debug output
        dry_run: Print the plan without changing the system
        skip_deps: Skip installing build/runtime dependencies
        checksum_policy: 'strict' (unverifiable artifacts are fatal) or 'warn'
        timeout_seconds: HTTP timeout
        home: Home directory whose shell startup files are edited
        shell: Login shell of the invoking user
        log_file: Optional log file
        sources: Config files that contributed to this config
    """
    tool: str
    version: str | None = None
    prefix: str = "/usr/local"
    install_root: str | None = None
    verbose: bool = False
    dry_run: bool = False
    skip_deps: bool = False
    checksum_policy: str = "strict"
    timeout_seconds: int = 30
    home: str = field(default_factory=lambda: os.path.expanduser("~"))
    shell: str = ""
    log_file: str | None = None
    node: NodeSettings = field(default_factory=NodeSettings)
    python: PythonSettings = field(default_factory=PythonSettings)
    postgresql: PostgresSettings = field(default_factory=PostgresSettings)
    docker: DockerSettings = field(default_factory=DockerSettings)
    zsh: ZshSettings = field(default_factory=ZshSettings)
    sources: tuple[str, ...] = ()

    def __post_init__(self):
        """Validate config after initialization."""
        if self.tool not in TOOL_NAMES:
            raise ValueError(
                f"Unknown tool: {self.tool}. "
                f"Must be one of: {', '.join(TOOL_NAMES)}"
            )

        if self.checksum_policy not in CHECKSUM_POLICIES:
            raise ValueError(
                f"Invalid checksum_policy: {self.checksum_policy}. "
                "Must be 'strict' or 'warn'"
            )

        if self.timeout_seconds < 1 or self.timeout_seconds > 300:
            raise ValueError(
                f"Invalid timeout_seconds: {self.timeout_seconds}. "
                "Must be between 1 and 300"
            )

        if not os.path.isabs(self.prefix):
            raise ValueError(f"Installation prefix must be an absolute path: {self.prefix}")

    @property
    def bin_dir(self) -> str:
        return os.path.join(self.prefix, "bin")

    def resolve_install_root(self, default_subdir: str) -> str:
        """Install root for versioned directories, e.g. <prefix>/lib/nodejs."""
        return self.install_root or os.path.join(self.prefix, default_subdir)

    @staticmethod
    def from_dict(tool: str, data: dict[str, Any], sources: tuple[str, ...] = ()) -> Config:
        """Create Config from a merged dictionary."""
        own = _tool_section(data, tool)
        tools_data = data.get("tools") or {}

        version = own.get("version")
        return Config(
            tool=tool,
            version=str(version) if version else None,
            prefix=data.get("prefix", "/usr/local"),
            install_root=data.get("install_root") or None,
            verbose=is_truthy(data.get("verbose", False)),
            dry_run=is_truthy(data.get("dry_run", False)),
            skip_deps=is_truthy(data.get("skip_deps", False)),
            checksum_policy=data.get("checksum_policy", "strict"),
            timeout_seconds=int(data.get("timeout_seconds", 30)),
            home=data.get("home") or os.path.expanduser("~"),
            shell=data.get("shell", ""),
            log_file=data.get("log_file") or None,
            node=NodeSettings.from_dict(tools_data.get("node", {}) or {}),
            python=PythonSettings.from_dict(tools_data.get("python", {}) or {}),
            postgresql=PostgresSettings.from_dict(tools_data.get("postgresql", {}) or {}),
            docker=DockerSettings.from_dict(tools_data.get("docker", {}) or {}),
            zsh=ZshSettings.from_dict(tools_data.get("zsh", {}) or {}),
            sources=sources,
        )


def _tool_section(data: Mapping[str, Any], tool: str) -> dict[str, Any]:
    """Return the tools.<tool> mapping, rejecting non-mapping sections."""
    tools_data = data.get("tools") or {}
    if not isinstance(tools_data, dict):
        raise ValueError("'tools' must be a mapping of tool name to settings")
    own = tools_data.get(tool) or {}
    if not isinstance(own, dict):
        raise ValueError(f"'tools.{tool}' must be a mapping of settings")
    return own


def _deep_update(base: dict[str, Any], other: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge `other` into `base` (other wins)."""
    for key, value in other.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _deep_update(base[key], value)
        elif isinstance(value, Mapping):
            base[key] = _deep_update({}, value)
        else:
            base[key] = value
    return base


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Load YAML configuration file.

    Args:
        file_path: Path to YAML file

    Returns:
        Parsed configuration dictionary, or None if the file is unreadable or invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return None


def env_overrides(tool: str, environ: Mapping[str, str]) -> dict[str, Any]:
    """
    Collect configuration values from environment variables.

    Args:
        tool: Tool being installed (selects tool-specific variables)
        environ: Environment mapping

    Returns:
        Nested dictionary in config-file shape
    """
    data: dict[str, Any] = {}
    for var, key in GENERAL_ENV_VARS.items():
        if environ.get(var):
            data[key] = environ[var]

    tools: dict[str, Any] = {}
    for tool_name, mapping in TOOL_ENV_VARS.items():
        values = {key: environ[var] for var, key in mapping.items() if environ.get(var)}
        if tool_name != tool:
            # Another tool's version variable must not leak into this run
            values.pop("version", None)
        if values:
            tools[tool_name] = values
    if tools:
        data["tools"] = tools
    return data


def load_config(
    tool: str,
    version: str | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    custom_path: str | None = None,
    search_paths: list[str] | None = None,
) -> Config:
    """
    Load and merge configuration from all sources.

    Args:
        tool: Tool to install
        version: Positional version argument (highest priority)
        overrides: Top-level values from command-line options
        environ: Environment mapping (defaults to os.environ)
        custom_path: Explicit config file (must be loadable)
        search_paths: Config file locations to search (defaults to CONFIG_LOCATIONS)

    Returns:
        Validated Config

    Raises:
        ValueError: If custom_path cannot be loaded or a value is invalid
    """
    environ = os.environ if environ is None else environ
    verbose = is_truthy(environ.get("VERBOSE")) or bool((overrides or {}).get("verbose"))

    layers: list[tuple[str, dict[str, Any]]] = []
    if custom_path:
        data = _load_yaml(custom_path)
        if data is None:
            raise ValueError(f"Could not load config from specified path: {custom_path}")
        layers.append((custom_path, data))

    for location in CONFIG_LOCATIONS if search_paths is None else search_paths:
        if not os.path.exists(location):
            continue
        data = _load_yaml(location)
        if data is None:
            vlog(f"Invalid config file ignored: {location}", verbose)
            continue
        vlog(f"Found config at: {location}", verbose)
        layers.append((location, data))

    merged: dict[str, Any] = {}
    # Lowest priority first
    for _, data in reversed(layers):
        _deep_update(merged, data)
    _deep_update(merged, env_overrides(tool, environ))
    _deep_update(merged, {k: v for k, v in (overrides or {}).items() if v is not None})

    tool_data = _tool_section(merged, tool)
    if version:
        merged["tools"] = merged.get("tools") or {}
        merged["tools"][tool] = tool_data
        if tool == "node" and "." not in version:
            # A bare number selects the release line, not an exact version
            tool_data["major"] = version
            tool_data.pop("version", None)
            tool_data.pop("channel", None)
        else:
            tool_data["version"] = version

    return Config.from_dict(tool, merged, sources=tuple(path for path, _ in layers))
