"""
Command-line entry point: dev-install <tool> [version] [options].
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from dataclasses import replace

from . import __version__
from .common import is_truthy
from .config import CHECKSUM_POLICIES, load_config
from .errors import InstallError
from .logging_config import get_logger, setup_logging
from .tools import TOOLS, canonical_name, get_installer

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

EPILOG = """\
Examples:
  dev-install go                 # latest Go
  dev-install node 20            # latest Node.js 20.x
  dev-install python 3.12.4      # build Python 3.12.4 from source
  dev-install postgresql 16      # PostgreSQL 16 from the PGDG repository
  PREFIX=$HOME/.local dev-install go --dry-run

Tool options are read from environment variables (GO_VERSION, PG_USER,
DOCKER_USER, ...) and from .dev-install.yml, ~/.config/dev-install/config.yml
or /etc/dev-install/config.yml.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dev-install",
        description="Install development tools on Linux",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "tool",
        help=f"Tool to install ({', '.join(TOOLS)})",
    )
    parser.add_argument(
        "version",
        nargs="?",
        help="Version to install (default: latest)",
    )
    parser.add_argument(
        "--prefix",
        help="Installation prefix (default: /usr/local)",
    )
    parser.add_argument(
        "--install-root",
        help="Directory holding versioned installs (default: <prefix>/lib/<tool>)",
    )
    parser.add_argument(
        "--checksum-policy",
        choices=sorted(CHECKSUM_POLICIES),
        help="strict: refuse unverifiable artifacts; warn: install them with a warning",
    )
    parser.add_argument(
        "--config",
        help="Configuration file (YAML)",
    )
    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Show what would be done without changing the system",
    )
    parser.add_argument(
        "--skip-deps",
        action="store_true",
        help="Do not install build or runtime dependencies",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only show warnings and errors",
    )
    parser.add_argument(
        "--log-file",
        help="Also write a debug log to this file",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the installation result as JSON",
    )
    parser.add_argument(
        "--version-info",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def _print_hint(remediation: str | None) -> None:
    if remediation:
        print(f"        {remediation}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for dev-install."""
    parser = build_parser()
    args = parser.parse_args(argv)

    environ = os.environ
    setup_logging(
        verbose=args.verbose or is_truthy(environ.get("VERBOSE")),
        quiet=args.quiet,
        log_file=args.log_file or environ.get("LOG_FILE") or None,
    )
    logger = get_logger()

    tool = canonical_name(args.tool)
    if tool not in TOOLS:
        logger.error(f"Unknown tool: {args.tool}")
        _print_hint(f"Available tools: {', '.join(TOOLS)}")
        return EXIT_USAGE

    overrides = {
        "prefix": args.prefix,
        "install_root": args.install_root,
        "checksum_policy": args.checksum_policy,
        "log_file": args.log_file,
        "verbose": True if args.verbose else None,
        "dry_run": True if args.dry_run else None,
        "skip_deps": True if args.skip_deps else None,
    }
    try:
        config = load_config(tool, args.version, overrides=overrides, custom_path=args.config)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_USAGE

    if config.sources:
        logger.debug(f"Configuration files: {', '.join(config.sources)}")

    start = time.time()
    try:
        result = get_installer(tool).run(config)
    except InstallError as e:
        logger.error(e.message)
        _print_hint(e.remediation)
        return EXIT_FAILURE
    except OSError as e:
        logger.error(f"{e.strerror or e}: {e.filename}" if e.filename else str(e))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_INTERRUPTED

    if not result.duration_seconds:
        result = replace(result, duration_seconds=round(time.time() - start, 2))
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    return EXIT_OK if result.success else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
