#!/usr/bin/env python3
"""
dev-installers - Linux installers for common development tools.

Usage:
    install.py go                  # Latest Go
    install.py node 22             # Latest Node.js 22.x
    install.py python --dry-run    # Show the Python build plan
    install.py postgresql          # PostgreSQL 17 with a role for $USER
"""

import os
import sys

# Add current directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dev_installers.cli import main


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
