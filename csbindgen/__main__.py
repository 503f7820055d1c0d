"""
CLI entry point for csbindgen package.

Usage:
    python -m csbindgen <rules> <source> [options]
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
