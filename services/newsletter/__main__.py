"""
Entry point for running the newsletter jobs as a module.

Usage:
    python -m services.newsletter <command> [args]
"""

import sys

from .main import main

if __name__ == "__main__":
    sys.exit(main())
