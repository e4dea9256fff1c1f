"""
Entry point for running the reconciliation jobs as a module.

Usage:
    python -m services.reconciliation <command> [args]
"""

import sys

from .main import main

if __name__ == "__main__":
    sys.exit(main())
