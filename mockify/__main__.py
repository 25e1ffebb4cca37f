"""
Entry point for running Mockify as a module.

Run with:
    python -m mockify
"""

import sys

from mockify.interfaces.cli import main

if __name__ == "__main__":
    sys.exit(main())
