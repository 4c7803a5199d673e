"""
giftflow – Main entry point.

Runs the command line interface, so `python main.py run workflow.json` works
from a checkout without installing the package.
"""

import sys

from giftflow.cli import main

if __name__ == "__main__":
    sys.exit(main())
