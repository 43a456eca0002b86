#!/usr/bin/env python3
"""
captiongen Entry Point Script

This script initializes the CLI handler and runs caption generation.
"""

import sys
from captiongen.cli import CLIHandler

if __name__ == "__main__":
    if sys.version_info < (3, 10):
        sys.stderr.write("captiongen requires Python 3.10 or later.\n")
        sys.exit(1)

    sys.exit(CLIHandler().run())
