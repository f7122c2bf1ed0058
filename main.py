#!/usr/bin/env python3
"""
SerialBridge Entry Point
Bridge two serial ports from the command line.
"""

import sys

from src.cli.bridge_cli import main

if __name__ == "__main__":
    sys.exit(main())
