#!/usr/bin/env python3
"""scl entry point: search the logs of all running Docker containers."""

import os
import sys

# Ensure the scl package is importable when run as `python main.py`
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from scl.cli import main

if __name__ == "__main__":
    sys.exit(main())
