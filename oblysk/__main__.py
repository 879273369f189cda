#!/usr/bin/env python3
"""
Oblysk main entry point for running as a module: python3 -m oblysk
"""

import sys
from oblysk.cli import main

if __name__ == '__main__':
    sys.exit(main())
