#!/usr/bin/env python3
"""
clamlocal entry point
"""
import sys
from pathlib import Path

# Allow running from a checkout without installing
sys.path.insert(0, str(Path(__file__).parent))

from clamlocal.cli import cli

if __name__ == '__main__':
    cli()
