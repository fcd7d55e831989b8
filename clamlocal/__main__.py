#!/usr/bin/env python3
"""
Module entry point: python -m clamlocal
"""
from .cli import cli

if __name__ == "__main__":
    cli()
