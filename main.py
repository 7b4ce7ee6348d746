#!/usr/bin/env python3
"""Main entry point for the Component2020 sync engine.

This file allows running the application directly with:
    uv run python main.py

For full CLI usage, use:
    uv run c2sync --help
"""

from c2sync.cli import cli

if __name__ == "__main__":
    cli()
