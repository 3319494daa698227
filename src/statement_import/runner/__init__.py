"""
CLI runner module.

Provides commands:
- import: Preview or commit a statement file
- check: Validate config and Firefly connectivity
- init-config: Write a default config file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
