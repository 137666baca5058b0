"""Command-line interface for ctproxy.

Talks to the running daemon over its loopback HTTP API.
"""

from .main import cli, main

__all__ = ["cli", "main"]
