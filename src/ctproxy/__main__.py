"""Allow running ctproxy as ``python -m ctproxy``."""

from ctproxy.cli import main

main()
