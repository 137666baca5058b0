"""Allow running the CLI as ``python -m ctproxy.cli``."""

from .main import main

main()
