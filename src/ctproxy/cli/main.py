"""Main CLI entry point for ctproxy.

Defines the CLI group and registers all subcommands.

Commands:
    daemon   - Daemon commands (start, stop, status)
    configs  - Config registry (list, add, replace, remove, activate, deactivate, active)
    up       - Start the engine
    down     - Stop the engine
    ping     - Show engine status
    status   - Show the status indicator

Subcommand help:
    ctproxy COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys

import click

from ctproxy import __version__

from .commands.configs import configs
from .commands.daemon import daemon
from .commands.engine import down, ping, up
from .commands.status import status


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  ctproxy daemon start                 Start the daemon in the background
  ctproxy configs add 'vless://...'    Store a profile (first one becomes active)
  ctproxy up                           Start the engine (SOCKS on 127.0.0.1:10808)
  ctproxy status                       Show status, ports and configs
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """ctproxy: local control plane for an Xray-compatible proxy engine."""
    if version:
        click.echo(f"ctproxy {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(daemon)
cli.add_command(configs)
cli.add_command(up)
cli.add_command(down)
cli.add_command(ping)
cli.add_command(status)


def main() -> None:
    """CLI entry point."""
    cli()
