"""Engine control commands: up, down, ping."""

from __future__ import annotations

__all__ = ["down", "ping", "up"]

import json

import click

from ctproxy.constants import API_PREFIX

from ..api_client import api_request
from ..styling import style_dim, style_label, style_state, style_success, style_warning


@click.command("up")
def up() -> None:
    """Start the engine against the active config."""
    result = api_request("POST", f"{API_PREFIX}/up")
    if result.get("running"):
        port = result.get("port")
        suffix = f" (SOCKS on 127.0.0.1:{port})" if port else ""
        click.echo(style_success(f"Engine running{suffix}"))
    else:
        click.echo(style_warning("Engine did not stay up; see: ctproxy ping"))


@click.command("down")
def down() -> None:
    """Stop the engine."""
    api_request("POST", f"{API_PREFIX}/down")
    click.echo(style_success("Engine stopped"))


@click.command("ping")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def ping(as_json: bool) -> None:
    """Show engine status."""
    result = api_request("GET", f"{API_PREFIX}/ping")

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.echo(style_label("Engine") + " " + style_state(result.get("running", False)))
    if result.get("pid"):
        click.echo(f"  PID:  {result['pid']}")
    if result.get("port"):
        click.echo(f"  Port: {result['port']}")
    if result.get("last_error"):
        click.echo(style_warning(result["last_error"]))
    click.echo(style_dim(f"  at {result.get('timestamp', '')}"))
