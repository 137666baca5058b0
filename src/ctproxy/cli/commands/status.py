"""Status command: the daemon's status indicator rendered in the terminal."""

from __future__ import annotations

__all__ = ["status"]

import json

import click

from ctproxy.constants import API_PREFIX

from ..api_client import api_request
from ..styling import style_active, style_dim, style_error, style_header


@click.command("status")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status(as_json: bool) -> None:
    """Show status line, ports and configs (active one marked)."""
    result = api_request("GET", f"{API_PREFIX}/status")

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.echo(style_header("ctproxy"))
    if result.get("error"):
        click.echo(style_error(result["status_line"]))
    else:
        click.echo(result["status_line"])
    click.echo(result["ports_line"])
    click.echo()

    items = result.get("items", [])
    if not items:
        click.echo(style_dim("No configs stored."))
        return
    for item in items:
        click.echo(style_active(item["name"]) if item["checked"] else f"    {item['name']}")
