"""Configs command group for ctproxy CLI.

Manages the daemon's config registry:
- list: List stored configs
- add: Add profile links
- replace: Replace all configs with the given links
- remove: Remove a config
- activate: Make a config active
- deactivate: Clear the active config
- active: Show the active config
"""

from __future__ import annotations

__all__ = ["configs"]

import json
from typing import Any

import click

from ctproxy.constants import API_PREFIX

from ..api_client import api_request
from ..styling import style_active, style_dim, style_error, style_label, style_success, style_warning

CONFIGS_ENDPOINT = f"{API_PREFIX}/configs"


def _echo_add_result(result: dict[str, Any]) -> None:
    if result.get("changed"):
        click.echo(style_success(result.get("message", "Configs updated")))
    else:
        click.echo(style_warning(result.get("message", "Nothing changed")))

    for config_id in result.get("created_ids", []):
        click.echo(f"  + {config_id}")
    for dup in result.get("duplicates", []):
        click.echo(style_dim(f"  = #{dup['index']} already stored as {dup['existing_id']}"))
    for err in result.get("errors", []):
        scheme = f" [{err['scheme']}]" if err.get("scheme") else ""
        click.echo(style_error(f"#{err['index']}{scheme}: {err['reason']}"))

    active_id = result.get("active_id")
    if active_id:
        click.echo(f"  Active: {active_id}")


@click.group()
def configs() -> None:
    """Config registry commands."""
    pass


@configs.command("list")
@click.option("--uuid", "uuids", multiple=True, help="Only show these ids (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_configs(uuids: tuple[str, ...], as_json: bool) -> None:
    """List stored configs."""
    params = {"uuid": ",".join(uuids)} if uuids else None
    result = api_request("GET", CONFIGS_ENDPOINT, params=params)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    records: dict[str, Any] = result.get("configs", {})
    click.echo(style_label("Configs") + f" {sum(1 for r in records.values() if r)}")
    if not records:
        click.echo(style_dim("  No configs stored."))
        return

    for config_id, record in records.items():
        if record is None:
            click.echo(style_dim(f"    {config_id}  (not found)"))
            continue
        line = f"{config_id}  {record['scheme']:<6}  {record['label']}"
        click.echo(style_active(line) if record["is_active"] else f"    {line}")


@configs.command("add")
@click.argument("links", nargs=-1, required=True)
def add(links: tuple[str, ...]) -> None:
    """Add one or more profile links (vless://, vmess://, trojan://, ss://)."""
    result = api_request("POST", CONFIGS_ENDPOINT, json_data={"configs": list(links)})
    _echo_add_result(result)


@configs.command("replace")
@click.argument("links", nargs=-1, required=True)
@click.confirmation_option(prompt="Remove all stored configs and replace them?")
def replace(links: tuple[str, ...]) -> None:
    """Replace every stored config with the given links."""
    result = api_request("PUT", CONFIGS_ENDPOINT, json_data={"configs": list(links)})
    _echo_add_result(result)


@configs.command("remove")
@click.argument("uuid")
def remove(uuid: str) -> None:
    """Remove a config. Removing the active one activates another."""
    result = api_request("DELETE", CONFIGS_ENDPOINT, params={"uuid": uuid})
    click.echo(style_success(result.get("message", f"Config {uuid} removed")))
    active_id = result.get("active_id")
    click.echo(f"  Active: {active_id}" if active_id else style_dim("  No active config"))


@configs.command("activate")
@click.argument("uuid")
def activate(uuid: str) -> None:
    """Make a config active (restarts a running engine)."""
    result = api_request("PUT", f"{CONFIGS_ENDPOINT}/activate", params={"uuid": uuid})
    click.echo(style_success(result.get("message", f"Config {uuid} activated")))


@configs.command("deactivate")
def deactivate() -> None:
    """Clear the active config (stops a running engine)."""
    result = api_request("DELETE", f"{CONFIGS_ENDPOINT}/active")
    click.echo(style_success(result.get("message", "Active config cleared")))


@configs.command("active")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def active(as_json: bool) -> None:
    """Show the active config."""
    result = api_request("GET", f"{CONFIGS_ENDPOINT}/active")

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.echo(style_label("Active config"))
    click.echo(f"  Id:        {result['id']}")
    click.echo(f"  Label:     {result['label']}")
    click.echo(f"  Scheme:    {result['scheme']}")
    click.echo(f"  Last used: {result['last_used_at']}")
