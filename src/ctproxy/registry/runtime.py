"""Runtime config materialization.

The runtime config is the decoded profile of the active record with its
inbounds replaced by the single local SOCKS inbound the engine listens on.
"""

from __future__ import annotations

__all__ = ["build_runtime_config", "local_inbound", "runtime_socks_port"]

import copy
from typing import Any

from ctproxy.constants import (
    LOCAL_INBOUND_LISTEN,
    LOCAL_INBOUND_PORT,
    LOCAL_INBOUND_PROTOCOL,
)


def local_inbound() -> dict[str, Any]:
    """The fixed local inbound injected into every runtime config."""
    return {
        "listen": LOCAL_INBOUND_LISTEN,
        "port": LOCAL_INBOUND_PORT,
        "protocol": LOCAL_INBOUND_PROTOCOL,
        "settings": {"udp": True},
    }


def build_runtime_config(profile: dict[str, Any]) -> dict[str, Any]:
    """Build the engine document for a decoded profile.

    Any inbounds key already in the profile is overwritten. The input is
    not modified.
    """
    config = copy.deepcopy(profile)
    config["inbounds"] = [local_inbound()]
    return config


def runtime_socks_port(config: dict[str, Any] | None) -> int | None:
    """Port of the first inbound in a runtime config, if present."""
    if not config:
        return None
    inbounds = config.get("inbounds")
    if not isinstance(inbounds, list) or not inbounds:
        return None
    first = inbounds[0]
    if not isinstance(first, dict):
        return None
    port = first.get("port")
    return port if isinstance(port, int) else None
