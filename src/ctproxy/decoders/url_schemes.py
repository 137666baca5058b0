"""Decoders for URL-shaped profiles: vless:// and trojan://.

Both carry credentials in the userinfo part, the server in host:port,
transport parameters in the query string, and the label in the fragment.
"""

from __future__ import annotations

__all__ = ["decode_trojan", "decode_vless"]

from typing import Any
from urllib.parse import parse_qs, unquote, urlsplit

from ctproxy.decoders.base import (
    DecodedProfile,
    Scheme,
    build_stream,
    decode_label,
    query_value,
    require_host,
    require_port,
)
from ctproxy.exceptions import DecodeError


def _split(serialized: str, scheme: Scheme) -> tuple[str, str, int, dict[str, list[str]], str]:
    """Split a URL profile into (credential, host, port, query, label)."""
    try:
        parts = urlsplit(serialized.strip())
        port = parts.port
    except ValueError as e:
        raise DecodeError(str(e), scheme.value) from e

    if not parts.username:
        raise DecodeError("missing credential before '@'", scheme.value)

    host = require_host(parts.hostname, scheme)
    return (
        unquote(parts.username),
        host,
        require_port(port, scheme),
        parse_qs(parts.query),
        decode_label(parts.fragment),
    )


def _transport_params(query: dict[str, list[str]], default_security: str) -> dict[str, Any]:
    host = query_value(query, "host")
    return {
        "network": query_value(query, "type", "tcp"),
        "security": query_value(query, "security", default_security),
        "host": host,
        "path": query_value(query, "path", "/"),
        "sni": query_value(query, "sni", host),
        "alpn": query_value(query, "alpn"),
        "fp": query_value(query, "fp"),
        "pbk": query_value(query, "pbk"),
        "sid": query_value(query, "sid"),
        "spx": query_value(query, "spx"),
        "service_name": query_value(query, "serviceName"),
        "authority": query_value(query, "authority"),
        "header_type": query_value(query, "headerType", "none"),
        "kcp_seed": query_value(query, "seed"),
        "quic_security": query_value(query, "quicSecurity", "none"),
        "quic_key": query_value(query, "key"),
        "mode": query_value(query, "mode", "auto"),
        "extra": query_value(query, "extra"),
    }


def decode_vless(serialized: str) -> DecodedProfile:
    """Decode vless://uuid@host:port?params#label."""
    user_id, host, port, query, label = _split(serialized, Scheme.VLESS)

    user: dict[str, Any] = {
        "id": user_id,
        "encryption": query_value(query, "encryption", "none") or "none",
    }
    flow = query_value(query, "flow")
    if flow:
        user["flow"] = flow

    outbound = {
        "protocol": "vless",
        "tag": "proxy",
        "settings": {"vnext": [{"address": host, "port": port, "users": [user]}]},
        "streamSettings": build_stream(_transport_params(query, "none")),
    }
    return DecodedProfile(Scheme.VLESS, {"outbounds": [outbound]}, label)


def decode_trojan(serialized: str) -> DecodedProfile:
    """Decode trojan://password@host:port?params#label.

    Security defaults to tls when the link does not name one.
    """
    password, host, port, query, label = _split(serialized, Scheme.TROJAN)

    server: dict[str, Any] = {"address": host, "port": port, "password": password}
    flow = query_value(query, "flow")
    if flow:
        server["flow"] = flow

    outbound = {
        "protocol": "trojan",
        "tag": "proxy",
        "settings": {"servers": [server]},
        "streamSettings": build_stream(_transport_params(query, "tls")),
    }
    return DecodedProfile(Scheme.TROJAN, {"outbounds": [outbound]}, label)
