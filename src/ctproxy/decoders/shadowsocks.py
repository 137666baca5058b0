"""Decoder for ss:// profiles.

Two layouts are accepted:
    ss://base64(method:password)@host:port#label     (SIP002)
    ss://base64(method:password@host:port)#label     (legacy)

Links with a plugin parameter are rejected because the engine outbound
built here has no plugin support.
"""

from __future__ import annotations

__all__ = ["decode_shadowsocks"]

from urllib.parse import parse_qs, unquote

from ctproxy.decoders.base import (
    DecodedProfile,
    Scheme,
    b64decode_padded,
    decode_label,
    require_host,
    require_port,
)
from ctproxy.exceptions import DecodeError

_SCHEME = Scheme.SS


def _split_hostport(hostport: str) -> tuple[str, int]:
    if ":" not in hostport:
        raise DecodeError("missing port", _SCHEME.value)
    host, port_text = hostport.rsplit(":", 1)
    # IPv6 literal
    host = host.strip().strip("[]")
    return require_host(host, _SCHEME), require_port(port_text, _SCHEME)


def _split_credentials(creds: str) -> tuple[str, str]:
    if ":" not in creds:
        raise DecodeError("credentials must be method:password", _SCHEME.value)
    method, password = creds.split(":", 1)
    if not method.strip():
        raise DecodeError("missing cipher method", _SCHEME.value)
    return method.strip(), password


def decode_shadowsocks(serialized: str) -> DecodedProfile:
    """Decode an ss:// link in either supported layout."""
    raw = serialized.strip()[len(_SCHEME.prefix) :]

    label = ""
    if "#" in raw:
        raw, fragment = raw.split("#", 1)
        label = decode_label(fragment)

    if "?" in raw:
        raw, query_text = raw.split("?", 1)
        if "plugin" in parse_qs(query_text):
            raise DecodeError("plugin parameter is not supported", _SCHEME.value)

    if not raw:
        raise DecodeError("empty payload", _SCHEME.value)

    if "@" in raw:
        userinfo, hostport = raw.rsplit("@", 1)
        hostport = hostport.rstrip("/")
        userinfo = unquote(userinfo)
        # SIP002 allows plain method:password in userinfo as well
        if ":" in userinfo:
            creds = userinfo
        else:
            creds = b64decode_padded(userinfo, _SCHEME)
    else:
        decoded = b64decode_padded(raw, _SCHEME)
        if "@" not in decoded:
            raise DecodeError("missing '@' separator", _SCHEME.value)
        creds, hostport = decoded.rsplit("@", 1)

    method, password = _split_credentials(creds)
    host, port = _split_hostport(hostport)

    outbound = {
        "protocol": "shadowsocks",
        "tag": "proxy",
        "settings": {
            "servers": [
                {
                    "address": host,
                    "port": port,
                    "method": method,
                    "password": password,
                }
            ]
        },
    }
    return DecodedProfile(_SCHEME, {"outbounds": [outbound]}, label)
