"""Decoder for vmess:// profiles (v2rayN base64 JSON format)."""

from __future__ import annotations

__all__ = ["decode_vmess"]

import json
from typing import Any
from urllib.parse import unquote

from ctproxy.decoders.base import (
    DecodedProfile,
    Scheme,
    b64decode_padded,
    build_stream,
    normalize_network,
    require_host,
    require_port,
)
from ctproxy.exceptions import DecodeError


def _text(data: dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    return str(value).strip()


def decode_vmess(serialized: str) -> DecodedProfile:
    """Decode vmess://base64(json).

    The JSON carries add, port, id, aid, scy, net, type, host, path,
    tls, sni, alpn, fp and ps (the label).

    Raises:
        DecodeError: On bad base64, non-object JSON, or missing fields.
    """
    payload = serialized.strip()[len(Scheme.VMESS.prefix) :]
    # Some exporters append a fragment label after the payload
    payload = payload.split("#", 1)[0]
    text = b64decode_padded(payload, Scheme.VMESS)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"payload is not JSON: {e}", Scheme.VMESS.value) from e
    if not isinstance(data, dict):
        raise DecodeError("payload is not a JSON object", Scheme.VMESS.value)

    user_id = _text(data, "id")
    if not user_id:
        raise DecodeError("missing user id", Scheme.VMESS.value)
    host = require_host(_text(data, "add"), Scheme.VMESS)
    port = require_port(data.get("port"), Scheme.VMESS)

    try:
        alter_id = int(data.get("aid") or 0)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"invalid alterId: {data.get('aid')!r}", Scheme.VMESS.value) from e

    network = normalize_network(_text(data, "net", "tcp"))
    header_host = _text(data, "host")
    stream_params = {
        "network": network,
        "security": _text(data, "tls") or _text(data, "security"),
        "host": header_host,
        "path": _text(data, "path", "/"),
        "sni": _text(data, "sni") or header_host,
        "alpn": _text(data, "alpn"),
        "fp": _text(data, "fp"),
        "pbk": _text(data, "pbk"),
        "sid": _text(data, "sid"),
        "spx": _text(data, "spx"),
        "service_name": _text(data, "serviceName") or (_text(data, "path") if network == "grpc" else ""),
        "authority": _text(data, "authority"),
        "header_type": _text(data, "type", "none") or "none",
        "kcp_seed": _text(data, "seed"),
        "quic_security": _text(data, "quicSecurity", "none"),
        "quic_key": _text(data, "key"),
        "mode": _text(data, "mode", "auto"),
        "extra": _text(data, "extra"),
    }

    outbound = {
        "protocol": "vmess",
        "tag": "proxy",
        "settings": {
            "vnext": [
                {
                    "address": host,
                    "port": port,
                    "users": [
                        {
                            "id": user_id,
                            "alterId": alter_id,
                            "security": _text(data, "scy", "auto") or "auto",
                        }
                    ],
                }
            ]
        },
        "streamSettings": build_stream(stream_params),
    }
    return DecodedProfile(Scheme.VMESS, {"outbounds": [outbound]}, unquote(_text(data, "ps")))
