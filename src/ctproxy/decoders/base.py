"""Shared types and helpers for profile decoders.

Each scheme module turns one serialized profile string into an engine
document with a single "proxy" outbound. The helpers here normalize the
transport and security parameters common to vless, vmess, and trojan.
"""

from __future__ import annotations

__all__ = [
    "DecodedProfile",
    "Scheme",
    "b64decode_padded",
    "build_stream",
    "decode_label",
    "normalize_network",
    "normalize_security",
    "query_value",
    "require_host",
    "require_port",
]

import base64
import binascii
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import unquote

from ctproxy.exceptions import DecodeError


class Scheme(str, Enum):
    """Recognized profile families.

    Inherits from str so the tag can be persisted and compared directly.
    """

    VLESS = "vless"
    VMESS = "vmess"
    TROJAN = "trojan"
    SS = "ss"

    @property
    def prefix(self) -> str:
        """URL prefix that identifies this scheme."""
        return f"{self.value}://"


@dataclass(frozen=True)
class DecodedProfile:
    """Result of decoding a serialized profile.

    Attributes:
        scheme: Detected profile family.
        profile: Engine document ({"outbounds": [...]}) without inbounds.
        label: Human-readable name from the link, possibly empty.
    """

    scheme: Scheme
    profile: dict[str, Any]
    label: str


_NETWORK_ALIASES = {
    "raw": "tcp",
    "h2": "http",
    "http2": "http",
    "gun": "grpc",
    "splithttp": "xhttp",
    "chttp": "xhttp",
}


def query_value(query: dict[str, list[str]], key: str, default: str = "") -> str:
    """Return the first value for a query key, or default."""
    return query.get(key, [default])[0]


def normalize_network(value: str | None) -> str:
    """Map transport aliases to the engine's network names."""
    v = (value or "tcp").strip().lower()
    return _NETWORK_ALIASES.get(v, v)


def normalize_security(value: str | None) -> str:
    """Reduce a security parameter to tls, xtls, reality, or none."""
    v = (value or "none").strip().lower()
    if v in {"tls", "xtls", "reality"}:
        return v
    return "none"


def decode_label(fragment: str) -> str:
    """Percent-decode a URL fragment into a display label."""
    return unquote(fragment).strip() if fragment else ""


def b64decode_padded(data: str, scheme: Scheme) -> str:
    """Decode standard or URL-safe base64 with missing padding restored.

    Raises:
        DecodeError: If the payload is not valid base64 or not UTF-8.
    """
    padded = data.strip() + "=" * (-len(data.strip()) % 4)
    try:
        if "-" in padded or "_" in padded:
            raw = base64.urlsafe_b64decode(padded)
        else:
            raw = base64.b64decode(padded, validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"invalid base64 payload: {e}", scheme.value) from e


def require_host(host: str | None, scheme: Scheme) -> str:
    """Return a non-empty server address or raise DecodeError."""
    if not host or not host.strip():
        raise DecodeError("missing server address", scheme.value)
    return host.strip()


def require_port(port: Any, scheme: Scheme) -> int:
    """Coerce a port to int in 1..65535 or raise DecodeError."""
    try:
        value = int(port)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"invalid port: {port!r}", scheme.value) from e
    if not 1 <= value <= 65535:
        raise DecodeError(f"port out of range: {value}", scheme.value)
    return value


def build_stream(params: dict[str, Any]) -> dict[str, Any]:
    """Build streamSettings from normalized transport parameters.

    Args:
        params: Keys network, security, host, path, sni, alpn, fp, pbk,
            sid, spx, service_name, authority, header_type, kcp_seed,
            quic_security, quic_key, mode, extra. Missing keys use defaults.

    Returns:
        streamSettings document for the proxy outbound.
    """
    network = normalize_network(params.get("network"))
    security = normalize_security(params.get("security"))
    host = params.get("host", "") or ""
    path = params.get("path", "/") or "/"
    header_type = params.get("header_type", "none") or "none"

    stream: dict[str, Any] = {"network": network, "security": security}

    if network == "ws":
        stream["wsSettings"] = {"path": path, "headers": {"Host": host}}
    elif network == "grpc":
        stream["grpcSettings"] = {
            "serviceName": params.get("service_name") or path.lstrip("/"),
            "authority": params.get("authority", ""),
            "multiMode": str(params.get("mode", "")).lower() == "multi",
        }
    elif network == "kcp":
        stream["kcpSettings"] = {
            "header": {"type": header_type},
            "seed": params.get("kcp_seed", ""),
        }
    elif network == "quic":
        stream["quicSettings"] = {
            "security": params.get("quic_security", "none") or "none",
            "key": params.get("quic_key", ""),
            "header": {"type": header_type},
        }
    elif network == "http":
        stream["httpSettings"] = {
            "host": [h.strip() for h in host.split(",") if h.strip()],
            "path": path,
        }
    elif network == "httpupgrade":
        stream["httpupgradeSettings"] = {"path": path, "host": host}
    elif network == "xhttp":
        xhttp: dict[str, Any] = {
            "path": path,
            "host": host,
            "mode": params.get("mode", "auto") or "auto",
        }
        extra = str(params.get("extra", "")).strip()
        if extra:
            try:
                parsed = json.loads(extra)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, dict):
                xhttp.update(parsed)
        stream["xhttpSettings"] = xhttp
    elif network == "tcp" and header_type != "none":
        stream["tcpSettings"] = {"header": {"type": header_type}}

    alpn = [x.strip() for x in str(params.get("alpn", "")).split(",") if x.strip()]
    fingerprint = params.get("fp", "")
    server_name = params.get("sni") or host

    if security in ("tls", "xtls"):
        tls: dict[str, Any] = {"serverName": server_name}
        if alpn:
            tls["alpn"] = alpn
        if fingerprint:
            tls["fingerprint"] = fingerprint
        stream[f"{security}Settings"] = tls
    elif security == "reality":
        stream["realitySettings"] = {
            "show": False,
            "serverName": server_name,
            "fingerprint": fingerprint or "chrome",
            "publicKey": params.get("pbk", ""),
            "shortId": params.get("sid", ""),
            "spiderX": params.get("spx", ""),
        }

    return stream
