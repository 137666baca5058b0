"""Profile decoders.

decode() dispatches a serialized profile on its scheme prefix and returns
a DecodedProfile, or raises DecodeError for unknown prefixes and malformed
links.

Usage:
    from ctproxy.decoders import decode

    decoded = decode("vless://uuid@example.com:443?security=tls#Home")
    decoded.scheme   # Scheme.VLESS
    decoded.profile  # {"outbounds": [{"protocol": "vless", "tag": "proxy", ...}]}
    decoded.label    # "Home"
"""

from __future__ import annotations

__all__ = [
    "DecodedProfile",
    "Decoder",
    "Scheme",
    "decode",
    "detect_scheme",
]

from collections.abc import Callable

from ctproxy.decoders.base import DecodedProfile, Scheme
from ctproxy.decoders.shadowsocks import decode_shadowsocks
from ctproxy.decoders.url_schemes import decode_trojan, decode_vless
from ctproxy.decoders.vmess import decode_vmess
from ctproxy.exceptions import DecodeError

# Signature the registry depends on; tests inject alternatives
Decoder = Callable[[str], DecodedProfile]

_DECODERS: dict[Scheme, Decoder] = {
    Scheme.VLESS: decode_vless,
    Scheme.VMESS: decode_vmess,
    Scheme.TROJAN: decode_trojan,
    Scheme.SS: decode_shadowsocks,
}


def detect_scheme(serialized: str) -> Scheme | None:
    """Return the scheme whose prefix the string starts with, if any."""
    lowered = serialized.strip().lower()
    for scheme in Scheme:
        if lowered.startswith(scheme.prefix):
            return scheme
    return None


def decode(serialized: str) -> DecodedProfile:
    """Decode a serialized profile.

    Args:
        serialized: Profile link in one of the supported schemes.

    Returns:
        DecodedProfile with the engine document and label.

    Raises:
        DecodeError: If no prefix matches or the link is malformed.
    """
    scheme = detect_scheme(serialized)
    if scheme is None:
        raise DecodeError("unsupported profile scheme")
    return _DECODERS[scheme](serialized)
