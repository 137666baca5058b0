"""Unit tests for profile decoders.

Tests scheme detection and the engine documents produced for each
supported link format, plus the malformed inputs each decoder rejects.
"""

from __future__ import annotations

import pytest

from conftest import (
    SS_LEGACY_LINK,
    SS_LINK,
    TROJAN_LINK,
    UNLABELED_LINK,
    UNSUPPORTED_LINK,
    VLESS_LINK,
    VMESS_LINK,
)
from ctproxy.decoders import Scheme, decode, detect_scheme
from ctproxy.decoders.base import build_stream, normalize_network, normalize_security
from ctproxy.exceptions import DecodeError


def _outbound(link: str) -> dict:
    return decode(link).profile["outbounds"][0]


# =============================================================================
# Scheme detection
# =============================================================================


class TestDetectScheme:
    """Tests for detect_scheme()."""

    @pytest.mark.parametrize(
        ("link", "expected"),
        [
            (VLESS_LINK, Scheme.VLESS),
            (VMESS_LINK, Scheme.VMESS),
            (TROJAN_LINK, Scheme.TROJAN),
            (SS_LINK, Scheme.SS),
        ],
    )
    def test_detects_known_prefixes(self, link: str, expected: Scheme) -> None:
        """Each supported prefix maps to its scheme."""
        assert detect_scheme(link) is expected

    def test_prefix_is_case_insensitive(self) -> None:
        """Uppercase prefixes are still recognized."""
        assert detect_scheme("VLESS://id@host:443") is Scheme.VLESS

    def test_unknown_prefix_returns_none(self) -> None:
        """Strings without a known prefix have no scheme."""
        assert detect_scheme(UNSUPPORTED_LINK) is None

    def test_decode_rejects_unknown_prefix_without_scheme(self) -> None:
        """decode() reports unsupported strings with no scheme tag."""
        with pytest.raises(DecodeError) as exc_info:
            decode(UNSUPPORTED_LINK)

        assert exc_info.value.scheme is None
        assert "unsupported" in exc_info.value.reason


# =============================================================================
# vless / trojan
# =============================================================================


class TestDecodeVless:
    """Tests for vless:// links."""

    def test_builds_proxy_outbound(self) -> None:
        """Server, user id and label come from the URL parts."""
        decoded = decode(VLESS_LINK)
        outbound = decoded.profile["outbounds"][0]
        server = outbound["settings"]["vnext"][0]

        assert decoded.scheme is Scheme.VLESS
        assert decoded.label == "Home"
        assert outbound["protocol"] == "vless"
        assert outbound["tag"] == "proxy"
        assert server["address"] == "vless.example.com"
        assert server["port"] == 443
        assert server["users"][0]["id"] == "0b7f1c0e-8f3a-4c2b-9d6e-2a1b3c4d5e6f"
        assert server["users"][0]["encryption"] == "none"

    def test_ws_transport_with_tls(self) -> None:
        """ws path and host header are decoded; TLS uses the sni."""
        stream = _outbound(VLESS_LINK)["streamSettings"]

        assert stream["network"] == "ws"
        assert stream["wsSettings"] == {"path": "/ray", "headers": {"Host": "cdn.example.com"}}
        assert stream["security"] == "tls"
        assert stream["tlsSettings"]["serverName"] == "cdn.example.com"

    def test_grpc_with_reality(self) -> None:
        """Reality parameters and the grpc service name are carried over."""
        link = (
            "vless://uid@edge.example.com:443?type=grpc&serviceName=svc&security=reality"
            "&pbk=PUBKEY&sid=ab12&fp=firefox&sni=www.example.com&flow=xtls-rprx-vision"
        )
        outbound = _outbound(link)
        stream = outbound["streamSettings"]

        assert stream["grpcSettings"]["serviceName"] == "svc"
        assert stream["realitySettings"]["publicKey"] == "PUBKEY"
        assert stream["realitySettings"]["shortId"] == "ab12"
        assert stream["realitySettings"]["fingerprint"] == "firefox"
        assert stream["realitySettings"]["serverName"] == "www.example.com"
        assert outbound["settings"]["vnext"][0]["users"][0]["flow"] == "xtls-rprx-vision"

    def test_label_is_percent_decoded(self) -> None:
        """Fragment labels are percent-decoded."""
        assert decode("vless://uid@h.example.com:443#My%20Home").label == "My Home"

    def test_missing_port_rejected(self) -> None:
        """A link without a port is malformed."""
        with pytest.raises(DecodeError) as exc_info:
            decode("vless://uid@host.example.com")

        assert exc_info.value.scheme == "vless"

    def test_missing_credential_rejected(self) -> None:
        """A link without the user id is malformed."""
        with pytest.raises(DecodeError, match="credential"):
            decode("vless://host.example.com:443")


class TestDecodeTrojan:
    """Tests for trojan:// links."""

    def test_defaults_to_tls(self) -> None:
        """Trojan links without a security parameter use TLS."""
        outbound = _outbound(TROJAN_LINK)

        assert outbound["protocol"] == "trojan"
        assert outbound["settings"]["servers"][0]["password"] == "secret-pass"
        assert outbound["settings"]["servers"][0]["port"] == 8443
        assert outbound["streamSettings"]["security"] == "tls"
        assert outbound["streamSettings"]["tlsSettings"]["serverName"] == "trojan.example.com"

    def test_unlabeled_link_has_empty_label(self) -> None:
        """No fragment means an empty label."""
        assert decode(UNLABELED_LINK).label == ""

    def test_port_out_of_range_rejected(self) -> None:
        """Ports beyond 65535 are rejected."""
        with pytest.raises(DecodeError) as exc_info:
            decode("trojan://pw@host.example.com:70000")

        assert exc_info.value.scheme == "trojan"


# =============================================================================
# vmess
# =============================================================================


class TestDecodeVmess:
    """Tests for vmess:// links."""

    def test_decodes_base64_json(self) -> None:
        """Fields of the JSON payload map onto the outbound."""
        decoded = decode(VMESS_LINK)
        outbound = decoded.profile["outbounds"][0]
        user = outbound["settings"]["vnext"][0]["users"][0]

        assert decoded.scheme is Scheme.VMESS
        assert decoded.label == "Berlin"
        assert outbound["settings"]["vnext"][0]["address"] == "vmess.example.com"
        assert outbound["settings"]["vnext"][0]["port"] == 443
        assert user["id"] == "6f1c2d3e-4b5a-4c7d-8e9f-0a1b2c3d4e5f"
        assert user["alterId"] == 0
        assert user["security"] == "auto"
        assert outbound["streamSettings"]["wsSettings"]["path"] == "/vm"
        assert outbound["streamSettings"]["security"] == "tls"

    def test_trailing_fragment_ignored(self) -> None:
        """A #label suffix after the payload does not break decoding."""
        assert decode(VMESS_LINK + "#ignored").label == "Berlin"

    def test_invalid_base64_rejected(self) -> None:
        """Garbage payloads are reported as vmess decode errors."""
        with pytest.raises(DecodeError) as exc_info:
            decode("vmess://@@@@")

        assert exc_info.value.scheme == "vmess"

    def test_non_object_payload_rejected(self) -> None:
        """A JSON array payload is rejected."""
        with pytest.raises(DecodeError, match="JSON object"):
            decode("vmess://WzEsMl0=")

    def test_missing_id_rejected(self) -> None:
        """A payload without a user id is rejected."""
        with pytest.raises(DecodeError, match="user id"):
            decode("vmess://eyJhZGQiOiJ2bWVzcy5leGFtcGxlLmNvbSIsInBvcnQiOiI0NDMifQ==")


# =============================================================================
# shadowsocks
# =============================================================================


class TestDecodeShadowsocks:
    """Tests for ss:// links."""

    def test_sip002_layout(self) -> None:
        """base64(method:password)@host:port is decoded."""
        decoded = decode(SS_LINK)
        server = decoded.profile["outbounds"][0]["settings"]["servers"][0]

        assert decoded.scheme is Scheme.SS
        assert decoded.label == "Travel"
        assert server == {
            "address": "ss.example.com",
            "port": 8388,
            "method": "aes-256-gcm",
            "password": "s3cretpass",
        }

    def test_legacy_layout(self) -> None:
        """base64(method:password@host:port) is decoded."""
        server = _outbound(SS_LEGACY_LINK)["settings"]["servers"][0]

        assert server["address"] == "203.0.113.7"
        assert server["port"] == 8389
        assert server["method"] == "chacha20-ietf-poly1305"
        assert server["password"] == "legacypass"

    def test_plain_userinfo_and_ipv6_host(self) -> None:
        """Unencoded credentials and bracketed IPv6 hosts are accepted."""
        server = _outbound("ss://aes-128-gcm:pw@[2001:db8::1]:8388")["settings"]["servers"][0]

        assert server["address"] == "2001:db8::1"
        assert server["method"] == "aes-128-gcm"

    def test_plugin_rejected(self) -> None:
        """Links that need a plugin are not supported."""
        with pytest.raises(DecodeError, match="plugin"):
            decode("ss://YWVzLTI1Ni1nY206czNjcmV0cGFzcw==@ss.example.com:8388/?plugin=obfs-local")

    def test_missing_port_rejected(self) -> None:
        """host without :port is rejected."""
        with pytest.raises(DecodeError, match="port"):
            decode("ss://aes-128-gcm:pw@ss.example.com")


# =============================================================================
# Stream helpers
# =============================================================================


class TestStreamHelpers:
    """Tests for the shared transport helpers."""

    def test_network_aliases(self) -> None:
        """Legacy transport names map to engine names."""
        assert normalize_network("h2") == "http"
        assert normalize_network("splithttp") == "xhttp"
        assert normalize_network(None) == "tcp"

    def test_unknown_security_is_none(self) -> None:
        """Unrecognized security values fall back to none."""
        assert normalize_security("aes") == "none"
        assert normalize_security("REALITY") == "reality"

    def test_tcp_http_header(self) -> None:
        """tcp with an http header type gets tcpSettings."""
        stream = build_stream({"network": "tcp", "header_type": "http"})

        assert stream["tcpSettings"] == {"header": {"type": "http"}}
        assert "tlsSettings" not in stream

    def test_xhttp_extra_merged(self) -> None:
        """A JSON object in extra is merged into xhttpSettings."""
        stream = build_stream({"network": "xhttp", "path": "/x", "extra": '{"xPaddingBytes": "100-1000"}'})

        assert stream["xhttpSettings"]["path"] == "/x"
        assert stream["xhttpSettings"]["xPaddingBytes"] == "100-1000"
