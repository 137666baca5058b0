"""Shared fixtures for ctproxy tests.

Provides sample profile links for every supported scheme, a registry in a
temporary data directory, and a fake supervisor that records start/stop
calls instead of spawning an engine.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from ctproxy.decoders import DecodedProfile, decode
from ctproxy.exceptions import ConfigNotFoundError, DecodeError, EngineError
from ctproxy.registry import ConfigRegistry
from ctproxy.service import ActivationCoordinator, EventHub

# =============================================================================
# Sample links
# =============================================================================

VLESS_LINK = (
    "vless://0b7f1c0e-8f3a-4c2b-9d6e-2a1b3c4d5e6f@vless.example.com:443"
    "?type=ws&security=tls&path=%2Fray&host=cdn.example.com&sni=cdn.example.com#Home"
)
TROJAN_LINK = "trojan://secret-pass@trojan.example.com:8443?sni=trojan.example.com#Office"
VMESS_LINK = (
    "vmess://eyJ2IjoiMiIsInBzIjoiQmVybGluIiwiYWRkIjoidm1lc3MuZXhhbXBsZS5jb20iLCJwb3J0Ijoi"
    "NDQzIiwiaWQiOiI2ZjFjMmQzZS00YjVhLTRjN2QtOGU5Zi0wYTFiMmMzZDRlNWYiLCJhaWQiOiIwIiwic2N5"
    "IjoiYXV0byIsIm5ldCI6IndzIiwidHlwZSI6Im5vbmUiLCJob3N0IjoiY2RuLmV4YW1wbGUuY29tIiwicGF0"
    "aCI6Ii92bSIsInRscyI6InRscyIsInNuaSI6ImNkbi5leGFtcGxlLmNvbSJ9"
)
SS_LINK = "ss://YWVzLTI1Ni1nY206czNjcmV0cGFzcw==@ss.example.com:8388#Travel"
SS_LEGACY_LINK = "ss://Y2hhY2hhMjAtaWV0Zi1wb2x5MTMwNTpsZWdhY3lwYXNzQDIwMy4wLjExMy43OjgzODk=#Legacy"
UNLABELED_LINK = "trojan://other-pass@plain.example.com:443"
UNSUPPORTED_LINK = "http://example.com/proxy"


# =============================================================================
# Test doubles
# =============================================================================


class FlakyDecoder:
    """Real decoder that fails for strings listed in `broken`."""

    def __init__(self) -> None:
        self.broken: set[str] = set()

    def __call__(self, serialized: str) -> DecodedProfile:
        if serialized in self.broken:
            raise DecodeError("marked broken by test", "test")
        return decode(serialized)


class FakeSupervisor:
    """In-memory supervisor.

    Records calls and the runtime config each start saw. Set `start_error`
    to make the next starts fail.
    """

    def __init__(self) -> None:
        self.running = False
        self.calls: list[str] = []
        self.started_with: list[dict[str, Any]] = []
        self.start_error: EngineError | None = None
        self._last_error: str | None = None

    def start(self, runtime_config_path: Path) -> None:
        self.calls.append("start")
        if self.running:
            return
        if self.start_error is not None:
            self._last_error = str(self.start_error)
            raise self.start_error
        if not Path(runtime_config_path).is_file():
            error = ConfigNotFoundError(str(runtime_config_path))
            self._last_error = str(error)
            raise error
        self.started_with.append(json.loads(Path(runtime_config_path).read_text()))
        self.running = True
        self._last_error = None

    def stop(self) -> None:
        self.calls.append("stop")
        self.running = False

    def is_running(self) -> bool:
        return self.running

    def last_error(self) -> str | None:
        return self._last_error

    def record_error(self, message: str) -> None:
        self._last_error = message

    @property
    def pid(self) -> int | None:
        return 4242 if self.running else None


def server_address(runtime_config: dict[str, Any]) -> str:
    """Address of the proxy outbound in a runtime config."""
    settings = runtime_config["outbounds"][0]["settings"]
    if "vnext" in settings:
        return settings["vnext"][0]["address"]
    return settings["servers"][0]["address"]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Registry data directory (created by the registry)."""
    return tmp_path / "xray_configs"


@pytest.fixture
def flaky_decoder() -> FlakyDecoder:
    """Decoder whose failures the test controls."""
    return FlakyDecoder()


@pytest.fixture
def registry(data_dir: Path, flaky_decoder: FlakyDecoder) -> ConfigRegistry:
    """Empty registry backed by a temporary directory."""
    return ConfigRegistry(data_dir, decoder=flaky_decoder)


@pytest.fixture
def fake_supervisor() -> FakeSupervisor:
    """Supervisor double that never spawns a process."""
    return FakeSupervisor()


@pytest.fixture
def events() -> EventHub:
    """Event hub shared by coordinator and observers."""
    return EventHub()


@pytest.fixture
def coordinator(
    registry: ConfigRegistry, fake_supervisor: FakeSupervisor, events: EventHub
) -> ActivationCoordinator:
    """Coordinator wired to the temporary registry and the fake supervisor."""
    return ActivationCoordinator(registry, fake_supervisor, events=events)
