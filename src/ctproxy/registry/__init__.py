"""Persistent config registry and runtime config materialization."""

from __future__ import annotations

__all__ = [
    "AddResult",
    "ConfigRegistry",
    "DuplicateItem",
    "ItemError",
    "ProfileRecord",
    "RegistryDocument",
    "build_runtime_config",
]

from ctproxy.registry.config_registry import ConfigRegistry
from ctproxy.registry.models import (
    AddResult,
    DuplicateItem,
    ItemError,
    ProfileRecord,
    RegistryDocument,
)
from ctproxy.registry.runtime import build_runtime_config
