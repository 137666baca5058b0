"""API schemas (Pydantic models) for request/response validation."""

from __future__ import annotations

__all__ = [
    "ActivateResponse",
    "AddConfigsResponse",
    "ConfigResponse",
    "ConfigsListResponse",
    "ConfigsRequest",
    "DuplicateItemResponse",
    "EngineDownResponse",
    "EngineUpResponse",
    "IndicatorItemResponse",
    "ItemErrorResponse",
    "PingResponse",
    "RemoveConfigResponse",
    "StatusResponse",
]

from typing import Literal

from pydantic import BaseModel

from ctproxy.registry import AddResult, ProfileRecord
from ctproxy.service import EngineStatus
from ctproxy.service.indicator import IndicatorSnapshot


# =============================================================================
# Requests
# =============================================================================


class ConfigsRequest(BaseModel):
    """Request body for adding or replacing configs.

    An empty list is rejected by the route with 400 so that a request
    which would change nothing never looks like a success.
    """

    configs: list[str]


# =============================================================================
# Config responses
# =============================================================================


class ConfigResponse(BaseModel):
    """One stored config."""

    id: str
    serialized: str
    scheme: str
    label: str
    created_at: str
    last_used_at: str
    is_active: bool

    @classmethod
    def from_record(cls, record: ProfileRecord) -> "ConfigResponse":
        return cls(
            id=record.id,
            serialized=record.serialized,
            scheme=record.scheme.value,
            label=record.label,
            created_at=record.created_at,
            last_used_at=record.last_used_at,
            is_active=record.is_active,
        )


class ConfigsListResponse(BaseModel):
    """Configs keyed by id; requested ids that do not exist map to null."""

    status: Literal["success"] = "success"
    configs: dict[str, ConfigResponse | None]
    active_id: str | None


class ItemErrorResponse(BaseModel):
    """A submitted profile that failed to decode."""

    index: int
    scheme: str | None
    reason: str


class DuplicateItemResponse(BaseModel):
    """A submitted profile that was already stored."""

    index: int
    existing_id: str


class AddConfigsResponse(BaseModel):
    """Result of adding or replacing configs.

    Attributes:
        changed: False when no record was created.
        message: Human-readable summary.
    """

    status: Literal["success"] = "success"
    changed: bool
    message: str
    created_ids: list[str]
    errors: list[ItemErrorResponse]
    duplicates: list[DuplicateItemResponse]
    active_id: str | None

    @classmethod
    def from_result(cls, result: AddResult, *, replaced: bool = False) -> "AddConfigsResponse":
        verb = "Replaced configs with" if replaced else "Added"
        if result.changed:
            message = f"{verb} {len(result.created_ids)} config(s)"
        elif replaced:
            message = "All configs removed; none of the submitted configs could be added"
        else:
            message = "No configs added"
        if result.duplicates:
            message += f", {len(result.duplicates)} duplicate(s) skipped"
        if result.errors:
            message += f", {len(result.errors)} invalid"
        return cls(
            changed=result.changed or replaced,
            message=message,
            created_ids=result.created_ids,
            errors=[
                ItemErrorResponse(index=e.index, scheme=e.scheme, reason=e.reason)
                for e in result.errors
            ],
            duplicates=[
                DuplicateItemResponse(index=d.index, existing_id=d.existing_id)
                for d in result.duplicates
            ],
            active_id=result.active_id,
        )


class RemoveConfigResponse(BaseModel):
    """Result of removing a config."""

    status: Literal["success"] = "success"
    message: str
    removed_id: str
    active_id: str | None


class ActivateResponse(BaseModel):
    """Result of activating or clearing the active config."""

    status: Literal["success"] = "success"
    message: str
    active_id: str | None


# =============================================================================
# Engine responses
# =============================================================================


class EngineUpResponse(BaseModel):
    """Result of starting the engine."""

    status: Literal["success"] = "success"
    running: bool
    port: int | None


class EngineDownResponse(BaseModel):
    """Result of stopping the engine."""

    status: Literal["success"] = "success"
    stopped: bool


class PingResponse(BaseModel):
    """Engine status poll."""

    status: Literal["success"] = "success"
    running: bool
    state: str
    pid: int | None = None
    port: int | None = None
    last_error: str | None = None
    timestamp: str

    @classmethod
    def from_status(cls, engine: EngineStatus) -> "PingResponse":
        return cls(
            running=engine.running,
            state=engine.state.value,
            pid=engine.pid,
            port=engine.port,
            last_error=engine.last_error,
            timestamp=engine.timestamp,
        )


# =============================================================================
# Indicator responses
# =============================================================================


class IndicatorItemResponse(BaseModel):
    """One entry in the indicator's config list."""

    id: str
    name: str
    checked: bool


class StatusResponse(BaseModel):
    """Rendered status indicator."""

    active: bool
    status_line: str
    ports_line: str
    tooltip: str
    items: list[IndicatorItemResponse]
    error: str | None

    @classmethod
    def from_snapshot(cls, snapshot: IndicatorSnapshot) -> "StatusResponse":
        return cls(
            active=snapshot.active,
            status_line=snapshot.status_line,
            ports_line=snapshot.ports_line,
            tooltip=snapshot.tooltip,
            items=[
                IndicatorItemResponse(id=item.id, name=item.name, checked=item.checked)
                for item in snapshot.items
            ],
            error=snapshot.error,
        )
