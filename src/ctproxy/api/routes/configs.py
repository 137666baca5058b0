"""Config registry endpoints.

- GET    /api/v1/configs?uuid=a,b     - List configs (all, or the given ids)
- POST   /api/v1/configs              - Add configs
- PUT    /api/v1/configs              - Replace all configs
- DELETE /api/v1/configs?uuid=<id>    - Remove a config
- PUT    /api/v1/configs/activate?uuid=<id> - Activate a config
- GET    /api/v1/configs/active       - Get the active config
- DELETE /api/v1/configs/active       - Clear the active config

Handlers are sync and run in the server threadpool; the coordinator does
its own locking. Domain errors are mapped by the app's exception handlers.
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter, Query

from ctproxy.api.deps import CoordinatorDep
from ctproxy.api.errors import APIError, ErrorCode
from ctproxy.api.schemas import (
    ActivateResponse,
    AddConfigsResponse,
    ConfigResponse,
    ConfigsListResponse,
    ConfigsRequest,
    RemoveConfigResponse,
)
from ctproxy.constants import API_PREFIX

router = APIRouter(prefix=f"{API_PREFIX}/configs", tags=["configs"])


def _require_uuid(uuid: str) -> str:
    value = uuid.strip()
    if not value:
        raise APIError(
            status_code=400,
            code=ErrorCode.VALIDATION_ERROR,
            message="Query parameter 'uuid' must not be empty",
        )
    return value


def _require_configs(body: ConfigsRequest) -> list[str]:
    if not body.configs:
        raise APIError(
            status_code=400,
            code=ErrorCode.VALIDATION_ERROR,
            message="'configs' must be a non-empty array of strings",
        )
    return body.configs


@router.get("", response_model=ConfigsListResponse)
def list_configs(
    coordinator: CoordinatorDep,
    uuid: str | None = Query(default=None, description="Comma-separated config ids"),
) -> ConfigsListResponse:
    """List configs. Unknown ids in the filter map to null."""
    ids = [part.strip() for part in uuid.split(",") if part.strip()] if uuid else None
    listing = coordinator.list_configs(ids)
    return ConfigsListResponse(
        configs={
            record_id: ConfigResponse.from_record(record) if record else None
            for record_id, record in listing.records.items()
        },
        active_id=listing.active_id,
    )


@router.post("", response_model=AddConfigsResponse)
def add_configs(body: ConfigsRequest, coordinator: CoordinatorDep) -> AddConfigsResponse:
    """Add configs. Undecodable and duplicate entries are reported per item."""
    result = coordinator.add_configs(_require_configs(body))
    return AddConfigsResponse.from_result(result)


@router.put("", response_model=AddConfigsResponse)
def replace_configs(body: ConfigsRequest, coordinator: CoordinatorDep) -> AddConfigsResponse:
    """Replace every stored config with the submitted ones."""
    result = coordinator.replace_all_configs(_require_configs(body))
    return AddConfigsResponse.from_result(result, replaced=True)


@router.delete("", response_model=RemoveConfigResponse)
def remove_config(coordinator: CoordinatorDep, uuid: str = Query(...)) -> RemoveConfigResponse:
    """Remove a config. Removing the active one activates a fallback."""
    record_id = _require_uuid(uuid)
    result = coordinator.remove_config(record_id)
    return RemoveConfigResponse(
        message=f"Config {record_id} removed",
        removed_id=record_id,
        active_id=result.active_id,
    )


@router.put("/activate", response_model=ActivateResponse)
def activate_config(coordinator: CoordinatorDep, uuid: str = Query(...)) -> ActivateResponse:
    """Activate a config and restart the engine if it is running."""
    record_id = _require_uuid(uuid)
    result = coordinator.activate_config(record_id)
    return ActivateResponse(
        message=f"Config {record_id} activated",
        active_id=result.active_id,
    )


@router.get("/active", response_model=ConfigResponse)
def get_active_config(coordinator: CoordinatorDep) -> ConfigResponse:
    """Get the active config."""
    record = coordinator.get_active_config()
    if record is None:
        raise APIError(
            status_code=404,
            code=ErrorCode.ACTIVE_CONFIG_NOT_FOUND,
            message="No active config",
        )
    return ConfigResponse.from_record(record)


@router.delete("/active", response_model=ActivateResponse)
def clear_active_config(coordinator: CoordinatorDep) -> ActivateResponse:
    """Clear the active config. A running engine is stopped."""
    result = coordinator.activate_config(None)
    return ActivateResponse(
        message="Active config cleared" if result.changed else "No active config to clear",
        active_id=result.active_id,
    )
