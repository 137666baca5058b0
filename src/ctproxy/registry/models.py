"""Pydantic models for the persisted registry.

Persisted layout (configs_info.json):
    {
      "version": 1,
      "activeId": "<id>" | null,
      "records": {
        "<id>": {"serialized", "scheme", "label", "createdAt",
                 "lastUsedAt", "isActive", "seq"}
      }
    }

Field names are snake_case in Python and camelCase on disk.
"""

from __future__ import annotations

__all__ = [
    "AddResult",
    "DuplicateItem",
    "ItemError",
    "ProfileRecord",
    "RegistryDocument",
]

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ctproxy.constants import REGISTRY_SCHEMA_VERSION
from ctproxy.decoders import Scheme


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ProfileRecord(_CamelModel):
    """One stored connection profile.

    Attributes:
        id: Opaque unique identifier, never reused.
        serialized: Original profile string, used as the dedup key.
        scheme: Detected profile family.
        label: Display name (decoder label, or the id when empty).
        created_at: ISO 8601 UTC creation time.
        last_used_at: ISO 8601 UTC time of the last activation.
        is_active: Mirror of registry.active_id == id.
        seq: Insertion sequence number; orders "first added" and fallback.
    """

    id: str = Field(min_length=1)
    serialized: str = Field(min_length=1)
    scheme: Scheme
    label: str
    created_at: str
    last_used_at: str
    is_active: bool = False
    seq: int = Field(ge=0)


class RegistryDocument(_CamelModel):
    """The full persisted registry state."""

    version: int = REGISTRY_SCHEMA_VERSION
    active_id: str | None = None
    records: dict[str, ProfileRecord] = Field(default_factory=dict)

    def ordered(self) -> list[ProfileRecord]:
        """Records in ascending insertion order."""
        return sorted(self.records.values(), key=lambda r: r.seq)

    def next_seq(self) -> int:
        """Sequence number greater than every one in use."""
        return max((r.seq for r in self.records.values()), default=-1) + 1

    def find_serialized(self, serialized: str) -> ProfileRecord | None:
        """Return the record storing this exact profile string, if any."""
        for record in self.records.values():
            if record.serialized == serialized:
                return record
        return None

    def sync_active_flags(self) -> None:
        """Set is_active on exactly the record named by active_id."""
        for record_id, record in self.records.items():
            record.is_active = record_id == self.active_id


class ItemError(BaseModel):
    """A profile in an add batch that failed to decode.

    Attributes:
        index: Position in the input list.
        scheme: Detected scheme tag, or None if no prefix matched.
        reason: Human-readable cause.
    """

    index: int
    scheme: str | None = None
    reason: str


class DuplicateItem(BaseModel):
    """A profile in an add batch that was already stored.

    Attributes:
        index: Position in the input list.
        existing_id: Id of the record that already holds the string.
    """

    index: int
    existing_id: str


class AddResult(BaseModel):
    """Outcome of an add batch.

    Attributes:
        created_ids: Ids of new records, in input order.
        errors: Items skipped because they did not decode.
        duplicates: Items skipped because they were already stored.
        active_id: Active id after the call.
        active_changed: Whether the call changed the active pointer.
    """

    created_ids: list[str] = Field(default_factory=list)
    errors: list[ItemError] = Field(default_factory=list)
    duplicates: list[DuplicateItem] = Field(default_factory=list)
    active_id: str | None = None
    active_changed: bool = False

    @property
    def changed(self) -> bool:
        """Whether any record was created."""
        return bool(self.created_ids)
