"""Config registry: persistent store of profile records and the active pointer.

The registry is the only writer of the runtime config. Every mutation is
computed on a deep copy of the in-memory document, committed to disk, and
only then swapped in, so a failed call leaves both memory and disk as they
were.

Ordering:
    Records are ordered by ascending seq (first inserted first). The same
    order picks the record that becomes active when an add batch lands in
    an empty-active registry, and the fallback when the active record is
    removed.

Commit ordering:
    - Activating: write runtime config, then registry document. If the
      document write fails, the previous runtime config is restored.
    - Clearing: write registry document, then delete runtime config.
"""

from __future__ import annotations

__all__ = ["ConfigRegistry"]

import logging
import uuid
from pathlib import Path
from typing import Any

from ctproxy.constants import APP_NAME
from ctproxy.decoders import DecodedProfile, Decoder, decode
from ctproxy.exceptions import DecodeError, NotFoundError, StorageError
from ctproxy.registry.locking import ReadWriteLock
from ctproxy.registry.models import (
    AddResult,
    DuplicateItem,
    ItemError,
    ProfileRecord,
    RegistryDocument,
)
from ctproxy.registry.runtime import build_runtime_config
from ctproxy.registry.storage import RegistryStorage
from ctproxy.utils.logging.iso_formatter import utc_timestamp

_logger = logging.getLogger(f"{APP_NAME}.registry")


class ConfigRegistry:
    """Durable bookkeeping of profile records and the active pointer.

    Reads share a readers-writer lock; mutations hold it exclusively, so a
    read never observes a half-applied mutation.

    Args:
        data_dir: Directory for configs_info.json and active_config.json.
        decoder: Profile decoder (injectable for tests).

    Raises:
        StorageError: If the persisted document cannot be loaded.
    """

    def __init__(self, data_dir: Path, decoder: Decoder = decode) -> None:
        self._storage = RegistryStorage(data_dir)
        self._decoder = decoder
        self._lock = ReadWriteLock()
        self._doc = self._load()

    # =========================================================================
    # Read-only accessors
    # =========================================================================

    @property
    def runtime_config_path(self) -> Path:
        """Path of the runtime config the engine loads."""
        return self._storage.runtime_path

    @property
    def registry_path(self) -> Path:
        """Path of the registry document."""
        return self._storage.registry_path

    @property
    def active_id(self) -> str | None:
        """Id of the active record, or None."""
        with self._lock.read():
            return self._doc.active_id

    def get_all(self) -> list[ProfileRecord]:
        """All records in insertion order."""
        with self._lock.read():
            return [r.model_copy(deep=True) for r in self._doc.ordered()]

    def get_by_ids(self, ids: list[str]) -> dict[str, ProfileRecord | None]:
        """Look up records by id.

        Unknown ids map to None instead of being omitted.
        """
        with self._lock.read():
            result: dict[str, ProfileRecord | None] = {}
            for record_id in ids:
                record = self._doc.records.get(record_id)
                result[record_id] = record.model_copy(deep=True) if record else None
            return result

    def listing(
        self, ids: list[str] | None = None
    ) -> tuple[dict[str, ProfileRecord | None], str | None]:
        """Records keyed by id together with the active id, read atomically.

        Args:
            ids: Ids to look up (unknown ids map to None). None lists all
                records in insertion order.

        Returns:
            (records, active_id)
        """
        with self._lock.read():
            if ids is None:
                records: dict[str, ProfileRecord | None] = {
                    r.id: r.model_copy(deep=True) for r in self._doc.ordered()
                }
            else:
                records = {}
                for record_id in ids:
                    record = self._doc.records.get(record_id)
                    records[record_id] = record.model_copy(deep=True) if record else None
            return records, self._doc.active_id

    def get(self, record_id: str) -> ProfileRecord:
        """Return one record.

        Raises:
            NotFoundError: If no record has this id.
        """
        with self._lock.read():
            record = self._doc.records.get(record_id)
            if record is None:
                raise NotFoundError(record_id)
            return record.model_copy(deep=True)

    def get_active(self) -> ProfileRecord | None:
        """The active record, or None."""
        with self._lock.read():
            if self._doc.active_id is None:
                return None
            return self._doc.records[self._doc.active_id].model_copy(deep=True)

    def read_runtime_config(self) -> dict[str, Any] | None:
        """Current runtime config document, or None when nothing is active."""
        with self._lock.read():
            if self._doc.active_id is None:
                return None
            return self._storage.read_runtime()

    # =========================================================================
    # Mutations
    # =========================================================================

    def add(self, serialized_list: list[str]) -> AddResult:
        """Add profiles, skipping duplicates and ones that fail to decode.

        If nothing was active and at least one record was created, the
        first created record (input order) becomes active.

        Raises:
            StorageError: If the commit fails. Nothing is added in that case.
        """
        with self._lock.write():
            return self._add_locked(serialized_list)

    def remove(self, record_id: str) -> bool:
        """Remove a record.

        If it was active, the first remaining record (ascending seq) that
        still decodes becomes active; if none does, the active pointer is
        cleared and the runtime config deleted.

        Returns:
            True if the removed record was the active one.

        Raises:
            NotFoundError: If no record has this id.
            StorageError: If the commit fails.
        """
        with self._lock.write():
            if record_id not in self._doc.records:
                raise NotFoundError(record_id)

            doc = self._doc.model_copy(deep=True)
            was_active = doc.active_id == record_id
            del doc.records[record_id]

            runtime: dict[str, Any] | None = None
            if was_active:
                doc.active_id = None
                runtime = self._fallback_in(doc)
            doc.sync_active_flags()

            self._commit(doc, runtime)
            _logger.info(
                {
                    "event": "config_removed",
                    "message": f"Removed config {record_id}",
                    "config_id": record_id,
                    "was_active": was_active,
                    "active_id": doc.active_id,
                }
            )
            return was_active

    def activate(self, record_id: str | None) -> bool:
        """Make a record active and materialize its runtime config.

        An empty or None id clears the active pointer and deletes the
        runtime config.

        Returns:
            False only when clearing with nothing active; activating a
            record always rewrites its runtime config and counts as a change.

        Raises:
            NotFoundError: If a non-empty id has no record.
            DecodeError: If the record no longer decodes. Nothing changes.
            StorageError: If the commit fails. Nothing changes.
        """
        with self._lock.write():
            if not record_id:
                return self._clear_active_locked()

            if record_id not in self._doc.records:
                raise NotFoundError(record_id)

            doc = self._doc.model_copy(deep=True)
            runtime = self._activate_in(doc, record_id)
            self._commit(doc, runtime)
            _logger.info(
                {
                    "event": "config_activated",
                    "message": f"Activated config {record_id}",
                    "config_id": record_id,
                }
            )
            return True

    def replace_all(self, serialized_list: list[str]) -> AddResult:
        """Remove every record, then add the given profiles.

        The clear is committed on its own. If the following add fails with
        StorageError, the registry stays empty with nothing active.

        Raises:
            StorageError: If either commit fails.
        """
        with self._lock.write():
            self._commit(RegistryDocument(), None)
            _logger.info(
                {
                    "event": "configs_cleared",
                    "message": "Cleared all configs for replacement",
                }
            )
            return self._add_locked(serialized_list)

    # =========================================================================
    # Internals (caller holds the write lock)
    # =========================================================================

    def _add_locked(self, serialized_list: list[str]) -> AddResult:
        doc = self._doc.model_copy(deep=True)
        result = AddResult()
        decoded_by_id: dict[str, DecodedProfile] = {}

        for index, serialized in enumerate(serialized_list):
            # Also catches repeats within this batch
            existing = doc.find_serialized(serialized)
            if existing is not None:
                result.duplicates.append(DuplicateItem(index=index, existing_id=existing.id))
                continue

            try:
                decoded = self._decoder(serialized)
            except DecodeError as e:
                result.errors.append(ItemError(index=index, scheme=e.scheme, reason=e.reason))
                _logger.warning(
                    {
                        "event": "config_decode_failed",
                        "message": f"Skipping profile at index {index}: {e}",
                        "index": index,
                        "scheme": e.scheme,
                        "reason": e.reason,
                    }
                )
                continue

            record_id = self._new_id(doc)
            now = utc_timestamp()
            doc.records[record_id] = ProfileRecord(
                id=record_id,
                serialized=serialized,
                scheme=decoded.scheme,
                label=decoded.label or record_id,
                created_at=now,
                last_used_at=now,
                is_active=False,
                seq=doc.next_seq(),
            )
            decoded_by_id[record_id] = decoded
            result.created_ids.append(record_id)

        if not result.created_ids:
            result.active_id = doc.active_id
            _logger.info(
                {
                    "event": "configs_unchanged",
                    "message": "Add created no records",
                    "duplicates": len(result.duplicates),
                    "errors": len(result.errors),
                }
            )
            return result

        runtime: dict[str, Any] | None = None
        if doc.active_id is None:
            first_id = result.created_ids[0]
            runtime = self._activate_in(doc, first_id, decoded_by_id[first_id])
            result.active_changed = True

        self._commit(doc, runtime)
        result.active_id = doc.active_id
        _logger.info(
            {
                "event": "configs_added",
                "message": f"Added {len(result.created_ids)} config(s)",
                "created_ids": result.created_ids,
                "active_id": doc.active_id,
            }
        )
        return result

    def _clear_active_locked(self) -> bool:
        if self._doc.active_id is None:
            _logger.info(
                {
                    "event": "active_config_unchanged",
                    "message": "No active config to clear",
                }
            )
            return False
        doc = self._doc.model_copy(deep=True)
        doc.active_id = None
        doc.sync_active_flags()
        self._commit(doc, None)
        _logger.info({"event": "active_config_cleared", "message": "Cleared active config"})
        return True

    def _activate_in(
        self,
        doc: RegistryDocument,
        record_id: str,
        decoded: DecodedProfile | None = None,
    ) -> dict[str, Any]:
        """Point doc at record_id and return the runtime config to write.

        doc is only modified after the profile decodes.
        """
        record = doc.records[record_id]
        if decoded is None:
            decoded = self._decoder(record.serialized)
        runtime = build_runtime_config(decoded.profile)

        record.last_used_at = utc_timestamp()
        doc.active_id = record_id
        doc.sync_active_flags()
        return runtime

    def _fallback_in(self, doc: RegistryDocument) -> dict[str, Any] | None:
        """Activate the first remaining record that decodes, if any."""
        for candidate in doc.ordered():
            try:
                return self._activate_in(doc, candidate.id)
            except DecodeError as e:
                _logger.warning(
                    {
                        "event": "fallback_candidate_skipped",
                        "message": f"Config {candidate.id} no longer decodes: {e}",
                        "config_id": candidate.id,
                        "reason": e.reason,
                    }
                )
        return None

    def _commit(self, doc: RegistryDocument, runtime: dict[str, Any] | None) -> None:
        """Persist doc (and runtime, when activating) and swap it in."""
        if runtime is not None:
            snapshot = self._storage.snapshot_runtime()
            self._storage.write_runtime(runtime)
            try:
                self._storage.save_document(doc)
            except StorageError:
                self._storage.restore_runtime(snapshot)
                raise
            self._doc = doc
            return

        clearing = doc.active_id is None and self._storage.runtime_exists()
        self._storage.save_document(doc)
        self._doc = doc
        if clearing:
            self._storage.remove_runtime()

    @staticmethod
    def _new_id(doc: RegistryDocument) -> str:
        while True:
            record_id = str(uuid.uuid4())
            if record_id not in doc.records:
                return record_id

    def _load(self) -> RegistryDocument:
        """Load the persisted document and repair the runtime artifact.

        The runtime config is rebuilt from the active record and rewritten
        when the file is missing, unreadable or describes another profile.
        A stray runtime config with nothing active is deleted.
        """
        self._storage.ensure_dir()
        doc = self._storage.load_document() or RegistryDocument()
        doc.sync_active_flags()

        if doc.active_id is not None:
            record = doc.records[doc.active_id]
            try:
                decoded = self._decoder(record.serialized)
            except DecodeError as e:
                _logger.warning(
                    {
                        "event": "active_config_undecodable",
                        "message": f"Active config {record.id} no longer decodes, clearing: {e}",
                        "config_id": record.id,
                    }
                )
                doc.active_id = None
                doc.sync_active_flags()
                self._storage.save_document(doc)
                self._storage.remove_runtime()
            else:
                expected = build_runtime_config(decoded.profile)
                current = self._storage.read_runtime()
                if current != expected:
                    self._storage.write_runtime(expected)
                    _logger.info(
                        {
                            "event": "runtime_config_restored",
                            "message": f"Rebuilt runtime config for {record.id}",
                            "config_id": record.id,
                            "was_missing": current is None,
                        }
                    )
        elif self._storage.runtime_exists():
            self._storage.remove_runtime()

        _logger.debug(
            {
                "event": "registry_loaded",
                "message": f"Loaded {len(doc.records)} config(s)",
                "active_id": doc.active_id,
            }
        )
        return doc
