"""On-disk storage for the registry document and runtime config.

Both artifacts live in one data directory and are replaced atomically.
Every I/O or shape failure surfaces as StorageError.
"""

from __future__ import annotations

__all__ = ["RegistryStorage"]

import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ctproxy.constants import (
    APP_NAME,
    REGISTRY_FILENAME,
    REGISTRY_SCHEMA_VERSION,
    RUNTIME_CONFIG_FILENAME,
)
from ctproxy.exceptions import StorageError
from ctproxy.registry.models import RegistryDocument
from ctproxy.utils.file_helpers import (
    atomic_write_json,
    read_json_document,
    set_secure_permissions,
)

_logger = logging.getLogger(f"{APP_NAME}.registry.storage")


class RegistryStorage:
    """Reads and writes configs_info.json and active_config.json.

    Attributes:
        data_dir: Directory holding both artifacts.
        registry_path: Path of the registry document.
        runtime_path: Path of the runtime config.
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self.registry_path = self.data_dir / REGISTRY_FILENAME
        self.runtime_path = self.data_dir / RUNTIME_CONFIG_FILENAME

    def ensure_dir(self) -> None:
        """Create the data directory with owner-only permissions."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self.data_dir}: {e}") from e
        set_secure_permissions(self.data_dir, is_directory=True)

    # -------------------------------------------------------------------------
    # Registry document
    # -------------------------------------------------------------------------

    def load_document(self) -> RegistryDocument | None:
        """Load and validate the registry document.

        Returns:
            The document, or None if the file does not exist.

        Raises:
            StorageError: If the file is unreadable or has the wrong shape.
        """
        if not self.registry_path.exists():
            return None

        try:
            data = read_json_document(self.registry_path)
        except ValueError as e:
            raise StorageError(str(e)) from e

        if not isinstance(data, dict):
            raise StorageError(f"{self.registry_path}: expected a JSON object")

        try:
            document = RegistryDocument.model_validate(data)
        except ValidationError as e:
            raise StorageError(f"{self.registry_path}: invalid registry document: {e}") from e

        if document.version != REGISTRY_SCHEMA_VERSION:
            raise StorageError(
                f"{self.registry_path}: unsupported registry version {document.version}"
            )
        for key, record in document.records.items():
            if key != record.id:
                raise StorageError(
                    f"{self.registry_path}: record key '{key}' does not match id '{record.id}'"
                )
        # Empty string on disk means "none"
        if not document.active_id:
            document.active_id = None
        elif document.active_id not in document.records:
            raise StorageError(
                f"{self.registry_path}: activeId '{document.active_id}' has no record"
            )

        return document

    def save_document(self, document: RegistryDocument) -> None:
        """Atomically replace the registry document.

        Raises:
            StorageError: If the write fails.
        """
        data = document.model_dump(mode="json", by_alias=True)
        try:
            atomic_write_json(self.registry_path, data)
        except OSError as e:
            raise StorageError(f"Cannot write {self.registry_path}: {e}") from e

    # -------------------------------------------------------------------------
    # Runtime config
    # -------------------------------------------------------------------------

    def runtime_exists(self) -> bool:
        """Whether the runtime config file exists."""
        return self.runtime_path.exists()

    def read_runtime(self) -> dict[str, Any] | None:
        """Read the runtime config, or None if absent or unreadable."""
        if not self.runtime_path.exists():
            return None
        try:
            data = read_json_document(self.runtime_path)
        except ValueError as e:
            _logger.warning(
                {
                    "event": "runtime_config_unreadable",
                    "message": str(e),
                    "details": {"path": str(self.runtime_path)},
                }
            )
            return None
        return data if isinstance(data, dict) else None

    def snapshot_runtime(self) -> bytes | None:
        """Raw bytes of the current runtime config, for rollback."""
        try:
            return self.runtime_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {self.runtime_path}: {e}") from e

    def write_runtime(self, config: dict[str, Any]) -> None:
        """Atomically replace the runtime config.

        Raises:
            StorageError: If the write fails.
        """
        try:
            atomic_write_json(self.runtime_path, config)
        except OSError as e:
            raise StorageError(f"Cannot write {self.runtime_path}: {e}") from e

    def restore_runtime(self, snapshot: bytes | None) -> None:
        """Put back a runtime config captured by snapshot_runtime().

        Best effort: used on rollback paths where the original error is
        the one the caller reports.
        """
        try:
            if snapshot is None:
                self.runtime_path.unlink(missing_ok=True)
                return
            tmp_path = self.runtime_path.with_name(f".{self.runtime_path.name}.restore")
            tmp_path.write_bytes(snapshot)
            os.replace(tmp_path, self.runtime_path)
        except OSError as e:
            _logger.error(
                {
                    "event": "runtime_config_restore_failed",
                    "message": f"Failed to restore runtime config: {e}",
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "details": {"path": str(self.runtime_path)},
                }
            )

    def remove_runtime(self) -> None:
        """Delete the runtime config if present.

        Raises:
            StorageError: If the file exists but cannot be removed.
        """
        try:
            self.runtime_path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot remove {self.runtime_path}: {e}") from e
