"""Unit tests for file helpers and the JSONL log formatter."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from ctproxy.utils.file_helpers import atomic_write_json, read_json_document
from ctproxy.utils.logging.iso_formatter import ISO8601Formatter, utc_timestamp


class TestAtomicWriteJson:
    """Tests for atomic_write_json()."""

    def test_writes_and_creates_parent(self, tmp_path: Path) -> None:
        """The document is written, creating missing directories."""
        target = tmp_path / "nested" / "doc.json"

        atomic_write_json(target, {"a": 1, "label": "Zürich"})

        assert json.loads(target.read_text(encoding="utf-8")) == {"a": 1, "label": "Zürich"}

    def test_replaces_existing(self, tmp_path: Path) -> None:
        """An existing document is replaced and no temp files remain."""
        target = tmp_path / "doc.json"
        atomic_write_json(target, {"v": 1})

        atomic_write_json(target, {"v": 2})

        assert json.loads(target.read_text()) == {"v": 2}
        assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]

    def test_failed_replace_keeps_old_document(self, tmp_path: Path) -> None:
        """If the rename fails the old document is untouched."""
        target = tmp_path / "doc.json"
        atomic_write_json(target, {"v": 1})

        with patch("ctproxy.utils.file_helpers.os.replace", side_effect=OSError("disk")):
            with pytest.raises(OSError):
                atomic_write_json(target, {"v": 2})

        assert json.loads(target.read_text()) == {"v": 1}
        assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_private_permissions(self, tmp_path: Path) -> None:
        """Documents are owner-only."""
        target = tmp_path / "doc.json"

        atomic_write_json(target, {})

        assert target.stat().st_mode & 0o777 == 0o600


class TestReadJsonDocument:
    """Tests for read_json_document()."""

    def test_missing_file(self, tmp_path: Path) -> None:
        """An unreadable file is a ValueError."""
        with pytest.raises(ValueError, match="Could not read"):
            read_json_document(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Broken JSON is a ValueError."""
        path = tmp_path / "bad.json"
        path.write_text("{")

        with pytest.raises(ValueError, match="Invalid JSON"):
            read_json_document(path)


class TestIsoFormatter:
    """Tests for ISO8601Formatter and utc_timestamp()."""

    def test_utc_timestamp_format(self) -> None:
        """Timestamps are UTC with milliseconds and a Z suffix."""
        moment = datetime(2025, 12, 4, 10, 48, 37, 123456, tzinfo=timezone.utc)

        assert utc_timestamp(moment) == "2025-12-04T10:48:37.123Z"

    def test_dict_message_is_merged(self) -> None:
        """Structured dict messages become top-level JSON fields."""
        record = logging.LogRecord("ctproxy", logging.INFO, __file__, 1, {"event": "x", "n": 1}, None, None)

        entry = json.loads(ISO8601Formatter().format(record))

        assert entry["event"] == "x"
        assert entry["n"] == 1
        assert entry["level"] == "INFO"
        assert entry["time"].endswith("Z")

    def test_plain_message(self) -> None:
        """Plain string messages are stored under 'message'."""
        record = logging.LogRecord("ctproxy", logging.WARNING, __file__, 1, "hello %s", ("world",), None)

        entry = json.loads(ISO8601Formatter().format(record))

        assert entry["message"] == "hello world"
