"""Shared file utilities for ctproxy.

Provides common utilities used by config and registry storage:
- get_app_dir: OS-appropriate application directory
- set_secure_permissions: Secure file/directory permissions
- atomic_write_json: Crash-safe JSON document replacement
- read_json_document: JSON file reading with uniform errors
"""

from __future__ import annotations

__all__ = [
    "atomic_write_json",
    "get_app_dir",
    "read_json_document",
    "set_secure_permissions",
]

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any

import click

from ctproxy.constants import APP_NAME


def get_app_dir() -> Path:
    """Get the OS-appropriate application directory.

    Uses click.get_app_dir() which returns:
    - macOS: ~/Library/Application Support/ctproxy
    - Linux: ~/.config/ctproxy (XDG compliant)
    - Windows: C:\\Users\\<user>\\AppData\\Roaming\\ctproxy

    Returns:
        Path to the application directory.
    """
    return Path(click.get_app_dir(APP_NAME))


def set_secure_permissions(path: Path, *, is_directory: bool = False) -> None:
    """Set secure permissions on file or directory.

    Sets permissions to restrict access to owner only:
    - Directory: 0o700 (rwx------)
    - File: 0o600 (rw-------)

    Does nothing on Windows. Silently ignores permission errors
    (some systems don't allow permission changes).

    Args:
        path: Path to file or directory.
        is_directory: If True, use directory permissions (0o700).
    """
    if sys.platform == "win32":
        return

    try:
        mode = 0o700 if is_directory else 0o600
        path.chmod(mode)
    except OSError:
        pass  # Permission changes might fail on some systems


def atomic_write_json(path: Path, data: Any) -> None:
    """Replace a JSON document on disk atomically.

    Writes to a temp file in the same directory, fsyncs it, then renames
    it over the target. Readers observe either the old or the new document,
    never a partial one.

    Args:
        path: Destination file.
        data: JSON-serializable document.

    Raises:
        OSError: If the directory or file cannot be written.
        TypeError: If data is not JSON-serializable.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    # Same directory ensures rename is atomic (same filesystem)
    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.stem}_",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        if sys.platform != "win32":
            os.chmod(temp_path, 0o600)

        os.replace(temp_path, path)
    except BaseException:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def read_json_document(path: Path) -> Any:
    """Read and parse a JSON file.

    Args:
        path: File to read.

    Returns:
        Parsed JSON value.

    Raises:
        ValueError: If the file cannot be read or is not valid JSON.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Could not read {path}: {e}") from e
