"""Atomic file writes: temp -> fsync -> rename -> fsync dir."""

from __future__ import annotations

import json
import os
import uuid
from pathlib import Path
from typing import Any


def temp_path_for(final_path: Path, temp_prefix: str) -> Path:
    """Return a unique temp path beside final_path so rename stays atomic."""
    return final_path.parent / (
        f".{temp_prefix}.{os.getpid()}.{uuid.uuid4().hex[:8]}.tmp"
    )


def write_temp(temp_path: Path, content: bytes, mode: int = 0o644) -> None:
    """Write content to temp_path and fsync it. Caller renames into place."""
    fd = os.open(str(temp_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        os.write(fd, content)
        os.fsync(fd)
    finally:
        os.close(fd)
    # os.open honours umask; scripts must stay executable.
    os.chmod(temp_path, mode)


def fsync_dir(directory: Path) -> None:
    """Flush a directory entry after rename. Best-effort."""
    try:
        dir_fd = os.open(str(directory), os.O_RDONLY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except OSError:
        pass  # e.g. Windows: directory fsync best-effort


def atomic_write_bytes(
    final_path: Path,
    content: bytes,
    temp_prefix: str,
    mode: int = 0o644,
) -> None:
    """Write bytes to final_path atomically. On failure, temp is removed.

    Args:
        final_path: Destination path; its parent must exist.
        content: Bytes to write.
        temp_prefix: Prefix for temp filename, e.g. "state".
        mode: File permission bits of the final file.
    """
    temp_path = temp_path_for(final_path, temp_prefix)
    try:
        write_temp(temp_path, content, mode)
        os.replace(temp_path, final_path)
        fsync_dir(final_path.parent)
    finally:
        if temp_path.exists():
            temp_path.unlink(missing_ok=True)


def atomic_write_json(
    final_path: Path,
    data: dict[str, Any],
    temp_prefix: str,
) -> None:
    """Write JSON to final_path atomically."""
    content_bytes = json.dumps(data, indent=2).encode("utf-8")
    atomic_write_bytes(final_path, content_bytes, temp_prefix)
