"""Filesystem and timestamp primitives shared by the build."""

from __future__ import annotations

import os
import threading
from pathlib import Path

# Timestamp queries are treated as non-thread-safe; every caller goes
# through this one lock.
_timestamp_lock = threading.Lock()


def canonical(path: Path | str) -> Path:
    """Absolute, symlink-free path. Raises FileNotFoundError if missing."""
    return Path(path).absolute().resolve(strict=True)


def exists(path: Path | str) -> bool:
    return Path(path).exists()


def read_bytes(path: Path | str) -> bytes:
    return Path(path).read_bytes()


def read_text(path: Path | str) -> str:
    return Path(path).read_text(encoding="utf-8")


def write_bytes(path: Path | str, data: bytes) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


def write_text(path: Path | str, text: str) -> None:
    write_bytes(path, text.encode("utf-8"))


def timestamp_string(path: Path | str) -> str:
    """Last-modification time of *path* as an opaque, comparable string."""
    with _timestamp_lock:
        return str(os.stat(path).st_mtime_ns)
