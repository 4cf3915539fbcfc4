"""Artifact lookup backed by a build output folder."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from shaderbake import fs
from shaderbake.archive.index import index_path, portable_path, read_index
from shaderbake.errors import ArchiveError
from shaderbake.targets.types import TargetId

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIX = ".spv"


class Archive(Protocol):
    def lookup(self, target_id: TargetId) -> bytes | None: ...


class FolderArchive:
    """Reads the index once; artifacts are read on demand."""

    def __init__(self, folder: Path | str, index_file_name: str | None = None) -> None:
        self._folder = Path(folder)
        path = index_path(self._folder, index_file_name)
        try:
            self._index = read_index(path)
        except (OSError, ValueError) as exc:
            raise ArchiveError(f"failed to load index {path}: {exc}") from exc

    @property
    def folder(self) -> Path:
        return self._folder

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, target_id: object) -> bool:
        return isinstance(target_id, TargetId) and self._key(target_id) in self._index

    def target_ids(self) -> list[TargetId]:
        return sorted(self._index, key=lambda target_id: target_id.sort_key())

    def uid_for(self, target_id: TargetId) -> str | None:
        return self._index.get(self._key(target_id))

    def artifact_path(self, target_id: TargetId) -> Path | None:
        uid = self.uid_for(target_id)
        if uid is None:
            return None
        return self._folder / f"{uid}{ARTIFACT_SUFFIX}"

    def lookup(self, target_id: TargetId) -> bytes | None:
        path = self.artifact_path(target_id)
        if path is None:
            return None
        try:
            return fs.read_bytes(path)
        except OSError as exc:
            logger.debug("artifact %s unreadable: %s", path, exc)
            return None

    def load(self, path: str, flags: Iterable[str] = ()) -> bytes | None:
        return self.lookup(TargetId.create(path, flags))

    @staticmethod
    def _key(target_id: TargetId) -> TargetId:
        return TargetId(path=portable_path(target_id.path), flags=target_id.flags)
