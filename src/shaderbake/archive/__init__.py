"""Persisted target index and artifact lookup."""

from shaderbake.archive.folder import Archive, FolderArchive
from shaderbake.archive.index import read_index, relative_target_id, write_index

__all__ = ["Archive", "FolderArchive", "read_index", "relative_target_id", "write_index"]
