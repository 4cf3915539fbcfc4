"""Write and read the TargetId to uid index of a build."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from shaderbake import fs
from shaderbake.config import get_settings
from shaderbake.targets.types import IndexTerm, Target, TargetId


def portable_path(path: Path | str) -> str:
    return str(PurePosixPath(*Path(path).parts))


def relative_target_id(target: Target) -> TargetId:
    return TargetId(path=portable_path(target.relative_path), flags=target.id.flags)


def index_path(output_dir: Path, index_file_name: str | None = None) -> Path:
    return Path(output_dir) / (index_file_name or get_settings().index_file_name)


def build_index(targets: Iterable[Target]) -> list[IndexTerm]:
    terms = [IndexTerm(target=relative_target_id(target), uid=target.uid) for target in targets]
    terms.sort(key=lambda term: term.target.sort_key())
    return terms


def write_index(
    targets: Iterable[Target],
    output_dir: Path,
    index_file_name: str | None = None,
) -> Path:
    """Write the index for the complete target set, rebuilt or not."""
    terms = build_index(targets)
    missing = [term.target.uri() for term in terms if not term.uid]
    if missing:
        raise ValueError(f"targets without uid: {', '.join(missing)}")
    out_path = index_path(output_dir, index_file_name)
    encoded = json.dumps([term.to_json() for term in terms], indent=2)
    fs.write_text(out_path, encoded + "\n")
    return out_path


def read_index(path: Path) -> dict[TargetId, str]:
    """Load an index file. Raises OSError or ValueError when it is unusable."""
    decoded = json.loads(fs.read_text(path))
    if not isinstance(decoded, list):
        raise ValueError("index root must be a list")
    table: dict[TargetId, str] = {}
    for item in decoded:
        term = IndexTerm.from_json(item)
        key = TargetId(path=portable_path(term.target.path), flags=term.target.flags)
        table[key] = term.uid
    return table
