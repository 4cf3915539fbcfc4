"""Include resolution scoped to a single compile task."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from shaderbake import fs
from shaderbake.errors import IncludeError

MAX_INCLUDE_DEPTH = 50


class IncludeKind(StrEnum):
    RELATIVE = "relative"  # #include "name"
    STANDARD = "standard"  # #include <name>


@dataclass(slots=True)
class ResolvedInclude:
    path: Path
    content: str


class IncludeResolver:
    """Resolves include directives for one target and records what it touched.

    ``dependencies`` maps every resolved path to its timestamp string at the
    moment it was first resolved. Both the map and the content cache live only
    as long as the resolver, i.e. one compile task.
    """

    def __init__(
        self,
        include_dirs: Iterable[Path],
        dependencies: dict[str, str] | None = None,
    ) -> None:
        self._include_dirs = sorted((Path(inc) for inc in include_dirs), key=str)
        self.dependencies: dict[str, str] = dependencies if dependencies is not None else {}
        self._contents: dict[Path, str] = {}

    @property
    def include_dirs(self) -> list[Path]:
        return list(self._include_dirs)

    def resolve(self, requested: str, kind: IncludeKind, requesting_file: Path | str) -> Path:
        if kind is IncludeKind.RELATIVE:
            candidate = Path(requesting_file).parent / requested
            if candidate.exists():
                return fs.canonical(candidate)
        for include_dir in self._include_dirs:
            candidate = include_dir / requested
            if candidate.exists():
                return fs.canonical(candidate)
        raise IncludeError(f"failed to resolve include {requested!r} from {requesting_file}")

    def record(self, path: Path | str) -> Path:
        """Add *path* to the dependency map, timestamped on first sight only."""
        canonical = fs.canonical(path)
        key = str(canonical)
        if key not in self.dependencies:
            self.dependencies[key] = fs.timestamp_string(canonical)
        return canonical

    def include(
        self,
        requested: str,
        kind: IncludeKind,
        requesting_file: Path | str,
        depth: int,
    ) -> ResolvedInclude:
        if depth > MAX_INCLUDE_DEPTH:
            raise IncludeError(f"include depth exceeds {MAX_INCLUDE_DEPTH}")
        path = self.record(self.resolve(requested, kind, requesting_file))
        content = self._contents.get(path)
        if content is None:
            try:
                content = fs.read_text(path)
            except (OSError, UnicodeDecodeError) as exc:
                raise IncludeError(f"failed to read include {path}: {exc}") from exc
            self._contents[path] = content
        return ResolvedInclude(path=path, content=content)
