"""Resolve a tree of per-directory config files into build targets."""

from __future__ import annotations

import itertools
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from shaderbake import fs
from shaderbake.config import get_settings
from shaderbake.errors import ConfigError, DuplicateTargetError
from shaderbake.targets.types import Target, TargetId

logger = logging.getLogger(__name__)

# One axis of a multi-compile expansion; ``None`` is the "absent" option.
Axis = tuple[str | None, ...]


@dataclass(frozen=True, slots=True)
class _DirectoryContext:
    config_file: Path
    directory: Path
    source_root: Path

    def absolute(self, entry: str) -> Path:
        try:
            return fs.canonical(self.directory / entry)
        except OSError as exc:
            raise ConfigError(self.config_file, f"cannot resolve path {entry!r}: {exc}") from exc

    def string_list(self, value: object, what: str) -> list[str]:
        if not isinstance(value, list):
            raise ConfigError(self.config_file, f"{what} should be specified as a list")
        for item in value:
            if not isinstance(item, str):
                raise ConfigError(self.config_file, f"{what} should be specified with string")
        return list(value)


def _load_config(config_file: Path) -> dict[str, object]:
    try:
        decoded = json.loads(fs.read_text(config_file))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError(config_file, f"failed to load config: {exc}") from exc
    if not isinstance(decoded, dict):
        raise ConfigError(config_file, "config root should be an object")
    return decoded


def parse_axis(ctx: _DirectoryContext, entry: object) -> Axis:
    """Turn one ``multi_compile`` entry into its set of mutually exclusive options."""
    if isinstance(entry, str):
        return (None, entry)
    if isinstance(entry, list):
        flags = ctx.string_list(entry, "flags")
        return (None, *dict.fromkeys(flags))
    if isinstance(entry, dict):
        flags = ctx.string_list(entry.get("options", []), "multi-compile options")
        can_off = entry.get("can_off", True)
        if not isinstance(can_off, bool):
            raise ConfigError(ctx.config_file, "can_off should be a boolean")
        options: tuple[str | None, ...] = tuple(dict.fromkeys(flags))
        if can_off:
            options = (None, *options)
        return options
    raise ConfigError(
        ctx.config_file,
        "multi-compile options should be specified as string/array or object",
    )


def expand_flags(axes: Iterable[Axis]) -> list[frozenset[str]]:
    """Cartesian product of all axes, dropping absent options."""
    combos: list[frozenset[str]] = []
    for combination in itertools.product(*axes):
        combos.append(frozenset(flag for flag in combination if flag is not None))
    return combos


def _source_targets(
    ctx: _DirectoryContext, entry: object, directory_includes: frozenset[Path]
) -> list[Target]:
    if isinstance(entry, str):
        entry = {"file": entry}
    if not isinstance(entry, dict):
        raise ConfigError(ctx.config_file, "targets should be specified with string or object")

    file_name = entry.get("file")
    if not isinstance(file_name, str) or not file_name:
        raise ConfigError(ctx.config_file, "targets requires file name")
    absolute_path = ctx.absolute(file_name)
    try:
        relative_path = absolute_path.relative_to(ctx.source_root)
    except ValueError as exc:
        raise ConfigError(
            ctx.config_file, f"source {absolute_path} is outside {ctx.source_root}"
        ) from exc

    own_includes = frozenset(
        ctx.absolute(inc)
        for inc in ctx.string_list(entry.get("includes", []), "include directories")
    )
    multi_compile = entry.get("multi_compile", [])
    if not isinstance(multi_compile, list):
        raise ConfigError(ctx.config_file, "multi_compile should be specified as a list")
    axes = [parse_axis(ctx, axis) for axis in multi_compile]

    include_dirs = own_includes | directory_includes
    return [
        Target(
            id=TargetId(path=str(absolute_path), flags=flags),
            relative_path=relative_path,
            include_dirs=include_dirs,
            declaring_config_file=ctx.config_file,
        )
        for flags in expand_flags(axes)
    ]


def _merge_unique(into: dict[TargetId, Target], targets: Iterable[Target]) -> None:
    for target in targets:
        first = into.get(target.id)
        if first is not None:
            raise DuplicateTargetError(
                target.display(), first.declaring_config_file, target.declaring_config_file
            )
        into[target.id] = target


def load_directory(
    directory: Path,
    source_root: Path,
    inherited_includes: frozenset[Path] = frozenset(),
    *,
    config_file_name: str | None = None,
    visiting: frozenset[Path] = frozenset(),
) -> dict[TargetId, Target]:
    """Resolve the targets declared at *directory* and every subdirectory below it.

    ``inherited_includes`` is never mutated; this directory's own include
    directories are added to a new set that is handed to the subdirectories.
    Raises ConfigError for any malformed entry and DuplicateTargetError when
    two entries anywhere in the tree resolve to the same TargetId.
    ``visiting`` holds the directories on the path from the root; a
    subdirectory that leads back into one of them is a ConfigError.
    """
    name = config_file_name or get_settings().config_file_name
    config_file = Path(directory).absolute() / name
    config = _load_config(config_file)
    ctx = _DirectoryContext(
        config_file=config_file,
        directory=config_file.parent,
        source_root=fs.canonical(source_root),
    )

    directory_includes = inherited_includes | frozenset(
        ctx.absolute(inc)
        for inc in ctx.string_list(config.get("includes", []), "include directories")
    )

    sources = config.get("sources", [])
    if not isinstance(sources, list):
        raise ConfigError(config_file, "sources should be specified as a list")

    resolved: dict[TargetId, Target] = {}
    for entry in sources:
        _merge_unique(resolved, _source_targets(ctx, entry, directory_includes))
    logger.debug("loaded %d targets from %s", len(resolved), config_file)

    on_path = visiting | {ctx.directory.resolve()}
    subdirectories = config.get("subdirectories", [])
    if not isinstance(subdirectories, list):
        raise ConfigError(config_file, "subdirectories should be specified as a list")
    for subdir in subdirectories:
        if not isinstance(subdir, str):
            raise ConfigError(config_file, "subdirectories should be specified as strings")
        child_dir = ctx.absolute(subdir)
        if child_dir in on_path:
            raise ConfigError(
                config_file, f"subdirectory cycle: {subdir!r} leads back to {child_dir}"
            )
        child = load_directory(
            child_dir,
            source_root,
            directory_includes,
            config_file_name=name,
            visiting=on_path,
        )
        _merge_unique(resolved, child.values())
    return resolved


def resolve_tree(source_root: Path, *, config_file_name: str | None = None) -> list[Target]:
    """Resolve the whole tree rooted at *source_root*, sorted by TargetId."""
    try:
        root = fs.canonical(source_root)
    except OSError as exc:
        raise ConfigError(source_root, f"source directory not found: {exc}") from exc
    targets: Mapping[TargetId, Target] = load_directory(
        root, root, frozenset(), config_file_name=config_file_name
    )
    return sorted(targets.values(), key=lambda target: target.id.sort_key())
