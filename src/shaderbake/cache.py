"""Per-target dependency records that decide incremental rebuilds."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path

from shaderbake import fs
from shaderbake.targets.types import Dependency, DependencyRecord, Target

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".tm.json"


def record_path(target: Target, cache_dir: Path) -> Path:
    return Path(cache_dir) / target.output_name(RECORD_SUFFIX)


def load_record(path: Path) -> DependencyRecord:
    return DependencyRecord.from_json(json.loads(fs.read_text(path)))


def is_stale(target: Target, cache_dir: Path) -> bool:
    """True when *target* must be recompiled.

    A missing or unreadable record counts as stale. Timestamps are compared
    as strings, so any change at all invalidates the record.
    """
    path = record_path(target, cache_dir)
    if not path.exists():
        return True
    try:
        record = load_record(path)
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        logger.debug("failed to load cache %s: %s", path, exc)
        return True

    if record.target != target.id:
        return True
    for dep in record.deps:
        if not fs.exists(dep.path):
            return True
        try:
            if fs.timestamp_string(dep.path) != dep.time_stamp:
                return True
        except OSError:
            return True

    current = {str(inc) for inc in target.include_dirs}
    if len(record.includes) != len(current):
        return True
    return any(inc not in current for inc in record.includes)


def write_record(
    target: Target,
    cache_dir: Path,
    dependencies: Mapping[str, str],
    output_path: Path,
) -> DependencyRecord:
    """Persist the record for a freshly compiled *target*.

    ``dependencies`` holds the source and every include resolved during the
    compile; the output file is appended here.
    """
    deps = dict(dependencies)
    output = fs.canonical(output_path)
    deps[str(output)] = fs.timestamp_string(output)
    record = DependencyRecord(
        target=target.id,
        deps=[Dependency(path=path, time_stamp=stamp) for path, stamp in sorted(deps.items())],
        includes=sorted(str(inc) for inc in target.include_dirs),
    )
    fs.write_text(record_path(target, cache_dir), json.dumps(record.to_json(), indent=2) + "\n")
    return record
