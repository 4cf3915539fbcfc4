"""Types for build targets and their persisted records."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any


@dataclass(frozen=True, slots=True)
class TargetId:
    """A source path plus an unordered set of active flags.

    Hashing goes through the frozenset of flags, so insertion order never
    affects equality or the hash.
    """

    path: str
    flags: frozenset[str] = frozenset()

    @classmethod
    def create(cls, path: Path | str, flags: Iterable[str] = ()) -> TargetId:
        return cls(path=str(path), flags=frozenset(flags))

    @property
    def sorted_flags(self) -> list[str]:
        return sorted(self.flags)

    def sort_key(self) -> tuple[str, tuple[str, ...]]:
        return self.path, tuple(self.sorted_flags)

    def uri(self, root: Path | None = None) -> str:
        path = Path(self.path)
        if root is not None:
            path = path.relative_to(root)
        return f"{PurePosixPath(*path.parts)}/flags={','.join(self.sorted_flags)}"

    def to_json(self) -> dict[str, Any]:
        return {"path": self.path, "flags": self.sorted_flags}

    @classmethod
    def from_json(cls, payload: object) -> TargetId:
        if not isinstance(payload, dict):
            raise ValueError("target must be an object")
        path = payload.get("path")
        flags = payload.get("flags", [])
        if not isinstance(path, str):
            raise ValueError("target.path must be a string")
        if not isinstance(flags, list) or any(not isinstance(flag, str) for flag in flags):
            raise ValueError("target.flags must be a list of strings")
        return cls.create(path, flags)


@dataclass(slots=True, eq=False)
class Target:
    """One resolved compilation unit. Identity is ``id`` alone."""

    id: TargetId
    relative_path: Path
    include_dirs: frozenset[Path]
    declaring_config_file: Path
    uid: str = ""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Target):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def path(self) -> Path:
        return Path(self.id.path)

    def output_name(self, ext: str = ".spv") -> str:
        return f"{self.uid}{ext}"

    def label(self) -> str:
        return " ".join([self.id.path, *self.id.sorted_flags])

    def display(self) -> str:
        lines = [
            "{",
            f"\trelative_path:\t{self.relative_path},",
            f"\tabsolute_path:\t{self.id.path},",
            "\tinclude_dirs: [",
            *(f"\t\t{inc}," for inc in sorted(self.include_dirs)),
            "\t],",
            "\tflags: [",
            *(f"\t\t{flag}," for flag in self.id.sorted_flags),
            "\t],",
            f"\tdeclaring_config_file: {self.declaring_config_file}",
            "}",
        ]
        return "\n".join(lines)


@dataclass(slots=True)
class Dependency:
    path: str
    time_stamp: str


@dataclass(slots=True)
class DependencyRecord:
    target: TargetId
    deps: list[Dependency] = field(default_factory=list)
    includes: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "target": self.target.to_json(),
            "deps": [{"path": dep.path, "time_stamp": dep.time_stamp} for dep in self.deps],
            "includes": list(self.includes),
        }

    @classmethod
    def from_json(cls, payload: object) -> DependencyRecord:
        if not isinstance(payload, dict):
            raise ValueError("record must be an object")
        target = TargetId.from_json(payload.get("target"))
        deps_raw = payload.get("deps")
        includes_raw = payload.get("includes")
        if not isinstance(deps_raw, list):
            raise ValueError("record.deps must be a list")
        if not isinstance(includes_raw, list):
            raise ValueError("record.includes must be a list")
        deps: list[Dependency] = []
        for item in deps_raw:
            if not isinstance(item, dict):
                raise ValueError("record.deps entries must be objects")
            path = item.get("path")
            stamp = item.get("time_stamp")
            if not isinstance(path, str) or not isinstance(stamp, str):
                raise ValueError("record.deps entries need string path and time_stamp")
            deps.append(Dependency(path=path, time_stamp=stamp))
        if any(not isinstance(inc, str) for inc in includes_raw):
            raise ValueError("record.includes must be strings")
        return cls(target=target, deps=deps, includes=list(includes_raw))


@dataclass(slots=True)
class IndexTerm:
    target: TargetId
    uid: str

    def to_json(self) -> dict[str, Any]:
        return {"target": self.target.to_json(), "uid": self.uid}

    @classmethod
    def from_json(cls, payload: object) -> IndexTerm:
        if not isinstance(payload, dict):
            raise ValueError("index term must be an object")
        uid = payload.get("uid")
        if not isinstance(uid, str) or not uid:
            raise ValueError("index term uid must be a non-empty string")
        return cls(target=TargetId.from_json(payload.get("target")), uid=uid)
