"""Deterministic, collision-free artifact identifiers for targets."""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Iterable

from shaderbake.targets.types import Target, TargetId

COLLISION_MARKER = "#"

Digest = Callable[[str], int]


def content_digest(text: str) -> int:
    return int.from_bytes(hashlib.blake2b(text.encode("utf-8"), digest_size=8).digest(), "big")


def identity_text(target_id: TargetId) -> str:
    return "\0".join([target_id.path, *target_id.sorted_flags])


def format_uid(digest: int) -> str:
    return f"{digest:016X}"


def assign_uids(targets: Iterable[Target], digest: Digest = content_digest) -> list[Target]:
    """Fill in ``uid`` for every target, in place.

    Targets are visited in TargetId order so the outcome of collision
    back-off is reproducible. On a digest collision the marker is appended
    and the text rehashed until the digest is unused. Must run before any
    concurrent phase.
    """
    ordered = sorted(targets, key=lambda target: target.id.sort_key())
    taken: set[int] = set()
    for target in ordered:
        text = identity_text(target.id)
        value = digest(text)
        while value in taken:
            text += COLLISION_MARKER
            value = digest(text)
        taken.add(value)
        target.uid = format_uid(value)
    return ordered
