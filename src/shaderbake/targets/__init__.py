"""Target identity and config tree resolution."""

from shaderbake.targets.resolver import load_directory, resolve_tree
from shaderbake.targets.types import Target, TargetId

__all__ = ["Target", "TargetId", "load_directory", "resolve_tree"]
