"""Concurrent compilation of stale targets."""

from shaderbake.tasks.compile import CompileOutcome, compile_target, compile_targets
from shaderbake.tasks.runner import ThreadPool, default_worker_count

__all__ = [
    "CompileOutcome",
    "ThreadPool",
    "compile_target",
    "compile_targets",
    "default_worker_count",
]
