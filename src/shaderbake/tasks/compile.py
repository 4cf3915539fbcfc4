"""Compile tasks and their dispatch onto the worker pool."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import Future, wait
from dataclasses import dataclass
from pathlib import Path

from shaderbake import cache, fs
from shaderbake.compiler import Compiler, shader_kind_for, stage_macro
from shaderbake.errors import CompileError
from shaderbake.includes import IncludeResolver
from shaderbake.logging import bind_context, clear_context
from shaderbake.targets.types import Target
from shaderbake.tasks.runner import ThreadPool

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CompileOutcome:
    target: Target
    ok: bool
    diagnostic: str = ""


def _flags_label(target: Target) -> str:
    return f"flags: [{', '.join(target.id.sorted_flags)}]"


def compile_target(
    target: Target,
    output_dir: Path,
    cache_dir: Path,
    compiler: Compiler,
) -> CompileOutcome:
    """Compile one target and refresh its dependency record.

    Failures of any kind stay inside this call and come back as an outcome.
    """
    bind_context(uid=target.uid)
    try:
        includer = IncludeResolver(target.include_dirs)
        includer.dependencies[target.id.path] = fs.timestamp_string(target.id.path)
        source_text = fs.read_text(target.id.path)

        kind = shader_kind_for(target.path, target.id.flags)
        macros = target.id.sorted_flags
        extra = stage_macro(kind)
        if extra is not None and extra not in target.id.flags:
            macros = [extra, *macros]

        result = compiler.compile(
            source_text, kind, macros, includer, source_name=target.id.path
        )
        if not result.ok or result.output is None:
            raise CompileError(target.id.path, result.diagnostic)

        output_path = Path(output_dir) / target.output_name()
        fs.write_bytes(output_path, result.output)
        cache.write_record(target, cache_dir, includer.dependencies, output_path)
        return CompileOutcome(target=target, ok=True)
    except CompileError as exc:
        logger.error("%s %s %s", target.id.path, _flags_label(target), exc.diagnostic)
        return CompileOutcome(target=target, ok=False, diagnostic=exc.diagnostic)
    except Exception as exc:
        logger.exception("Compile task failed: %s %s", target.id.path, _flags_label(target))
        return CompileOutcome(target=target, ok=False, diagnostic=str(exc))
    finally:
        clear_context()


def _run_task(
    index: int,
    total: int,
    target: Target,
    output_dir: Path,
    cache_dir: Path,
    compiler: Compiler,
) -> CompileOutcome:
    logger.info("[%d/%d] compiling %s", index + 1, total, target.label())
    return compile_target(target, output_dir, cache_dir, compiler)


def compile_targets(
    pool: ThreadPool,
    targets: Sequence[Target],
    output_dir: Path,
    cache_dir: Path,
    compiler: Compiler,
) -> list[CompileOutcome]:
    """Submit one task per target and block until every task has finished.

    Returned outcomes follow the order of *targets*, not completion order.
    """
    futures: list[Future[CompileOutcome]] = [
        pool.submit(_run_task, index, len(targets), target, output_dir, cache_dir, compiler)
        for index, target in enumerate(targets)
    ]
    wait(futures)

    outcomes: list[CompileOutcome] = []
    for target, future in zip(targets, futures, strict=True):
        exc = future.exception()
        if exc is not None:
            logger.error("Compile task crashed: %s: %s", target.label(), exc)
            outcomes.append(CompileOutcome(target=target, ok=False, diagnostic=str(exc)))
        else:
            outcomes.append(future.result())
    return outcomes
