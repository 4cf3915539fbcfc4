"""End-to-end build: resolve, assign uids, check cache, compile, index."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from shaderbake import cache
from shaderbake.archive.index import write_index
from shaderbake.compiler import Compiler, GlslcCompiler
from shaderbake.config import get_settings
from shaderbake.ids import assign_uids
from shaderbake.targets.resolver import resolve_tree
from shaderbake.targets.types import Target
from shaderbake.tasks.compile import CompileOutcome, compile_targets
from shaderbake.tasks.runner import ThreadPool

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BuildReport:
    targets: list[Target]
    stale: list[Target]
    outcomes: list[CompileOutcome] = field(default_factory=list)
    index_path: Path | None = None

    @property
    def compiled(self) -> list[Target]:
        return [outcome.target for outcome in self.outcomes if outcome.ok]

    @property
    def failed(self) -> list[CompileOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def up_to_date(self) -> bool:
        return not self.stale


def cache_root(output_dir: Path, cache_dir: Path | None = None) -> Path:
    return Path(cache_dir or output_dir) / get_settings().cache_dir_name


def resolve_targets(source_dir: Path) -> list[Target]:
    """Resolve the config tree and give every target its uid."""
    return assign_uids(resolve_tree(Path(source_dir)))


def run_build(
    source_dir: Path,
    output_dir: Path,
    cache_dir: Path | None = None,
    workers: int | None = None,
    compiler: Compiler | None = None,
) -> BuildReport:
    """Run one incremental build.

    Configuration errors propagate as ConfigError; per-target compile
    failures are reported in the returned BuildReport.
    """
    output_dir = Path(output_dir)
    records = cache_root(output_dir, cache_dir)
    targets = resolve_targets(source_dir)
    stale = [target for target in targets if cache.is_stale(target, records)]
    report = BuildReport(targets=targets, stale=stale)

    if stale:
        with ThreadPool(workers) as pool:
            report.outcomes = compile_targets(
                pool, stale, output_dir, records, compiler or GlslcCompiler()
            )
    else:
        logger.info("all targets updated, nothing to compile")

    report.index_path = write_index(targets, output_dir)
    logger.info(
        "build finished: %d targets, %d stale, %d compiled, %d failed",
        len(targets),
        len(stale),
        len(report.compiled),
        len(report.failed),
    )
    return report
