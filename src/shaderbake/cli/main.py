"""Click CLI group: build, targets, lookup and pack commands."""

from __future__ import annotations

import json
from pathlib import Path

import click

from shaderbake.config import get_settings, validate_settings_for_env
from shaderbake.errors import ArchiveError, ConfigError, ShaderBakeError
from shaderbake.logging import configure_logging


def _fail(exc: ShaderBakeError) -> click.ClickException:
    if isinstance(exc, ConfigError):
        return click.ClickException(f"{exc.config_file}: {exc.reason}")
    return click.ClickException(str(exc))


@click.group()
@click.option("--log-level", type=str, default=None, help="Override LOG_LEVEL.")
@click.option("--json-logs", is_flag=True, help="Force JSON log output.")
def cli(log_level: str | None, json_logs: bool) -> None:
    """shaderbake: incremental GLSL to SPIR-V builds."""
    settings = get_settings()
    try:
        validate_settings_for_env(settings)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    configure_logging(log_level or settings.log_level, "json" if json_logs else None)


@cli.command()
@click.option(
    "-S",
    "--source-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Source file directory.",
)
@click.option(
    "-B",
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Output directory.",
)
@click.option(
    "-C",
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    show_default="<output-dir>",
    help="Cache directory.",
)
@click.option(
    "-j",
    "--thread-count",
    type=click.IntRange(min=1),
    default=None,
    show_default="SHADERBAKE_WORKERS or CPU count",
    help="Worker thread count.",
)
def build(
    source_dir: Path, output_dir: Path, cache_dir: Path | None, thread_count: int | None
) -> None:
    """Compile every stale target and rewrite the index."""
    from shaderbake.pipeline import run_build

    try:
        report = run_build(source_dir, output_dir, cache_dir=cache_dir, workers=thread_count)
    except ShaderBakeError as exc:
        if exc.fatal:
            raise _fail(exc) from exc
        raise
    if report.up_to_date:
        click.echo("all targets updated, nothing to compile")
        return
    click.echo(
        f"compiled {len(report.compiled)}/{len(report.stale)} stale targets "
        f"({len(report.failed)} failed), index: {report.index_path}"
    )


@cli.command()
@click.option(
    "-S",
    "--source-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
)
@click.option("--json", "json_output", is_flag=True, help="Print targets as JSON.")
def targets(source_dir: Path, json_output: bool) -> None:
    """List every resolved target with its uid."""
    from shaderbake.pipeline import resolve_targets

    try:
        resolved = resolve_targets(source_dir)
    except ConfigError as exc:
        raise _fail(exc) from exc
    if json_output:
        payload = [
            {
                "uid": target.uid,
                "path": str(target.relative_path),
                "flags": target.id.sorted_flags,
                "includes": sorted(str(inc) for inc in target.include_dirs),
                "config": str(target.declaring_config_file),
            }
            for target in resolved
        ]
        click.echo(json.dumps(payload, indent=2))
        return
    for target in resolved:
        flags = ",".join(target.id.sorted_flags)
        click.echo(f"{target.uid}  {target.relative_path}  [{flags}]")


@cli.command()
@click.argument("output_dir", type=click.Path(file_okay=False, path_type=Path))
@click.argument("path")
@click.option("--flag", "flags", multiple=True, help="Active flag; repeatable.")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the artifact bytes to this file.",
)
def lookup(output_dir: Path, path: str, flags: tuple[str, ...], output: Path | None) -> None:
    """Find the compiled artifact for PATH (relative to the source root)."""
    from shaderbake.archive.folder import FolderArchive

    try:
        archive = FolderArchive(output_dir)
    except ArchiveError as exc:
        raise _fail(exc) from exc
    data = archive.load(path, flags)
    if data is None:
        raise click.ClickException(f"not found: {path} [{','.join(sorted(flags))}]")
    if output is not None:
        output.write_bytes(data)
        click.echo(f"wrote {len(data)} bytes to {output}")
        return
    click.echo(f"{path} [{','.join(sorted(flags))}]: {len(data)} bytes")


@cli.command()
@click.argument("output_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option(
    "--header",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("shaderbake_assets.h"),
    show_default=True,
)
@click.option(
    "--source",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("shaderbake_assets.cpp"),
    show_default=True,
)
def pack(output_dir: Path, header: Path, source: Path) -> None:
    """Pack all indexed artifacts into a C++ header/source pair."""
    from shaderbake.archive.pack import pack_archive

    try:
        entries = pack_archive(output_dir, header, source)
    except ArchiveError as exc:
        raise _fail(exc) from exc
    click.echo(f"packed {len(entries)} artifacts into {header}, {source}")


if __name__ == "__main__":
    cli()
