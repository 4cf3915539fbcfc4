"""Boundary to the GLSL to SPIR-V compiler."""

from __future__ import annotations

import logging
import re
import subprocess
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Protocol

from shaderbake import fs
from shaderbake.config import get_settings
from shaderbake.errors import CompileError
from shaderbake.includes import IncludeResolver

logger = logging.getLogger(__name__)

STAGE_MACRO_PREFIX = "SHADERBAKE_SHADER_STAGE_"


class ShaderKind(StrEnum):
    VERTEX = "vert"
    FRAGMENT = "frag"
    TESS_CONTROL = "tesc"
    TESS_EVALUATION = "tese"
    GEOMETRY = "geom"
    COMPUTE = "comp"
    RAY_GENERATION = "rgen"
    ANY_HIT = "rahit"
    CLOSEST_HIT = "rchit"
    MISS = "rmiss"
    INTERSECTION = "rint"
    CALLABLE = "rcall"
    TASK = "task"
    MESH = "mesh"
    SPIRV_ASSEMBLY = "spvasm"


STAGE_MACROS: dict[ShaderKind, str] = {
    ShaderKind.VERTEX: "VERT",
    ShaderKind.FRAGMENT: "FRAG",
    ShaderKind.TESS_CONTROL: "TESS_CONTROL",
    ShaderKind.TESS_EVALUATION: "TESS_EVALUATION",
    ShaderKind.GEOMETRY: "GEOM",
    ShaderKind.COMPUTE: "COMP",
    ShaderKind.RAY_GENERATION: "RAY_GEN",
    ShaderKind.ANY_HIT: "ANY_HIT",
    ShaderKind.CLOSEST_HIT: "CLOSEST_HIT",
    ShaderKind.MISS: "MISS",
    ShaderKind.INTERSECTION: "INTERSECTION",
    ShaderKind.CALLABLE: "CALLABLE",
    ShaderKind.TASK: "TASK",
    ShaderKind.MESH: "MESH",
}


def stage_macro(kind: ShaderKind) -> str | None:
    suffix = STAGE_MACROS.get(kind)
    return f"{STAGE_MACRO_PREFIX}{suffix}" if suffix else None


def shader_kind_for(path: Path, flags: Iterable[str]) -> ShaderKind:
    """Pick the shader kind from the file extension.

    ``.glsl`` sources carry their stage as a stage macro in the flag set.
    """
    ext = path.suffix.lstrip(".")
    try:
        return ShaderKind(ext)
    except ValueError:
        pass
    if ext == "glsl":
        for kind in STAGE_MACROS:
            if stage_macro(kind) in set(flags):
                return kind
        raise CompileError(str(path), "should specify a stage macro for *.glsl file")
    raise CompileError(str(path), "invalid shader file extension")


@dataclass(slots=True)
class CompileResult:
    output: bytes | None = None
    diagnostic: str = ""

    @property
    def ok(self) -> bool:
        return self.output is not None


class Compiler(Protocol):
    def compile(
        self,
        source_text: str,
        shader_kind: ShaderKind,
        macro_flags: list[str],
        includer: IncludeResolver,
        *,
        source_name: str,
    ) -> CompileResult: ...


_DEPFILE_TOKEN_RE = re.compile(r"(?:\\.|[^\s\\])+")


def parse_depfile(text: str) -> list[str]:
    """Prerequisites listed in a make-style depfile written by ``glslc -MD``.

    The output file before the first ``": "`` is dropped; line continuations
    are joined and ``\\ `` escapes unescaped.
    """
    joined = text.replace("\\\r\n", " ").replace("\\\n", " ")
    _, sep, prerequisites = joined.partition(": ")
    if not sep:
        return []
    return [
        re.sub(r"\\(.)", r"\1", token) for token in _DEPFILE_TOKEN_RE.findall(prerequisites)
    ]


class GlslcCompiler:
    """Runs ``glslc`` on the source file itself.

    glslc does its own preprocessing, so only active includes are followed
    and include guards are honoured. Every file it read is taken from its
    depfile and recorded through the task's IncludeResolver.
    """

    def __init__(
        self,
        executable: str | None = None,
        target_env: str | None = None,
        timeout_s: int | None = None,
    ) -> None:
        settings = get_settings()
        self.executable = executable or settings.glslc
        self.target_env = target_env or settings.target_env
        self.timeout_s = timeout_s or settings.compile_timeout_seconds

    def command(
        self,
        shader_kind: ShaderKind,
        macro_flags: list[str],
        source: Path | str,
        output: Path | str,
        include_dirs: Iterable[Path] = (),
        depfile: Path | str | None = None,
    ) -> list[str]:
        cmd = [self.executable, "-c"]
        if shader_kind is ShaderKind.SPIRV_ASSEMBLY:
            cmd += ["-x", "spvasm"]
        else:
            cmd.append(f"-fshader-stage={shader_kind.value}")
            cmd.append(f"--target-env={self.target_env}")
            for include_dir in include_dirs:
                cmd += ["-I", str(include_dir)]
            cmd += [f"-D{flag}" for flag in macro_flags]
            if depfile is not None:
                cmd += ["-MD", "-MF", str(depfile)]
        cmd += ["-o", str(output), str(source)]
        return cmd

    def compile(
        self,
        source_text: str,
        shader_kind: ShaderKind,
        macro_flags: list[str],
        includer: IncludeResolver,
        *,
        source_name: str,
    ) -> CompileResult:
        # glslc reads source_name from disk; source_text is the same content
        del source_text
        with tempfile.TemporaryDirectory(prefix="shaderbake-") as scratch:
            output = Path(scratch) / "out.spv"
            depfile = None
            if shader_kind is not ShaderKind.SPIRV_ASSEMBLY:
                depfile = Path(scratch) / "out.d"
            cmd = self.command(
                shader_kind, macro_flags, source_name, output, includer.include_dirs, depfile
            )
            logger.debug("running %s", " ".join(cmd))
            try:
                proc = subprocess.run(
                    cmd,
                    capture_output=True,
                    timeout=max(1, self.timeout_s),
                    check=False,
                )
            except FileNotFoundError:
                return CompileResult(diagnostic=f"compiler not found: {self.executable}")
            except subprocess.TimeoutExpired:
                return CompileResult(diagnostic=f"compiler timed out after {self.timeout_s}s")
            if proc.returncode != 0:
                diagnostic = proc.stderr.decode("utf-8", errors="replace").strip()
                return CompileResult(
                    diagnostic=diagnostic or f"glslc exited with {proc.returncode}"
                )
            try:
                data = fs.read_bytes(output)
                if depfile is not None:
                    for dependency in parse_depfile(fs.read_text(depfile)):
                        includer.record(dependency)
            except OSError as exc:
                return CompileResult(diagnostic=f"glslc output unreadable: {exc}")
        return CompileResult(output=data)
