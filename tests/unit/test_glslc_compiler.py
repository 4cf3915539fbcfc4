"""Tests for the glslc compiler backend."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from shaderbake.compiler import GlslcCompiler, ShaderKind, parse_depfile, shader_kind_for
from shaderbake.errors import CompileError
from shaderbake.includes import IncludeResolver

requires_glslc = pytest.mark.skipif(shutil.which("glslc") is None, reason="glslc not installed")


def _flag_value(cmd: list[str], flag: str) -> str:
    return cmd[cmd.index(flag) + 1]


def _fake_glslc(spirv: bytes = b"\x03\x02\x23\x07", deps: tuple[Path, ...] = ()):
    """subprocess.run replacement that writes the output and depfile glslc would."""

    def run(cmd: list[str], **kwargs: object) -> subprocess.CompletedProcess[bytes]:
        output = Path(_flag_value(cmd, "-o"))
        output.write_bytes(spirv)
        if "-MF" in cmd:
            listed = " \\\n  ".join(str(dep).replace(" ", "\\ ") for dep in (Path(cmd[-1]), *deps))
            Path(_flag_value(cmd, "-MF")).write_text(f"{output}: {listed}\n", encoding="utf-8")
        return subprocess.CompletedProcess(args=cmd, returncode=0, stdout=b"", stderr=b"")

    return run


def test_command_for_vertex_stage() -> None:
    compiler = GlslcCompiler(executable="/sdk/glslc", target_env="vulkan1.3", timeout_s=5)
    cmd = compiler.command(
        ShaderKind.VERTEX,
        ["SHADERBAKE_SHADER_STAGE_VERT", "FOG"],
        "/src/sky.vert",
        "/tmp/out.spv",
        [Path("/inc/a"), Path("/inc/b")],
        "/tmp/out.d",
    )
    assert cmd == [
        "/sdk/glslc",
        "-c",
        "-fshader-stage=vert",
        "--target-env=vulkan1.3",
        "-I",
        "/inc/a",
        "-I",
        "/inc/b",
        "-DSHADERBAKE_SHADER_STAGE_VERT",
        "-DFOG",
        "-MD",
        "-MF",
        "/tmp/out.d",
        "-o",
        "/tmp/out.spv",
        "/src/sky.vert",
    ]


def test_command_for_spirv_assembly() -> None:
    cmd = GlslcCompiler(executable="glslc").command(
        ShaderKind.SPIRV_ASSEMBLY, [], "a.spvasm", "out.spv"
    )
    assert cmd == ["glslc", "-c", "-x", "spvasm", "-o", "out.spv", "a.spvasm"]


def test_defaults_come_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    from shaderbake.config import get_settings

    monkeypatch.setenv("SHADERBAKE_GLSLC", "/opt/vulkan/bin/glslc")
    monkeypatch.setenv("SHADERBAKE_TARGET_ENV", "vulkan1.1")
    get_settings.cache_clear()

    compiler = GlslcCompiler()

    assert compiler.executable == "/opt/vulkan/bin/glslc"
    assert compiler.target_env == "vulkan1.1"
    assert compiler.timeout_s == 120


def test_parse_depfile_handles_continuations_and_escapes() -> None:
    text = "/o/out.spv: /src/lit.frag \\\n  /inc/my\\ light.glsl \\\n  /inc/brdf.glsl\n"
    assert parse_depfile(text) == ["/src/lit.frag", "/inc/my light.glsl", "/inc/brdf.glsl"]
    assert parse_depfile("") == []


def test_compile_records_depfile_dependencies(tmp_path: Path, make_file) -> None:
    inc = tmp_path / "my inc"
    header = make_file(inc / "common.glsl", "#define PI 3.14\n")
    source = make_file(tmp_path / "a.frag", "#version 450\n#include <common.glsl>\n")
    includer = IncludeResolver([inc.resolve()])

    fake_run = _fake_glslc(deps=(header,))
    with patch("shaderbake.compiler.subprocess.run", side_effect=fake_run) as run:
        result = GlslcCompiler(executable="glslc").compile(
            source.read_text(encoding="utf-8"),
            ShaderKind.FRAGMENT,
            ["FOG"],
            includer,
            source_name=str(source),
        )

    assert result.ok is True
    assert result.output == b"\x03\x02\x23\x07"
    cmd = run.call_args.args[0]
    assert cmd[-1] == str(source)
    assert _flag_value(cmd, "-I") == str(inc.resolve())
    assert "input" not in run.call_args.kwargs
    assert set(includer.dependencies) == {str(source.resolve()), str(header.resolve())}


def test_guarded_mutual_includes_are_left_to_glslc(tmp_path: Path, make_file) -> None:
    a = make_file(
        tmp_path / "a.glsl", '#ifndef A_GLSL\n#define A_GLSL\n#include "b.glsl"\n#endif\n'
    )
    b = make_file(
        tmp_path / "b.glsl", '#ifndef B_GLSL\n#define B_GLSL\n#include "a.glsl"\n#endif\n'
    )
    source = make_file(tmp_path / "m.frag", '#version 450\n#include "a.glsl"\nvoid main() {}\n')
    includer = IncludeResolver([])

    with patch("shaderbake.compiler.subprocess.run", side_effect=_fake_glslc(deps=(a, b))):
        result = GlslcCompiler(executable="glslc").compile(
            "", ShaderKind.FRAGMENT, [], includer, source_name=str(source)
        )

    assert result.ok is True, result.diagnostic
    assert str(b.resolve()) in includer.dependencies


def test_inactive_include_of_missing_file_is_left_to_glslc(tmp_path: Path, make_file) -> None:
    source = make_file(
        tmp_path / "lit.frag",
        '#version 450\n#ifdef USE_SHADOW\n#include "shadow.glsl"\n#endif\nvoid main() {}\n',
    )
    includer = IncludeResolver([])

    with patch("shaderbake.compiler.subprocess.run", side_effect=_fake_glslc()):
        result = GlslcCompiler(executable="glslc").compile(
            "", ShaderKind.FRAGMENT, [], includer, source_name=str(source)
        )

    assert result.ok is True, result.diagnostic
    assert list(includer.dependencies) == [str(source.resolve())]


@patch("shaderbake.compiler.subprocess.run")
def test_compile_failure_returns_diagnostic(mock_run: MagicMock) -> None:
    mock_run.return_value = subprocess.CompletedProcess(
        args=[], returncode=1, stdout=b"", stderr=b"a.frag:3: error: 'x' : undeclared identifier\n"
    )
    result = GlslcCompiler(executable="glslc").compile(
        "", ShaderKind.FRAGMENT, [], IncludeResolver([]), source_name="a.frag"
    )
    assert result.ok is False
    assert "undeclared identifier" in result.diagnostic


@patch("shaderbake.compiler.subprocess.run")
def test_missing_output_is_a_diagnostic(mock_run: MagicMock) -> None:
    mock_run.return_value = subprocess.CompletedProcess(
        args=[], returncode=0, stdout=b"", stderr=b""
    )
    result = GlslcCompiler(executable="glslc").compile(
        "", ShaderKind.FRAGMENT, [], IncludeResolver([]), source_name="a.frag"
    )
    assert result.ok is False
    assert "glslc output unreadable" in result.diagnostic


@patch("shaderbake.compiler.subprocess.run", side_effect=FileNotFoundError("glslc"))
def test_missing_executable_is_a_diagnostic(mock_run: MagicMock) -> None:
    result = GlslcCompiler(executable="no-such-glslc").compile(
        "", ShaderKind.COMPUTE, [], IncludeResolver([]), source_name="a.comp"
    )
    assert result.ok is False
    assert "compiler not found: no-such-glslc" in result.diagnostic


@patch(
    "shaderbake.compiler.subprocess.run",
    side_effect=subprocess.TimeoutExpired(cmd="glslc", timeout=3),
)
def test_timeout_is_a_diagnostic(mock_run: MagicMock) -> None:
    result = GlslcCompiler(executable="glslc", timeout_s=3).compile(
        "", ShaderKind.COMPUTE, [], IncludeResolver([]), source_name="a.comp"
    )
    assert result.ok is False
    assert "timed out after 3s" in result.diagnostic


@requires_glslc
def test_real_glslc_guarded_and_inactive_includes(tmp_path: Path, make_file) -> None:
    make_file(
        tmp_path / "a.glsl",
        '#ifndef A_GLSL\n#define A_GLSL\n#include "b.glsl"\nfloat fa() { return 1.0; }\n#endif\n',
    )
    make_file(tmp_path / "b.glsl", '#ifndef B_GLSL\n#define B_GLSL\n#include "a.glsl"\n#endif\n')
    source = make_file(
        tmp_path / "m.frag",
        "#version 450\n"
        '#include "a.glsl"\n'
        "#ifdef USE_SHADOW\n"
        '#include "shadow.glsl"\n'
        "#endif\n"
        "layout(location = 0) out vec4 color;\n"
        "void main() { color = vec4(fa()); }\n",
    )
    includer = IncludeResolver([])

    result = GlslcCompiler(executable="glslc").compile(
        "", ShaderKind.FRAGMENT, [], includer, source_name=str(source.resolve())
    )

    assert result.ok is True, result.diagnostic
    assert result.output is not None and result.output[:4] == b"\x03\x02\x23\x07"
    assert str((tmp_path / "b.glsl").resolve()) in includer.dependencies


@pytest.mark.parametrize(
    ("name", "flags", "kind"),
    [
        ("a.vert", [], ShaderKind.VERTEX),
        ("a.rchit", [], ShaderKind.CLOSEST_HIT),
        ("a.spvasm", [], ShaderKind.SPIRV_ASSEMBLY),
        ("a.glsl", ["SHADERBAKE_SHADER_STAGE_MESH"], ShaderKind.MESH),
    ],
)
def test_shader_kind_for(name: str, flags: list[str], kind: ShaderKind) -> None:
    assert shader_kind_for(Path(name), flags) is kind


def test_shader_kind_rejects_unknown_extension() -> None:
    with pytest.raises(CompileError, match="invalid shader file extension"):
        shader_kind_for(Path("a.hlsl"), [])
