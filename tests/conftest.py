import json
import re
import threading
from pathlib import Path

import pytest

from shaderbake.compiler import CompileResult, ShaderKind
from shaderbake.config import get_settings
from shaderbake.errors import IncludeError
from shaderbake.includes import IncludeKind, IncludeResolver

_ENV_KEYS = (
    "APP_ENV",
    "LOG_LEVEL",
    "SHADERBAKE_LOG_FORMAT",
    "SHADERBAKE_CONFIG_FILE",
    "SHADERBAKE_CACHE_DIRNAME",
    "SHADERBAKE_INDEX_FILE",
    "SHADERBAKE_WORKERS",
    "SHADERBAKE_GLSLC",
    "SHADERBAKE_TARGET_ENV",
    "SHADERBAKE_COMPILE_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def test_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


_INCLUDE_RE = re.compile(r'^\s*#\s*include\s*(?:"(?P<quoted>[^"]+)"|<(?P<angled>[^>]+)>)')


def inline_includes(
    source_text: str, source_name: str, includer: IncludeResolver, depth: int = 0
) -> str:
    out: list[str] = []
    for line in source_text.splitlines():
        match = _INCLUDE_RE.match(line)
        if match is None:
            out.append(line)
            continue
        if match.group("quoted") is not None:
            requested, kind = match.group("quoted"), IncludeKind.RELATIVE
        else:
            requested, kind = match.group("angled"), IncludeKind.STANDARD
        resolved = includer.include(requested, kind, source_name, depth + 1)
        out.append(inline_includes(resolved.content, str(resolved.path), includer, depth + 1))
    return "\n".join(out) + "\n"


class FakeCompiler:
    """In-process stand-in for glslc.

    Output is the include-expanded source prefixed with the macro list, so
    tests can see exactly what a task handed to the compiler. A source line
    ``#error`` makes the compile fail.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, ShaderKind, list[str]]] = []
        self._lock = threading.Lock()

    def compile(
        self,
        source_text: str,
        shader_kind: ShaderKind,
        macro_flags: list[str],
        includer: IncludeResolver,
        *,
        source_name: str,
    ) -> CompileResult:
        with self._lock:
            self.calls.append((source_name, shader_kind, list(macro_flags)))
        try:
            expanded = inline_includes(source_text, source_name, includer)
        except IncludeError as exc:
            return CompileResult(diagnostic=f"{source_name}: {exc}")
        if "#error" in expanded:
            return CompileResult(diagnostic=f"{source_name}:1: error: '#error' : boom")
        header = f"// {shader_kind.value} {' '.join(macro_flags)}\n"
        return CompileResult(output=(header + expanded).encode("utf-8"))


@pytest.fixture
def fake_compiler() -> FakeCompiler:
    return FakeCompiler()


def write_config(directory: Path, config: dict[str, object], name: str = "shaderbake.json") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(json.dumps(config), encoding="utf-8")
    return path


def write_file(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def make_config():
    return write_config


@pytest.fixture
def make_file():
    return write_file
