"""shaderbake exception hierarchy.

All shaderbake-specific exceptions inherit from ShaderBakeError. Fatal errors
abort the whole build; everything else is isolated to a single target.
"""

from __future__ import annotations

from pathlib import Path


class ShaderBakeError(Exception):
    """Base exception for all shaderbake errors."""

    def __init__(self, message: str = "", *, fatal: bool = False) -> None:
        super().__init__(message)
        self.fatal = fatal


class ConfigError(ShaderBakeError):
    """Missing, malformed or inconsistent build configuration."""

    def __init__(self, config_file: Path | str, message: str) -> None:
        super().__init__(f"error: {config_file}: {message}", fatal=True)
        self.config_file = Path(config_file)
        self.reason = message


class DuplicateTargetError(ConfigError):
    """The same TargetId was declared twice somewhere in the config tree."""

    def __init__(self, display: str, first_config: Path, second_config: Path) -> None:
        message = (
            f"target {display} is emitted multiple times.\n"
            f"first in: {first_config}\n"
            f"second in: {second_config}"
        )
        super().__init__(second_config, message)
        self.first_config = first_config
        self.second_config = second_config


class CompileError(ShaderBakeError):
    """A single target failed to compile."""

    def __init__(self, target: str, diagnostic: str) -> None:
        super().__init__(f"{target} {diagnostic}".rstrip())
        self.target = target
        self.diagnostic = diagnostic


class IncludeError(ShaderBakeError):
    """An include directive could not be satisfied."""


class ArchiveError(ShaderBakeError):
    """The archive index could not be opened."""
