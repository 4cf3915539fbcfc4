"""structlog setup for build output.

Stdlib loggers (``logging.getLogger(__name__)``) are routed through
structlog's ProcessorFormatter, so the uid bound by a compile task shows up
on every line that task logs.
"""

from __future__ import annotations

import logging
import sys

import structlog

from shaderbake.config import get_settings

LOG_FORMATS = ("auto", "console", "json")

_handler: logging.Handler | None = None


def resolve_format(log_format: str | None = None) -> str:
    """``console`` or ``json``; ``auto`` picks JSON when APP_ENV is prod."""
    settings = get_settings()
    chosen = (log_format or settings.log_format).lower()
    if chosen not in LOG_FORMATS:
        raise ValueError(f"unknown log format {chosen!r}, expected one of {LOG_FORMATS}")
    if chosen == "auto":
        return "json" if settings.app_env == "prod" else "console"
    return chosen


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Install the shaderbake handler on the root logger.

    Args:
        level: Log level name; defaults to LOG_LEVEL.
        log_format: ``auto``, ``console`` or ``json``; defaults to
            SHADERBAKE_LOG_FORMAT.

    Calling it again replaces the previous shaderbake handler and leaves any
    other root handlers alone.
    """
    global _handler
    level_name = (level or get_settings().log_level).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    if resolve_format(log_format) == "json":
        shared_processors += [
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
        ]
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    root.setLevel(log_level)
    _handler = handler


def bind_context(**kwargs: object) -> None:
    """Bind key-value pairs to the structlog context of the current thread."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
