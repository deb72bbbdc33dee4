"""structlog setup for the import CLIs.

Log records and the per-page progress events share one stream, stderr by
default, so stdout carries only command output: the run summary, team
listings and the imported alert line.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog

from outalator.core.config import LoggingConfig
from outalator.core.exceptions import ConfigError

# library loggers that chatter at INFO; never shown below these levels
_LIBRARY_FLOORS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
}


def _resolve_level(name: str) -> int:
    level = logging.getLevelNamesMapping().get(name.strip().upper())
    if level is None:
        raise ConfigError(f"Unknown log level: {name!r}")
    return level


def _renderer(fmt: str) -> structlog.types.Processor:
    match fmt.lower():
        case "json":
            return structlog.processors.JSONRenderer()
        case "console":
            return structlog.dev.ConsoleRenderer(colors=False)
        case _:
            raise ConfigError(f"Unknown log format: {fmt!r} (expected json or console)")


def setup_logging(
    config: LoggingConfig | None = None,
    *,
    level: str | None = None,
    fmt: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib logging through one handler on *stream*.

    Args:
        config: The ``logging`` section of the loaded settings.
        level: Log level override (e.g. ``--log-level DEBUG``).
        fmt: Renderer override, ``"json"`` or ``"console"``.
        stream: Destination of every record; stderr when None.

    Raises:
        ConfigError: Unknown level or format.
    """
    cfg = config or LoggingConfig()
    log_level = _resolve_level(level or cfg.level)
    renderer = _renderer(fmt or cfg.format)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # foreign_pre_chain stamps records from httpx/SQLAlchemy like our own
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name, floor in _LIBRARY_FLOORS.items():
        logging.getLogger(name).setLevel(max(log_level, floor))
    if cfg.sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)


def bind_run_context(**values: Any) -> None:
    """Attach *values* (provider, dry_run, ...) to every later log event."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)
