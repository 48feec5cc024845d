"""Structured logging via structlog.

Configures structlog once, when the CLI starts. Library modules keep using
`logging.getLogger(__name__)`; a ProcessorFormatter on the root handler
renders those records through the same processor chain as structlog's own
loggers, so both look identical.

Renderer selection:
  console: `ConsoleRenderer`, coloured when stderr is a terminal.
  json:    `JSONRenderer` for machine-parseable logs.

All log output goes to stderr. Stdout is reserved for build output, which in
quiet mode must contain nothing but the server's final payload.
"""

from __future__ import annotations

import logging
import sys

import structlog

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}

# Accepted values for -l/--log-level
LOG_LEVELS = tuple(_LEVELS)

# Chatty HTTP libraries are only shown when debugging
_QUIET_LOGGERS = ("httpx", "httpcore")


def parse_level(level: str) -> int:
    try:
        return _LEVELS[level.lower()]
    except KeyError:
        raise ValueError(f"Unable to parse logging level: {level}") from None


def configure_logging(level: str = "info", log_format: str = "console") -> None:
    """Configure structlog and the stdlib root logger.

    Calling this more than once replaces the previous handler rather than
    stacking a second one.
    """
    numeric_level = parse_level(level)

    shared_processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level]
        + shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
        )
