# src/testwire/telemetry/logger/base.py

"""
structlog configuration shared by the CLI and by embedding front ends.

Every record goes through the stdlib ``logging`` root so handlers can be
swapped without touching the loggers held at module level.
"""

import logging
import sys
from typing import TextIO

import structlog
from structlog.typing import FilteringBoundLogger, Processor

from testwire.telemetry.logger.processors import (
    add_emoji_processor,
    remove_extra_keys_processor,
)

BASE_LOGGER_NAME = "testwire"
# Third-party loggers that chatter at DEBUG on every filesystem or loop event.
NOISY_LOGGERS = ("asyncio", "watchdog")

LOG_EMOJIS = {
    logging.DEBUG: "🐛",
    logging.INFO: "ℹ️",
    logging.WARNING: "⚠️",
    logging.ERROR: "❌",
    logging.CRITICAL: "💥",
    "load": "📄",
    "launch": "🚀",
    "discover": "🔎",
    "run": "🧪",
    "cancel": "🛑",
    "time": "⏱️",
    "success": "🎉",
    "general": "➡️",
}


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_emoji_processor,
        remove_extra_keys_processor,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]


def _console_handler(stream: TextIO, json_logs: bool) -> logging.Handler:
    if json_logs:
        renderer: Processor = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=stream.isatty(),
            exception_formatter=structlog.dev.rich_traceback,
        )
    handler = logging.StreamHandler(stream)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer))
    return handler


def _file_handler(log_file: str, level: int) -> logging.Handler:
    # files always get JSON so they can be grepped and parsed later
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=structlog.processors.JSONRenderer(sort_keys=True))
    )
    handler.setLevel(level)
    return handler


def setup_logging(
    level: int = logging.WARNING,
    json_logs: bool = False,
    log_file: str | None = None,
    file_only: bool = False,
    stream: TextIO | None = None,
) -> None:
    """
    Configures structlog and the stdlib root logger.

    Safe to call repeatedly: existing root handlers are closed and replaced,
    which is how the CLI applies a log level read from the config file after
    its options have been parsed.

    Args:
        level: Minimum stdlib level for every handler.
        json_logs: Render console records as JSON instead of key=value text.
        log_file: Also write JSON records to this file.
        file_only: Suppress console output; only meaningful with ``log_file``.
        stream: Console stream, stderr by default so logs never mix with
            command output on stdout.
    """
    structlog.configure(
        processors=_shared_processors(),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    slog = structlog.get_logger(BASE_LOGGER_NAME)

    if not file_only:
        root_logger.addHandler(_console_handler(stream or sys.stderr, json_logs))

    if log_file:
        try:
            root_logger.addHandler(_file_handler(log_file, level))
        except OSError as e:
            slog.error("Cannot open log file, continuing without it", log_file=log_file, error=str(e))
        else:
            slog.debug("File logging enabled", log_file=log_file)

    slog.debug(
        "Logging configured",
        log_level=logging.getLevelName(level),
        json_console_format=json_logs,
        console_output_enabled=not file_only,
        log_file=log_file or "None",
    )


StructLogger = FilteringBoundLogger

# 🔼⚙️
