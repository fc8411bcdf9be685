"""Structured logging configuration using structlog.

Console output goes to stderr so that list output and watch events on
stdout stay machine-readable.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

LOG_DIR = Path.home() / ".local" / "state" / "kubegate"
LOG_FILE_NAME = "kubegate.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5
RETENTION_DAYS = 30

# Handlers installed by configure_logging, removed again on reconfiguration
_installed_handlers: list[logging.Handler] = []


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _cleanup_old_logs(log_dir: Path) -> int:
    """Delete log files older than RETENTION_DAYS.

    Returns:
        Number of files removed.
    """
    if not log_dir.exists():
        return 0
    cutoff = datetime.now() - timedelta(days=RETENTION_DAYS)
    removed = 0
    for log_file in log_dir.glob(f"{LOG_FILE_NAME}*"):
        try:
            if datetime.fromtimestamp(log_file.stat().st_mtime) < cutoff:
                log_file.unlink()
                removed += 1
        except OSError:
            # Rotated away or removed by another process
            continue
    return removed


def _file_handler(log_dir: Path) -> logging.Handler:
    """Rotating JSON file handler that captures everything at DEBUG."""
    log_dir.mkdir(parents=True, exist_ok=True)
    _cleanup_old_logs(log_dir)

    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=MAX_LOG_SIZE,
        backupCount=BACKUP_COUNT,
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_shared_processors(),
        )
    )
    return handler


def _console_handler(level: int, debug: bool, json_output: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=debug),
        )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=_shared_processors(),
        )
    )
    return handler


def configure_logging(
    verbose: bool = False,
    debug: bool = False,
    json_output: bool = False,
    log_dir: Path | None = None,
    file_logging: bool = True,
) -> None:
    """Configure structured logging for the gateway.

    Console logs go to stderr at WARNING (INFO with ``verbose``, DEBUG
    with ``debug``). Unless disabled, everything is also written as JSON
    to ``~/.local/state/kubegate/kubegate.log`` with rotation (10MB, 5
    backups) and 30 day retention. Calling this again replaces the
    handlers installed by the previous call.

    Args:
        verbose: Enable INFO level console output.
        debug: Enable DEBUG level console output.
        json_output: Render console logs as JSON.
        log_dir: Directory for the log file; defaults to LOG_DIR.
        file_logging: Write the rotating file log.
    """
    if debug:
        log_level = logging.DEBUG
    elif verbose:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING

    # The file handler sees DEBUG, so structlog must not filter below it
    bound_level = logging.DEBUG if file_logging else log_level

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(bound_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    _installed_handlers.append(_console_handler(log_level, debug, json_output))
    if file_logging:
        _installed_handlers.append(_file_handler(log_dir or LOG_DIR))

    root_logger.setLevel(logging.DEBUG)
    for handler in _installed_handlers:
        root_logger.addHandler(handler)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger with optional initial context bound.

    Args:
        name: Logger name. If None, uses the calling module's name.
        **initial_context: Context variables to bind to the logger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger
