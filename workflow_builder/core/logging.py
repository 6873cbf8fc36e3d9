"""Logging setup for the workflow builder, with per-request context fields."""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s%(context)s - %(message)s"

# Fields bound to the running request; every asyncio task and worker thread sees its own copy
_log_context: ContextVar[Dict[str, Any]] = ContextVar("workflow_builder_log_context", default={})

# Handlers installed by setup_logging, replaced on the next call
_installed_handlers: List[logging.Handler] = []


def bind_logging_context(**fields) -> Token:
    """
    Add fields to the logging context of the current task or thread.

    Returns:
        Token: Pass to ``reset_logging_context`` to restore the previous context
    """
    return _log_context.set({**_log_context.get(), **fields})


def reset_logging_context(token: Token) -> None:
    _log_context.reset(token)


def current_logging_context() -> Dict[str, Any]:
    return dict(_log_context.get())


@contextmanager
def logging_context(**fields) -> Iterator[Dict[str, Any]]:
    """Bind fields for the duration of a ``with`` block."""
    token = bind_logging_context(**fields)
    try:
        yield current_logging_context()
    finally:
        reset_logging_context(token)


class ContextFilter(logging.Filter):
    """Copies the bound context onto each record.

    Sets ``record.extra_fields`` (context merged under any per-call fields)
    for the JSON formatter and ``record.context`` (`` [key=value ...]``) for
    text formats.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        fields = {**_log_context.get(), **getattr(record, "extra_fields", {})}
        record.extra_fields = fields
        record.context = " [" + " ".join(f"{k}={v}" for k, v in fields.items()) + "]" if fields else ""
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, context fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    structured: bool = False,
    max_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure logging for the workflow builder.

    Installs a stdout handler and, when ``log_file`` is given, a rotating
    file handler on the root logger. Calling it again replaces the handlers
    of the previous call and leaves other handlers alone.

    Args:
        level: Logging level for the root and ``workflow_builder`` loggers
        log_file: Optional file path for log output
        log_format: Text format; may use ``%(context)s`` for the bound fields
        structured: Emit JSON records instead of text
        max_size: Maximum log file size in bytes before rotation
        backup_count: Number of rotated files to keep

    Returns:
        Root logger instance
    """
    numeric_level = getattr(logging, level.upper())
    if structured:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=log_format or DEFAULT_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=max_size, backupCount=backup_count))

    root_logger = logging.getLogger()
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(ContextFilter())
        root_logger.addHandler(handler)
        _installed_handlers.append(handler)

    root_logger.setLevel(numeric_level)
    logging.getLogger("workflow_builder").setLevel(numeric_level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name."""
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, message: str, **fields):
    """Log a message with fields that apply to this record only."""
    logger.log(level, message, extra={"extra_fields": fields})
