"""Structured logging setup for the rental assistance wizard.

Request context (the session id) lives in a ContextVar so concurrent
requests served by the same event loop never see each other's values.
"""

import logging
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(session)s] %(message)s"

# Always present on records so format strings can reference them
CONTEXT_FIELDS = ("session",)

# Third-party loggers that are too chatty at DEBUG
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "sqlalchemy.engine", "multipart")

_log_context: ContextVar[Dict[str, Any]] = ContextVar("rental_assist_log_context", default={})


class ContextFilter(logging.Filter):
    """Stamp records with the current request context; '-' for unset fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get()
        for key in CONTEXT_FIELDS:
            setattr(record, key, context.get(key, "-"))
        for key, value in context.items():
            setattr(record, key, value)
        return True


def setup_logging(
    level: str = "INFO",
    log_format: str = DEFAULT_FORMAT,
    log_file: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """
    Configure the root logger with console and optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Format string; may reference %(session)s
        log_file: Optional path to a log file, parent directories are created
        quiet: Logger names capped at WARNING

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(log_format)
    context_filter = ContextFilter()

    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    return root_logger


def set_context(**kwargs):
    """
    Add fields to the logging context of the current request.

    Example:
        set_context(session="3f1c9a2b")
        logger.info("Saved section")  # [3f1c9a2b] Saved section
    """
    _log_context.set({**_log_context.get(), **kwargs})


def clear_context():
    _log_context.set({})


def get_context() -> Dict[str, Any]:
    return dict(_log_context.get())
