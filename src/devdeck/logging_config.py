"""
Logging configuration for DevDeck.

All loggers live under the "devdeck" namespace. The dashboard owns the
terminal while it runs, so it logs to a file only; CLI commands log warnings
to the console through Rich.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from rich.logging import RichHandler

from .settings import get_log_path

ROOT_LOGGER_NAME = "devdeck"
FILE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the devdeck namespace."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the devdeck root logger.

    Existing handlers are removed first so repeated calls don't duplicate
    output.

    Args:
        level: Logging level for the devdeck namespace
        log_file: Optional file to append records to
        console: Whether to log to stderr
        rich_console: Use Rich formatting for the console handler

    Returns:
        The configured root logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(level)
    logger.propagate = False

    if console:
        if rich_console:
            handler: logging.Handler = RichHandler(
                show_path=False, rich_tracebacks=True, markup=False
            )
        else:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


def setup_dashboard_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """Configure logging for the running dashboard (file only)."""
    if log_file is None:
        log_file = get_log_path()
    setup_logging(level=level, log_file=log_file, console=False)
    return get_logger("tui")


def setup_cli_logging(level: int = logging.WARNING) -> logging.Logger:
    """Configure logging for one-shot CLI commands."""
    setup_logging(level=level, console=True)
    return get_logger("cli")


class StructuredLogger:
    """Logger wrapper that appends key=value context to each message."""

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        self._logger = logger
        self._context = dict(context or {})

    def with_context(self, **kwargs: Any) -> "StructuredLogger":
        merged = dict(self._context)
        merged.update(kwargs)
        return StructuredLogger(self._logger, merged)

    def _format(self, message: str, kwargs: Dict[str, Any]) -> str:
        fields = dict(self._context)
        fields.update(kwargs)
        if not fields:
            return message
        pairs = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{message} [{pairs}]"

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(self._format(message, kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(self._format(message, kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._format(message, kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(self._format(message, kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        self._logger.exception(self._format(message, kwargs))


def get_structured_logger(name: str, **context: Any) -> StructuredLogger:
    """Get a StructuredLogger inside the devdeck namespace."""
    return StructuredLogger(get_logger(name), context)
