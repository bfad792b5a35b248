# -*- coding: utf-8 -*-
"""Location: ./volleydash/services/logging_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Logging Service Implementation.
Configures standard library logging for the admin services: a console handler,
an optional (rotating) file handler, and text or JSON line formatting. Modules
obtain their logger through a shared service instance::

    logging_service = LoggingService()
    logger = logging_service.get_logger(__name__)

Examples:
    >>> service = LoggingService()
    >>> service.get_logger("volleydash.example").name
    'volleydash.example'
"""

# Standard
from datetime import datetime, timezone
import logging
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

# Third-Party
import orjson

# First-Party
from volleydash.config import settings

_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# LogRecord attributes that are never treated as ``extra`` context
_RESERVED_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON documents.

    Values passed through ``extra=`` are merged into the document.

    Examples:
        >>> record = logging.LogRecord("volleydash", logging.INFO, __file__, 1, "loaded %s teams", (3,), None)
        >>> record.team_id = "t-1"
        >>> line = JsonFormatter().format(record)
        >>> doc = orjson.loads(line)
        >>> doc["message"], doc["level"], doc["team_id"]
        ('loaded 3 teams', 'INFO', 't-1')
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a record as JSON.

        Args:
            record: Log record to format

        Returns:
            str: JSON encoded log line
        """
        document: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "lineno": record.lineno,
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_"):
                document[key] = value
        if record.exc_info:
            document["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(document, default=str).decode()


_console_handler: Optional[logging.Handler] = None
_file_handler: Optional[logging.Handler] = None


def _build_formatter() -> logging.Formatter:
    """Create the formatter selected by ``settings.log_format``.

    Returns:
        logging.Formatter: JSON or text formatter
    """
    if settings.log_format == "json":
        return JsonFormatter()
    return logging.Formatter(_TEXT_FORMAT)


def _get_console_handler() -> logging.Handler:
    """Return the shared console handler, creating it on first use.

    Returns:
        logging.Handler: Stream handler writing to stderr
    """
    global _console_handler  # pylint: disable=global-statement
    if _console_handler is None:
        _console_handler = logging.StreamHandler()
        _console_handler.setFormatter(_build_formatter())
    return _console_handler


def _get_file_handler() -> logging.Handler:
    """Return the shared file handler, creating it on first use.

    Returns:
        logging.Handler: Plain or rotating file handler

    Raises:
        ValueError: If file logging is enabled without a file name
    """
    global _file_handler  # pylint: disable=global-statement
    if _file_handler is None:
        if not settings.log_file:
            raise ValueError("log_file must be set when log_to_file is enabled")
        log_path = settings.log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        if settings.log_rotation_enabled:
            _file_handler = RotatingFileHandler(log_path, maxBytes=settings.log_max_size_mb * 1024 * 1024, backupCount=settings.log_backup_count)
        else:
            _file_handler = logging.FileHandler(log_path, mode="a")
        _file_handler.setFormatter(_build_formatter())
    return _file_handler


class LoggingService:
    """Configure and hand out loggers for the admin services.

    Examples:
        >>> service = LoggingService()
        >>> logger = service.get_logger("volleydash.services.test")
        >>> isinstance(logger, logging.Logger)
        True
        >>> service.get_logger("volleydash.services.test") is logger
        True
    """

    def __init__(self) -> None:
        """Initialize the logging service."""
        self._loggers: Dict[str, logging.Logger] = {}
        self._initialized = False

    def initialize(self) -> None:
        """Attach handlers to the root logger and apply the configured level.

        Calling this more than once has no further effect.
        """
        if self._initialized:
            return

        root_logger = logging.getLogger()
        console_handler = _get_console_handler()
        if console_handler not in root_logger.handlers:
            root_logger.addHandler(console_handler)

        if settings.log_to_file:
            try:
                file_handler = _get_file_handler()
                if file_handler not in root_logger.handlers:
                    root_logger.addHandler(file_handler)
            except OSError as e:
                logging.getLogger(__name__).warning(f"File logging disabled, could not open {settings.log_path}: {e}")

        root_logger.setLevel(settings.log_level)
        self._initialized = True
        logging.getLogger(__name__).info(f"Logging initialized for {settings.app_name} at level {settings.log_level}")

    def shutdown(self) -> None:
        """Flush and detach the handlers added by :meth:`initialize`."""
        root_logger = logging.getLogger()
        for handler in (_console_handler, _file_handler):
            if handler is not None and handler in root_logger.handlers:
                handler.flush()
                root_logger.removeHandler(handler)
        self._initialized = False

    def get_logger(self, name: str) -> logging.Logger:
        """Get or create a logger with the given name.

        Args:
            name: Logger name, usually ``__name__``

        Returns:
            logging.Logger: Logger at the configured level

        Examples:
            >>> LoggingService().get_logger("volleydash.x").level == logging.getLevelName(settings.log_level)
            True
        """
        if name not in self._loggers:
            logger = logging.getLogger(name)
            logger.setLevel(settings.log_level)
            self._loggers[name] = logger
        return self._loggers[name]

    def set_level(self, level: str) -> None:
        """Change the level of the root logger and every logger handed out so far.

        Args:
            level: Standard logging level name

        Examples:
            >>> service = LoggingService()
            >>> log = service.get_logger("volleydash.level")
            >>> service.set_level("error")
            >>> log.level == logging.ERROR
            True
            >>> logging.getLogger().setLevel(logging.WARNING)
        """
        level_name = level.upper()
        logging.getLogger().setLevel(level_name)
        for logger in self._loggers.values():
            logger.setLevel(level_name)
