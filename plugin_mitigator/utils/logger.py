"""
Logging for the plugin mitigator.

The mitigator is meant to be invisible in normal operation, so nothing is
emitted unless the debug flag is on. When it is, records go to stderr
(pretty or JSON) and optionally to a rotating JSON log file. Records may
carry structured fields through ``extra_data``, most often the profile
slug a message is about.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional, Tuple

ROOT_LOGGER_NAME = "plugin_mitigator"

# Above CRITICAL: the root logger drops everything while debug is off.
SILENT_LEVEL = logging.CRITICAL + 10


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, "extra_data", None) or {}


def _component(record: logging.LogRecord) -> str:
    """Last dotted part of the logger name."""
    return record.name.rsplit(".", 1)[-1]


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, structured fields flattened in."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": _component(record),
            "message": record.getMessage(),
        }
        entry.update(_fields(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class PrettyFormatter(logging.Formatter):
    """Single-line console format, colored when writing to a terminal."""

    TAG = "[Plugin Mitigator]"
    LEVEL_COLORS: Dict[int, str] = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "35",
    }

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def _paint(self, text: str, code: Optional[str]) -> str:
        if not self.use_color or not code:
            return text
        return f"\033[{code}m{text}\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = self._paint(f"{record.levelname:8}", self.LEVEL_COLORS.get(record.levelno))

        line = f"{self._paint(stamp, '90')} {self.TAG} {level} {_component(record):14} {record.getMessage()}"

        fields = _fields(record)
        if fields:
            line += " | " + ", ".join(f"{key}={value}" for key, value in fields.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


class ContextLogger(logging.LoggerAdapter):
    """
    Adapter that attaches structured fields to every record.

    Fields come from the adapter context and from an ``extra_data``
    keyword on each call, the latter winning on conflicts.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> Tuple[str, MutableMapping[str, Any]]:
        fields = dict(self.extra or {})
        fields.update(kwargs.pop("extra", None) or {})
        fields.update(kwargs.pop("extra_data", None) or {})
        kwargs["extra"] = {"extra_data": fields}
        return msg, kwargs


class LoggerManager:
    """
    Owns the ``plugin_mitigator`` logger tree.

    Thread-safe singleton; ``setup`` only takes effect once until ``reset``.
    """

    _instance: Optional[LoggerManager] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> LoggerManager:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._loggers: Dict[str, logging.Logger] = {}
                    instance._initialized: bool = False
                    cls._instance = instance
        return cls._instance

    @staticmethod
    def _console_handler(format_type: str) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        if format_type == "json":
            handler.setFormatter(StructuredFormatter())
        else:
            handler.setFormatter(PrettyFormatter(use_color=sys.stderr.isatty()))
        return handler

    @staticmethod
    def _file_handler(log_file: str, max_size_mb: int, backup_count: int) -> logging.Handler:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            path,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(StructuredFormatter())
        return handler

    def setup(
        self,
        debug: bool = False,
        level: str = "INFO",
        log_file: Optional[str] = None,
        format_type: str = "pretty",
        max_size_mb: int = 10,
        backup_count: int = 3,
    ) -> None:
        """
        Configure the logger tree.

        Args:
            debug: Master switch; when False every record is dropped
            level: Threshold used while debug is on
            log_file: Optional rotating JSON log file
            format_type: Console format, "pretty" or "json"
            max_size_mb: Rotation size of the log file
            backup_count: Rotated files to keep
        """
        with self._lock:
            if self._initialized:
                return

            root = logging.getLogger(ROOT_LOGGER_NAME)
            root.handlers.clear()
            root.propagate = False
            self._initialized = True

            if not debug:
                root.setLevel(SILENT_LEVEL)
                root.addHandler(logging.NullHandler())
                return

            root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
            root.addHandler(self._console_handler(format_type))

            if log_file:
                try:
                    root.addHandler(self._file_handler(log_file, max_size_mb, backup_count))
                except OSError as e:
                    root.warning(f"Cannot open log file {log_file}: {e}")

    def get_logger(
        self,
        name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> ContextLogger:
        """
        Logger for one component, e.g. ``get_logger("sweeper")``.

        Args:
            name: Component name, appended to the root logger name
            context: Fields attached to every record of this adapter
        """
        with self._lock:
            logger = self._loggers.get(name)
            if logger is None:
                logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
                self._loggers[name] = logger
        return ContextLogger(logger, context or {})

    @property
    def initialized(self) -> bool:
        return self._initialized

    def reset(self) -> None:
        """Forget the previous setup so ``setup`` can run again."""
        with self._lock:
            self._initialized = False
            self._loggers.clear()
            root = logging.getLogger(ROOT_LOGGER_NAME)
            root.handlers.clear()
            root.setLevel(logging.NOTSET)


_manager = LoggerManager()


def setup_logging(
    debug: bool = False,
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_type: str = "pretty",
) -> None:
    """Configure the mitigator's logging once per process."""
    _manager.setup(
        debug=debug,
        level=level,
        log_file=log_file,
        format_type=format_type,
    )


def get_logger(
    name: str,
    context: Optional[Dict[str, Any]] = None,
) -> ContextLogger:
    return _manager.get_logger(name, context)


def reset_logging() -> None:
    _manager.reset()
