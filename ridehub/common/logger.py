# ridehub/common/logger.py
"""
Structured logging for ridehub.

Console output is JSON (production) or coloured text (development). With
LOG_TO_FILE every logger also writes to one shared size-rotated file and
ERROR records additionally go to error.log. The async log_* helpers attach
the calling function and any structured `extra` (session_id, trip_id, ...).
"""

from __future__ import annotations

import inspect
import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from ridehub.common.constants import LOGGER_NAME, TypeMsg


# =============================================================================
# GLOBAL STATE
# =============================================================================

# Shared by every logger so that all services write one file
_GLOBAL_FILE_HANDLER: logging.Handler | None = None
_GLOBAL_ERROR_HANDLER: logging.Handler | None = None

_LOGGING_INITIALIZED: bool = False

_loggers: dict[str, logging.Logger] = {}

# Libraries that are too chatty below WARNING
_QUIET_LOGGERS = ("asyncpg", "uvicorn.access", "httpx")


# =============================================================================
# FORMATTERS AND HANDLERS
# =============================================================================

def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; structured extras under "extra"."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        extra = getattr(record, "extra_data", None)
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Human-readable console lines for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    GRAY = "\033[90m"

    def _origin(self, record: logging.LogRecord) -> str:
        extra = getattr(record, "extra_data", None) or {}
        func = extra.get("caller_function")
        if not func:
            return ""
        where = f"{extra.get('caller_module')}.{func}() {extra.get('caller_file')}:{extra.get('caller_line')}"
        return f" {self.GRAY}[{where}]{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.GRAY)
        stamp = _record_time(record).astimezone().strftime("%Y-%m-%d %H:%M:%S")
        line = f"{stamp} {color}[{record.levelname}]{self.RESET}{self._origin(record)} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class DateBasedRotatingFileHandler(RotatingFileHandler):
    """
    Writes to <log_dir>/<logger_name>.log. When the file reaches max_bytes
    it is moved to <logger_name>_<YYYY-mm-dd_HH-MM-SS>.log and a fresh file
    is opened; archives are never deleted here.
    """

    def __init__(self, log_dir: str, max_bytes: int, logger_name: str = "app", encoding: str = "utf-8"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.logger_name = logger_name
        super().__init__(
            filename=str(self.log_dir / f"{logger_name}.log"),
            maxBytes=max_bytes,
            backupCount=0,
            encoding=encoding,
        )

    def shouldRollover(self, record: logging.LogRecord) -> bool:
        if self.maxBytes <= 0:
            return False
        if self.stream is None:
            self.stream = self._open()
        self.stream.seek(0, os.SEEK_END)
        return self.stream.tell() >= self.maxBytes

    def _archive_path(self) -> Path:
        stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        path = self.log_dir / f"{self.logger_name}_{stamp}.log"
        n = 1
        # Several rollovers within one second must not overwrite each other
        while path.exists():
            path = self.log_dir / f"{self.logger_name}_{stamp}_{n}.log"
            n += 1
        return path

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None

        if os.path.exists(self.baseFilename):
            try:
                os.rename(self.baseFilename, self._archive_path())
            except OSError:
                # Locked by another process; keep appending
                pass

        self.stream = self._open()


# =============================================================================
# LOGGERS
# =============================================================================

@dataclass
class _LogConfig:
    level: str = "DEBUG"
    fmt: str = "colored"
    to_file: bool = False
    file_path: str = "logs/ridehub.log"
    max_bytes: int = 10 * 1024 * 1024


def _load_config() -> _LogConfig:
    """Logging section of the settings, or development defaults."""
    try:
        from ridehub.config import settings
        section = settings.logging
    except Exception:
        return _LogConfig()

    defaults = _LogConfig()
    return _LogConfig(
        level=section.LOG_LEVEL if isinstance(section.LOG_LEVEL, str) else defaults.level,
        fmt=section.LOG_FORMAT if isinstance(section.LOG_FORMAT, str) else defaults.fmt,
        to_file=bool(section.LOG_TO_FILE),
        file_path=section.LOG_FILE_PATH if isinstance(section.LOG_FILE_PATH, str) else defaults.file_path,
        max_bytes=section.LOG_MAX_BYTES if isinstance(section.LOG_MAX_BYTES, int) else defaults.max_bytes,
    )


def _formatter(fmt: str) -> logging.Formatter:
    return JsonFormatter() if fmt == "json" else ColoredFormatter()


def _file_handlers(config: _LogConfig) -> list[logging.Handler]:
    """The shared main and error file handlers, created on first use."""
    global _GLOBAL_FILE_HANDLER, _GLOBAL_ERROR_HANDLER

    log_path = Path(config.file_path)

    if _GLOBAL_FILE_HANDLER is None:
        # SERVICE_NAME separates the files of several processes on one host
        name = log_path.stem
        if os.getenv("SERVICE_NAME"):
            name = f"{name}_{os.getenv('SERVICE_NAME')}"
        _GLOBAL_FILE_HANDLER = DateBasedRotatingFileHandler(str(log_path.parent), config.max_bytes, name)
        _GLOBAL_FILE_HANDLER.setFormatter(_formatter(config.fmt))

    if _GLOBAL_ERROR_HANDLER is None:
        _GLOBAL_ERROR_HANDLER = DateBasedRotatingFileHandler(str(log_path.parent), config.max_bytes, "error")
        _GLOBAL_ERROR_HANDLER.setLevel(logging.ERROR)
        _GLOBAL_ERROR_HANDLER.setFormatter(_formatter(config.fmt))

    return [_GLOBAL_FILE_HANDLER, _GLOBAL_ERROR_HANDLER]


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """
    Returns a configured, cached logger.

    Handlers are attached once per name; a logger that already has handlers
    (configured elsewhere) is only re-levelled.
    """
    if name in _loggers:
        return _loggers[name]

    config = _load_config()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, config.level.upper(), logging.DEBUG))

    if not logger.handlers:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_formatter(config.fmt))
        logger.addHandler(console)

        if config.to_file:
            for handler in _file_handlers(config):
                logger.addHandler(handler)

        logger.propagate = False

    _loggers[name] = logger
    return logger


def setup_logging() -> None:
    """Configures the application logger once per process."""
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED:
        return
    _LOGGING_INITIALIZED = True

    get_logger(LOGGER_NAME)
    for noisy in _QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)


# =============================================================================
# LOGGING HELPERS
# =============================================================================

_LEVEL_METHODS = {
    TypeMsg.DEBUG: "debug",
    TypeMsg.INFO: "info",
    TypeMsg.WARNING: "warning",
    TypeMsg.ERROR: "error",
    TypeMsg.CRITICAL: "critical",
}


def _get_caller_info(depth: int = 2) -> dict[str, Any]:
    """
    Describes the frame `depth` levels above this one: with the default,
    the caller of whoever called _get_caller_info. Empty when the stack
    cannot be inspected.
    """
    frame = inspect.currentframe()
    try:
        for _ in range(depth):
            if frame is None:
                return {}
            frame = frame.f_back
        if frame is None:
            return {}

        module = inspect.getmodule(frame)
        return {
            "caller_function": frame.f_code.co_name,
            "caller_module": module.__name__ if module else "unknown",
            "caller_file": Path(frame.f_code.co_filename).name or "unknown",
            "caller_line": frame.f_lineno,
        }
    finally:
        # Frames hold references to their locals
        del frame


def _emit(
    type_msg: TypeMsg,
    message: str,
    logger_name: str,
    extra: dict[str, Any] | None,
    exc_info: bool = False,
) -> None:
    # _get_caller_info <- _emit <- log_* helper <- application code
    caller = _get_caller_info(depth=3)
    logger = get_logger(logger_name)
    method = getattr(logger, _LEVEL_METHODS.get(type_msg, "info"))
    method(message, extra={"extra_data": {**caller, **(extra or {})}}, exc_info=exc_info)


async def log_info(
    message: str,
    *,
    type_msg: TypeMsg = TypeMsg.INFO,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Logs at the level named by type_msg (INFO by default).

    Args:
        message: Text of the record
        type_msg: Level
        logger_name: Target logger
        extra: Structured fields (session_id, trip_id, user_id, ...)
    """
    _emit(type_msg, message, logger_name, extra)


async def log_debug(
    message: str,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    _emit(TypeMsg.DEBUG, message, logger_name, extra)


async def log_warning(
    message: str,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    _emit(TypeMsg.WARNING, message, logger_name, extra)


async def log_error(
    message: str,
    logger_name: str = LOGGER_NAME,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """ERROR record; exc_info=True attaches the active traceback."""
    _emit(TypeMsg.ERROR, message, logger_name, extra, exc_info=exc_info)
