"""
Logging for the report scoring engine.

Every record carries the report it belongs to (assignment or survey, and
report kind) so a composed report can be traced through the peer-norm and
store reads it triggered. Output level, format and destination come from
``LoggingConfig`` (``LOG_`` environment variables).
"""

from __future__ import annotations

import inspect
import json
import logging
import logging.config
import time
from collections.abc import Callable, Iterable
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from functools import wraps
from pathlib import Path
from types import TracebackType
from typing import Any, ParamSpec, TypeVar

from .config import LoggingConfig, get_settings

P = ParamSpec("P")
R = TypeVar("R")

ROOT_LOGGER_NAME = "talent_reports"
REPORT_FIELDS = ("assignment_id", "survey_id", "report_kind", "operation")

_report_context: ContextVar[dict[str, Any]] = ContextVar("report_context", default={})


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, report fields included when bound."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
        }
        for name in REPORT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReportContextFilter(logging.Filter):
    """Copies the bound report fields onto each record without overwriting extras."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _report_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def setup_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure the package loggers from ``config`` (defaults to settings).

    Example:
        >>> setup_logging(LoggingConfig(level="DEBUG", structured=False))
    """
    if config is None:
        config = get_settings().logging

    handlers: dict[str, dict[str, Any]] = {}
    if config.console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "structured" if config.structured else "plain",
            "filters": ["report_context"],
            "stream": "ext://sys.stdout",
        }
    if config.file_path:
        Path(config.file_path).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "structured",
            "filters": ["report_context"],
            "filename": config.file_path,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "encoding": "utf-8",
        }
    if not handlers:
        handlers["null"] = {"class": "logging.NullHandler"}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {"()": StructuredFormatter},
                "plain": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "filters": {"report_context": {"()": ReportContextFilter}},
            "handlers": handlers,
            "loggers": {
                ROOT_LOGGER_NAME: {
                    "level": config.level,
                    "handlers": list(handlers),
                    "propagate": False,
                },
                # Engine reads are logged by log_database_operation instead.
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Logger nested under ``talent_reports`` so one handler set covers the package."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class LogContext:
    """
    Bind report fields to every record logged inside the block.

    Example:
        >>> with LogContext(assignment_id="a-1", report_kind="360"):
        ...     logger.info("Composing")
    """

    def __init__(self, **fields: Any):
        self.fields = {k: v for k, v in fields.items() if v is not None}
        self._token: Token[dict[str, Any]] | None = None

    def __enter__(self) -> LogContext:
        self._token = _report_context.set({**_report_context.get(), **self.fields})
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _report_context.reset(self._token)
            self._token = None


def log_operation(
    operation: str,
    *,
    bind: Iterable[str] = (),
    **fields: Any,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Log start, completion and failure of a report operation.

    Args:
        operation: Name recorded in the ``operation`` field
        bind: Parameter names whose call values are bound as report fields
        **fields: Constant report fields, e.g. ``report_kind="360"``

    Example:
        >>> @log_operation("compose_360_report", bind=["assignment_id"], report_kind="360")
        ... def compose(self, assignment_id: str): ...
    """
    bound_names = tuple(bind)

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        signature = inspect.signature(func)
        func_logger = get_logger(func.__module__)

        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            arguments = signature.bind_partial(*args, **kwargs).arguments
            bound = {name: arguments[name] for name in bound_names if name in arguments}

            with LogContext(operation=operation, **fields, **bound):
                func_logger.info("Starting %s", operation)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    func_logger.error("Failed %s: %s", operation, e, exc_info=True)
                    raise
                func_logger.info("Completed %s", operation)
                return result

        return wrapper

    return decorator


def log_database_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Time a store read at DEBUG; failures are logged once with the traceback."""

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        db_logger = get_logger("database")

        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                db_logger.error(
                    "Read %s failed after %.3fs: %s",
                    operation,
                    time.perf_counter() - start,
                    e,
                    exc_info=True,
                )
                raise
            db_logger.debug("Read %s took %.3fs", operation, time.perf_counter() - start)
            return result

        return wrapper

    return decorator


def auto_configure_logging() -> None:
    """Configure logging from the current settings."""
    settings = get_settings()
    setup_logging(settings.logging)
    get_logger(__name__).info(
        "Logging configured for %s environment at %s",
        settings.app.environment,
        settings.logging.level,
    )


if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
    auto_configure_logging()
