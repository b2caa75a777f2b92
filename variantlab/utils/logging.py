"""
Structured logging for variantlab.

Every component gets its logger from ``get_logger``. Output goes to stdout,
as one JSON object per line by default (``LOG_FORMAT=json``) or as plain text
(``LOG_FORMAT=text``). Fields passed through ``extra=`` or a ``LogContext``
end up as top-level JSON keys.

Usage:
    from variantlab.utils.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Event recorded", extra={"experiment_id": "abc", "variant_id": "A"})
"""

import json
import logging
import os
import sys
import threading
import time
from contextvars import ContextVar
from functools import wraps
from typing import Any, Dict, Optional, Union

NO_REQUEST_ID = "-"

TEXT_FORMAT = (
    "%(asctime)s - %(levelname)s - [%(request_id)s] - %(name)s - "
    "%(module)s.%(funcName)s:%(lineno)d - %(message)s"
)

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "request_id", "extra"}


class RequestContextFilter(logging.Filter):
    """Stamps records with the request id of the calling service."""

    def __init__(self, request_id: Optional[str] = None):
        super().__init__()
        self.request_id = request_id or NO_REQUEST_ID

    def filter(self, record):
        if not hasattr(record, "request_id"):
            record.request_id = self.request_id
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, including ``extra`` and context fields."""

    def format(self, record):
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "request_id": getattr(record, "request_id", NO_REQUEST_ID),
        }

        payload.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        )
        payload.update(getattr(record, "extra", {}))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logger(
    name: str,
    level: Union[int, str] = None,
    log_format: str = None,
    request_id: Optional[str] = None,
) -> logging.Logger:
    """
    Configure a logger with a single stdout handler.

    Calling it again for the same name replaces the previous handler and
    request filter instead of stacking them.

    Args:
        name: The name of the logger (usually __name__)
        level: Logging level, defaults to ``LOG_LEVEL``
        log_format: ``json`` or ``text``, defaults to ``LOG_FORMAT``
        request_id: Request id stamped on records that do not carry one

    Returns:
        The configured logger
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    log_format = log_format or os.getenv("LOG_FORMAT", "json")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    for existing_filter in logger.filters[:]:
        if isinstance(existing_filter, RequestContextFilter):
            logger.removeFilter(existing_filter)

    logger.addFilter(RequestContextFilter(request_id))

    handler = logging.StreamHandler(sys.stdout)
    if log_format.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)

    return logger


def get_logger(
    name: str, level: Union[int, str] = None, request_id: Optional[str] = None
) -> logging.Logger:
    """Get a logger configured from ``LOG_LEVEL`` and ``LOG_FORMAT``."""
    return setup_logger(name, level=level, request_id=request_id)


_log_context: ContextVar[Dict[str, Any]] = ContextVar("variantlab_log_context", default={})
_factory_lock = threading.Lock()
_factory_installed = False


def _install_record_factory() -> None:
    """Wrap the record factory once so records pick up the active context."""
    global _factory_installed

    with _factory_lock:
        if _factory_installed:
            return
        previous = logging.getLogRecordFactory()

        def record_factory(*args, **kwargs):
            record = previous(*args, **kwargs)
            context = _log_context.get()
            if context:
                record.extra = {**getattr(record, "extra", {}), **context}
            return record

        logging.setLogRecordFactory(record_factory)
        _factory_installed = True


class LogContext:
    """
    Attach fields to every record created while the context is active.

    The fields are held in a context variable, so concurrent threads each see
    only their own context.

    Usage:
        with LogContext(logger, experiment_id="abc"):
            logger.info("Ending experiment")
    """

    def __init__(self, logger: logging.Logger, **context):
        self.logger = logger
        self.context = context
        self._token = None

    def __enter__(self):
        _install_record_factory()
        self._token = _log_context.set({**_log_context.get(), **self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)


def log_execution_time(func):
    """Log how long ``func`` took at DEBUG, or at ERROR if it raised."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        func_logger = logging.getLogger(func.__module__)
        started = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed = time.perf_counter() - started
            func_logger.error(
                f"Function '{func.__name__}' failed after {elapsed:.4f} seconds: {e}",
                extra={"execution_time": elapsed, "error": str(e)},
            )
            raise

        elapsed = time.perf_counter() - started
        func_logger.debug(
            f"Function '{func.__name__}' executed in {elapsed:.4f} seconds",
            extra={"execution_time": elapsed},
        )
        return result

    return wrapper
