"""
Utilities package for variantlab.

This package contains utility modules used throughout variantlab, currently
the structured logging helpers.
"""

from .logging import LogContext, get_logger, log_execution_time

__all__ = [
    "LogContext",
    "get_logger",
    "log_execution_time",
]
