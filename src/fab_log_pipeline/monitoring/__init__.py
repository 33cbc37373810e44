"""Monitoring module: daily log files and retry handling."""

from .daily_log import DailyFileHandler, plugin_logger, set_debug, setup_logging
from .retry_handler import (
    ErrorCategory,
    ErrorClassifier,
    RetryConfig,
    RetryManager,
    RetryResult,
)

__all__ = [
    "DailyFileHandler",
    "setup_logging",
    "set_debug",
    "plugin_logger",
    "ErrorCategory",
    "ErrorClassifier",
    "RetryConfig",
    "RetryManager",
    "RetryResult",
]
