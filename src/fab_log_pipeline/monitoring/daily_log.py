"""
Daily rotating file logging for plugin events, errors and debug output.

Each calendar day gets three files in the log directory:
``YYYYMMDD_event.log``, ``YYYYMMDD_error.log`` and ``YYYYMMDD_debug.log``.
Debug output is only written while the debug flag is on. Logging never
raises into the caller: a write that still fails after a few attempts is
dropped.
"""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from ..config.constants import LOG_WRITE_ATTEMPTS, LOG_WRITE_RETRY_DELAY_SECONDS

ROOT_LOGGER_NAME = "fab_log_pipeline"


class PluginFormatter(logging.Formatter):
    """Formats ``YYYY-MM-DD HH:MM:SS.fff [plugin] message``."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created)
        label = getattr(record, "plugin", None) or record.name.rsplit(".", 1)[-1]
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{ts:%Y-%m-%d %H:%M:%S}.{ts.microsecond // 1000:03d} [{label}] {message}"


class DailyFileHandler(logging.Handler):
    """
    Routes records to per-day event, error and debug files.

    Args:
        log_dir: Directory receiving the daily files (created on demand)
        debug: Whether DEBUG records are written
        sleep: Sleep function used between write attempts
    """

    def __init__(
        self,
        log_dir: Path | str,
        debug: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(level=logging.DEBUG)
        self.log_dir = Path(log_dir)
        self.debug_enabled = debug
        self._sleep = sleep
        self.setFormatter(PluginFormatter())

    def destination(self, record: logging.LogRecord) -> Optional[Path]:
        """Return the file a record belongs to, or None if it is gated off."""
        day = datetime.fromtimestamp(record.created).strftime("%Y%m%d")
        if record.levelno >= logging.ERROR:
            kind = "error"
        elif record.levelno >= logging.INFO:
            kind = "event"
        elif self.debug_enabled:
            kind = "debug"
        else:
            return None
        return self.log_dir / f"{day}_{kind}.log"

    def emit(self, record: logging.LogRecord) -> None:
        path = self.destination(record)
        if path is None:
            return

        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return

        for attempt in range(LOG_WRITE_ATTEMPTS):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
                return
            except OSError:
                if attempt < LOG_WRITE_ATTEMPTS - 1:
                    self._sleep(LOG_WRITE_RETRY_DELAY_SECONDS)
        self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:
        # Logging failures must never reach the ingestion path
        pass


def setup_logging(
    log_dir: Path | str,
    debug: bool = False,
    logger_name: str = ROOT_LOGGER_NAME,
) -> DailyFileHandler:
    """
    Install a DailyFileHandler on the package logger.

    Safe to call repeatedly: an existing DailyFileHandler is replaced.

    Args:
        log_dir: Directory for the daily log files
        debug: Enable the debug destination
        logger_name: Logger to attach to

    Returns:
        The installed handler
    """
    target = logging.getLogger(logger_name)
    for existing in list(target.handlers):
        if isinstance(existing, DailyFileHandler):
            target.removeHandler(existing)
            existing.close()

    handler = DailyFileHandler(log_dir, debug=debug)
    target.addHandler(handler)
    target.setLevel(logging.DEBUG)
    return handler


def set_debug(enabled: bool, logger_name: str = ROOT_LOGGER_NAME) -> None:
    """Toggle the debug destination of every installed DailyFileHandler."""
    for handler in logging.getLogger(logger_name).handlers:
        if isinstance(handler, DailyFileHandler):
            handler.debug_enabled = enabled


def plugin_logger(logger: logging.Logger, plugin_name: str) -> logging.LoggerAdapter:
    """Wrap a module logger so records carry the plugin label."""
    return logging.LoggerAdapter(logger, {"plugin": plugin_name})
