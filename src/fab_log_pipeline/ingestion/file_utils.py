"""
Shared file utilities for the ingestion module.

Equipment software keeps its log files open while writing them. Files are
opened for shared reading; a sharing violation is retried a bounded number
of times with a fixed delay before the caller is told the file is not ready.
"""

import logging
import os
import time
from pathlib import Path
from typing import BinaryIO, Callable, Union

from ..monitoring.retry_handler import RetryConfig, RetryManager
from .exceptions import FileNotReadyError

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], None]


def open_shared(
    file_path: Union[str, Path],
    retries: int = 5,
    retry_delay: float = 0.5,
    sleep: SleepFn | None = None,
) -> BinaryIO:
    """
    Open a file for binary reading without excluding its writer.

    Python opens files with read/write/delete sharing on Windows and
    without locks elsewhere, so the only failures to expect are sharing
    violations raised while a producer holds an exclusive handle.

    Args:
        file_path: File to open
        retries: Total open attempts
        retry_delay: Seconds between attempts
        sleep: Sleep function (injectable for tests)

    Returns:
        Open binary file handle positioned at 0

    Raises:
        FileNotFoundError: If the file does not exist
        FileNotReadyError: If every attempt hit a sharing violation
    """
    config = RetryConfig.fixed(max_retries=max(retries - 1, 0), delay_seconds=retry_delay)
    manager = RetryManager(config, sleep=sleep or time.sleep)

    result = manager.execute_with_retry(open, file_path, "rb")
    if result.success:
        return result.result

    if isinstance(result.last_error, FileNotFoundError):
        raise result.last_error
    raise FileNotReadyError(str(file_path), result.attempts, result.last_error)


def wait_for_file_ready(
    file_path: Union[str, Path],
    retries: int = 5,
    retry_delay: float = 0.5,
    sleep: SleepFn | None = None,
) -> bool:
    """
    Return True once the file can be opened for shared reading.

    Returns False when it is missing or still locked after all attempts.
    """
    try:
        with open_shared(file_path, retries, retry_delay, sleep):
            return True
    except FileNotFoundError:
        return False
    except FileNotReadyError as e:
        logger.debug(str(e))
        return False


def try_delete(file_path: Union[str, Path]) -> bool:
    """
    Delete a source file after it has been loaded.

    Failures are logged and reported, never raised.
    """
    try:
        os.remove(file_path)
        return True
    except FileNotFoundError:
        logger.debug(f"Already deleted: {file_path}")
        return False
    except OSError as e:
        logger.error(f"Failed to delete {file_path}: {e}")
        return False
