"""
Bounded retries for file opens and store writes.

Both loops in the pipeline wait a fixed delay between attempts: a producer
holding a log open usually lets go within a second, and a locked or
restarting store is given one or two more tries before the batch fails.

Provides:
- RetryConfig: attempt count and delay schedule
- ErrorClassifier: transient (worth another attempt) vs permanent
- RetryManager: runs a callable and reports a RetryResult instead of raising
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Retry decision for a failed attempt."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


@dataclass
class RetryConfig:
    """
    Attempt schedule.

    Attributes:
        max_retries: Attempts after the first one
        delay_seconds: Wait before the first retry
        backoff: Multiplier applied to the delay after every retry (1.0 = fixed)
        max_delay_seconds: Upper bound of a single wait (None = unbounded)
    """

    max_retries: int = 2
    delay_seconds: float = 1.0
    backoff: float = 1.0
    max_delay_seconds: Optional[float] = None

    @classmethod
    def fixed(cls, max_retries: int, delay_seconds: float) -> "RetryConfig":
        """Same wait before every retry."""
        return cls(max_retries=max(max_retries, 0), delay_seconds=delay_seconds)

    def calculate_delay(self, attempt: int) -> float:
        """Wait before retry number `attempt + 1` (attempt is 0-indexed)."""
        delay = self.delay_seconds * (self.backoff**attempt)
        if self.max_delay_seconds is not None:
            delay = min(delay, self.max_delay_seconds)
        return max(0.0, delay)


@dataclass(frozen=True)
class AttemptFailure:
    attempt: int
    error_type: str
    message: str
    category: ErrorCategory


@dataclass
class RetryResult:
    """What happened across all attempts."""

    success: bool
    result: Any = None
    attempts: int = 0
    total_delay_seconds: float = 0.0
    last_error: Optional[Exception] = None
    failures: list[AttemptFailure] = field(default_factory=list)

    @property
    def gave_up(self) -> bool:
        """True when the last failure was transient but the attempts ran out."""
        return (
            not self.success
            and bool(self.failures)
            and self.failures[-1].category == ErrorCategory.TRANSIENT
        )


class ErrorClassifier:
    """
    Sorts failures into retryable and final.

    A log still held by the equipment software surfaces as a sharing or
    permission error and is transient. A vanished file is final. Store
    errors are classified by message: locks and dropped connections are
    transient; SQL and constraint errors are final.
    """

    TRANSIENT_PATTERNS = (
        "database is locked",
        "database table is locked",
        "sharing violation",
        "being used by another process",
        "timeout",
        "timed out",
        "connection refused",
        "connection reset",
        "could not connect",
        "server closed the connection",
        "terminating connection",
        "temporarily unavailable",
    )

    PERMANENT_PATTERNS = (
        "syntax error",
        "no such table",
        "no such column",
        "does not exist",
        "constraint failed",
        "violates",
        "invalid input",
        "permission denied for",
    )

    @classmethod
    def classify(cls, error: Exception) -> ErrorCategory:
        if isinstance(error, FileNotFoundError):
            return ErrorCategory.PERMANENT
        if isinstance(error, (PermissionError, BlockingIOError, InterruptedError)):
            return ErrorCategory.TRANSIENT
        if isinstance(error, (TimeoutError, ConnectionError)):
            return ErrorCategory.TRANSIENT

        message = str(error).lower()
        if any(pattern in message for pattern in cls.TRANSIENT_PATTERNS):
            return ErrorCategory.TRANSIENT
        if any(pattern in message for pattern in cls.PERMANENT_PATTERNS):
            return ErrorCategory.PERMANENT

        # Remaining OS errors on Windows shares are almost always locks
        if isinstance(error, OSError):
            return ErrorCategory.TRANSIENT
        if isinstance(error, (ValueError, TypeError, KeyError)):
            return ErrorCategory.PERMANENT
        return ErrorCategory.UNKNOWN


class RetryManager:
    """
    Runs an operation under a `RetryConfig`.

    Args:
        config: Attempt schedule (default: 2 retries, 1 s apart)
        sleep: Sleep function, injectable for tests

    Usage:
        manager = RetryManager(RetryConfig.fixed(4, 0.5))
        outcome = manager.execute_with_retry(open, path, "rb")
        if outcome.success:
            handle = outcome.result
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep

    def execute_with_retry(
        self,
        func: Callable[..., Any],
        *args,
        retry_on: Optional[list[ErrorCategory]] = None,
        **kwargs,
    ) -> RetryResult:
        """
        Call `func(*args, **kwargs)` until it returns or a failure is not retryable.

        Args:
            func: Operation to run
            retry_on: Categories that earn another attempt (default: transient)

        Returns:
            RetryResult; the return value is in `result` on success.
        """
        retryable = retry_on if retry_on is not None else [ErrorCategory.TRANSIENT]
        outcome = RetryResult(success=False)
        max_attempts = self.config.max_retries + 1

        for attempt in range(max_attempts):
            outcome.attempts = attempt + 1
            try:
                outcome.result = func(*args, **kwargs)
            except Exception as e:
                category = ErrorClassifier.classify(e)
                outcome.last_error = e
                outcome.failures.append(
                    AttemptFailure(attempt + 1, type(e).__name__, str(e), category)
                )
                logger.debug(f"Attempt {attempt + 1}/{max_attempts} failed ({category.value}): {e}")

                if category not in retryable:
                    break
                if attempt + 1 == max_attempts:
                    logger.warning(f"Giving up after {max_attempts} attempt(s): {e}")
                    break

                delay = self.config.calculate_delay(attempt)
                outcome.total_delay_seconds += delay
                self._sleep(delay)
                continue

            outcome.success = True
            if attempt:
                logger.debug(f"Succeeded on attempt {attempt + 1}")
            break

        return outcome
