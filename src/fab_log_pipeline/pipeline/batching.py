"""
Batch accumulation with size-triggered and periodic flushing.

Records are queued as `BatchItem`s. A flush drains everything queued so far
into one snapshot and hands it to a handler (normally: write, then reclaim
the source files). Flushes happen when the queue reaches `batch_size` and
every `flush_interval` seconds from a background thread. Only one flush
runs at a time; a flush requested while another is running returns
immediately and its items are picked up by the running or the next flush.

A snapshot whose handler fails is dropped, not re-queued. The source files
stay on disk and are picked up again on their next trigger.
"""

import logging
import queue
import threading
from collections import Counter
from typing import Callable, Optional

from ..config.constants import DEFAULT_BATCH_SIZE, DEFAULT_FLUSH_INTERVAL_SECONDS
from ..ingestion.base import BatchItem
from ..ingestion.tail_state import file_identity

logger = logging.getLogger(__name__)

FlushHandler = Callable[[list[BatchItem]], bool]


class FlushScheduler:
    """
    Daemon thread calling a flush function at a fixed interval.

    Args:
        flush: Function to call
        interval: Seconds between calls
        name: Thread name
    """

    def __init__(self, flush: Callable[[], object], interval: float, name: str = "batch-flush"):
        self._flush = flush
        self.interval = interval
        self.name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the thread; calling it again while running does nothing."""
        with self._start_lock:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
            self._thread.start()
            logger.debug(f"Flush scheduler started (every {self.interval}s)")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the thread. Pending items are not drained."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.debug("Flush scheduler stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(timeout=self.interval):
            self._flush()


class BatchAccumulator:
    """
    Thread-safe record queue with a single non-blocking flush lock.

    Args:
        flush_handler: Called with each drained snapshot; returns success
        batch_size: Queue length that triggers a synchronous flush
        flush_interval: Seconds between background flushes

    Usage:
        accumulator = BatchAccumulator(handle_batch)
        accumulator.start()
        accumulator.enqueue(BatchItem(path, record))
    """

    def __init__(
        self,
        flush_handler: FlushHandler,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL_SECONDS,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._handler = flush_handler
        self.batch_size = batch_size
        self._queue: "queue.Queue[BatchItem]" = queue.Queue()
        self._flush_lock = threading.Lock()
        self._pending_lock = threading.Lock()
        self._pending: Counter[str] = Counter()
        self.scheduler = FlushScheduler(self.flush, flush_interval)

    def start(self) -> None:
        """Start periodic flushing (idempotent)."""
        self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    def is_pending(self, file_path: str) -> bool:
        """Whether items from this file are queued or being flushed."""
        with self._pending_lock:
            return self._pending[file_identity(file_path)] > 0

    def enqueue(self, item: BatchItem) -> Optional[bool]:
        """
        Queue an item; flush synchronously once `batch_size` is reached.

        Returns:
            The flush result if this call flushed, else None
        """
        with self._pending_lock:
            self._pending[file_identity(item.file_path)] += 1
        self._queue.put(item)

        if self._queue.qsize() >= self.batch_size:
            return self.flush()
        return None

    def _drain(self) -> list[BatchItem]:
        items = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def _release(self, items: list[BatchItem]) -> None:
        with self._pending_lock:
            for item in items:
                key = file_identity(item.file_path)
                self._pending[key] -= 1
                if self._pending[key] <= 0:
                    del self._pending[key]

    def flush(self) -> Optional[bool]:
        """
        Drain the queue into one snapshot and hand it to the handler.

        Returns:
            None if another flush is running or the queue was empty,
            otherwise the handler's success flag
        """
        if not self._flush_lock.acquire(blocking=False):
            return None

        try:
            items = self._drain()
            if not items:
                return None

            try:
                success = bool(self._handler(items))
            except Exception as e:
                logger.error(f"Batch flush of {len(items)} items failed: {e}", exc_info=True)
                success = False

            if not success:
                logger.error(f"Batch of {len(items)} items not stored; sources kept for retry")
            self._release(items)
            return success
        finally:
            self._flush_lock.release()
