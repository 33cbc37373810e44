"""
Shared wiring for the built-in plugins.

Every plugin needs the same collaborators: the storage backend, the clock
adjustor, the bulk writer and (for append logs) an offset tailer. They are
injected through the constructor and default to the process-wide instances
built from `Settings`.
"""

import logging
import threading
import time
from typing import Any, Callable, Optional

from ...config.equipment import read_eqpid
from ...config.settings import Settings, get_settings
from ...monitoring.retry_handler import RetryConfig
from ...pipeline.reclaimer import BatchOutcome, PostFlushReclaimer, ReclaimMode
from ...pipeline.writer import BulkUpsertWriter
from ...storage.base import StorageBackend
from ...storage.factory import get_backend
from ...timesync.clock import ClockSyncAdjustor
from ..base import IngestionPlugin, PathLike
from ..tail_state import TailStateStore
from ..tailer import OffsetTailer, TailResult

logger = logging.getLogger(__name__)


class StoragePlugin(IngestionPlugin):
    """
    Base for plugins that load parsed records into the store.

    Args:
        backend: Storage backend (default: created from settings and initialized)
        clock: Clock adjustor (default: process-wide adjustor)
        config: Pipeline settings (default: `get_settings()`)
        tail_state: Offset store shared with the tailer (default: a new one)
        sleep: Sleep function used by every retry loop (injectable for tests)
    """

    def __init__(
        self,
        backend: Optional[StorageBackend] = None,
        clock: Optional[ClockSyncAdjustor] = None,
        config: Optional[Settings] = None,
        tail_state: Optional[TailStateStore] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._backend = backend
        self._clock = clock
        self._config = config
        self.tail_state = tail_state if tail_state is not None else TailStateStore()
        self._sleep = sleep
        self._writer: Optional[BulkUpsertWriter] = None
        self._tailer: Optional[OffsetTailer] = None
        self._offset_reclaimer: Optional[PostFlushReclaimer] = None
        self._wiring_lock = threading.Lock()

    @property
    def config(self) -> Settings:
        if self._config is None:
            self._config = get_settings()
        return self._config

    @property
    def backend(self) -> StorageBackend:
        with self._wiring_lock:
            if self._backend is None:
                backend = get_backend()
                backend.initialize()
                self._backend = backend
            return self._backend

    @property
    def writer(self) -> BulkUpsertWriter:
        backend = self.backend
        with self._wiring_lock:
            if self._writer is None:
                batch = self.config.batch
                self._writer = BulkUpsertWriter(
                    backend,
                    clock=self._clock,
                    retry_config=RetryConfig.fixed(
                        batch.write_retries, batch.write_retry_delay_seconds
                    ),
                    sleep=self._sleep,
                )
            return self._writer

    @property
    def tailer(self) -> OffsetTailer:
        with self._wiring_lock:
            if self._tailer is None:
                config = self.config
                self._tailer = OffsetTailer(
                    self.tail_state,
                    encoding=config.source_encoding,
                    open_retries=config.open_retries,
                    retry_delay=config.open_retry_delay_seconds,
                    sleep=self._sleep,
                )
            return self._tailer

    @property
    def offset_reclaimer(self) -> PostFlushReclaimer:
        """Reclaimer that commits tail reads of append logs after a successful write."""
        tailer = self.tailer
        with self._wiring_lock:
            if self._offset_reclaimer is None:
                self._offset_reclaimer = PostFlushReclaimer(ReclaimMode.ADVANCE_OFFSET, tailer)
            return self._offset_reclaimer

    def advance_offset(self, file_path: PathLike, tail: TailResult, written: bool = True) -> bool:
        """Commit `tail` when `written`; returns whether the offset moved."""
        outcome = BatchOutcome(success=written, tail_results={str(file_path): tail})
        return self.offset_reclaimer.reclaim(outcome) > 0

    def resolve_eqpid(self, settings: Any = None) -> str:
        """Equipment id from the host-supplied settings source or the default file."""
        return read_eqpid(settings if settings is not None else self.config.settings_file)
