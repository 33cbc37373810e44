"""
Spectral scan plugin.

Scan files arrive in bursts of small files. Each one is parsed and queued;
the queue is written to ``plg_onto_spectrum`` in batches (when it reaches
the batch size, and every few seconds from a background thread). Files of
a stored batch are deleted; files of a failed batch stay on disk and are
queued again on their next trigger.
"""

import logging
import threading
from typing import Any, Optional

from ....pipeline.batching import BatchAccumulator
from ....pipeline.reclaimer import BatchOutcome, PostFlushReclaimer, ReclaimMode
from ....pipeline.upsert_specs import SPECTRUM_SPEC
from ...base import BatchItem, PathLike, ProcessOutcome
from ...parsers.spectrum import SpectrumParser, parse_spectrum_filename
from ...registry import PluginRegistry
from ...tailer import TailStatus
from ..base import StoragePlugin

logger = logging.getLogger(__name__)


@PluginRegistry.register("spectrum")
class SpectrumPlugin(StoragePlugin):
    """Batched loader for ``*Exp.dat`` / ``*Gen.dat`` scans."""

    plugin_name = "Spectrum"
    default_task_name = "Spectrum"
    default_file_filter = "*Exp.dat;*Gen.dat"
    requires_override_names = True

    def __init__(self, *args, autostart: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.autostart = autostart
        self.reclaimer = PostFlushReclaimer(ReclaimMode.DELETE_SOURCE)
        self._accumulator: Optional[BatchAccumulator] = None
        self._accumulator_lock = threading.Lock()

    @property
    def accumulator(self) -> BatchAccumulator:
        with self._accumulator_lock:
            if self._accumulator is None:
                batch = self.config.batch
                self._accumulator = BatchAccumulator(
                    self._flush_batch,
                    batch_size=batch.batch_size,
                    flush_interval=batch.flush_interval_seconds,
                )
            return self._accumulator

    def process(self, file_path: PathLike, settings: Any = None) -> ProcessOutcome:
        source = str(file_path)
        meta = parse_spectrum_filename(source)
        if meta is None:
            return ProcessOutcome.skip("unparseable")

        accumulator = self.accumulator
        if accumulator.is_pending(source):
            return ProcessOutcome.skip("queued")

        eqpid = self.resolve_eqpid(settings)
        if not eqpid:
            return ProcessOutcome.fail("Eqpid not found in settings")

        read = self.tailer.read_whole(source)
        if read.status == TailStatus.NOT_FOUND:
            return ProcessOutcome.skip("not_found")
        if read.status == TailStatus.NOT_READY:
            self.log.debug(f"File locked (Skipping): {source}")
            return ProcessOutcome.skip("not_ready")

        scan = SpectrumParser().parse(source, read.text, eqpid, meta=meta)
        if scan is None:
            return ProcessOutcome.skip("no_records")

        if self.autostart:
            accumulator.start()
        accumulator.enqueue(BatchItem(source, scan))
        return ProcessOutcome.success(reason="queued")

    def flush(self) -> Optional[bool]:
        """Write whatever is queued now (None if nothing was flushed)."""
        return self.accumulator.flush()

    def close(self) -> None:
        """Stop background flushing; queued items are not written."""
        if self._accumulator is not None:
            self._accumulator.stop()

    def _flush_batch(self, items: list[BatchItem]) -> bool:
        result = self.writer.write(SPECTRUM_SPEC, [item.record for item in items])
        deleted = self.reclaimer.reclaim(BatchOutcome(success=result.success, items=items))

        if result.success:
            self.log.info(f"Batch Success: {len(items)} items uploaded, {deleted} files deleted")
        else:
            self.log.error(f"Batch Insert Failed. {len(items)} files remain: {result.error}")
        return result.success
