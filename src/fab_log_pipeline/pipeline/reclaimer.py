"""
Post-flush handling of source files.

After a batch has been written, disposable sources (spectra, flat-wafer
tables, wafer maps) are deleted and append-only logs have their tail offset
advanced. Nothing happens after a failed write, so the same data is read
again on the next trigger.

The append-log plugins reach ADVANCE_OFFSET through
`StoragePlugin.advance_offset`; the disposable-file plugins keep one
DELETE_SOURCE reclaimer each.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..ingestion.base import BatchItem
from ..ingestion.file_utils import try_delete
from ..ingestion.tailer import OffsetTailer, TailResult

logger = logging.getLogger(__name__)


class ReclaimMode(Enum):
    DELETE_SOURCE = "delete_source"
    ADVANCE_OFFSET = "advance_offset"


@dataclass
class BatchOutcome:
    """
    What a flush produced.

    Attributes:
        success: Whether the write committed
        items: Items of the batch (their file paths are the sources)
        tail_results: Tail reads to commit, keyed by file path
    """

    success: bool
    items: list[BatchItem] = field(default_factory=list)
    tail_results: dict[str, TailResult] = field(default_factory=dict)

    @property
    def source_files(self) -> list[str]:
        """Distinct source paths in batch order."""
        seen = dict.fromkeys(item.file_path for item in self.items)
        seen.update(dict.fromkeys(self.tail_results))
        return list(seen)


class PostFlushReclaimer:
    """
    Deletes sources or advances offsets after a successful flush.

    Args:
        mode: What to do with the sources
        tailer: Tailer whose offsets are advanced (ADVANCE_OFFSET only)
    """

    def __init__(self, mode: ReclaimMode, tailer: Optional[OffsetTailer] = None):
        if mode == ReclaimMode.ADVANCE_OFFSET and tailer is None:
            raise ValueError("ADVANCE_OFFSET requires a tailer")
        self.mode = mode
        self.tailer = tailer

    def reclaim(self, outcome: BatchOutcome) -> int:
        """
        Returns:
            Number of files deleted or offsets committed
        """
        if not outcome.success:
            logger.debug(f"Write failed; {len(outcome.source_files)} source(s) left as they are")
            return 0

        if self.mode == ReclaimMode.DELETE_SOURCE:
            deleted = sum(1 for path in outcome.source_files if try_delete(path))
            logger.debug(f"Deleted {deleted}/{len(outcome.source_files)} source file(s)")
            return deleted

        for path, result in outcome.tail_results.items():
            self.tailer.commit(path, result)
        return len(outcome.tail_results)
