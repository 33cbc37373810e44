"""
Flat-wafer measurement plugin.

Each result file is loaded once into ``plg_wf_flat`` and then deleted.
Rows already stored for the same (eqpid, datetime) are replaced, and
measurement columns the table does not have yet are added on the fly.
"""

import logging
from typing import Any

from ....pipeline.reclaimer import BatchOutcome, PostFlushReclaimer, ReclaimMode
from ....pipeline.upsert_specs import WAFER_FLAT_SPEC
from ...base import BatchItem, PathLike, ProcessOutcome
from ...parsers.flat_wafer import FlatWaferParser
from ...registry import PluginRegistry
from ...tailer import TailStatus
from ..base import StoragePlugin

logger = logging.getLogger(__name__)


@PluginRegistry.register("flat_wafer")
class FlatWaferPlugin(StoragePlugin):
    """Single-shot loader for flat-wafer result tables."""

    plugin_name = "WaferFlat"
    default_task_name = "Wafer Flat Data (Auto)"
    default_file_filter = "*.csv;*.txt"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.reclaimer = PostFlushReclaimer(ReclaimMode.DELETE_SOURCE)

    def process(self, file_path: PathLike, settings: Any = None) -> ProcessOutcome:
        eqpid = self.resolve_eqpid(settings)
        if not eqpid:
            return ProcessOutcome.fail("Eqpid not found in settings")

        read = self.tailer.read_whole(file_path)
        if read.status == TailStatus.NOT_FOUND:
            return ProcessOutcome.skip("not_found")
        if read.status == TailStatus.NOT_READY:
            self.log.info(f"SKIP, file still not ready ▶ {file_path}")
            return ProcessOutcome.skip("not_ready")

        parsed = FlatWaferParser().parse(read.text, eqpid)
        if parsed.dropped:
            self.log.debug(f"Dropped {parsed.dropped} malformed row(s)")
        if not parsed.rows:
            self.log.debug(f"{parsed.reason} → skip")
            return ProcessOutcome.skip("unparseable" if not parsed.header_found else "no_records")

        result = self.writer.write(WAFER_FLAT_SPEC, parsed.rows)
        source = str(file_path)
        self.reclaimer.reclaim(
            BatchOutcome(
                success=result.success,
                items=[BatchItem(source, row) for row in parsed.rows],
            )
        )
        if not result.success:
            return ProcessOutcome.fail(f"Write failed, file kept: {result.error}")

        self.log.info(f"{source} ▶ rows={len(parsed.rows)}")
        return ProcessOutcome.success(result.rows_affected)
