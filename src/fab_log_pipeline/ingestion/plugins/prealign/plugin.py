"""
Prealignment telemetry plugin.

Tails the prealigner's append-only log and stores each new sample in
``plg_prealign``. The offset is committed only after the samples are
stored, so a failed write is retried on the next trigger; duplicates from
re-reads are ignored by the (eqpid, datetime) key.
"""

import logging
from typing import Any

from ....pipeline.upsert_specs import PREALIGN_SPEC
from ...base import PathLike, ProcessOutcome
from ...parsers.prealign import PrealignParser
from ...registry import PluginRegistry
from ...tailer import TailStatus
from ..base import StoragePlugin

logger = logging.getLogger(__name__)


@PluginRegistry.register("prealign")
class PrealignPlugin(StoragePlugin):
    """Incremental loader for ``PreAlignLog`` files."""

    plugin_name = "Prealign"
    default_task_name = "PreAlign"
    default_file_filter = "*PreAlign*.dat;*PreAlign*.log"

    def process(self, file_path: PathLike, settings: Any = None) -> ProcessOutcome:
        eqpid = self.resolve_eqpid(settings)
        if not eqpid:
            return ProcessOutcome.fail("Eqpid not found in settings")

        tail = self.tailer.tail(file_path)
        if tail.status == TailStatus.NOT_FOUND:
            return ProcessOutcome.skip("not_found")
        if tail.status == TailStatus.NOT_READY:
            return ProcessOutcome.skip("not_ready")
        if tail.status == TailStatus.NO_CHANGE:
            return ProcessOutcome.skip("unchanged")

        parser = PrealignParser()
        samples = parser.parse(tail.text, eqpid)
        if parser.dropped:
            self.log.debug(f"Dropped {parser.dropped} invalid sample(s)")

        if not samples:
            self.log.debug("No valid new rows found in incremental text")
            self.advance_offset(file_path, tail)
            return ProcessOutcome.skip("no_records")

        result = self.writer.write(PREALIGN_SPEC, samples)
        if not self.advance_offset(file_path, tail, written=result.success):
            return ProcessOutcome.fail(f"Write failed, offset kept at {tail.previous_offset}: {result.error}")

        self.log.info(f"{len(samples)} sample(s) ▶ {PREALIGN_SPEC.table} ({result.rows_affected} new)")
        return ProcessOutcome.success(result.rows_affected)
