"""
Equipment error log plugin.

Tails the error log, keeps the alarms listed in ``err_severity_map`` and
stores them in ``plg_error``. When the file is read from the start its
header is also compared with the latest ``itm_info`` snapshot of the
equipment and a new snapshot is inserted if anything changed.
"""

import logging
from typing import Any

from ....pipeline.upsert_specs import EQUIPMENT_INFO_SPEC, ERROR_SPEC
from ...base import PathLike, ProcessOutcome
from ...filters import apply_allow_list, load_allow_set
from ...parsers.error_log import ErrorLogParser
from ...registry import PluginRegistry
from ...tailer import TailStatus
from ..base import StoragePlugin

logger = logging.getLogger(__name__)


@PluginRegistry.register("error_data")
class ErrorDataPlugin(StoragePlugin):
    """Incremental loader for ``*Error.dat`` logs."""

    plugin_name = "ErrorData"
    default_task_name = "Error"
    default_file_filter = "*Error.dat"

    def process(self, file_path: PathLike, settings: Any = None) -> ProcessOutcome:
        eqpid = self.resolve_eqpid(settings)
        if not eqpid:
            return ProcessOutcome.fail("Eqpid not found in settings")

        tail = self.tailer.tail(file_path)
        if tail.status == TailStatus.NOT_FOUND:
            self.log.debug(f"File not found (maybe deleted): {file_path}")
            return ProcessOutcome.skip("not_found")
        if tail.status == TailStatus.NOT_READY:
            return ProcessOutcome.skip("not_ready")
        if tail.status == TailStatus.NO_CHANGE:
            return ProcessOutcome.skip("unchanged")

        parsed = ErrorLogParser().parse(tail.text, eqpid, include_metadata=tail.from_start)
        if parsed.malformed:
            self.log.debug(f"Ignored {parsed.malformed} malformed line(s)")

        # A failed snapshot is logged by the writer and does not hold back the alarms
        if parsed.equipment_info is not None:
            self.writer.insert_if_changed(EQUIPMENT_INFO_SPEC, parsed.equipment_info)

        if parsed.read_lines == 0:
            self.log.debug("No new lines detected")
            self.advance_offset(file_path, tail)
            return ProcessOutcome.skip("no_records")

        filtered = apply_allow_list(parsed.entries, load_allow_set(self.backend))
        self.log.debug(filtered.summary(parsed.read_lines))

        rows = 0
        if filtered.kept:
            result = self.writer.write(ERROR_SPEC, filtered.kept)
            if not self.advance_offset(file_path, tail, written=result.success):
                return ProcessOutcome.fail(
                    f"Write failed, offset kept at {tail.previous_offset}: {result.error}"
                )
            rows = result.rows_affected
        else:
            self.log.info(f"No rows after filter ▶ {ERROR_SPEC.table}")
            self.advance_offset(file_path, tail)

        self.log.info(f"Done ▶ {file_path} ({rows} new row(s))")
        return ProcessOutcome.success(rows)
