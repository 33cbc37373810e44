"""
Wafer-map image plugin.

Uploads each image to the file service, stores the returned address in
``plg_wf_map`` and deletes the local file. The service must pass its
health check and the equipment must have an SDWT in ``ref_equipment``
before anything is uploaded.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from ....config.constants import TABLE_REF_EQUIPMENT
from ....pipeline.reclaimer import BatchOutcome, PostFlushReclaimer, ReclaimMode
from ....pipeline.sql_compat import SQLBuilder
from ....pipeline.upsert_specs import WAFER_MAP_SPEC
from ....storage.base import StorageError
from ....transfer.http_upload import HttpWaferMapTransfer, WaferMapTransfer, derive_api_url
from ...base import BatchItem, PathLike, ProcessOutcome, WaferMapRecord
from ...file_utils import wait_for_file_ready
from ...parsers.wafer_map import parse_wafer_map_timestamp
from ...registry import PluginRegistry
from ..base import StoragePlugin

logger = logging.getLogger(__name__)


@PluginRegistry.register("wafer_map")
class WaferMapPlugin(StoragePlugin):
    """
    Upload-and-record plugin for wafer-map images.

    Args:
        transfer: File service client (default: `HttpWaferMapTransfer`)
        **kwargs: See `StoragePlugin`
    """

    plugin_name = "WaferMap"
    default_task_name = "WaferMap"
    default_file_filter = "*.png;*.jpg;*.bmp"

    def __init__(self, *args, transfer: Optional[WaferMapTransfer] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.transfer = transfer if transfer is not None else HttpWaferMapTransfer()
        self.reclaimer = PostFlushReclaimer(ReclaimMode.DELETE_SOURCE)

    def lookup_sdwt(self, eqpid: str) -> Optional[str]:
        """SDWT of the equipment from ``ref_equipment``, or None."""
        sql = SQLBuilder(self.backend.backend_type)
        try:
            rows = self.backend.query(
                f"SELECT sdwt FROM {TABLE_REF_EQUIPMENT} "
                f"WHERE eqpid = {sql.placeholder('eqpid')} LIMIT 1",
                {"eqpid": eqpid},
            )
        except StorageError as e:
            self.log.error(f"Get SDWT failed: {e}")
            return None
        if not rows or rows[0].get("sdwt") is None:
            return None
        return str(rows[0]["sdwt"])

    def process(self, file_path: PathLike, settings: Any = None) -> ProcessOutcome:
        path = Path(file_path)
        eqpid = self.resolve_eqpid(settings)
        if not eqpid:
            return ProcessOutcome.fail("Eqpid not found. Aborting")

        timestamp = parse_wafer_map_timestamp(path)
        if timestamp is None:
            self.log.info(f"No capture time in file name, skipped ▶ {path.name}")
            return ProcessOutcome.skip("unparseable")

        if not path.exists():
            return ProcessOutcome.skip("not_found")
        config = self.config
        if not wait_for_file_ready(
            path, config.open_retries, config.open_retry_delay_seconds, self._sleep
        ):
            return ProcessOutcome.skip("not_ready")

        base_url = derive_api_url(config)
        self.log.debug(f"Target API URL: {base_url}")
        if not self.transfer.health_check(base_url):
            return ProcessOutcome.fail(f"API server health check failed ({base_url})")

        sdwt = self.lookup_sdwt(eqpid)
        if not sdwt:
            return ProcessOutcome.fail(f"SDWT not found for eqpid '{eqpid}'")

        reference = self.transfer.upload(base_url, path, sdwt, eqpid)
        if not reference:
            return ProcessOutcome.fail(f"Upload failed ▶ {path.name}")

        record = WaferMapRecord(
            eqpid=eqpid,
            timestamp=timestamp,
            file_uri=base_url + reference,
            original_filename=path.name,
        )
        result = self.writer.write(WAFER_MAP_SPEC, [record])
        self.reclaimer.reclaim(
            BatchOutcome(success=result.success, items=[BatchItem(str(path), record)])
        )
        if not result.success:
            return ProcessOutcome.fail(f"Uploaded but not recorded: {result.error}")

        self.log.info(f"SUCCESS, uploaded to {base_url}")
        return ProcessOutcome.success(result.rows_affected)
