"""
Incremental ingestion of equipment log files.

Provides the plugin interface the host calls for every detected file, the
offset-tracked tailer for append-only logs, the record parsers and the
allow-list filter for error logs.

Usage:
    from fab_log_pipeline.ingestion import get_plugin, list_plugins

    # Plugins register themselves on first lookup
    plugin = get_plugin('prealign')
    plugin.process_and_upload('C:/Logs/PreAlignLog.dat', 'Settings.ini')

    # Tail a growing file directly
    from fab_log_pipeline.ingestion import OffsetTailer, TailStatus

    tailer = OffsetTailer()
    result = tailer.tail('PreAlignLog.dat')
    if result.status == TailStatus.READ:
        tailer.commit('PreAlignLog.dat', result)
"""

from .base import (
    BatchItem,
    EquipmentInfo,
    ErrorLogEntry,
    FlatWaferRow,
    IngestionPlugin,
    ParsedRecord,
    PrealignSample,
    ProcessOutcome,
    ProcessStatus,
    SpectrumScan,
    WaferMapRecord,
)
from .exceptions import (
    FileNotReadyError,
    IngestionError,
    ParseError,
    PluginNotFoundError,
    ValidationError,
)
from .file_utils import open_shared, try_delete, wait_for_file_ready
from .filters import FilterResult, apply_allow_list, load_allow_set
from .registry import PluginRegistry, get_plugin, list_plugins
from .tail_state import TailStateStore, file_identity
from .tailer import OffsetTailer, TailResult, TailStatus

__all__ = [
    # Plugin interface
    "IngestionPlugin",
    "ProcessOutcome",
    "ProcessStatus",
    # Records
    "ParsedRecord",
    "WaferMapRecord",
    "PrealignSample",
    "FlatWaferRow",
    "SpectrumScan",
    "ErrorLogEntry",
    "EquipmentInfo",
    "BatchItem",
    # Registry
    "PluginRegistry",
    "get_plugin",
    "list_plugins",
    # Exceptions
    "IngestionError",
    "ValidationError",
    "ParseError",
    "FileNotReadyError",
    "PluginNotFoundError",
    # Tailing
    "TailStateStore",
    "file_identity",
    "OffsetTailer",
    "TailResult",
    "TailStatus",
    # Filtering
    "FilterResult",
    "apply_allow_list",
    "load_allow_set",
    # File utilities
    "open_shared",
    "wait_for_file_ready",
    "try_delete",
]
