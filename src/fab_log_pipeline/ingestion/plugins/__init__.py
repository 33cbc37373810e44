"""
Built-in ingestion plugins.

Importing this package registers every plugin with `PluginRegistry`:

- ``prealign``: prealignment telemetry (tailed append log)
- ``error_data``: equipment error log and equipment-info snapshot (tailed append log)
- ``flat_wafer``: flat-wafer measurement tables (single-shot, deleted after load)
- ``spectrum``: spectral scans (batched, deleted after load)
- ``wafer_map``: wafer-map images (uploaded, deleted after load)
"""

from .base import StoragePlugin
from .error_data import ErrorDataPlugin
from .flat_wafer import FlatWaferPlugin
from .prealign import PrealignPlugin
from .spectrum import SpectrumPlugin
from .wafer_map import WaferMapPlugin

__all__ = [
    "StoragePlugin",
    "ErrorDataPlugin",
    "FlatWaferPlugin",
    "PrealignPlugin",
    "SpectrumPlugin",
    "WaferMapPlugin",
]
