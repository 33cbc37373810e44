"""
Wafer-map image plugin.

Registered as ``wafer_map``.
"""

from .plugin import WaferMapPlugin

__all__ = ["WaferMapPlugin"]
