"""
Flat-wafer measurement plugin.

Registered as ``flat_wafer``.
"""

from .plugin import FlatWaferPlugin

__all__ = ["FlatWaferPlugin"]
