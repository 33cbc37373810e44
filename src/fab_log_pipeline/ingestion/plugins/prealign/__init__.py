"""
Prealignment telemetry plugin.

Registered as ``prealign``.
"""

from .plugin import PrealignPlugin

__all__ = ["PrealignPlugin"]
