"""
Spectral scan plugin.

Registered as ``spectrum``.
"""

from .plugin import SpectrumPlugin

__all__ = ["SpectrumPlugin"]
