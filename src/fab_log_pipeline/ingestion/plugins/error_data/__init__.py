"""
Equipment error log plugin.

Registered as ``error_data``.
"""

from .plugin import ErrorDataPlugin

__all__ = ["ErrorDataPlugin"]
