"""
Equipment identity lookup.

The equipment id is read from a line-oriented ``key = value`` settings file
that the equipment software maintains (``Settings.ini`` by default).
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Optional, Union

from .constants import DEFAULT_SETTINGS_FILE, EQPID_KEY

logger = logging.getLogger(__name__)

SettingsSource = Union[str, os.PathLike, Mapping, None]


def _eqpid_from_mapping(settings: Mapping) -> str:
    for key, value in settings.items():
        if str(key).strip().lower() == EQPID_KEY.lower():
            return str(value).strip() if value is not None else ""
    return ""


def _eqpid_from_lines(lines: list[str]) -> str:
    for line in lines:
        stripped = line.strip()
        if not stripped.lower().startswith(EQPID_KEY.lower()):
            continue
        _, sep, value = stripped.partition("=")
        if sep:
            return value.strip()
    return ""


def read_eqpid(
    settings: SettingsSource = None,
    encoding: str = "utf-8",
    base_dir: Optional[Path] = None,
) -> str:
    """
    Return the equipment id, or an empty string when it cannot be found.

    Args:
        settings: Path to the settings file, an already-parsed mapping, or
                  None for ``Settings.ini``. Relative paths resolve against
                  ``base_dir`` (the working directory by default).
        encoding: Text encoding of the settings file
        base_dir: Directory used to resolve relative paths

    Returns:
        The trimmed value after ``=`` on the first line whose trimmed text
        starts with ``Eqpid`` (case-insensitive); ``""`` when the file is
        missing, unreadable, or has no such line.
    """
    if isinstance(settings, Mapping):
        return _eqpid_from_mapping(settings)

    path = Path(settings) if settings is not None else Path(DEFAULT_SETTINGS_FILE)
    if not path.is_absolute():
        path = (base_dir or Path.cwd()) / path

    try:
        with open(path, "r", encoding=encoding, errors="replace") as f:
            return _eqpid_from_lines(f.readlines())
    except FileNotFoundError:
        logger.debug(f"Settings file not found: {path}")
        return ""
    except OSError as e:
        logger.error(f"Failed to read settings file {path}: {e}")
        return ""

