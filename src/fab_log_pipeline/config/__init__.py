"""Configuration module."""

from .constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_FLUSH_INTERVAL_SECONDS,
    DEFAULT_SOURCE_ENCODING,
)
from .equipment import read_eqpid
from .settings import BatchSettings, Settings, clear_settings_cache, get_settings
from .sops_loader import (
    check_sops_installed,
    decrypt_sops_file,
    is_encrypted,
    load_config_file,
    load_yaml_file,
)

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_FLUSH_INTERVAL_SECONDS",
    "DEFAULT_SOURCE_ENCODING",
    # Settings
    "Settings",
    "BatchSettings",
    "get_settings",
    "clear_settings_cache",
    # Equipment identity
    "read_eqpid",
    # Config loading
    "load_config_file",
    "load_yaml_file",
    "is_encrypted",
    "decrypt_sops_file",
    "check_sops_installed",
]
