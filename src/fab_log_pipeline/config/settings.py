"""
Application settings and configuration management.

Supports loading from:
1. SOPS-encrypted YAML files (config.enc.yaml)
2. Plain YAML files (any other *.yaml path)
3. Environment variables (fallback)
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from .constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_FLUSH_INTERVAL_SECONDS,
    DEFAULT_LOG_DIR,
    DEFAULT_OPEN_RETRIES,
    DEFAULT_OPEN_RETRY_DELAY_SECONDS,
    DEFAULT_SETTINGS_FILE,
    DEFAULT_SOURCE_ENCODING,
    DEFAULT_WAFER_MAP_API_PORT,
)

logger = logging.getLogger(__name__)


def _safe_int(key: str, default: int) -> int:
    """Safely parse int from env var, using default on error."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _safe_float(key: str, default: float) -> float:
    """Safely parse float from env var, using default on error."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _safe_bool(key: str, default: bool) -> bool:
    """Safely parse bool from env var."""
    return os.environ.get(key, str(default).lower()).lower() in ("true", "1", "yes")


# =============================================================================
# Batch Settings
# =============================================================================


@dataclass
class BatchSettings:
    """
    Configuration for batched loading and write retries.

    The accumulator flushes when `batch_size` items are pending or every
    `flush_interval_seconds`, whichever comes first. Transient store errors
    are retried `write_retries` times with a fixed delay.
    """

    batch_size: int = DEFAULT_BATCH_SIZE
    flush_interval_seconds: float = DEFAULT_FLUSH_INTERVAL_SECONDS
    write_retries: int = 2
    write_retry_delay_seconds: float = 1.0

    def validate(self) -> list[str]:
        """Validate settings values. Returns list of errors."""
        errors = []

        if self.batch_size < 1:
            errors.append(f"batch_size must be >= 1, got {self.batch_size}")
        if self.flush_interval_seconds <= 0:
            errors.append(
                f"flush_interval_seconds must be > 0, "
                f"got {self.flush_interval_seconds}"
            )
        if self.write_retries < 0:
            errors.append(f"write_retries must be >= 0, got {self.write_retries}")
        if self.write_retry_delay_seconds < 0:
            errors.append(
                f"write_retry_delay_seconds must be >= 0, "
                f"got {self.write_retry_delay_seconds}"
            )

        return errors

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "batch_size": self.batch_size,
            "flush_interval_seconds": self.flush_interval_seconds,
            "write_retries": self.write_retries,
            "write_retry_delay_seconds": self.write_retry_delay_seconds,
        }

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "BatchSettings":
        """Create from configuration dictionary."""
        return cls(
            batch_size=config.get("batch_size", DEFAULT_BATCH_SIZE),
            flush_interval_seconds=config.get(
                "flush_interval_seconds", DEFAULT_FLUSH_INTERVAL_SECONDS
            ),
            write_retries=config.get("write_retries", 2),
            write_retry_delay_seconds=config.get("write_retry_delay_seconds", 1.0),
        )

    @classmethod
    def from_env(cls) -> "BatchSettings":
        """Create from environment variables."""
        return cls(
            batch_size=_safe_int("FAB_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            flush_interval_seconds=_safe_float(
                "FAB_FLUSH_INTERVAL_SECONDS", DEFAULT_FLUSH_INTERVAL_SECONDS
            ),
            write_retries=_safe_int("FAB_WRITE_RETRIES", 2),
            write_retry_delay_seconds=_safe_float("FAB_WRITE_RETRY_DELAY_SECONDS", 1.0),
        )


# =============================================================================
# Main Settings
# =============================================================================


@dataclass
class Settings:
    """Application settings for the equipment log pipeline."""

    # Storage Backend Settings
    storage_backend: str = "sqlite"
    sqlite_db_path: str = "data/fab-logs.db"
    postgres_dsn: str = ""
    store_timeout_seconds: float = 30.0

    # Source file handling
    source_encoding: str = DEFAULT_SOURCE_ENCODING
    open_retries: int = DEFAULT_OPEN_RETRIES
    open_retry_delay_seconds: float = DEFAULT_OPEN_RETRY_DELAY_SECONDS
    settings_file: str = DEFAULT_SETTINGS_FILE

    # Logging
    log_dir: str = DEFAULT_LOG_DIR
    debug: bool = False

    # Clock correction
    clock_offset_seconds: float = 0.0
    clock_utc_offset_hours: Optional[float] = None

    # Wafer map transfer
    wafer_map_api_url: str = ""
    wafer_map_api_port: int = DEFAULT_WAFER_MAP_API_PORT

    batch: BatchSettings = field(default_factory=BatchSettings)

    def validate(self) -> list[str]:
        """Validate required settings are present. Returns list of errors."""
        errors = []

        if self.storage_backend not in ("sqlite", "postgres"):
            errors.append(
                f"storage.backend must be 'sqlite' or 'postgres', "
                f"got '{self.storage_backend}'"
            )

        if self.storage_backend == "postgres" and not self.postgres_dsn:
            errors.append("storage.postgres_dsn is required for the postgres backend")

        if self.open_retries < 1:
            errors.append(f"open_retries must be >= 1, got {self.open_retries}")

        try:
            "".encode(self.source_encoding)
        except LookupError:
            errors.append(f"Unknown source_encoding: '{self.source_encoding}'")

        errors.extend(self.batch.validate())

        return errors

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "Settings":
        """Create Settings from configuration dictionary (e.g., from SOPS)."""
        storage = config.get("storage", {})
        ingestion = config.get("ingestion", {})
        logging_cfg = config.get("logging", {})
        clock = config.get("clock", {})
        wafer_map = config.get("wafer_map", {})

        return cls(
            storage_backend=storage.get("backend", "sqlite"),
            sqlite_db_path=storage.get("sqlite_db_path", "data/fab-logs.db"),
            postgres_dsn=storage.get("postgres_dsn", ""),
            store_timeout_seconds=storage.get("timeout_seconds", 30.0),
            source_encoding=ingestion.get("source_encoding", DEFAULT_SOURCE_ENCODING),
            open_retries=ingestion.get("open_retries", DEFAULT_OPEN_RETRIES),
            open_retry_delay_seconds=ingestion.get(
                "open_retry_delay_seconds", DEFAULT_OPEN_RETRY_DELAY_SECONDS
            ),
            settings_file=ingestion.get("settings_file", DEFAULT_SETTINGS_FILE),
            log_dir=logging_cfg.get("log_dir", DEFAULT_LOG_DIR),
            debug=logging_cfg.get("debug", False),
            clock_offset_seconds=clock.get("offset_seconds", 0.0),
            clock_utc_offset_hours=clock.get("utc_offset_hours"),
            wafer_map_api_url=wafer_map.get("api_url", ""),
            wafer_map_api_port=wafer_map.get("api_port", DEFAULT_WAFER_MAP_API_PORT),
            batch=BatchSettings.from_dict(config.get("batch", {})),
        )

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        utc_offset = os.environ.get("FAB_CLOCK_UTC_OFFSET_HOURS")
        return cls(
            storage_backend=os.environ.get("FAB_STORAGE_BACKEND", "sqlite"),
            sqlite_db_path=os.environ.get("FAB_SQLITE_DB_PATH", "data/fab-logs.db"),
            postgres_dsn=os.environ.get("FAB_POSTGRES_DSN", ""),
            store_timeout_seconds=_safe_float("FAB_STORE_TIMEOUT_SECONDS", 30.0),
            source_encoding=os.environ.get(
                "FAB_SOURCE_ENCODING", DEFAULT_SOURCE_ENCODING
            ),
            open_retries=_safe_int("FAB_OPEN_RETRIES", DEFAULT_OPEN_RETRIES),
            open_retry_delay_seconds=_safe_float(
                "FAB_OPEN_RETRY_DELAY_SECONDS", DEFAULT_OPEN_RETRY_DELAY_SECONDS
            ),
            settings_file=os.environ.get("FAB_SETTINGS_FILE", DEFAULT_SETTINGS_FILE),
            log_dir=os.environ.get("FAB_LOG_DIR", DEFAULT_LOG_DIR),
            debug=_safe_bool("FAB_DEBUG", False),
            clock_offset_seconds=_safe_float("FAB_CLOCK_OFFSET_SECONDS", 0.0),
            clock_utc_offset_hours=float(utc_offset) if utc_offset else None,
            wafer_map_api_url=os.environ.get("FAB_WAFER_MAP_API_URL", ""),
            wafer_map_api_port=_safe_int(
                "FAB_WAFER_MAP_API_PORT", DEFAULT_WAFER_MAP_API_PORT
            ),
            batch=BatchSettings.from_env(),
        )


# Default config file path
DEFAULT_CONFIG_PATH = Path("config.enc.yaml")


@lru_cache
def get_settings(config_path: Optional[str] = None) -> Settings:
    """
    Get cached settings instance.

    Loads from a SOPS-encrypted config file when the name ends in
    ``.enc.yaml``, from a plain YAML file otherwise, and falls back to
    environment variables when no file is available.

    Args:
        config_path: Optional path to a config file

    Returns:
        Settings instance
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if path.exists():
        try:
            from .sops_loader import load_config_file

            return Settings.from_dict(load_config_file(path))
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Falling back to environment variables")

    return Settings.from_env()


def clear_settings_cache() -> None:
    """Clear the cached settings (useful for testing)."""
    get_settings.cache_clear()
