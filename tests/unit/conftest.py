"""
Pytest configuration and shared fixtures for unit tests.
"""

from datetime import timedelta
from pathlib import Path

import pytest

from fab_log_pipeline.config.settings import BatchSettings, Settings, clear_settings_cache
from fab_log_pipeline.timesync.clock import OffsetClockSync, set_clock


@pytest.fixture
def registry_snapshot():
    """
    Save and restore the plugin registry around a test.

    The built-in plugins register at import time, so clearing the registry
    would lose them for the rest of the session.
    """
    from fab_log_pipeline.ingestion.registry import PluginRegistry

    saved = dict(PluginRegistry._plugins)
    yield PluginRegistry
    PluginRegistry._plugins.clear()
    PluginRegistry._plugins.update(saved)


@pytest.fixture(autouse=True)
def reset_process_state():
    """Clear cached settings and the process-wide clock adjustor."""
    clear_settings_cache()
    set_clock(None)
    yield
    clear_settings_cache()
    set_clock(None)


@pytest.fixture
def fixed_clock() -> OffsetClockSync:
    """Adjustor adding exactly two seconds."""
    return OffsetClockSync(offset=timedelta(seconds=2))


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings with no retry delays and a temp SQLite path."""
    return Settings(
        sqlite_db_path=str(tmp_path / "unit.db"),
        open_retries=2,
        open_retry_delay_seconds=0.0,
        log_dir=str(tmp_path / "Logs"),
        batch=BatchSettings(write_retries=1, write_retry_delay_seconds=0.0),
    )
