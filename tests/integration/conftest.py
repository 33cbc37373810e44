"""
Shared fixtures for integration tests.

Provides:
- Temporary SQLite database for isolated testing
- Deterministic clock adjustor and retry-free settings
- Reference rows for the allow-list and equipment lookups
"""

from datetime import timedelta
from pathlib import Path

import pytest

from fab_log_pipeline.config.settings import BatchSettings, Settings, clear_settings_cache
from fab_log_pipeline.storage import get_backend
from fab_log_pipeline.timesync.clock import OffsetClockSync, set_clock

EQPID = "EQP01"

# =============================================================================
# PROCESS STATE
# =============================================================================


@pytest.fixture(autouse=True)
def reset_process_state():
    """Clear cached settings and the process-wide clock adjustor."""
    clear_settings_cache()
    set_clock(None)
    yield
    clear_settings_cache()
    set_clock(None)


# =============================================================================
# STORAGE FIXTURES
# =============================================================================


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path."""
    return tmp_path / "test_fab_logs.db"


@pytest.fixture
def sqlite_backend(temp_db_path: Path):
    """Create and initialize a SQLite backend."""
    backend = get_backend("sqlite", db_path=temp_db_path)
    backend.initialize()
    yield backend
    backend.close()


@pytest.fixture
def allow_listed(sqlite_backend):
    """Severity map with the error ids worth storing."""
    for error_id, severity in [("E1001", "HIGH"), ("W2002", "LOW")]:
        sqlite_backend.execute(
            "INSERT INTO err_severity_map (error_id, severity) VALUES (:id, :sev)",
            {"id": error_id, "sev": severity},
        )
    return sqlite_backend


@pytest.fixture
def ref_equipment(sqlite_backend):
    """Equipment reference row with an SDWT."""
    sqlite_backend.execute(
        "INSERT INTO ref_equipment (eqpid, sdwt) VALUES (:eqpid, :sdwt)",
        {"eqpid": EQPID, "sdwt": "SDWT-A"},
    )
    return sqlite_backend


# =============================================================================
# PIPELINE FIXTURES
# =============================================================================


@pytest.fixture
def fixed_clock() -> OffsetClockSync:
    """Adjustor adding exactly two seconds."""
    return OffsetClockSync(offset=timedelta(seconds=2))


@pytest.fixture
def pipeline_settings(temp_db_path: Path, tmp_path: Path) -> Settings:
    """Settings with no retry delays."""
    return Settings(
        sqlite_db_path=str(temp_db_path),
        open_retries=2,
        open_retry_delay_seconds=0.0,
        log_dir=str(tmp_path / "Logs"),
        wafer_map_api_url="http://files:8080",
        batch=BatchSettings(
            batch_size=50,
            flush_interval_seconds=3600.0,
            write_retries=1,
            write_retry_delay_seconds=0.0,
        ),
    )


@pytest.fixture
def equipment_settings() -> dict:
    """Equipment settings source as the host passes it."""
    return {"Eqpid": EQPID}


@pytest.fixture
def plugin_kwargs(sqlite_backend, fixed_clock, pipeline_settings) -> dict:
    """Constructor arguments shared by every plugin under test."""
    return {
        "backend": sqlite_backend,
        "clock": fixed_clock,
        "config": pipeline_settings,
        "sleep": lambda seconds: None,
    }
