"""
Unit tests for settings loading and validation.
"""

from pathlib import Path

import pytest

from fab_log_pipeline.config.settings import BatchSettings, Settings, get_settings
from fab_log_pipeline.config.sops_loader import is_encrypted, load_config_file, load_yaml_file


class TestSettings:
    """Tests for Settings."""

    def test_defaults_are_valid(self) -> None:
        settings = Settings()

        assert settings.validate() == []
        assert settings.source_encoding == "cp949"
        assert settings.batch.batch_size == 50
        assert settings.batch.flush_interval_seconds == 3.0

    def test_from_dict(self) -> None:
        settings = Settings.from_dict(
            {
                "storage": {"backend": "postgres", "postgres_dsn": "host=db dbname=fab"},
                "ingestion": {"open_retries": 3},
                "clock": {"offset_seconds": 1.5, "utc_offset_hours": 9},
                "wafer_map": {"api_port": 9000},
                "batch": {"batch_size": 10},
            }
        )

        assert settings.storage_backend == "postgres"
        assert settings.open_retries == 3
        assert settings.clock_offset_seconds == 1.5
        assert settings.clock_utc_offset_hours == 9
        assert settings.wafer_map_api_port == 9000
        assert settings.batch.batch_size == 10
        assert settings.batch.flush_interval_seconds == 3.0

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FAB_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("FAB_BATCH_SIZE", "not-a-number")
        monkeypatch.setenv("FAB_DEBUG", "yes")
        monkeypatch.setenv("FAB_CLOCK_UTC_OFFSET_HOURS", "9")

        settings = Settings.from_env()

        assert settings.batch.batch_size == 50
        assert settings.debug is True
        assert settings.clock_utc_offset_hours == 9.0

    def test_validation_errors(self) -> None:
        settings = Settings(
            storage_backend="postgres",
            open_retries=0,
            source_encoding="no-such-codec",
            batch=BatchSettings(batch_size=0),
        )

        errors = settings.validate()

        assert any("postgres_dsn" in e for e in errors)
        assert any("open_retries" in e for e in errors)
        assert any("source_encoding" in e for e in errors)
        assert any("batch_size" in e for e in errors)


class TestGetSettings:
    """Tests for get_settings."""

    def test_loads_plain_yaml(self, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("storage:\n  sqlite_db_path: /tmp/x.db\nbatch:\n  batch_size: 7\n")

        settings = get_settings(str(config))

        assert settings.sqlite_db_path == "/tmp/x.db"
        assert settings.batch.batch_size == 7

    def test_missing_file_falls_back_to_env(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setenv("FAB_SOURCE_ENCODING", "utf-8")

        settings = get_settings(str(tmp_path / "missing.yaml"))

        assert settings.source_encoding == "utf-8"

    def test_non_mapping_yaml_rejected(self, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("- a\n- b\n")

        with pytest.raises(ValueError):
            load_yaml_file(config)


class TestConfigFiles:
    """Tests for the config file loaders."""

    def test_encrypted_suffix(self) -> None:
        assert is_encrypted("config.enc.yaml") is True
        assert is_encrypted("config.yaml") is False

    def test_plain_yaml(self, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("storage_backend: postgres\nopen_retries: 3\n")

        assert load_config_file(config) == {"storage_backend": "postgres", "open_retries": 3}

    def test_empty_yaml(self, tmp_path: Path) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("")

        assert load_config_file(config) == {}

    def test_missing_encrypted_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config_file(tmp_path / "secrets.enc.yaml")
