"""
Unit tests for daily log files.
"""

import logging
from datetime import datetime
from pathlib import Path

import pytest

from fab_log_pipeline.monitoring.daily_log import (
    DailyFileHandler,
    plugin_logger,
    set_debug,
    setup_logging,
)


@pytest.fixture
def package_logger():
    """The package logger, restored after the test."""
    target = logging.getLogger("fab_log_pipeline")
    handlers = list(target.handlers)
    level = target.level
    yield target
    for handler in list(target.handlers):
        if handler not in handlers:
            target.removeHandler(handler)
            handler.close()
    target.setLevel(level)


def _today() -> str:
    return datetime.now().strftime("%Y%m%d")


class TestDailyFileHandler:
    """Tests for DailyFileHandler routing."""

    def test_levels_route_to_files(self, tmp_path: Path, package_logger) -> None:
        setup_logging(tmp_path, debug=True)
        log = logging.getLogger("fab_log_pipeline.test")

        log.info("event line")
        log.error("error line")
        log.debug("debug line")

        assert "event line" in (tmp_path / f"{_today()}_event.log").read_text(encoding="utf-8")
        assert "error line" in (tmp_path / f"{_today()}_error.log").read_text(encoding="utf-8")
        assert "debug line" in (tmp_path / f"{_today()}_debug.log").read_text(encoding="utf-8")

    def test_debug_gated_off(self, tmp_path: Path, package_logger) -> None:
        setup_logging(tmp_path, debug=False)
        logging.getLogger("fab_log_pipeline.test").debug("hidden")

        assert not (tmp_path / f"{_today()}_debug.log").exists()

        set_debug(True)
        logging.getLogger("fab_log_pipeline.test").debug("shown")
        assert "shown" in (tmp_path / f"{_today()}_debug.log").read_text(encoding="utf-8")

    def test_plugin_label_in_line(self, tmp_path: Path, package_logger) -> None:
        setup_logging(tmp_path)
        adapter = plugin_logger(logging.getLogger("fab_log_pipeline.test"), "Prealign")

        adapter.info("3 sample(s)")

        line = (tmp_path / f"{_today()}_event.log").read_text(encoding="utf-8").strip()
        assert line.endswith("[Prealign] 3 sample(s)")

    def test_setup_replaces_previous_handler(self, tmp_path: Path, package_logger) -> None:
        setup_logging(tmp_path / "a")
        setup_logging(tmp_path / "b")

        handlers = [h for h in package_logger.handlers if isinstance(h, DailyFileHandler)]
        assert len(handlers) == 1
        assert handlers[0].log_dir == tmp_path / "b"

    def test_write_failure_is_swallowed(self, tmp_path: Path) -> None:
        """Test a log directory that cannot be created never raises."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        sleeps = []
        handler = DailyFileHandler(blocker / "Logs", sleep=sleeps.append)
        record = logging.LogRecord("fab_log_pipeline", logging.ERROR, __file__, 1, "x", None, None)

        handler.emit(record)

        assert len(sleeps) == 2
